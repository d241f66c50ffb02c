"""Connection and special-date models (written by the social layer, read by the engine)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column

from autogift.extensions import db


class UserConnection(db.Model):
    __tablename__ = "user_connection"
    __table_args__ = (
        db.Index("ux_user_connection_pair", "user_id", "connected_user_id", unique=True),
        db.Index("ix_user_connection_user_status", "user_id", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), index=True, nullable=False)
    connected_user_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), index=True, nullable=False)
    relationship_type: Mapped[str | None] = mapped_column(db.String(32))
    status: Mapped[str] = mapped_column(db.String(16), default="pending", nullable=False)
    data_access_permissions: Mapped[dict] = mapped_column(db.JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)


class UserSpecialDate(db.Model):
    __tablename__ = "user_special_date"
    __table_args__ = (db.Index("ix_user_special_date_user_type", "user_id", "date_type"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), index=True, nullable=False)
    date_type: Mapped[str] = mapped_column(db.String(64), nullable=False)
    # Full ISO date ("2026-11-03") or a recurring "MM-DD" pattern.
    date: Mapped[str] = mapped_column(db.String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
