"""Gifting profile model holding preference, history and interest blobs."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column

from autogift.extensions import db


class Profile(db.Model):
    __tablename__ = "profile"

    user_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), primary_key=True)
    interests: Mapped[list] = mapped_column(db.JSON, default=list)
    gift_preferences: Mapped[dict] = mapped_column(db.JSON, default=dict)
    gifting_history: Mapped[dict] = mapped_column(db.JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)
