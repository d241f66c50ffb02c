"""Persisted intelligence cache rows."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column

from autogift.extensions import db


class GiftIntelligenceCache(db.Model):
    __tablename__ = "gift_intelligence_cache"
    __table_args__ = (
        db.Index(
            "ix_gift_intelligence_cache_lookup",
            "user_id",
            "recipient_id",
            "intelligence_type",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), index=True, nullable=False)
    recipient_id: Mapped[int | None] = mapped_column(db.ForeignKey("user.id"), nullable=True)
    intelligence_type: Mapped[str] = mapped_column(db.String(64), nullable=False)
    cache_data: Mapped[dict] = mapped_column(db.JSON, nullable=False, default=dict)
    expires_at: Mapped[datetime] = mapped_column(nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
