"""Auto-gifting rule model with engine-written intelligence snapshots."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Mapped, mapped_column

from autogift.extensions import db


class AutoGiftingRule(db.Model):
    __tablename__ = "auto_gifting_rule"
    __table_args__ = (
        db.Index("ix_auto_gifting_rule_user_recipient", "user_id", "recipient_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), index=True, nullable=False)
    recipient_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), index=True, nullable=False)
    date_type: Mapped[str] = mapped_column(db.String(64), nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    budget_limit: Mapped[Decimal | None] = mapped_column(db.Numeric(10, 2))
    gift_preferences: Mapped[dict] = mapped_column(db.JSON, default=dict)

    # Opaque snapshots written by the intelligence engine
    relationship_context: Mapped[dict] = mapped_column(db.JSON, default=dict)
    recipient_lifestyle_factors: Mapped[dict] = mapped_column(db.JSON, default=dict)
    seasonal_adjustment_factors: Mapped[dict] = mapped_column(db.JSON, default=dict)
    success_metrics: Mapped[dict] = mapped_column(db.JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)
