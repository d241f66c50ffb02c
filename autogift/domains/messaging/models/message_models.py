"""Direct message model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column

from autogift.extensions import db


class Message(db.Model):
    __tablename__ = "message"
    __table_args__ = (
        db.Index("ix_message_pair_created_at", "sender_id", "recipient_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    sender_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), index=True, nullable=False)
    recipient_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), index=True, nullable=False)
    content: Mapped[str | None] = mapped_column(db.Text)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, index=True)
