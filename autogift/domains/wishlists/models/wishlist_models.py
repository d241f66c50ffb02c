"""Wishlist and wishlist item models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Mapped, mapped_column, relationship

from autogift.extensions import db


class Wishlist(db.Model):
    __tablename__ = "wishlist"
    __table_args__ = (db.Index("ix_wishlist_user_public", "user_id", "is_public"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(db.ForeignKey("user.id"), index=True, nullable=False)
    title: Mapped[str] = mapped_column(db.String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(db.String(128))
    is_public: Mapped[bool] = mapped_column(default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)

    items: Mapped[list["WishlistItem"]] = relationship(
        "WishlistItem",
        back_populates="wishlist",
        cascade="all, delete-orphan",
    )


class WishlistItem(db.Model):
    __tablename__ = "wishlist_item"

    id: Mapped[int] = mapped_column(primary_key=True)
    wishlist_id: Mapped[int] = mapped_column(
        db.ForeignKey("wishlist.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(db.String(255), nullable=False)
    brand: Mapped[str | None] = mapped_column(db.String(128))
    price: Mapped[Decimal | None] = mapped_column(db.Numeric(10, 2))
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)

    wishlist: Mapped[Wishlist] = relationship("Wishlist", back_populates="items")
