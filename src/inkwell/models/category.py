"""SQLAlchemy model for the category hierarchy."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inkwell.db.session import Base
from inkwell.db.time import UTCDateTime, utcnow


class Category(Base):
    """Node of the category tree; siblings are sorted by ``order``."""

    __tablename__ = "category"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(80), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    parent_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("category.id"),
        nullable=True,
        index=True,
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    # Number of posts filed under this category; see CounterLedger.
    post_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    parent: Mapped[Category | None] = relationship(
        "Category",
        remote_side=[id],
        back_populates="children",
    )
    children: Mapped[list[Category]] = relationship(
        "Category",
        back_populates="parent",
        order_by="Category.order",
    )
