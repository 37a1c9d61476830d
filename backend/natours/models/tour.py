"""
Natours Backend — Tour Model
=============================

What:  ORM model for the `tours` table.
Who:   Used by TourService for CRUD and aggregation, by views for rendering.

Secret tours are stored like any other tour but are excluded from every
query the application issues (see TourService.base_filters).
"""

import re
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from natours.database import Base

DIFFICULTIES = ("easy", "medium", "difficult")


def slugify(value: str) -> str:
    """'The Forest Hiker' -> 'the-forest-hiker'"""
    slug = re.sub(r"[^\w\s-]", "", value.lower()).strip()
    return re.sub(r"[\s_-]+", "-", slug)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Tour(Base):
    __tablename__ = "tours"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(60), index=True, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    max_group_size: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False)

    ratings_average: Mapped[float] = mapped_column(Float, default=4.5, nullable=False)
    ratings_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    price: Mapped[float] = mapped_column(Float, index=True, nullable=False)
    price_discount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    summary: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_cover: Mapped[str] = mapped_column(String(255), nullable=False)
    images: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    start_dates: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    secret_tour: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    reviews = relationship(
        "Review",
        back_populates="tour",
        cascade="all, delete",
        lazy="selectin",
    )

    @property
    def duration_weeks(self) -> float:
        return round(self.duration / 7, 2)

    def __repr__(self) -> str:
        return f"<Tour {self.name!r} ({self.difficulty}, ${self.price})>"
