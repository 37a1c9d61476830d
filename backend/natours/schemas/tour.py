"""Tour schemas."""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, model_validator

from natours.schemas.common import APIInput, APIModel
from natours.schemas.review import ReviewOut

Difficulty = Literal["easy", "medium", "difficult"]


class TourCreate(APIInput):
    name: str = Field(min_length=10, max_length=40)
    duration: int = Field(gt=0)
    max_group_size: int = Field(gt=0)
    difficulty: Difficulty
    ratings_average: float = Field(default=4.5, ge=1, le=5)
    ratings_quantity: int = Field(default=0, ge=0)
    price: float = Field(gt=0)
    price_discount: Optional[float] = Field(default=None, ge=0)
    summary: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    image_cover: str = Field(min_length=1)
    images: List[str] = Field(default_factory=list)
    start_dates: List[str] = Field(default_factory=list)
    secret_tour: bool = False

    @model_validator(mode="after")
    def discount_below_price(self) -> "TourCreate":
        if self.price_discount is not None and self.price_discount >= self.price:
            raise ValueError(
                f"Discount price ({self.price_discount}) should be below regular price"
            )
        return self


class TourUpdate(APIInput):
    name: Optional[str] = Field(default=None, min_length=10, max_length=40)
    duration: Optional[int] = Field(default=None, gt=0)
    max_group_size: Optional[int] = Field(default=None, gt=0)
    difficulty: Optional[Difficulty] = None
    ratings_average: Optional[float] = Field(default=None, ge=1, le=5)
    ratings_quantity: Optional[int] = Field(default=None, ge=0)
    price: Optional[float] = Field(default=None, gt=0)
    price_discount: Optional[float] = Field(default=None, ge=0)
    summary: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    image_cover: Optional[str] = None
    images: Optional[List[str]] = None
    start_dates: Optional[List[str]] = None
    secret_tour: Optional[bool] = None


class TourOut(APIModel):
    id: uuid.UUID
    name: str
    slug: str
    duration: int
    duration_weeks: float
    max_group_size: int
    difficulty: str
    ratings_average: float
    ratings_quantity: int
    price: float
    price_discount: Optional[float] = None
    summary: str
    description: Optional[str] = None
    image_cover: str
    images: List[str] = Field(default_factory=list)
    start_dates: List[str] = Field(default_factory=list)
    created_at: datetime


class TourDetailOut(TourOut):
    reviews: List[ReviewOut] = Field(default_factory=list)
