"""Review schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from natours.schemas.common import APIInput, APIModel


class ReviewCreate(APIInput):
    review: str = Field(min_length=1)
    rating: float = Field(ge=1, le=5)
    tour: Optional[uuid.UUID] = None
    user: Optional[uuid.UUID] = None


class ReviewUpdate(APIInput):
    review: Optional[str] = Field(default=None, min_length=1)
    rating: Optional[float] = Field(default=None, ge=1, le=5)


class ReviewAuthor(APIModel):
    id: uuid.UUID
    name: str
    photo: str


class ReviewOut(APIModel):
    id: uuid.UUID
    review: str
    rating: float
    created_at: datetime
    tour_id: uuid.UUID
    user: Optional[ReviewAuthor] = None
