"""Booking schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from natours.schemas.common import APIInput, APIModel


class BookingCreate(APIInput):
    tour: uuid.UUID
    user: uuid.UUID
    price: float = Field(gt=0)
    paid: bool = True


class BookingUpdate(APIInput):
    price: Optional[float] = Field(default=None, gt=0)
    paid: Optional[bool] = None


class BookingTour(APIModel):
    id: uuid.UUID
    name: str
    slug: str


class BookingOut(APIModel):
    id: uuid.UUID
    tour: Optional[BookingTour] = None
    user_id: uuid.UUID
    price: float
    paid: bool
    created_at: datetime
