"""
Natours Backend — Pydantic Request/Response Schemas
====================================================

What:  The API contract. Field names travel as camelCase on the wire
       (`maxGroupSize`, `ratingsAverage`) and snake_case in Python.
How:   Input schemas validate the sanitized body held on the Request
       Context; output schemas serialize ORM objects with
       `model_dump(by_alias=True, mode="json")`.
"""

from natours.schemas.booking import BookingCreate, BookingOut, BookingUpdate
from natours.schemas.review import ReviewCreate, ReviewOut, ReviewUpdate
from natours.schemas.tour import TourCreate, TourDetailOut, TourOut, TourUpdate
from natours.schemas.user import (
    LoginIn,
    SignupIn,
    UpdateMeIn,
    UpdatePasswordIn,
    UserOut,
    UserUpdate,
)

__all__ = [
    "BookingCreate",
    "BookingOut",
    "BookingUpdate",
    "LoginIn",
    "ReviewCreate",
    "ReviewOut",
    "ReviewUpdate",
    "SignupIn",
    "TourCreate",
    "TourDetailOut",
    "TourOut",
    "TourUpdate",
    "UpdateMeIn",
    "UpdatePasswordIn",
    "UserOut",
    "UserUpdate",
]
