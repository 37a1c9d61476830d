"""User and authentication schemas."""

import uuid
from typing import Literal, Optional

from pydantic import EmailStr, Field, model_validator

from natours.schemas.common import APIInput, APIModel

Role = Literal["user", "guide", "lead-guide", "admin"]


class SignupIn(APIInput):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8)
    password_confirm: str

    @model_validator(mode="after")
    def passwords_match(self) -> "SignupIn":
        if self.password != self.password_confirm:
            raise ValueError("Passwords are not the same!")
        return self


class LoginIn(APIInput):
    email: Optional[str] = None
    password: Optional[str] = None


class UpdatePasswordIn(APIInput):
    password_current: str
    password: str = Field(min_length=8)
    password_confirm: str

    @model_validator(mode="after")
    def passwords_match(self) -> "UpdatePasswordIn":
        if self.password != self.password_confirm:
            raise ValueError("Passwords are not the same!")
        return self


class UpdateMeIn(APIInput):
    """Only profile fields; password and role changes have their own routes."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    photo: Optional[str] = None


class UserUpdate(APIInput):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    photo: Optional[str] = None
    role: Optional[Role] = None


class UserOut(APIModel):
    id: uuid.UUID
    name: str
    email: str
    photo: str
    role: str
