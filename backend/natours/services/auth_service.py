"""
Natours Backend — Authentication Service
=========================================

What:  Signup, login, password change, and verification of the JWT that
       identifies a user on later requests.
How:   HS256 tokens signed with python-jose carry the user id (`id`) plus
       `iat`/`exp`. The token is returned in the response body and set as an
       http-only `jwt` cookie so the server-rendered views can use it too.

A token is rejected when:
    - it does not verify or has expired (JWTError / ExpiredSignatureError,
      translated to 401 by the error handler)
    - its user no longer exists or deactivated the account
    - the user changed password after the token was issued
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from fastapi.responses import JSONResponse
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from natours.config import Settings
from natours.exceptions import AuthenticationError, ValidationError
from natours.models import User
from natours.schemas import LoginIn, SignupIn, UpdatePasswordIn, UserOut
from natours.services.crud import parse_id
from natours.services.user_service import user_service

logger = logging.getLogger(__name__)

COOKIE_NAME = "jwt"
LOGGED_OUT = "loggedout"


def sign_token(user_id: Any, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "id": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=settings.jwt_expires_in_days)).timestamp()),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> Dict[str, Any]:
    """Verify signature and expiry; raises jose errors on failure."""
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def token_response(user: User, status_code: int, settings: Settings) -> JSONResponse:
    token = sign_token(user.id, settings)
    response = JSONResponse(
        status_code=status_code,
        content={
            "status": "success",
            "token": token,
            "data": {"user": UserOut.model_validate(user).model_dump(by_alias=True, mode="json")},
        },
    )
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=settings.jwt_cookie_expires_in_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


def logout_response() -> JSONResponse:
    response = JSONResponse(content={"status": "success"})
    response.set_cookie(COOKIE_NAME, LOGGED_OUT, max_age=10, httponly=True)
    return response


async def signup(db: AsyncSession, data: Mapping[str, Any]) -> User:
    payload = SignupIn.model_validate(dict(data))
    user = User(name=payload.name, email=payload.email.lower())
    user.set_password(payload.password)
    db.add(user)
    await db.flush()
    await db.refresh(user)
    logger.info("New user signed up: %s", user.id)
    return user


async def login(db: AsyncSession, data: Mapping[str, Any]) -> User:
    payload = LoginIn.model_validate(dict(data))
    if not payload.email or not payload.password:
        raise ValidationError("Please provide email and password!")

    user = await user_service.get_by_email(db, payload.email)
    if user is None or not user.check_password(payload.password):
        raise AuthenticationError("Incorrect email or password")
    return user


async def update_password(db: AsyncSession, user: User, data: Mapping[str, Any]) -> User:
    payload = UpdatePasswordIn.model_validate(dict(data))
    if not user.check_password(payload.password_current):
        raise AuthenticationError("Your current password is wrong.")
    user.set_password(payload.password, changed=True)
    await db.flush()
    logger.info("User %s changed their password", user.id)
    return user


async def authenticate(db: AsyncSession, token: Optional[str], settings: Settings) -> User:
    """Resolve a bearer/cookie token to the active user it was issued for."""
    if not token or token == LOGGED_OUT:
        raise AuthenticationError()

    claims = decode_token(token, settings)
    try:
        user_id = parse_id(claims.get("id"))
    except ValidationError:
        raise AuthenticationError("Invalid token. Please log in again!")

    user = await user_service.get_active(db, user_id)
    if user is None:
        raise AuthenticationError("The user belonging to this token does no longer exist.")

    if user.changed_password_after(int(claims.get("iat", 0))):
        raise AuthenticationError("User recently changed password! Please log in again.")
    return user
