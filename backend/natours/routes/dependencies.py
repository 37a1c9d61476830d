"""
Natours Backend — Route Dependencies
=====================================

FastAPI dependencies shared by every route group: settings, the Request
Context, the sanitized body, and the authentication guards.

    protect              401 unless a valid token identifies an active user
    restrict_to(*roles)  403 unless the protected user has one of the roles
    optional_user        the logged-in user for views, or None
"""

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, Request
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from natours.config import Settings
from natours.context import RequestContext, get_request_context
from natours.database import get_db_session
from natours.exceptions import AuthenticationError, PermissionDeniedError
from natours.models import User
from natours.services import auth_service
from natours.services.payment_gateway import PaymentAdapter

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_context(request: Request) -> RequestContext:
    return get_request_context(request)


def request_body(context: RequestContext = Depends(get_context)) -> Dict[str, Any]:
    """The parsed, sanitized body; empty when the request carried none."""
    return dict(context.body or {})


def get_payments(request: Request) -> PaymentAdapter:
    return request.app.state.payments


def extract_token(request: Request, context: RequestContext) -> Optional[str]:
    authorization = request.headers.get("authorization", "")
    if authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip()
    return context.cookies.get(auth_service.COOKIE_NAME)


async def protect(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    context: RequestContext = Depends(get_context),
    settings: Settings = Depends(get_settings),
) -> User:
    token = extract_token(request, context)
    user = await auth_service.authenticate(db, token, settings)
    context.user = user
    return user


def restrict_to(*roles: str) -> Callable:
    async def check_role(user: User = Depends(protect)) -> User:
        if user.role not in roles:
            raise PermissionDeniedError()
        return user

    return check_role


async def optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
    context: RequestContext = Depends(get_context),
    settings: Settings = Depends(get_settings),
) -> Optional[User]:
    """Views render for anonymous visitors too; a bad cookie just means logged out."""
    token = context.cookies.get(auth_service.COOKIE_NAME)
    if not token or token == auth_service.LOGGED_OUT:
        return None
    try:
        user = await auth_service.authenticate(db, token, settings)
    except (JWTError, AuthenticationError):
        return None
    context.user = user
    return user
