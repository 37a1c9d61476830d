"""
Natours Backend — User and Authentication Routes
=================================================

Public:         POST /signup, POST /login, GET /logout
Logged in:      PATCH /updateMyPassword, GET /me, PATCH /updateMe,
                DELETE /deleteMe
Admin only:     GET /, GET|PATCH|DELETE /{id}
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from natours.config import Settings
from natours.context import RequestContext
from natours.database import get_db_session
from natours.exceptions import ValidationError
from natours.models import User
from natours.routes.dependencies import (
    get_context,
    get_settings,
    protect,
    request_body,
    restrict_to,
)
from natours.routes.responses import deleted_response, document_response, list_response
from natours.services import auth_service
from natours.services.user_service import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])

admin_only = restrict_to("admin")


# ── Authentication ────────────────────────────────────────────────────────
@router.post("/signup", status_code=status.HTTP_201_CREATED, summary="Create an account")
async def signup(
    body: Dict[str, Any] = Depends(request_body),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db_session),
):
    user = await auth_service.signup(db, body)
    return auth_service.token_response(user, status.HTTP_201_CREATED, settings)


@router.post("/login", summary="Log in with email and password")
async def login(
    body: Dict[str, Any] = Depends(request_body),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db_session),
):
    user = await auth_service.login(db, body)
    return auth_service.token_response(user, status.HTTP_200_OK, settings)


@router.get("/logout", summary="Clear the login cookie")
async def logout():
    return auth_service.logout_response()


@router.patch("/updateMyPassword", summary="Change the current user's password")
async def update_my_password(
    body: Dict[str, Any] = Depends(request_body),
    user: User = Depends(protect),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db_session),
):
    user = await auth_service.update_password(db, user, body)
    return auth_service.token_response(user, status.HTTP_200_OK, settings)


# ── Current user ──────────────────────────────────────────────────────────
@router.get("/me", summary="The logged-in user")
async def get_me(user: User = Depends(protect)):
    return document_response(user_service.serialize(user))


@router.patch("/updateMe", summary="Update the logged-in user's profile")
async def update_me(
    body: Dict[str, Any] = Depends(request_body),
    user: User = Depends(protect),
    db: AsyncSession = Depends(get_db_session),
):
    if "password" in body or "passwordConfirm" in body:
        raise ValidationError(
            "This route is not for password updates. Please use /updateMyPassword."
        )
    user = await user_service.update_me(db, user, body)
    return document_response(user_service.serialize(user))


@router.delete("/deleteMe", status_code=status.HTTP_204_NO_CONTENT, summary="Deactivate account")
async def delete_me(
    user: User = Depends(protect),
    db: AsyncSession = Depends(get_db_session),
):
    await user_service.deactivate(db, user)
    return deleted_response()


# ── Administration ────────────────────────────────────────────────────────
@router.get("", summary="List users")
@router.get("/", include_in_schema=False)
async def get_all_users(
    _: User = Depends(admin_only),
    context: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    documents = await user_service.get_all(db, context.query)
    return list_response(documents, context)


@router.get("/{user_id}", summary="Get one user")
async def get_user(
    user_id: str,
    _: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db_session),
):
    user = await user_service.get_one(db, user_id)
    return document_response(user_service.serialize(user))


@router.patch("/{user_id}", summary="Update a user (not the password)")
async def update_user(
    user_id: str,
    body: Dict[str, Any] = Depends(request_body),
    _: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db_session),
):
    user = await user_service.update_one(db, user_id, body)
    return document_response(user_service.serialize(user))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a user")
async def delete_user(
    user_id: str,
    _: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db_session),
):
    await user_service.delete_one(db, user_id)
    return deleted_response()
