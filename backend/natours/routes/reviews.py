"""Natours Backend — Review Routes (all require a logged-in user)."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from natours.context import RequestContext
from natours.database import get_db_session
from natours.models import User
from natours.routes.dependencies import get_context, protect, request_body, restrict_to
from natours.routes.responses import deleted_response, document_response, list_response
from natours.services.review_service import review_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/reviews", tags=["Reviews"])

review_authors = restrict_to("user", "admin")


@router.get("", summary="List reviews")
@router.get("/", include_in_schema=False)
async def get_all_reviews(
    _: User = Depends(protect),
    context: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    documents = await review_service.get_all(db, context.query)
    return list_response(documents, context)


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create a review")
@router.post("/", include_in_schema=False, status_code=status.HTTP_201_CREATED)
async def create_review(
    body: Dict[str, Any] = Depends(request_body),
    user: User = Depends(restrict_to("user")),
    db: AsyncSession = Depends(get_db_session),
):
    body["user"] = str(user.id)
    review = await review_service.create_one(db, body)
    return document_response(review_service.serialize(review), status.HTTP_201_CREATED)


@router.get("/{review_id}", summary="Get one review")
async def get_review(
    review_id: str,
    _: User = Depends(protect),
    db: AsyncSession = Depends(get_db_session),
):
    review = await review_service.get_one(db, review_id)
    return document_response(review_service.serialize(review))


@router.patch("/{review_id}", summary="Update a review")
async def update_review(
    review_id: str,
    body: Dict[str, Any] = Depends(request_body),
    _: User = Depends(review_authors),
    db: AsyncSession = Depends(get_db_session),
):
    review = await review_service.update_one(db, review_id, body)
    return document_response(review_service.serialize(review))


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a review")
async def delete_review(
    review_id: str,
    _: User = Depends(review_authors),
    db: AsyncSession = Depends(get_db_session),
):
    await review_service.delete_one(db, review_id)
    return deleted_response()
