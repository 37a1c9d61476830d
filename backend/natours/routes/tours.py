"""
Natours Backend — Tour Routes
==============================

    GET    /api/v1/tours                    list (filter, sort, fields, page)
    POST   /api/v1/tours                    create          admin, lead-guide
    GET    /api/v1/tours/top-5-cheap        alias over the list query
    GET    /api/v1/tours/tour-stats         aggregates by difficulty
    GET    /api/v1/tours/{id}               one tour with its reviews
    PATCH  /api/v1/tours/{id}               update          admin, lead-guide
    DELETE /api/v1/tours/{id}               delete          admin, lead-guide
    GET    /api/v1/tours/{id}/reviews       reviews of one tour
    POST   /api/v1/tours/{id}/reviews       review a tour   user

Static segments are registered before `/{tour_id}` so they are not captured
as ids.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from natours.context import RequestContext
from natours.database import get_db_session
from natours.models import Review, User
from natours.routes.dependencies import get_context, request_body, restrict_to
from natours.routes.responses import (
    data_response,
    deleted_response,
    document_response,
    list_response,
)
from natours.services.crud import parse_id
from natours.services.review_service import review_service
from natours.services.tour_service import tour_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tours", tags=["Tours"])

manage_tours = restrict_to("admin", "lead-guide")


@router.get("/top-5-cheap", summary="Five best-rated, cheapest tours")
async def top_five_cheap(
    context: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    documents = await tour_service.top_cheap(db, context.query)
    return list_response(documents, context)


@router.get("/tour-stats", summary="Tour statistics grouped by difficulty")
async def tour_stats(db: AsyncSession = Depends(get_db_session)) -> Dict[str, Any]:
    stats = await tour_service.stats(db)
    return data_response({"stats": stats})


@router.get("", summary="List tours")
@router.get("/", include_in_schema=False)
async def get_all_tours(
    context: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    documents = await tour_service.get_all(db, context.query)
    return list_response(documents, context)


@router.post("", summary="Create a tour", status_code=status.HTTP_201_CREATED)
@router.post("/", include_in_schema=False, status_code=status.HTTP_201_CREATED)
async def create_tour(
    body: Dict[str, Any] = Depends(request_body),
    _: User = Depends(manage_tours),
    db: AsyncSession = Depends(get_db_session),
):
    tour = await tour_service.create_one(db, body)
    return document_response(tour_service.serialize(tour), status.HTTP_201_CREATED)


@router.get("/{tour_id}", summary="Get one tour")
async def get_tour(tour_id: str, db: AsyncSession = Depends(get_db_session)):
    tour = await tour_service.get_one(db, tour_id)
    return document_response(tour_service.serialize_detail(tour))


@router.patch("/{tour_id}", summary="Update a tour")
async def update_tour(
    tour_id: str,
    body: Dict[str, Any] = Depends(request_body),
    _: User = Depends(manage_tours),
    db: AsyncSession = Depends(get_db_session),
):
    tour = await tour_service.update_one(db, tour_id, body)
    return document_response(tour_service.serialize(tour))


@router.delete("/{tour_id}", summary="Delete a tour", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tour(
    tour_id: str,
    _: User = Depends(manage_tours),
    db: AsyncSession = Depends(get_db_session),
):
    await tour_service.delete_one(db, tour_id)
    return deleted_response()


# ── Nested reviews ────────────────────────────────────────────────────────
@router.get("/{tour_id}/reviews", summary="List the reviews of a tour")
async def get_tour_reviews(
    tour_id: str,
    context: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    documents = await review_service.get_all(
        db, context.query, filters=[Review.tour_id == parse_id(tour_id)]
    )
    return list_response(documents, context)


@router.post(
    "/{tour_id}/reviews",
    summary="Review a tour",
    status_code=status.HTTP_201_CREATED,
)
async def create_tour_review(
    tour_id: str,
    body: Dict[str, Any] = Depends(request_body),
    user: User = Depends(restrict_to("user")),
    db: AsyncSession = Depends(get_db_session),
):
    body.setdefault("tour", tour_id)
    body["user"] = str(user.id)
    review = await review_service.create_one(db, body)
    return document_response(review_service.serialize(review), status.HTTP_201_CREATED)
