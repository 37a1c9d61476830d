"""
Natours Backend — Review Service
=================================

What:  Review CRUD and the rating aggregate kept on each tour.
How:   After every create, update or delete the tour's ratingsQuantity and
       ratingsAverage are recomputed from its reviews in the same
       transaction. A tour with no reviews returns to the defaults
       (0 ratings, average 4.5).
"""

import logging
import uuid
from typing import Any, Dict, Mapping

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from natours.exceptions import NotFoundError, ValidationError
from natours.models import Review, Tour, User
from natours.schemas import ReviewCreate, ReviewOut, ReviewUpdate
from natours.services.crud import CRUDService, parse_id

logger = logging.getLogger(__name__)

DEFAULT_RATINGS_AVERAGE = 4.5

REVIEW_FIELDS = {
    "rating": Review.rating,
    "createdAt": Review.created_at,
    "tour": Review.tour_id,
    "user": Review.user_id,
}


async def calc_average_ratings(db: AsyncSession, tour_id: uuid.UUID) -> None:
    row = (
        await db.execute(
            select(func.count(Review.id), func.avg(Review.rating)).where(
                Review.tour_id == tour_id
            )
        )
    ).one()
    count, average = row

    tour = await db.get(Tour, tour_id)
    if tour is None:
        return
    if count:
        tour.ratings_quantity = count
        tour.ratings_average = round(float(average), 1)
    else:
        tour.ratings_quantity = 0
        tour.ratings_average = DEFAULT_RATINGS_AVERAGE
    await db.flush()
    logger.debug("Tour %s now has %d ratings (avg %s)", tour_id, count, tour.ratings_average)


class ReviewService(CRUDService):
    model = Review
    out_schema = ReviewOut
    create_schema = ReviewCreate
    update_schema = ReviewUpdate
    resource_name = "review"
    api_fields = REVIEW_FIELDS

    def validate_create(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        values = super().validate_create(data)
        return {
            "review": values["review"],
            "rating": values["rating"],
            "tour_id": values["tour"],
            "user_id": values["user"],
        }

    async def create_one(self, db: AsyncSession, data: Mapping[str, Any]) -> Review:
        """`data` must carry `tour` and `user`; the routes fill them from the path and login."""
        payload = dict(data)
        if payload.get("tour") is None:
            raise ValidationError("Review must belong to a tour.", field="tour")
        if payload.get("user") is None:
            raise ValidationError("Review must belong to a user.", field="user")

        tour_id = parse_id(payload["tour"])
        tour = await db.get(Tour, tour_id)
        if tour is None or tour.secret_tour:
            raise NotFoundError(resource="tour", resource_id=str(tour_id))
        user = await db.get(User, parse_id(payload["user"]))
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(payload["user"]))

        review = await super().create_one(db, payload)
        await calc_average_ratings(db, review.tour_id)
        return review

    async def update_one(self, db: AsyncSession, object_id: Any, data: Mapping[str, Any]) -> Review:
        review = await super().update_one(db, object_id, data)
        await calc_average_ratings(db, review.tour_id)
        return review

    async def delete_one(self, db: AsyncSession, object_id: Any) -> None:
        review = await self.find(db, object_id)
        tour_id = review.tour_id
        await db.delete(review)
        await db.flush()
        await calc_average_ratings(db, tour_id)


review_service = ReviewService()
