"""
Natours Backend — Tour Service
===============================

What:  Tour CRUD plus the two reporting endpoints (cheapest-top-5 alias and
       per-difficulty statistics).
Secret tours are filtered in base_statement(), which every query uses.
"""

import logging
from typing import Any, Dict, List, Mapping

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from natours.exceptions import NatoursError
from natours.models import Tour
from natours.models.tour import slugify
from natours.schemas import TourCreate, TourDetailOut, TourOut, TourUpdate
from natours.services.crud import CRUDService

logger = logging.getLogger(__name__)

TOUR_FIELDS = {
    "name": Tour.name,
    "slug": Tour.slug,
    "duration": Tour.duration,
    "maxGroupSize": Tour.max_group_size,
    "difficulty": Tour.difficulty,
    "ratingsAverage": Tour.ratings_average,
    "ratingsQuantity": Tour.ratings_quantity,
    "price": Tour.price,
    "priceDiscount": Tour.price_discount,
    "createdAt": Tour.created_at,
}

TOP_CHEAP_QUERY = {"limit": "5", "sort": "-ratingsAverage,price"}

STATS_MIN_RATING = 4.5


class TourService(CRUDService):
    model = Tour
    out_schema = TourOut
    create_schema = TourCreate
    update_schema = TourUpdate
    resource_name = "tour"
    api_fields = TOUR_FIELDS

    def base_filters(self) -> List[Any]:
        return [Tour.secret_tour.is_(False)]

    def build(self, values: Dict[str, Any]) -> Tour:
        return Tour(slug=slugify(values["name"]), **values)

    def apply(self, obj: Tour, values: Dict[str, Any]) -> None:
        super().apply(obj, values)
        if "name" in values:
            obj.slug = slugify(obj.name)
        if obj.price_discount is not None and obj.price_discount >= obj.price:
            raise NatoursError(
                f"Discount price ({obj.price_discount}) should be below regular price",
                status_code=400,
            )

    def serialize_detail(self, tour: Tour) -> Dict[str, Any]:
        """Single-tour representation including its reviews."""
        return TourDetailOut.model_validate(tour).model_dump(by_alias=True, mode="json")

    async def get_by_slug(self, db: AsyncSession, slug: str) -> Tour:
        result = await db.execute(self.base_statement().where(Tour.slug == slug))
        tour = result.scalar_one_or_none()
        if tour is None:
            raise NatoursError("There is no tour with that name.", status_code=404)
        return tour

    async def list_visible(self, db: AsyncSession) -> List[Tour]:
        result = await db.execute(self.base_statement().order_by(Tour.created_at.desc()))
        return list(result.scalars().all())

    async def top_cheap(self, db: AsyncSession, query: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """The `top-5-cheap` alias: the caller's query with limit and sort overridden."""
        aliased = dict(query)
        aliased.update(TOP_CHEAP_QUERY)
        return await self.get_all(db, aliased)

    async def stats(self, db: AsyncSession) -> List[Dict[str, Any]]:
        """Aggregates per difficulty over well-rated tours, cheapest average first."""
        avg_price = func.avg(Tour.price)
        statement = (
            select(
                Tour.difficulty,
                func.count(Tour.id).label("num_tours"),
                func.sum(Tour.ratings_quantity).label("num_ratings"),
                func.avg(Tour.ratings_average).label("avg_rating"),
                avg_price.label("avg_price"),
                func.min(Tour.price).label("min_price"),
                func.max(Tour.price).label("max_price"),
            )
            .where(*self.base_filters(), Tour.ratings_average >= STATS_MIN_RATING)
            .group_by(Tour.difficulty)
            .order_by(avg_price)
        )
        result = await db.execute(statement)
        return [
            {
                "difficulty": row.difficulty.upper(),
                "numTours": row.num_tours,
                "numRatings": int(row.num_ratings or 0),
                "avgRating": round(float(row.avg_rating), 2),
                "avgPrice": round(float(row.avg_price), 2),
                "minPrice": row.min_price,
                "maxPrice": row.max_price,
            }
            for row in result
        ]


tour_service = TourService()
