"""
Natours Backend — Booking Service
==================================

What:  Booking CRUD, the tours a user has booked, and booking creation from
       a completed checkout session delivered by the payment webhook.
"""

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from natours.exceptions import NotFoundError, ValidationError
from natours.models import Booking, Tour, User
from natours.schemas import BookingCreate, BookingOut, BookingUpdate
from natours.services.crud import CRUDService, parse_id
from natours.services.payment_gateway import CHECKOUT_COMPLETED

logger = logging.getLogger(__name__)

BOOKING_FIELDS = {
    "price": Booking.price,
    "paid": Booking.paid,
    "createdAt": Booking.created_at,
    "tour": Booking.tour_id,
    "user": Booking.user_id,
}


class BookingService(CRUDService):
    model = Booking
    out_schema = BookingOut
    create_schema = BookingCreate
    update_schema = BookingUpdate
    resource_name = "booking"
    api_fields = BOOKING_FIELDS

    def validate_create(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        values = super().validate_create(data)
        return {
            "tour_id": values["tour"],
            "user_id": values["user"],
            "price": values["price"],
            "paid": values["paid"],
        }

    async def create_one(self, db: AsyncSession, data: Mapping[str, Any]) -> Booking:
        values = self.validate_create(data)
        if await db.get(Tour, values["tour_id"]) is None:
            raise NotFoundError(resource="tour", resource_id=str(values["tour_id"]))
        if await db.get(User, values["user_id"]) is None:
            raise NotFoundError(resource="user", resource_id=str(values["user_id"]))
        booking = Booking(**values)
        db.add(booking)
        await db.flush()
        await db.refresh(booking)
        logger.info("Created booking %s", booking.id)
        return booking

    async def booked_tours(self, db: AsyncSession, user_id: uuid.UUID) -> List[Tour]:
        result = await db.execute(
            select(Tour)
            .join(Booking, Booking.tour_id == Tour.id)
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc())
        )
        return list(result.scalars().unique().all())

    async def create_from_checkout(self, db: AsyncSession, session: Mapping[str, Any]) -> Booking:
        """Record the booking for a completed checkout session."""
        tour_ref = session.get("client_reference_id")
        email = session.get("customer_email")
        amount = session.get("amount_total")
        if not tour_ref or not email or amount is None:
            raise ValidationError("Checkout session is missing booking details")

        tour_id = parse_id(tour_ref)
        result = await db.execute(select(User).where(User.email == str(email).lower()))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(resource="user")

        try:
            price = int(amount) / 100
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid amount_total: {amount}")

        return await self.create_one(
            db, {"tour": tour_id, "user": user.id, "price": price, "paid": True}
        )

    async def handle_event(self, db: AsyncSession, event: Mapping[str, Any]) -> Optional[Booking]:
        """Process one verified webhook event; other event types are acknowledged and ignored."""
        if event.get("type") != CHECKOUT_COMPLETED:
            logger.info("Ignoring webhook event %s", event.get("type"))
            return None
        data = event.get("data") or {}
        if not isinstance(data, dict):
            raise ValidationError("Invalid event data")
        session = data.get("object") or {}
        if not isinstance(session, dict):
            raise ValidationError("Invalid event data")
        return await self.create_from_checkout(db, session)


booking_service = BookingService()
