"""
Natours Backend — Booking Routes and Payment Webhook
=====================================================

    GET  /api/v1/bookings/checkout-session/{tour_id}   logged-in user
    GET|POST /api/v1/bookings, GET|PATCH|DELETE /{id}  admin, lead-guide
    POST /webhook-checkout                             payment provider

The webhook handler verifies the provider's signature over
`context.raw_body`, the exact bytes captured by the body stage. It is not
under /api, so the rate limiter does not apply to it.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from natours.config import Settings
from natours.context import RequestContext
from natours.database import get_db_session
from natours.models import User
from natours.routes.dependencies import (
    get_context,
    get_payments,
    get_settings,
    protect,
    request_body,
    restrict_to,
)
from natours.routes.responses import deleted_response, document_response, list_response
from natours.services.booking_service import booking_service
from natours.services.payment_gateway import PaymentAdapter
from natours.services.tour_service import tour_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/bookings", tags=["Bookings"])
webhook_router = APIRouter(tags=["Payments"])

manage_bookings = restrict_to("admin", "lead-guide")


@router.get("/checkout-session/{tour_id}", summary="Start paying for a tour")
async def get_checkout_session(
    tour_id: str,
    user: User = Depends(protect),
    payments: PaymentAdapter = Depends(get_payments),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    tour = await tour_service.get_one(db, tour_id)
    base_url = settings.public_base_url.rstrip("/")
    session = payments.create_session(
        tour=tour,
        customer_email=user.email,
        success_url=f"{base_url}/my-tours?alert=booking",
        cancel_url=f"{base_url}/tour/{tour.slug}",
    )
    return {"status": "success", "session": session}


@router.get("", summary="List bookings")
@router.get("/", include_in_schema=False)
async def get_all_bookings(
    _: User = Depends(manage_bookings),
    context: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    documents = await booking_service.get_all(db, context.query)
    return list_response(documents, context)


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create a booking")
@router.post("/", include_in_schema=False, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: Dict[str, Any] = Depends(request_body),
    _: User = Depends(manage_bookings),
    db: AsyncSession = Depends(get_db_session),
):
    booking = await booking_service.create_one(db, body)
    return document_response(booking_service.serialize(booking), status.HTTP_201_CREATED)


@router.get("/{booking_id}", summary="Get one booking")
async def get_booking(
    booking_id: str,
    _: User = Depends(manage_bookings),
    db: AsyncSession = Depends(get_db_session),
):
    booking = await booking_service.get_one(db, booking_id)
    return document_response(booking_service.serialize(booking))


@router.patch("/{booking_id}", summary="Update a booking")
async def update_booking(
    booking_id: str,
    body: Dict[str, Any] = Depends(request_body),
    _: User = Depends(manage_bookings),
    db: AsyncSession = Depends(get_db_session),
):
    booking = await booking_service.update_one(db, booking_id, body)
    return document_response(booking_service.serialize(booking))


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a booking")
async def delete_booking(
    booking_id: str,
    _: User = Depends(manage_bookings),
    db: AsyncSession = Depends(get_db_session),
):
    await booking_service.delete_one(db, booking_id)
    return deleted_response()


# ── Payment webhook ───────────────────────────────────────────────────────
@webhook_router.post("/webhook-checkout", summary="Payment provider webhook")
async def webhook_checkout(
    request: Request,
    context: RequestContext = Depends(get_context),
    payments: PaymentAdapter = Depends(get_payments),
    db: AsyncSession = Depends(get_db_session),
) -> Dict[str, Any]:
    payload = context.raw_body if context.raw_body is not None else await request.body()
    event = payments.verify_webhook(payload, request.headers)
    booking = await booking_service.handle_event(db, event)
    if booking is not None:
        logger.info("Booking %s created from checkout webhook", booking.id)
    return {"received": True}
