"""
Natours Backend — Server-Rendered Views
========================================

What:  HTML pages rendered with Jinja2 from natours/templates.
How:   Every page knows the logged-in user (if any) through the `jwt` cookie.
       `/me` and `/my-tours` require login; errors on these paths render
       error.html through the global error handler.

    ?alert=booking   shows the confirmation the checkout success URL asks for
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from natours.database import get_db_session
from natours.models import User
from natours.routes.dependencies import optional_user, protect
from natours.services.booking_service import booking_service
from natours.services.tour_service import tour_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Views"], include_in_schema=False)

ALERTS = {
    "booking": (
        "Your booking was successful! Please check your email for a confirmation. "
        "If your booking doesn't show up here immediately, please come back later."
    ),
}


def render(request: Request, template: str, user: Optional[User], **context):
    templates = request.app.state.templates
    alert = ALERTS.get(request.query_params.get("alert", ""))
    return templates.TemplateResponse(
        request,
        template,
        {"user": user, "alert": alert, **context},
    )


@router.get("/")
async def overview(
    request: Request,
    user: Optional[User] = Depends(optional_user),
    db: AsyncSession = Depends(get_db_session),
):
    tours = await tour_service.list_visible(db)
    return render(request, "overview.html", user, title="All Tours", tours=tours)


@router.get("/tour/{slug}")
async def tour_page(
    slug: str,
    request: Request,
    user: Optional[User] = Depends(optional_user),
    db: AsyncSession = Depends(get_db_session),
):
    tour = await tour_service.get_by_slug(db, slug)
    return render(request, "tour.html", user, title=f"{tour.name} Tour", tour=tour)


@router.get("/login")
async def login_form(request: Request, user: Optional[User] = Depends(optional_user)):
    return render(request, "login.html", user, title="Log into your account")


@router.get("/me")
async def account(request: Request, user: User = Depends(protect)):
    return render(request, "account.html", user, title="Your account")


@router.get("/my-tours")
async def my_tours(
    request: Request,
    user: User = Depends(protect),
    db: AsyncSession = Depends(get_db_session),
):
    tours = await booking_service.booked_tours(db, user.id)
    return render(request, "overview.html", user, title="My Tours", tours=tours)
