"""
Natours Backend — Router
=========================

What:  Mounts the route groups on the application and installs the
       catch-all that turns unmatched requests into a 404.
How:   Route groups are mounted in order of DESCENDING prefix length, so the
       longest matching prefix always wins and the views group (`/`) can
       never shadow an API path. The catch-all is mounted last.

Route Inventory:
    /webhook-checkout   bookings.webhook_router (fixed endpoint, raw body)
    /api/v1/bookings    bookings.router
    /api/v1/reviews     reviews.router
    /api/v1/tours       tours.router (+ nested /{tour_id}/reviews)
    /api/v1/users       users.router
    /                   views.router
    anything else       RouteNotFoundError → 404
                        "Can't find <path?query> on this server!"

Route handlers are thin: pull input off the Request Context, call a
service, wrap the result in the response envelope.
"""

from dataclasses import dataclass
from typing import List, Sequence

from fastapi import APIRouter, FastAPI, Request

from natours.exceptions import RouteNotFoundError
from natours.routes import bookings, reviews, tours, users, views

CATCH_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@dataclass(frozen=True)
class RouteGroup:
    prefix: str
    router: APIRouter


ROUTE_GROUPS: Sequence[RouteGroup] = (
    RouteGroup("/", views.router),
    RouteGroup("/api/v1/tours", tours.router),
    RouteGroup("/api/v1/users", users.router),
    RouteGroup("/api/v1/reviews", reviews.router),
    RouteGroup("/api/v1/bookings", bookings.router),
    RouteGroup("/webhook-checkout", bookings.webhook_router),
)


def ordered_groups(groups: Sequence[RouteGroup]) -> List[RouteGroup]:
    """Longest prefix first; ties keep declaration order."""
    return sorted(groups, key=lambda group: len(group.prefix.rstrip("/")), reverse=True)


def original_url(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


async def route_not_found(request: Request):
    raise RouteNotFoundError(original_url(request))


def mount_route_groups(app: FastAPI, groups: Sequence[RouteGroup] = ROUTE_GROUPS) -> List[str]:
    """Include every group, then the catch-all; returns prefixes in mount order."""
    mounted = []
    for group in ordered_groups(groups):
        app.include_router(group.router)
        mounted.append(group.prefix)
    app.add_api_route(
        "/{full_path:path}",
        route_not_found,
        methods=CATCH_ALL_METHODS,
        include_in_schema=False,
    )
    return mounted
