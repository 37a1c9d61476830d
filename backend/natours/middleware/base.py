"""
Natours Backend — Pipeline Stage Base Class
============================================

Every request-side stage follows the same contract. A stage may

    (a) pass the request through unchanged   → return None
    (b) mutate the Request Context           → mutate, return None
    (c) short-circuit with a response        → return a Response
    (d) short-circuit with an error          → raise

Raised errors are rendered by the global error handler, the same funnel route
handlers use, so a rejected request still gets exactly one response.
"""

from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from natours.errors import handle_exception


class PipelineStage(BaseHTTPMiddleware):
    """Base for stages that act before the request reaches the router."""

    name = "stage"

    async def process(self, request: Request) -> Optional[Response]:
        raise NotImplementedError

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            response = await self.process(request)
        except Exception as exc:
            return await handle_exception(request, exc)
        if response is not None:
            return response
        return await call_next(request)
