"""Natours Backend — Cookie Parsing Stage (copies parsed cookies onto the Request Context)."""

from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from natours.context import get_request_context
from natours.middleware.base import PipelineStage


class CookieParsingMiddleware(PipelineStage):
    name = "cookies"

    async def process(self, request: Request) -> Optional[Response]:
        get_request_context(request).cookies = dict(request.cookies)
        return None
