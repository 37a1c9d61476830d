"""Natours Backend — Timestamp Stage (records arrival time on the Request Context)."""

from datetime import datetime, timezone
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from natours.context import get_request_context
from natours.middleware.base import PipelineStage


def utc_timestamp() -> str:
    """ISO-8601 with millisecond precision and a Z suffix: 2024-01-15T12:00:00.000Z"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class RequestTimeMiddleware(PipelineStage):
    name = "request_time"

    async def process(self, request: Request) -> Optional[Response]:
        get_request_context(request).request_time = utc_timestamp()
        return None
