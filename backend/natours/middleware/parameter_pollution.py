"""
Natours Backend — Parameter Pollution Guard
============================================

What:  Collapses repeated top-level query keys to their last value.
How:   `?sort=price&sort=-price` becomes `sort=-price`. Keys on the whitelist
       of filterable fields keep every value, so `?duration=5&duration=9`
       still filters on both. Url-encoded bodies get the same treatment;
       JSON bodies are left alone since arrays there are intentional.
"""

from typing import Any, Dict, Iterable, Optional

from starlette.requests import Request
from starlette.responses import Response

from natours.context import get_request_context
from natours.middleware.base import PipelineStage


def collapse_duplicates(params: Dict[str, Any], whitelist: Iterable[str]) -> Dict[str, Any]:
    allowed = set(whitelist)
    collapsed: Dict[str, Any] = {}
    for key, value in params.items():
        if isinstance(value, list) and key not in allowed and value:
            collapsed[key] = value[-1]
        else:
            collapsed[key] = value
    return collapsed


class ParameterPollutionMiddleware(PipelineStage):
    name = "parameter_pollution"

    def __init__(self, app, whitelist: Iterable[str] = ()):
        super().__init__(app)
        self.whitelist = tuple(whitelist)

    async def process(self, request: Request) -> Optional[Response]:
        context = get_request_context(request)
        context.query = collapse_duplicates(context.query, self.whitelist)
        if context.body_kind == "urlencoded" and context.body:
            context.body = collapse_duplicates(context.body, self.whitelist)
        return None
