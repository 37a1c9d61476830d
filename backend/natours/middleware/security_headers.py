"""
Natours Backend — Security Headers Middleware
==============================================

What:  Hardens every response with helmet-style security headers.
How:   Headers are computed once at construction and added to each response
       unless a handler already set them.

The Content-Security-Policy and Cross-Origin-Resource-Policy values come from
settings. Cross-Origin-Embedder-Policy is not sent.
"""

import logging
from typing import Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)


def build_security_headers(
    content_security_policy: str,
    cross_origin_resource_policy: str = "same-origin",
    hsts_max_age: int = 15552000,
) -> Dict[str, str]:
    headers = {
        "Cross-Origin-Opener-Policy": "same-origin",
        "Cross-Origin-Resource-Policy": cross_origin_resource_policy,
        "Origin-Agent-Cluster": "?1",
        "Referrer-Policy": "no-referrer",
        "Strict-Transport-Security": f"max-age={hsts_max_age}; includeSubDomains",
        "X-Content-Type-Options": "nosniff",
        "X-DNS-Prefetch-Control": "off",
        "X-Download-Options": "noopen",
        "X-Frame-Options": "SAMEORIGIN",
        "X-Permitted-Cross-Domain-Policies": "none",
        "X-XSS-Protection": "0",
    }
    if content_security_policy:
        headers["Content-Security-Policy"] = content_security_policy
    return headers


def is_permissive_policy(content_security_policy: str) -> bool:
    """A CSP that is empty, allows any source, or allows eval is flagged at startup."""
    tokens = content_security_policy.replace(";", " ").split()
    return (
        not content_security_policy
        or "*" in tokens
        or "'unsafe-eval'" in tokens
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    name = "security_headers"

    def __init__(
        self,
        app,
        content_security_policy: str = "",
        cross_origin_resource_policy: str = "same-origin",
    ):
        super().__init__(app)
        self.headers = build_security_headers(
            content_security_policy, cross_origin_resource_policy
        )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for key, value in self.headers.items():
            response.headers.setdefault(key, value)
        return response
