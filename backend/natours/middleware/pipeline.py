"""
Natours Backend — Middleware Pipeline
======================================

What:  The ordered list of request stages and the code that installs it.
How:   `pipeline_stages(settings)` returns the stages in EXECUTION order.
       `install_pipeline(app, settings)` adds them to the app in reverse,
       because Starlette runs the most recently added middleware first.

    #   stage                   condition
    1   cors                    always
    2   security_headers        always
    3   access_logging          development mode only
    4   rate_limit              paths under /api
    5   body                    raw capture on webhook route, parse elsewhere
    6   cookies                 always
    7   injection_sanitization  always
    8   script_sanitization     always
    9   parameter_pollution     always
    10  compression             always
    11  request_time            always

Later stages rely on earlier ones: sanitization and the pollution guard
only see structured input once the body stage has parsed it, and the
webhook's raw bytes are captured by the body stage's per-route policy.

Below the last stage sits an error boundary that renders unexpected route
exceptions, so the generic 500 still carries the CORS and security headers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

from natours.config import Settings
from natours.middleware.body import BodyParsingMiddleware, raw_body_policies
from natours.middleware.cookies import CookieParsingMiddleware
from natours.middleware.error_boundary import ErrorBoundaryMiddleware
from natours.middleware.logging import RequestLoggingMiddleware
from natours.middleware.parameter_pollution import ParameterPollutionMiddleware
from natours.middleware.rate_limit import RateLimitMiddleware
from natours.middleware.request_time import RequestTimeMiddleware
from natours.middleware.sanitize import (
    InjectionSanitizationMiddleware,
    ScriptSanitizationMiddleware,
)
from natours.middleware.security_headers import SecurityHeadersMiddleware

WEBHOOK_PATH = "/webhook-checkout"


@dataclass(frozen=True)
class Stage:
    name: str
    middleware: type
    options: Dict[str, Any] = field(default_factory=dict)
    enabled: bool = True


def raw_body_routes(settings: Settings) -> List[Tuple[str, str, int]]:
    """(method, path, limit) for every route whose handler needs the untouched body."""
    return [("POST", WEBHOOK_PATH, settings.webhook_body_limit)]


def pipeline_stages(settings: Settings) -> List[Stage]:
    """All stages in execution order, disabled ones included."""
    return [
        Stage(
            "cors",
            CORSMiddleware,
            {
                "allow_origins": settings.cors_origins_list,
                "allow_methods": ["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"],
                "allow_headers": ["*"],
            },
        ),
        Stage(
            "security_headers",
            SecurityHeadersMiddleware,
            {
                "content_security_policy": settings.content_security_policy,
                "cross_origin_resource_policy": settings.cross_origin_resource_policy,
            },
        ),
        Stage("access_logging", RequestLoggingMiddleware, enabled=settings.is_development),
        Stage(
            "rate_limit",
            RateLimitMiddleware,
            {
                "max_requests": settings.rate_limit_requests,
                "window_seconds": settings.rate_limit_window,
                "prefix": settings.rate_limit_prefix,
                "message": settings.rate_limit_message,
                "trust_proxy": settings.trust_proxy,
            },
        ),
        Stage(
            "body",
            BodyParsingMiddleware,
            {
                "policies": raw_body_policies(raw_body_routes(settings)),
                "default_limit": settings.body_limit,
            },
        ),
        Stage("cookies", CookieParsingMiddleware),
        Stage("injection_sanitization", InjectionSanitizationMiddleware),
        Stage("script_sanitization", ScriptSanitizationMiddleware),
        Stage(
            "parameter_pollution",
            ParameterPollutionMiddleware,
            {"whitelist": tuple(settings.filter_whitelist)},
        ),
        Stage("compression", GZipMiddleware, {"minimum_size": settings.compression_min_size}),
        Stage("request_time", RequestTimeMiddleware),
    ]


def enabled_stages(stages: Sequence[Stage]) -> List[Stage]:
    return [stage for stage in stages if stage.enabled]


def install_pipeline(app: FastAPI, settings: Settings) -> List[str]:
    """Install the enabled stages so they execute in list order; return their names."""
    stages = enabled_stages(pipeline_stages(settings))
    # Added first so it sits below every stage, next to the router
    app.add_middleware(ErrorBoundaryMiddleware)
    for stage in reversed(stages):
        app.add_middleware(stage.middleware, **stage.options)
    return [stage.name for stage in stages]
