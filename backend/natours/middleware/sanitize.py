"""
Natours Backend — Input Sanitization Stages
============================================

Two stages over the structured input held on the Request Context:

InjectionSanitizationMiddleware
    Removes every key that starts with `$` or contains `.` at any depth of
    the body and the query. Such keys are query-operator shaped
    (`{"email": {"$gt": ""}}`) and never legitimate field names.

ScriptSanitizationMiddleware
    Neutralises markup in every string value by replacing `<` with `&lt;`,
    so stored text can never open an HTML tag when rendered.

Both stages run after body parsing: they only see structured data.
"""

import logging
from typing import Any, Optional

from starlette.requests import Request
from starlette.responses import Response

from natours.context import get_request_context
from natours.middleware.base import PipelineStage

logger = logging.getLogger(__name__)


def is_operator_key(key: Any) -> bool:
    return isinstance(key, str) and (key.startswith("$") or "." in key)


def strip_operator_keys(value: Any) -> Any:
    """Return a copy of `value` with operator-shaped keys removed at every depth."""
    if isinstance(value, dict):
        return {
            key: strip_operator_keys(item)
            for key, item in value.items()
            if not is_operator_key(key)
        }
    if isinstance(value, list):
        return [strip_operator_keys(item) for item in value]
    return value


def escape_markup(value: Any) -> Any:
    """Return a copy of `value` with `<` escaped in every string."""
    if isinstance(value, str):
        return value.replace("<", "&lt;")
    if isinstance(value, dict):
        return {key: escape_markup(item) for key, item in value.items()}
    if isinstance(value, list):
        return [escape_markup(item) for item in value]
    return value


class InjectionSanitizationMiddleware(PipelineStage):
    name = "injection_sanitization"

    async def process(self, request: Request) -> Optional[Response]:
        context = get_request_context(request)
        if context.body is not None:
            sanitized = strip_operator_keys(context.body)
            if sanitized != context.body:
                logger.warning(
                    "Stripped operator keys from body of %s %s",
                    request.method,
                    request.url.path,
                )
            context.body = sanitized
        context.query = strip_operator_keys(context.query)
        return None


class ScriptSanitizationMiddleware(PipelineStage):
    name = "script_sanitization"

    async def process(self, request: Request) -> Optional[Response]:
        context = get_request_context(request)
        if context.body is not None:
            context.body = escape_markup(context.body)
        context.query = escape_markup(context.query)
        return None
