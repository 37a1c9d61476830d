"""
Natours Backend — Global Error Handler
=======================================

What:  Converts any error raised while serving a request into a response.
How:   `handle_exception(request, exc)` is the single funnel. FastAPI
       exception handlers call it for route errors; pipeline stages call it
       directly when they reject a request, so both paths format errors the
       same way.

Policy:
    1. Translate known library errors into operational NatoursErrors
       (pydantic validation, unique-constraint violations, JWT failures).
    2. Operational errors return their message and status verbatim.
    3. Anything else is a programming/unknown error: logged with traceback,
       surfaced as a generic 500 in production.
    4. Development mode returns full detail (error repr + traceback) on API
       paths so failures can be debugged from the client.
    5. Non-API paths render the error page instead of JSON.
"""

import logging
import traceback
from typing import Any, Dict

import pydantic
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from natours.exceptions import (
    AuthenticationError,
    NatoursError,
    RateLimitExceededError,
    ValidationError,
)

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "Something went very wrong!"


def _format_validation_errors(errors) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "__root__"))
        msg = err.get("msg", "invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        parts.append(f"{loc}: {msg}" if loc else msg)
    return f"Invalid input data. {'. '.join(parts)}"


def translate_exception(exc: Exception) -> Exception:
    """Map library exceptions onto operational NatoursErrors; pass others through."""
    if isinstance(exc, NatoursError):
        return exc
    if isinstance(exc, (pydantic.ValidationError, RequestValidationError)):
        return ValidationError(_format_validation_errors(exc.errors()))
    if isinstance(exc, IntegrityError):
        detail = str(exc.orig) if exc.orig is not None else str(exc)
        return ValidationError(
            "Duplicate field value. Please use another value!",
            context={"detail": detail},
        )
    if isinstance(exc, ExpiredSignatureError):
        return AuthenticationError("Your token has expired! Please log in again.")
    if isinstance(exc, JWTError):
        return AuthenticationError("Invalid token. Please log in again!")
    if isinstance(exc, StarletteHTTPException):
        return NatoursError(message=str(exc.detail), status_code=exc.status_code)
    return exc


def _is_api_request(request: Request) -> bool:
    return request.url.path.startswith("/api")


def _error_headers(exc: Exception) -> Dict[str, str]:
    if isinstance(exc, RateLimitExceededError):
        return {"Retry-After": str(exc.retry_after)}
    return {}


def _render_page(request: Request, status_code: int, message: str) -> Response:
    templates = getattr(request.app.state, "templates", None)
    if templates is None:
        return JSONResponse(status_code=status_code, content={"status": "error", "message": message})
    return templates.TemplateResponse(
        request,
        "error.html",
        {"title": "Something went wrong!", "msg": message},
        status_code=status_code,
    )


def _development_response(request: Request, exc: Exception, original: Exception) -> Response:
    status_code = getattr(exc, "status_code", 500)
    message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
    if not _is_api_request(request):
        return _render_page(request, status_code, message)
    content: Dict[str, Any] = {
        "status": getattr(exc, "status", "error"),
        "message": message,
        "error": {
            "type": type(original).__name__,
            "detail": str(original),
            "context": getattr(exc, "context", {}),
        },
        "stack": traceback.format_exception(type(original), original, original.__traceback__),
    }
    return JSONResponse(status_code=status_code, content=content, headers=_error_headers(exc))


def _production_response(request: Request, exc: Exception) -> Response:
    operational = isinstance(exc, NatoursError) and exc.is_operational
    if operational:
        if not _is_api_request(request):
            return _render_page(request, exc.status_code, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"status": exc.status, "message": exc.message},
            headers=_error_headers(exc),
        )
    if not _is_api_request(request):
        return _render_page(request, 500, "Please try again later.")
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": GENERIC_MESSAGE},
    )


async def handle_exception(request: Request, exc: Exception) -> Response:
    """Render any exception as a response according to the runtime mode."""
    translated = translate_exception(exc)
    operational = isinstance(translated, NatoursError) and translated.is_operational

    if operational:
        level = logging.WARNING if translated.status_code < 500 else logging.ERROR
        logger.log(
            level,
            "%s %s -> %d %s",
            request.method,
            request.url.path,
            translated.status_code,
            translated.message,
        )
    else:
        logger.error(
            "ERROR 💥 %s %s: %r | Context: %s",
            request.method,
            request.url.path,
            exc,
            getattr(translated, "context", {}),
            exc_info=(type(exc), exc, exc.__traceback__),
        )

    settings = getattr(request.app.state, "settings", None)
    if settings is not None and settings.is_development:
        return _development_response(request, translated, exc)
    return _production_response(request, translated)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Route every exception type through handle_exception.

    NatoursError, request validation and HTTP exceptions are handled by
    Starlette's ExceptionMiddleware. Anything else is rendered by the
    pipeline's error boundary; the bare Exception handler on
    ServerErrorMiddleware only sees failures raised by the stages themselves.
    """
    app.add_exception_handler(NatoursError, handle_exception)
    app.add_exception_handler(RequestValidationError, handle_exception)
    app.add_exception_handler(StarletteHTTPException, handle_exception)
    app.add_exception_handler(pydantic.ValidationError, handle_exception)
    app.add_exception_handler(IntegrityError, handle_exception)
    app.add_exception_handler(JWTError, handle_exception)
    app.add_exception_handler(Exception, handle_exception)
