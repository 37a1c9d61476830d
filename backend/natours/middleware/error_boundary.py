"""
Natours Backend — Error Boundary
=================================

What:  Renders exceptions escaping the router before they leave the pipeline.
How:   Pure ASGI middleware installed innermost, below every stage. Starlette
       sends the bare `Exception` handler to ServerErrorMiddleware, which sits
       outside all user middleware; catching here instead means a generic 500
       still passes back through CORS and the security headers.

If the response has already started there is nothing left to render, so the
exception propagates unchanged.
"""

from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from natours.errors import handle_exception


class ErrorBoundaryMiddleware:
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal started
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if started:
                raise
            response = await handle_exception(Request(scope, receive), exc)
            await response(scope, receive, send)
