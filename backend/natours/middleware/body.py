"""
Natours Backend — Body Handling Stage
======================================

What:  Reads the request body once, enforces the size limit, and stores either
       the untouched bytes or the parsed structure on the Request Context.
How:   Pure ASGI middleware. The buffered body is replayed to the inner app,
       so `await request.body()` downstream returns exactly what the client
       sent.

Per-route policy:
    Which routes receive raw bytes is a typed table (BodyPolicy), not a
    conditional scattered across stages. Raw capture and generic parsing are
    two modes of this one stage, so the payment webhook can never end up
    behind JSON parsing whatever order other stages are in.

        POST /webhook-checkout   → RAW     (signature verification needs bytes)
        everything else          → PARSED  (JSON or url-encoded, 10 KB limit)

Every body is size-checked whatever its content type; only JSON and
url-encoded bodies are parsed. Failures (413 over limit, 400 malformed
JSON) are rendered by the global error handler before the router ever sees
the request.
"""

import enum
import json
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional, Sequence, Tuple
from urllib.parse import parse_qsl

from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from natours.context import get_request_context
from natours.errors import handle_exception
from natours.exceptions import PayloadTooLargeError, ValidationError
from natours.utils.querystring import parse_pairs

logger = logging.getLogger(__name__)


class BodyMode(enum.Enum):
    RAW = "raw"
    PARSED = "parsed"


@dataclass(frozen=True)
class BodyPolicy:
    """How one route's body is handled. `methods` empty means any method."""

    path: str
    mode: BodyMode
    limit: int
    methods: Tuple[str, ...] = ()

    def matches(self, method: str, path: str) -> bool:
        if self.methods and method.upper() not in self.methods:
            return False
        return path.rstrip("/") == self.path.rstrip("/")


JSON_TYPES = ("application/json",)
FORM_TYPES = ("application/x-www-form-urlencoded",)


def _media_type(scope: Scope) -> str:
    for key, value in scope.get("headers", ()):
        if key == b"content-type":
            return value.decode("latin-1").split(";")[0].strip().lower()
    return ""


def _content_length(scope: Scope) -> Optional[int]:
    for key, value in scope.get("headers", ()):
        if key == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None


def _is_json(media_type: str) -> bool:
    return media_type in JSON_TYPES or media_type.endswith("+json")


class BodyParsingMiddleware:
    """
    The body stage.

    Args:
        policies:      raw-body routes (checked in order, first match wins)
        default_limit: byte limit for parsed bodies
    """

    name = "body"

    def __init__(
        self,
        app: ASGIApp,
        policies: Sequence[BodyPolicy] = (),
        default_limit: int = 10 * 1024,
    ):
        self.app = app
        self.policies = tuple(policies)
        self.default_policy = BodyPolicy(path="*", mode=BodyMode.PARSED, limit=default_limit)

    def policy_for(self, method: str, path: str) -> BodyPolicy:
        for policy in self.policies:
            if policy.matches(method, path):
                return policy
        return self.default_policy

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        policy = self.policy_for(scope["method"], scope["path"])
        media_type = _media_type(scope)

        try:
            body = await self._read_body(scope, receive, policy.limit)
            self._store(scope, policy, media_type, body)
        except Exception as exc:
            response = await handle_exception(Request(scope), exc)
            await response(scope, receive, send)
            return

        await self.app(scope, _replay(body, receive), send)

    async def _read_body(self, scope: Scope, receive: Receive, limit: int) -> bytes:
        declared = _content_length(scope)
        if declared is not None and declared > limit:
            raise PayloadTooLargeError(limit=limit, received=declared)

        chunks = []
        received = 0
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                break
            chunk = message.get("body", b"")
            received += len(chunk)
            if received > limit:
                raise PayloadTooLargeError(limit=limit, received=received)
            chunks.append(chunk)
            more_body = message.get("more_body", False)
        return b"".join(chunks)

    def _store(self, scope: Scope, policy: BodyPolicy, media_type: str, body: bytes) -> None:
        context = get_request_context(scope)

        if policy.mode is BodyMode.RAW:
            context.raw_body = body
            context.body_kind = "raw"
            return

        if not (_is_json(media_type) or media_type in FORM_TYPES):
            # Unknown media type: size-checked only
            return

        if not body:
            context.body = {}
            context.body_kind = "json" if _is_json(media_type) else "urlencoded"
            return

        if _is_json(media_type):
            try:
                parsed = json.loads(body)
            except (UnicodeDecodeError, json.JSONDecodeError) as exc:
                raise ValidationError(f"Invalid JSON in request body: {exc}") from exc
            if not isinstance(parsed, dict):
                raise ValidationError("Request body must be a JSON object")
            context.body = parsed
            context.body_kind = "json"
        else:
            pairs = parse_qsl(body.decode("utf-8", errors="replace"), keep_blank_values=True)
            context.body = parse_pairs(pairs)
            context.body_kind = "urlencoded"


def _replay(body: bytes, receive: Receive) -> Callable[[], Awaitable[Message]]:
    """A receive callable that yields the buffered body once, then defers to the client."""
    sent = False

    async def replay() -> Message:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


def raw_body_policies(routes: Iterable[Tuple[str, str, int]]) -> Tuple[BodyPolicy, ...]:
    """Build RAW policies from (method, path, limit) triples."""
    return tuple(
        BodyPolicy(path=path, mode=BodyMode.RAW, limit=limit, methods=(method.upper(),))
        for method, path, limit in routes
    )
