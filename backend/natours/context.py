"""
Natours Backend — Request Context
==================================

What:  The mutable record that travels with one request through the pipeline.
How:   Stored in the ASGI scope's `state` mapping, so pure-ASGI stages,
       BaseHTTPMiddleware stages and route handlers all see the same object.
       It is created on first access and discarded with the scope.

Fields accumulate in pipeline order:
    query         structured query, parsed on creation
    body          parsed body (body stage), then sanitized in place
    body_kind     "json" | "urlencoded" | "raw" | None
    raw_body      untouched bytes, raw-body routes only
    cookies       cookie stage
    request_time  timestamp stage (ISO-8601, UTC)
    user          set by the `protect` dependency
"""

from dataclasses import dataclass, field
from typing import Any, Dict, MutableMapping, Optional, Union
from urllib.parse import parse_qsl

from starlette.requests import HTTPConnection

from natours.utils.querystring import parse_pairs

STATE_KEY = "natours.context"


@dataclass
class RequestContext:
    query: Dict[str, Any] = field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None
    body_kind: Optional[str] = None
    raw_body: Optional[bytes] = None
    cookies: Dict[str, str] = field(default_factory=dict)
    request_time: Optional[str] = None
    user: Any = None

    @classmethod
    def from_scope(cls, scope: MutableMapping[str, Any]) -> "RequestContext":
        raw_query = scope.get("query_string", b"").decode("latin-1")
        return cls(query=parse_pairs(parse_qsl(raw_query, keep_blank_values=True)))


def get_request_context(
    source: Union[HTTPConnection, MutableMapping[str, Any]],
) -> RequestContext:
    """Return the context for a request (or raw ASGI scope), creating it on first use."""
    scope = source.scope if isinstance(source, HTTPConnection) else source
    state = scope.setdefault("state", {})
    context = state.get(STATE_KEY)
    if context is None:
        context = RequestContext.from_scope(scope)
        state[STATE_KEY] = context
    return context
