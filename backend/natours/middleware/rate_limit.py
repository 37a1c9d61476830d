"""
Natours Backend — Rate Limiting Middleware
===========================================

What:  Per-IP sliding window rate limiter for the API surface.
How:   Tracks request timestamps per client IP in memory.
When:  Fourth pipeline stage; applies only to paths under the configured
       prefix (`/api` by default). Views and the payment webhook are exempt.

Algorithm: Sliding Window Log
    1. Each IP gets a list of request timestamps
    2. On each request, drop timestamps older than the window
    3. If the remaining count has reached the limit, reject with 429
    4. Otherwise record the current timestamp and let the request through

    The 101st request inside any rolling hour is rejected; rejected requests
    are not recorded, so the client regains capacity as soon as its oldest
    accepted request leaves the window.

Single-process only: the window store lives in this middleware instance.
"""

import logging
import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from starlette.requests import Request
from starlette.responses import Response

from natours.exceptions import RateLimitExceededError
from natours.middleware.base import PipelineStage

logger = logging.getLogger(__name__)


def client_ip(request: Request, trust_proxy: bool = False) -> str:
    """Client address; with trust_proxy the left-most X-Forwarded-For entry wins."""
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


class SlidingWindowLimiter:
    """The window store, separate from the middleware so it can be unit tested."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._seen = 0

    def hit(self, key: str) -> Optional[int]:
        """
        Record one request for `key`.

        Returns None when allowed, or the number of seconds until the oldest
        request in the window expires when the limit has been reached.
        """
        now = self.clock()
        window_start = now - self.window_seconds

        timestamps = [ts for ts in self._requests[key] if ts > window_start]
        self._requests[key] = timestamps

        if len(timestamps) >= self.max_requests:
            return int(timestamps[0] + self.window_seconds - now) + 1

        timestamps.append(now)

        self._seen += 1
        if self._seen % 1000 == 0:
            self._cleanup_inactive(window_start)
        return None

    def remaining(self, key: str) -> int:
        window_start = self.clock() - self.window_seconds
        active = [ts for ts in self._requests.get(key, []) if ts > window_start]
        return max(self.max_requests - len(active), 0)

    def _cleanup_inactive(self, window_start: float) -> None:
        inactive = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] <= window_start
        ]
        for key in inactive:
            del self._requests[key]
        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))


class RateLimitMiddleware(PipelineStage):
    """
    Configuration (constructor keywords, filled from settings):
        max_requests:   requests allowed per window (default 100)
        window_seconds: window length (default 3600)
        prefix:         only paths under this prefix are limited
        message:        client-facing rejection message
        trust_proxy:    take the client IP from X-Forwarded-For
    """

    name = "rate_limit"

    def __init__(
        self,
        app,
        max_requests: int = 100,
        window_seconds: int = 3600,
        prefix: str = "/api",
        message: str = "Too many requests from this IP, please try again in an hour!",
        trust_proxy: bool = False,
        limiter: Optional[SlidingWindowLimiter] = None,
    ):
        super().__init__(app)
        self.prefix = prefix.rstrip("/")
        self.message = message
        self.trust_proxy = trust_proxy
        self.limiter = limiter or SlidingWindowLimiter(max_requests, window_seconds)

    def applies_to(self, path: str) -> bool:
        return path == self.prefix or path.startswith(self.prefix + "/")

    async def process(self, request: Request) -> Optional[Response]:
        if not self.applies_to(request.url.path):
            return None

        ip = client_ip(request, self.trust_proxy)
        retry_after = self.limiter.hit(ip)
        if retry_after is not None:
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                ip,
                self.limiter.max_requests,
                self.limiter.window_seconds,
            )
            raise RateLimitExceededError(message=self.message, retry_after=retry_after)
        return None
