# common/rate_limit.py
import time
from typing import Dict, Hashable, List

from fastapi import HTTPException, Request, status

from .config import is_testing


class SlidingWindowLimiter:
    """
    In-process limiter allowing ``max_requests`` hits per key within the
    last ``window_seconds``. Disabled while ``TESTING=1``.

    Each service process keeps its own counters, so limits are per
    worker rather than global.
    """

    def __init__(self, max_requests: int, window_seconds: int = 60, detail: str = "Too many requests"):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.detail = detail
        self._hits: Dict[Hashable, List[float]] = {}

    def hit(self, key: Hashable) -> None:
        """Record one request for ``key`` or raise HTTP 429 when over the limit."""
        if is_testing():
            return
        now = time.time()
        cutoff = now - self.window_seconds
        recent = [ts for ts in self._hits.get(key, []) if ts >= cutoff]
        if len(recent) >= self.max_requests:
            self._hits[key] = recent
            raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=self.detail)
        recent.append(now)
        self._hits[key] = recent

    def clear(self) -> None:
        self._hits.clear()


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"
