# votechain/ratelimit.py
# Per-client request limits. Enforced in the HTTP layer before any call into
# the election session or ledger.

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class SlidingWindowLimiter:
    """In-memory sliding-window limiter.

    Tracks at most ``max_tracked_keys`` clients. Past that, expired keys are
    dropped first, then the oldest 20 % by last hit.
    """

    def __init__(self, limit: int, window: float, max_tracked_keys: int = 10_000,
                 clock: Callable[[], float] = time.monotonic):
        if limit <= 0 or window <= 0:
            raise ValueError("limit and window must be positive")
        self.limit = limit
        self.window = window
        self.max_tracked_keys = max_tracked_keys
        self._clock = clock
        self._hits: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        """Record a request for key. Returns False when it is over the limit."""
        now = self._clock()
        with self._lock:
            recent = [t for t in self._hits.get(key, []) if now - t < self.window]
            if len(recent) >= self.limit:
                self._hits[key] = recent
                return False
            recent.append(now)
            self._hits[key] = recent
            if len(self._hits) > self.max_tracked_keys:
                self._evict(now)
            return True

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)

    def __len__(self) -> int:
        return len(self._hits)

    def _evict(self, now: float) -> None:
        expired = [k for k, ts in self._hits.items() if not ts or now - ts[-1] >= self.window]
        for k in expired:
            del self._hits[k]

        if len(self._hits) > self.max_tracked_keys:
            by_age = sorted(self._hits.items(), key=lambda kv: kv[1][-1] if kv[1] else 0)
            to_drop = max(1, len(by_age) // 5)
            for k, _ in by_age[:to_drop]:
                del self._hits[k]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Applies the general request limit to every route."""

    def __init__(self, app, limiter: SlidingWindowLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next):
        key = client_key(request)
        if not self.limiter.hit(key):
            logger.warning("Rate limit exceeded for %s", key)
            return JSONResponse(
                status_code=429,
                content={"detail": "Too Many Requests. Please slow down."},
                headers={"Retry-After": str(int(self.limiter.window))},
            )
        return await call_next(request)


def vote_rate_limit(request: Request) -> None:
    """FastAPI dependency guarding POST /cast-vote.

    Every attempt counts, including ones whose body later fails validation.
    """
    limiter: SlidingWindowLimiter = request.app.state.vote_limiter
    key = client_key(request)
    if not limiter.hit(key):
        logger.warning("Vote rate limit exceeded for %s", key)
        raise HTTPException(
            status_code=429,
            detail="Too many vote attempts. Please wait.",
            headers={"Retry-After": str(int(limiter.window))},
        )
