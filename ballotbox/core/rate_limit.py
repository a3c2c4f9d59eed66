import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, Dict

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    """At most ``limit`` hits per identity within a sliding ``window_seconds``."""

    scope: str
    limit: int
    window_seconds: int

    def key(self, identity: str) -> str:
        return f"{self.scope}:{identity}"


class RateLimiter:
    def __init__(self) -> None:
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = asyncio.Lock()

    async def hit(self, rule: RateLimitRule, identity: str) -> float:
        """Record a hit; returns 0 when allowed, otherwise the seconds until the oldest hit expires."""
        now = time.monotonic()
        key = rule.key(identity)
        async with self._lock:
            bucket = self._hits.setdefault(key, deque())
            while bucket and now - bucket[0] > rule.window_seconds:
                bucket.popleft()
            if len(bucket) >= rule.limit:
                return max(0.0, rule.window_seconds - (now - bucket[0]))
            bucket.append(now)
            return 0.0

    async def reset(self) -> None:
        async with self._lock:
            self._hits.clear()


_limiter = RateLimiter()


def client_identity(request: Request) -> str:
    return f"ip:{request.client.host}" if request.client else "ip:anonymous"


async def enforce(rule: RateLimitRule, identity: str) -> None:
    retry_after = await _limiter.hit(rule, identity)
    if retry_after:
        logger.warning("Rate limit %s exceeded by %s", rule.scope, identity)
        headers = {"Retry-After": str(int(retry_after) or rule.window_seconds)}
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many requests.", headers=headers)


def rate_limit_dependency(rule: RateLimitRule) -> Callable[[Request], Awaitable[None]]:
    """Limit an unauthenticated route per client address."""

    async def dependency(request: Request) -> None:
        await enforce(rule, client_identity(request))

    return dependency
