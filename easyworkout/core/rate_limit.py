from __future__ import annotations

import asyncio
import json
import time
from collections import deque
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request


@dataclass(frozen=True)
class RateLimitRule:
    scope: str
    limit: int
    window_seconds: int


class SlidingWindowRateLimiter:
    def __init__(self) -> None:
        self._hits: dict[str, deque[float]] = {}
        self._lock = asyncio.Lock()

    async def hit(self, key: str, rule: RateLimitRule) -> int | None:
        """Record a hit; return the retry delay in seconds when the rule is exceeded."""
        now = time.monotonic()
        async with self._lock:
            window = self._hits.setdefault(key, deque())
            while window and window[0] <= now - rule.window_seconds:
                window.popleft()
            if len(window) >= rule.limit:
                return max(int(rule.window_seconds - (now - window[0])) + 1, 1)
            window.append(now)
            return None

    async def reset(self) -> None:
        async with self._lock:
            self._hits.clear()


limiter = SlidingWindowRateLimiter()


async def _json_field(request: Request, field: str) -> str | None:
    if "application/json" not in (request.headers.get("content-type") or "").lower():
        return None
    try:
        payload = json.loads((await request.body()) or b"{}")
    except json.JSONDecodeError:
        return None
    value = payload.get(field) if isinstance(payload, dict) else None
    return str(value).strip().lower() if value is not None else None


def rate_limited(rule: RateLimitRule, *, per_field: str | None = None):
    """Dependency limiting a route per client address, optionally also per JSON body field."""

    async def dependency(
        request: Request,
        x_forwarded_for: Annotated[str | None, Header(alias="X-Forwarded-For")] = None,
    ) -> None:
        client = (x_forwarded_for or "").split(",")[0].strip()
        if not client:
            client = request.client.host if request.client else "unknown"
        key = f"{rule.scope}:{client}"
        if per_field:
            value = await _json_field(request, per_field)
            if value:
                key = f"{key}:{per_field}={value}"
        retry_after = await limiter.hit(key, rule)
        if retry_after is not None:
            raise HTTPException(
                status_code=429,
                detail=f"Too many requests. Retry in {retry_after} seconds.",
                headers={"Retry-After": str(retry_after)},
            )

    return Depends(dependency)
