"""In-memory rate limiting dependency and middleware."""

from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Callable, Deque

from fastapi import FastAPI, Request, Response

from app.core.config import Settings
from app.core.exceptions import RateLimitExceeded
from app.core.handlers import error_response

SWEEP_INTERVAL_SECONDS = 60


class SlidingWindowLimiter:
    def __init__(self, *, clock: Callable[[], float] = time.time, sweep_interval: int = SWEEP_INTERVAL_SECONDS) -> None:
        # key -> (window_seconds, hit timestamps)
        self._store: dict[str, tuple[int, Deque[float]]] = {}
        self._lock = Lock()
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._last_sweep = clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def _sweep(self, now: float) -> None:
        stale = [key for key, (window, queue) in self._store.items() if not queue or queue[-1] <= now - window]
        for key in stale:
            del self._store[key]
        self._last_sweep = now

    def hit(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int, int]:
        if limit <= 0:
            return True, limit, 0
        now = self._clock()
        cutoff = now - window_seconds
        with self._lock:
            if now - self._last_sweep >= self._sweep_interval:
                self._sweep(now)
            entry = self._store.get(key)
            if entry is None:
                entry = (window_seconds, deque())
                self._store[key] = entry
            queue = entry[1]
            while queue and queue[0] <= cutoff:
                queue.popleft()
            if len(queue) >= limit:
                retry_after = max(int(queue[0] + window_seconds - now), 1)
                return False, 0, retry_after
            queue.append(now)
            remaining = max(limit - len(queue), 0)
            return True, remaining, 0


def _client_ip(request: Request, settings: Settings) -> str:
    peer = request.client.host if request.client else "unknown"
    # Forwarded headers are client-controlled unless set by a known proxy.
    if peer in settings.trusted_proxies:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return peer


def _scope_policy(settings: Settings, scope: str) -> tuple[int, int]:
    if scope == "auth":
        return settings.RATE_LIMIT_AUTH_MAX_REQUESTS, settings.RATE_LIMIT_AUTH_WINDOW_SECONDS
    if scope == "user_action":
        return settings.RATE_LIMIT_USER_ACTION_MAX_REQUESTS, settings.RATE_LIMIT_USER_ACTION_WINDOW_SECONDS
    return settings.RATE_LIMIT_MAX_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS


def check_rate_limit(request: Request, scope: str) -> tuple[int, int, int]:
    """Count a hit for the caller in ``scope``; raise ``RateLimitExceeded`` when over.

    Returns ``(limit, remaining, window_seconds)`` for response headers.
    """
    settings: Settings = request.app.state.settings
    limiter: SlidingWindowLimiter = request.app.state.rate_limiter
    limit, window_seconds = _scope_policy(settings, scope)
    ip = _client_ip(request, settings)
    if ip in settings.trusted_ips:
        return limit, limit, window_seconds

    ok, remaining, retry_after = limiter.hit(f"{scope}:{ip}", limit=limit, window_seconds=window_seconds)
    if not ok:
        raise RateLimitExceeded(retry_after=retry_after, limit=limit, window_seconds=window_seconds)
    return limit, remaining, window_seconds


def _set_headers(response: Response, limit: int, remaining: int, window_seconds: int) -> None:
    response.headers["X-RateLimit-Limit"] = str(limit)
    response.headers["X-RateLimit-Remaining"] = str(max(remaining, 0))
    response.headers["X-RateLimit-Window"] = str(window_seconds)


def rate_limit(scope: str = "default"):
    def _dependency(request: Request, response: Response) -> None:
        if not request.app.state.settings.RATE_LIMIT_ENABLED:
            return
        limit, remaining, window_seconds = check_rate_limit(request, scope)
        _set_headers(response, limit, remaining, window_seconds)

    return _dependency


def install_global_rate_limit_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def global_rate_limit(request: Request, call_next):  # type: ignore[override]
        if not request.app.state.settings.RATE_LIMIT_ENABLED or request.method == "OPTIONS":
            return await call_next(request)
        try:
            limit, remaining, window_seconds = check_rate_limit(request, "default")
        except RateLimitExceeded as exc:
            return error_response(exc)
        response = await call_next(request)
        # Scoped limits set by route dependencies take precedence.
        if "X-RateLimit-Limit" not in response.headers:
            _set_headers(response, limit, remaining, window_seconds)
        return response
