import abc
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, MutableMapping, Optional

import redis.asyncio as redis
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from src.cache.connection import NAMESPACE, get_redis

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 5
DEFAULT_WINDOW_SECONDS = 60

Clock = Callable[[], float]

# Lua script for atomic fixed-window increment
LUA_SCRIPT = """
local key = KEYS[1]
local expiry = tonumber(ARGV[1])
local count = redis.call("INCR", key)
if count == 1 then
    redis.call("EXPIRE", key, expiry)
end
return count
"""


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0


class RateLimiter(abc.ABC):
    """Counts hits per caller identity and decides whether another one is allowed."""

    def __init__(self, max_requests: int = DEFAULT_MAX_REQUESTS, window_seconds: int = DEFAULT_WINDOW_SECONDS):
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    @abc.abstractmethod
    async def hit(self, identity: str) -> RateLimitDecision:
        ...


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryRateLimiter(RateLimiter):
    """
    Fixed window anchored at an identity's first hit. Closed windows are
    dropped on a sweep that runs once per window length, so the table only
    holds identities seen recently. Private to the process; use
    RedisRateLimiter when the service runs as several instances.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Clock = time.monotonic,
        store: Optional[MutableMapping[str, _Window]] = None,
    ):
        super().__init__(max_requests, window_seconds)
        self.clock = clock
        self.store: MutableMapping[str, _Window] = store if store is not None else {}
        self._next_purge = self.clock() + window_seconds

    async def hit(self, identity: str) -> RateLimitDecision:
        now = self.clock()
        if now >= self._next_purge:
            self.purge_expired()
            self._next_purge = now + self.window_seconds
        record = self.store.get(identity)

        if record is None or now > record.reset_at:
            self.store[identity] = _Window(count=1, reset_at=now + self.window_seconds)
            return RateLimitDecision(True, self.max_requests, self.max_requests - 1)

        if record.count >= self.max_requests:
            # Rejected hits are not counted
            retry_after = max(1, int(record.reset_at - now + 0.999))
            return RateLimitDecision(False, self.max_requests, 0, retry_after)

        record.count += 1
        return RateLimitDecision(True, self.max_requests, self.max_requests - record.count)

    def purge_expired(self) -> int:
        """Drops windows that have already closed. Returns how many were dropped."""
        now = self.clock()
        expired = [identity for identity, record in self.store.items() if now > record.reset_at]
        for identity in expired:
            del self.store[identity]
        return len(expired)


class RedisRateLimiter(RateLimiter):
    """
    Fixed window aligned to the epoch, shared between instances through Redis.
    Fails open: when Redis is unavailable every hit is allowed.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Clock = time.time,
        redis_factory: Callable[[], Awaitable[Optional[redis.Redis]]] = get_redis,
    ):
        super().__init__(max_requests, window_seconds)
        self.clock = clock
        self.redis_factory = redis_factory
        self._lua_sha: Optional[str] = None

    def key_for(self, identity: str, now: float) -> str:
        window = int(now // self.window_seconds)
        return f"{NAMESPACE}rl:{identity}:{window}"

    async def _increment(self, redis_conn: redis.Redis, key: str) -> int:
        expiry_seconds = str(self.window_seconds * 2)  # outlive the window slightly
        if self._lua_sha is None:
            self._lua_sha = await redis_conn.script_load(LUA_SCRIPT)
            logger.info(f"Loaded rate limiting Lua script with SHA: {self._lua_sha}")
        return int(await redis_conn.evalsha(self._lua_sha, 1, key, expiry_seconds))

    async def hit(self, identity: str) -> RateLimitDecision:
        allow = RateLimitDecision(True, self.max_requests, self.max_requests)
        redis_conn = await self.redis_factory()
        if not redis_conn:
            logger.warning("Redis unavailable, skipping rate limiting.")
            return allow

        now = self.clock()
        try:
            count = await self._increment(redis_conn, self.key_for(identity, now))
        except RedisError as e:
            self._lua_sha = None
            logger.error(f"Redis error during rate limiting for {identity}: {e}. Allowing request.")
            return allow

        if count > self.max_requests:
            window_end = (int(now // self.window_seconds) + 1) * self.window_seconds
            retry_after = max(1, int(window_end - now + 0.999))
            return RateLimitDecision(False, self.max_requests, 0, retry_after)
        return RateLimitDecision(True, self.max_requests, self.max_requests - count)


def client_identity(request: Request) -> str:
    """First hop of x-forwarded-for, then x-real-ip, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RateLimitingMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        limiter: RateLimiter,
        paths: Iterable[str],
        messages: Optional[Dict[str, str]] = None,
        default_language: str = "nl",
    ):
        """
        Args:
            limiter: Backend deciding per identity.
            paths: Exact request paths the limit applies to; others pass through.
            messages: Language tag -> 429 message.
            default_language: Used when Accept-Language matches no message.
        """
        super().__init__(app)
        self.limiter = limiter
        self.paths = frozenset(paths)
        self.messages = messages or {}
        self.default_language = default_language

    def _message_for(self, request: Request) -> str:
        accept = request.headers.get("accept-language", "")
        for part in accept.split(","):
            tag = part.split(";")[0].strip().lower()[:2]
            if tag in self.messages:
                return self.messages[tag]
        return self.messages.get(self.default_language, "Rate limit exceeded.")

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Applies rate limiting logic before processing the request."""
        if request.method == "OPTIONS" or request.url.path not in self.paths:
            return await call_next(request)

        identity = client_identity(request)
        decision = await self.limiter.hit(identity)

        if not decision.allowed:
            logger.warning(f"Rate limit exceeded for {identity} on {request.url.path}. Limit: {decision.limit}")
            # Use lowercase header names
            headers = {
                "x-ratelimit-limit": str(decision.limit),
                "x-ratelimit-remaining": "0",
                "retry-after": str(decision.retry_after),
            }
            return JSONResponse(
                status_code=429,
                content={"detail": self._message_for(request)},
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update({
            "x-ratelimit-limit": str(decision.limit),
            "x-ratelimit-remaining": str(decision.remaining),
        })
        logger.debug(f"Rate limit check passed for {identity}. Remaining: {decision.remaining}")
        return response


def build_rate_limiter(backend: str, max_requests: int, window_seconds: int) -> RateLimiter:
    if backend == "redis":
        return RedisRateLimiter(max_requests, window_seconds)
    return InMemoryRateLimiter(max_requests, window_seconds)
