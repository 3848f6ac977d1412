"""Cache-aside gateway over Redis.

Keys are built by ``cache_key`` only, so the same request parameters always
map to the same key regardless of argument order. Payloads are canonical JSON
strings written with one ``SET key value EX ttl`` call. Store failures are
logged and treated as a miss / skipped write.
"""
from __future__ import annotations

import json
from hashlib import sha256
from typing import Any, Protocol

from redis import asyncio as redis
from redis.exceptions import RedisError

from doctor_reputation.config import settings
from doctor_reputation.errors import CacheUnavailable
from doctor_reputation.services import logger as log_service

CACHE_VERSION = 1


class CacheStore(Protocol):
    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: str, ex: int | None = None) -> Any: ...


def _normalize_param(value: Any) -> Any:
    if isinstance(value, str):
        return " ".join(value.split())
    return value


def cache_key(mode: str, **params: Any) -> str:
    material = {
        name: normalized
        for name, normalized in ((name, _normalize_param(value)) for name, value in params.items())
        if normalized is not None and normalized != ""
    }
    canonical = json.dumps({"mode": mode, "params": material}, sort_keys=True, separators=(",", ":"))
    digest = sha256(canonical.encode("utf-8")).hexdigest()
    return f"{settings.cache_key_prefix}:v{CACHE_VERSION}:{mode}:{digest}"


def canonical_payload(payload: dict[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


class CacheGateway:
    """The only component that writes to the shared cache store."""

    def __init__(self, store: CacheStore | None, *, ttl_seconds: int | None = None):
        self.store = store
        self.ttl_seconds = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds

    @property
    def enabled(self) -> bool:
        return self.store is not None and self.ttl_seconds > 0

    def _report(self, operation: str, key: str, exc: Exception) -> None:
        error = CacheUnavailable(f"cache {operation} failed: {type(exc).__name__}: {exc}")
        log_service.log_cache_operation(operation, key, status="unavailable", error=error.message)

    async def get(self, key: str) -> str | None:
        if not self.enabled:
            return None
        try:
            value = await self.store.get(key)
        except (RedisError, OSError) as exc:
            self._report("get", key, exc)
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        if not isinstance(value, str) or not value:
            log_service.log_cache_operation("get", key, status="miss")
            return None
        log_service.log_cache_operation("get", key, status="hit")
        return value

    async def set(self, key: str, payload: str, ttl: int | None = None) -> bool:
        if not self.enabled or not payload:
            return False
        try:
            await self.store.set(key, payload, ex=ttl or self.ttl_seconds)
        except (RedisError, OSError) as exc:
            self._report("set", key, exc)
            return False
        log_service.log_cache_operation("set", key, status="stored")
        return True

    async def health(self) -> dict[str, Any]:
        if self.store is None:
            return {"status": "disabled", "redis_available": False}
        ping = getattr(self.store, "ping", None)
        if ping is None:
            return {"status": "healthy", "redis_available": False}
        try:
            await ping()
        except (RedisError, OSError) as exc:
            return {"status": "unhealthy", "redis_available": False, "error": str(exc)}
        return {"status": "healthy", "redis_available": True}


_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis | None:
    """Get or create the shared Redis client; None when REDIS_URL is unset."""
    global _redis_client
    if _redis_client is None and settings.redis_url.strip():
        _redis_client = redis.from_url(settings.redis_url.strip(), decode_responses=True)
    return _redis_client


async def close_redis_client() -> None:
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
