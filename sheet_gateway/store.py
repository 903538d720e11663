# sheet_gateway/store.py
"""
Key/value store port.

Everything the gateway persists (auth keys, usage counters, activity logs) goes
through `KeyValueStore`: sets, flat hashes, atomic hash-field increments and key
expiry. `RedisStore` is the production adapter; `MemoryStore` keeps the same
semantics inside the process for local runs, tests, and deployments without Redis.

Values always round-trip as strings. Booleans are written as "true"/"false" and
read back through `decode_bool`, which is the only place that interprets them.
"""
from __future__ import annotations
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Set

import structlog
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from .config import Settings
from .errors import StoreUnavailable

logger = structlog.get_logger()

_TRUE_STRINGS = {"true", "1", "yes", "on"}


def decode_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, bytes):
        value = value.decode("utf-8", "ignore")
    return str(value).strip().lower() in _TRUE_STRINGS


def encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def encode_mapping(mapping: Dict[str, Any]) -> Dict[str, str]:
    return {str(k): encode_value(v) for k, v in mapping.items()}


class KeyValueStore(ABC):
    name: str = "abstract"

    @abstractmethod
    async def sadd(self, key: str, *members: str) -> int: ...

    @abstractmethod
    async def smembers(self, key: str) -> Set[str]: ...

    @abstractmethod
    async def srem(self, key: str, *members: str) -> int: ...

    @abstractmethod
    async def hset(self, key: str, mapping: Dict[str, Any]) -> int: ...

    @abstractmethod
    async def hgetall(self, key: str) -> Dict[str, str]: ...

    @abstractmethod
    async def hincrby(self, key: str, field: str, amount: int = 1) -> int: ...

    @abstractmethod
    async def expire(self, key: str, seconds: int) -> bool: ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


# ---------- Redis ----------
class RedisStore(KeyValueStore):
    name = "redis"

    def __init__(self, url: Optional[str] = None, client: Optional[aioredis.Redis] = None):
        if client is None:
            if not url:
                raise ValueError("RedisStore needs either a url or a client")
            client = aioredis.from_url(url, decode_responses=True)
        self._client = client

    @asynccontextmanager
    async def _guard(self, op: str) -> AsyncIterator[None]:
        try:
            yield
        except RedisError as e:
            logger.warning("store.redis.failed", op=op, error=str(e))
            raise StoreUnavailable(debug={"op": op, "error": str(e)}) from e

    async def sadd(self, key: str, *members: str) -> int:
        async with self._guard("sadd"):
            return int(await self._client.sadd(key, *members))

    async def smembers(self, key: str) -> Set[str]:
        async with self._guard("smembers"):
            return set(await self._client.smembers(key) or set())

    async def srem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        async with self._guard("srem"):
            return int(await self._client.srem(key, *members))

    async def hset(self, key: str, mapping: Dict[str, Any]) -> int:
        async with self._guard("hset"):
            return int(await self._client.hset(key, mapping=encode_mapping(mapping)))

    async def hgetall(self, key: str) -> Dict[str, str]:
        async with self._guard("hgetall"):
            return dict(await self._client.hgetall(key) or {})

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        async with self._guard("hincrby"):
            return int(await self._client.hincrby(key, field, amount))

    async def expire(self, key: str, seconds: int) -> bool:
        async with self._guard("expire"):
            return bool(await self._client.expire(key, seconds))

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self._client.aclose()


# ---------- In-memory ----------
class MemoryStore(KeyValueStore):
    name = "memory"

    def __init__(self, clock=time.monotonic):
        self._sets: Dict[str, Set[str]] = {}
        self._hashes: Dict[str, Dict[str, str]] = {}
        self._expires_at: Dict[str, float] = {}
        self._clock = clock

    def _evict(self, key: str) -> None:
        deadline = self._expires_at.get(key)
        if deadline is not None and self._clock() >= deadline:
            self._sets.pop(key, None)
            self._hashes.pop(key, None)
            self._expires_at.pop(key, None)

    async def sadd(self, key: str, *members: str) -> int:
        self._evict(key)
        bucket = self._sets.setdefault(key, set())
        added = [m for m in members if m not in bucket]
        bucket.update(added)
        return len(added)

    async def smembers(self, key: str) -> Set[str]:
        self._evict(key)
        return set(self._sets.get(key, set()))

    async def srem(self, key: str, *members: str) -> int:
        self._evict(key)
        bucket = self._sets.get(key, set())
        removed = [m for m in members if m in bucket]
        bucket.difference_update(removed)
        return len(removed)

    async def hset(self, key: str, mapping: Dict[str, Any]) -> int:
        self._evict(key)
        bucket = self._hashes.setdefault(key, {})
        encoded = encode_mapping(mapping)
        created = sum(1 for field in encoded if field not in bucket)
        bucket.update(encoded)
        return created

    async def hgetall(self, key: str) -> Dict[str, str]:
        self._evict(key)
        return dict(self._hashes.get(key, {}))

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        self._evict(key)
        bucket = self._hashes.setdefault(key, {})
        value = int(bucket.get(field) or 0) + amount
        bucket[field] = str(value)
        return value

    async def expire(self, key: str, seconds: int) -> bool:
        self._evict(key)
        if key not in self._sets and key not in self._hashes:
            return False
        self._expires_at[key] = self._clock() + seconds
        return True


def make_store(settings: Settings) -> KeyValueStore:
    if settings.redis_url:
        logger.info("store.selected", backend="redis")
        return RedisStore(url=settings.redis_url)
    logger.warning("store.selected", backend="memory", reason="REDIS_URL not configured")
    return MemoryStore()
