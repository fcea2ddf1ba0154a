"""Key-value storage shared by the auth, wallet and journal layers.

Redis is used when ``REDIS_URL`` is configured so state survives restarts and
is shared between workers; otherwise an in-process TTL cache is used.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import redis.asyncio as redis

from ..config import settings

logger = logging.getLogger(__name__)


def _default_serializer(value: Any) -> str:
    def _encode(obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Decimal):
            return str(obj)
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")

    return json.dumps(value, default=_encode)


def _default_deserializer(raw: Optional[str]) -> Any:
    if not raw:
        return None
    return json.loads(raw)


class KeyValueStore(ABC):
    """Minimal async key-value interface with optional expiry."""

    @abstractmethod
    async def get(self, key: str) -> Any:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, *, ttl: Optional[int] = None) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove a key, returning whether it was present."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass


@dataclass
class CacheEntry:
    value: Any
    expires_at: Optional[float]


class InMemoryStore(KeyValueStore):
    """In-process store with per-key TTL and bounded eviction of expiring keys."""

    def __init__(self, default_ttl: Optional[int] = None, max_size: int = 1000):
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._entries: Dict[str, CacheEntry] = {}
        self._access_order: List[str] = []
        self._lock = asyncio.Lock()

    def _expired(self, entry: CacheEntry) -> bool:
        return entry.expires_at is not None and time.time() > entry.expires_at

    def _drop(self, key: str) -> None:
        self._entries.pop(key, None)
        if key in self._access_order:
            self._access_order.remove(key)

    def _touch(self, key: str) -> None:
        if key in self._access_order:
            self._access_order.remove(key)
        self._access_order.append(key)

    def _evict(self) -> None:
        """Shrink to ``max_size`` without touching entries stored without a TTL.

        Expired entries go first, then the entries closest to expiry, least
        recently used among equals. Short-lived keys such as sign-in nonces
        therefore displace each other before any long-lived record.
        """
        for key in [k for k, entry in self._entries.items() if self._expired(entry)]:
            self._drop(key)

        overflow = len(self._entries) - self.max_size
        if overflow <= 0:
            return

        position = {key: index for index, key in enumerate(self._access_order)}
        candidates = sorted(
            (key for key, entry in self._entries.items() if entry.expires_at is not None),
            key=lambda k: (self._entries[k].expires_at, position.get(k, 0)),
        )
        for key in candidates[:overflow]:
            self._drop(key)

        if len(self._entries) > self.max_size:
            logger.warning(
                "In-memory store holds %d entries without TTL, above max_size=%d",
                len(self._entries), self.max_size,
            )

    async def get(self, key: str) -> Any:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._expired(entry):
                self._drop(key)
                return None
            self._touch(key)
            return entry.value

    async def set(self, key: str, value: Any, *, ttl: Optional[int] = None) -> None:
        async with self._lock:
            ttl = ttl or self.default_ttl
            expires_at = time.time() + ttl if ttl else None
            # Store a JSON copy so callers never share mutable state with the store
            self._entries[key] = CacheEntry(
                value=_default_deserializer(_default_serializer(value)),
                expires_at=expires_at,
            )
            self._touch(key)

            if len(self._entries) > self.max_size:
                self._evict()

    async def delete(self, key: str) -> bool:
        async with self._lock:
            entry = self._entries.get(key)
            self._drop(key)
            return entry is not None and not self._expired(entry)

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
            self._access_order.clear()

    def size(self) -> int:
        return len(self._entries)


class RedisStore(KeyValueStore):
    """Redis-backed store; values are JSON encoded."""

    def __init__(self, url: str, *, prefix: str = "spendchat:") -> None:
        self._client = redis.from_url(url, encoding="utf-8", decode_responses=True)
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Any:
        payload = await self._client.get(self._key(key))
        return _default_deserializer(payload)

    async def set(self, key: str, value: Any, *, ttl: Optional[int] = None) -> None:
        await self._client.set(self._key(key), _default_serializer(value), ex=ttl)

    async def delete(self, key: str) -> bool:
        removed = await self._client.delete(self._key(key))
        return bool(removed)

    async def exists(self, key: str) -> bool:
        return bool(await self._client.exists(self._key(key)))

    async def clear(self) -> None:
        keys = [key async for key in self._client.scan_iter(match=f"{self._prefix}*")]
        if keys:
            await self._client.delete(*keys)


_store: Optional[KeyValueStore] = None


def get_store() -> KeyValueStore:
    global _store
    if _store is None:
        if settings.redis_url:
            logger.info("Using Redis key-value store")
            _store = RedisStore(settings.redis_url)
        else:
            _store = InMemoryStore(max_size=settings.max_cache_size)
    return _store


def set_store(store: Optional[KeyValueStore]) -> None:
    """Replace the process-wide store (tests, alternate backends)."""
    global _store
    _store = store


__all__ = [
    "KeyValueStore",
    "InMemoryStore",
    "RedisStore",
    "get_store",
    "set_store",
]
