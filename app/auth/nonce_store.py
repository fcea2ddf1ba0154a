"""
Single-use sign-in nonces.

The service only needs membership, insertion and removal, so anything that
provides those three operations can back it. The default implementation sits
on the shared key-value store, which is Redis when ``REDIS_URL`` is set.
"""

from __future__ import annotations

from typing import Optional, Protocol

from ..config import settings
from ..services.store import KeyValueStore, get_store


class NonceStore(Protocol):
    async def contains(self, nonce: str) -> bool: ...

    async def add(self, nonce: str) -> None: ...

    async def remove(self, nonce: str) -> None: ...


class StoreNonceStore:
    prefix = "nonce:"

    def __init__(self, store: Optional[KeyValueStore] = None, ttl_seconds: Optional[int] = None):
        self._store = store
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.nonce_ttl_seconds

    @property
    def store(self) -> KeyValueStore:
        if self._store is None:
            self._store = get_store()
        return self._store

    async def contains(self, nonce: str) -> bool:
        return await self.store.exists(self.prefix + nonce)

    async def add(self, nonce: str) -> None:
        await self.store.set(self.prefix + nonce, True, ttl=self.ttl_seconds)

    async def remove(self, nonce: str) -> None:
        await self.store.delete(self.prefix + nonce)
