"""Per-user custodial smart accounts."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..providers.relay import RelayProvider, get_relay_provider
from .address import normalize_address
from .store import KeyValueStore, get_store

logger = logging.getLogger(__name__)


class ServerWallet(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    address: str
    smart_account_address: str = Field(alias="smartAccountAddress")


class ServerWalletService:
    """Creates one custodial smart account per signed-in user and remembers it.

    The user-to-account mapping lives in the key-value store so every worker
    resolves the same account.
    """

    def __init__(
        self,
        relay: Optional[RelayProvider] = None,
        store: Optional[KeyValueStore] = None,
    ) -> None:
        self._relay = relay
        self._store = store
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def relay(self) -> RelayProvider:
        return self._relay or get_relay_provider()

    @property
    def store(self) -> KeyValueStore:
        return self._store or get_store()

    @staticmethod
    def _key(user_address: str) -> str:
        return f"server-wallet:{normalize_address(user_address)}"

    async def get(self, user_address: str) -> Optional[ServerWallet]:
        data = await self.store.get(self._key(user_address))
        return ServerWallet.model_validate(data) if data else None

    async def get_or_create(self, user_address: str) -> ServerWallet:
        key = self._key(user_address)
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            existing = await self.get(user_address)
            if existing:
                return existing

            name = f"user-{normalize_address(user_address)[2:]}"
            account = await self.relay.create_account(name)
            wallet = ServerWallet(address=account.owner_address, smartAccountAddress=account.address)
            await self.store.set(key, wallet.model_dump(by_alias=True))
            logger.info("Created server wallet %s for %s", wallet.smart_account_address, user_address)
            return wallet


_server_wallet_service: Optional[ServerWalletService] = None


def get_server_wallet_service() -> ServerWalletService:
    global _server_wallet_service
    if _server_wallet_service is None:
        _server_wallet_service = ServerWalletService()
    return _server_wallet_service
