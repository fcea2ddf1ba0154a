"""Service layer helpers"""

from .store import KeyValueStore, InMemoryStore, RedisStore, get_store, set_store
from .server_wallet import ServerWallet, ServerWalletService, get_server_wallet_service

__all__ = [
    "KeyValueStore",
    "InMemoryStore",
    "RedisStore",
    "get_store",
    "set_store",
    "ServerWallet",
    "ServerWalletService",
    "get_server_wallet_service",
]
