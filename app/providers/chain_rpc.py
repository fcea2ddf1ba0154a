"""
Read-only chain access (eth_call, ERC-20 balances).
"""

from __future__ import annotations

from typing import Optional

from .base import JsonRpcProvider, ProviderError
from ..config import settings
from ..core.funds.calldata import build_erc20_balance_of


class ChainRpcError(ProviderError):
    """Chain RPC error."""
    pass


class ChainRpcProvider(JsonRpcProvider):
    name = "chain_rpc"
    timeout_s = 15
    error_class = ChainRpcError

    def __init__(self, rpc_url: Optional[str] = None) -> None:
        super().__init__(rpc_url or settings.rpc_url)

    async def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        result = await self._rpc_call("eth_call", [{"to": to, "data": data}, block])
        if not isinstance(result, str):
            raise ChainRpcError("Invalid response for eth_call")
        return result

    async def erc20_balance_of(self, token: str, owner: str) -> int:
        result = await self.eth_call(token, build_erc20_balance_of(owner))
        return int(result, 16) if result not in ("0x", "") else 0


_chain_rpc_provider: Optional[ChainRpcProvider] = None


def get_chain_rpc_provider() -> ChainRpcProvider:
    global _chain_rpc_provider
    if _chain_rpc_provider is None:
        _chain_rpc_provider = ChainRpcProvider()
    return _chain_rpc_provider
