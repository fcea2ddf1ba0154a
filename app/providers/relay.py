"""Async client for the smart-account wallet service (sponsored-gas relay).

Every call submitted here runs as a user operation of the custodial smart
account, with gas paid by the configured paymaster.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .base import Provider, ProviderError
from ..config import settings
from ..core.permissions.models import Call
from ..core.recovery.errors import RelayTimeoutError

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"complete", "failed", "reverted", "dropped"}


class RelayError(ProviderError):
    """Wallet service error."""
    pass


@dataclass
class OperationReceipt:
    operation_id: str
    status: str
    tx_hash: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "complete"


@dataclass
class SmartAccount:
    owner_address: str
    address: str


class RelayProvider(Provider):
    """Thin wrapper around the wallet service's account and operation endpoints."""

    name = "relay"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        paymaster_url: Optional[str] = None,
        network: Optional[str] = None,
        timeout_s: int = 30,
        poll_interval_s: Optional[float] = None,
        completion_timeout_s: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.base_url = (base_url or settings.relay_api_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.relay_api_key
        self.paymaster_url = paymaster_url if paymaster_url is not None else settings.paymaster_url
        self.network = network or settings.network
        self.timeout_s = timeout_s
        self.poll_interval_s = poll_interval_s or settings.relay_poll_interval_seconds
        self.completion_timeout_s = completion_timeout_s or settings.relay_timeout_seconds
        self._sleep = sleep

    async def ready(self) -> bool:
        return bool(self.base_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": "Wallet service not configured"}
        try:
            await self._request("GET", "/health")
            return {"status": "healthy"}
        except Exception as exc:
            return {"status": "error", "reason": str(exc)}

    def _headers(self) -> Dict[str, str]:
        headers = {
            "accept": "application/json",
            "content-type": "application/json",
        }
        if self.api_key:
            headers["authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if not self.base_url:
            raise RelayError("Wallet service is not configured")

        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout_s) as client:
                response = await client.request(method, path, json=json, headers=self._headers())
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RelayError(
                f"Wallet service error ({exc.response.status_code}): {exc.response.text}"
            ) from exc
        except httpx.RequestError as exc:
            raise RelayError(f"Wallet service request failed: {exc}") from exc

        return response.json() if response.content else {}

    async def create_account(self, name: str) -> SmartAccount:
        """Create (or fetch) the owner key and smart account registered under ``name``."""
        owner = await self._request("POST", "/accounts", json={"name": name})
        smart = await self._request(
            "POST",
            "/smart-accounts",
            json={"owner": owner["address"], "name": name},
        )
        return SmartAccount(owner_address=owner["address"], address=smart["address"])

    async def submit(self, account: str, calls: List[Call]) -> str:
        """Submit ``calls`` as one sponsored user operation; returns its operation id."""
        payload: Dict[str, Any] = {
            "network": self.network,
            "calls": [call.to_wire() for call in calls],
        }
        if self.paymaster_url:
            payload["paymasterUrl"] = self.paymaster_url

        data = await self._request("POST", f"/smart-accounts/{account}/user-operations", json=payload)
        operation_id = data.get("userOpHash")
        if not isinstance(operation_id, str):
            raise RelayError("Invalid wallet service response for user operation submission")
        logger.info("Submitted user operation %s (%d calls)", operation_id, len(calls))
        return operation_id

    async def swap(
        self,
        account: str,
        *,
        from_token: str,
        to_token: str,
        amount: int,
        slippage_bps: int,
    ) -> str:
        payload: Dict[str, Any] = {
            "network": self.network,
            "fromToken": from_token,
            "toToken": to_token,
            "fromAmount": str(amount),
            "slippageBps": slippage_bps,
        }
        if self.paymaster_url:
            payload["paymasterUrl"] = self.paymaster_url

        data = await self._request("POST", f"/smart-accounts/{account}/swaps", json=payload)
        operation_id = data.get("userOpHash")
        if not isinstance(operation_id, str):
            raise RelayError("Invalid wallet service response for swap submission")
        logger.info("Submitted swap %s: %s %s -> %s", operation_id, amount, from_token, to_token)
        return operation_id

    async def get_operation(self, account: str, operation_id: str) -> OperationReceipt:
        data = await self._request("GET", f"/smart-accounts/{account}/user-operations/{operation_id}")
        return OperationReceipt(
            operation_id=operation_id,
            status=str(data.get("status", "pending")),
            tx_hash=data.get("transactionHash"),
        )

    async def await_completion(self, account: str, operation_id: str) -> OperationReceipt:
        """Poll until the operation reaches a terminal status."""
        waited = 0.0
        while True:
            receipt = await self.get_operation(account, operation_id)
            if receipt.status in TERMINAL_STATUSES:
                return receipt
            if waited >= self.completion_timeout_s:
                raise RelayTimeoutError(operation_id, self.completion_timeout_s)
            await self._sleep(self.poll_interval_s)
            waited += self.poll_interval_s


_relay_provider: Optional[RelayProvider] = None


def get_relay_provider() -> RelayProvider:
    global _relay_provider
    if _relay_provider is None:
        _relay_provider = RelayProvider()
    return _relay_provider
