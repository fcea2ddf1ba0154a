"""
HTTP client for the chat server.

The session travels as the ``session`` cookie, exactly as a browser would
send it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"Request failed with status code {response.status_code}"

    if isinstance(body, dict):
        if body.get("error"):
            details = body.get("details")
            return f"{body['error']}: {details}" if details else str(body["error"])
        if body.get("detail"):
            return str(body["detail"])
    return f"Request failed with status code {response.status_code}"


class AgentApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        session_token: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_s or settings.request_timeout_seconds,
            transport=transport,
        )
        if session_token:
            self.session_token = session_token

    @property
    def session_token(self) -> Optional[str]:
        return self._client.cookies.get(settings.session_cookie_name)

    @session_token.setter
    def session_token(self, token: Optional[str]) -> None:
        self._client.cookies.delete(settings.session_cookie_name)
        if token:
            self._client.cookies.set(settings.session_cookie_name, token)

    async def __aenter__(self) -> "AgentApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ApiError(0, f"Could not reach server: {exc}") from exc

        if response.is_error:
            raise ApiError(response.status_code, _error_message(response), _safe_json(response))
        return response.json()

    # Auth

    async def get_nonce(self) -> str:
        data = await self._request("GET", "/auth/nonce")
        return data["nonce"]

    async def sign_in(self, address: str, message: str, signature: str) -> str:
        data = await self._request(
            "POST",
            "/auth/verify",
            json={"address": address, "message": message, "signature": signature},
        )
        self.session_token = data["sessionToken"]
        return data["sessionToken"]

    async def auth_status(self) -> Dict[str, Any]:
        return await self._request("GET", "/auth-status")

    async def sign_out(self) -> None:
        await self._request("GET", "/auth/signout")
        self.session_token = None

    # Chat and wallet

    async def chat(self, message: str, history: List[Dict[str, str]]) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/chat",
            json={"message": message, "conversationHistory": history},
        )

    async def get_server_wallet(self) -> Dict[str, Any]:
        return await self._request("GET", "/server-wallet")

    async def get_permissions(self) -> Dict[str, Any]:
        return await self._request("GET", "/permissions")

    # Fund movements

    async def transfer(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/transfer", json=payload)

    async def swap(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/swap", json=payload)

    async def get_fund_movement(self, movement_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/fund-movements/{movement_id}")


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
