"""Async provider for the Google Gemini generateContent REST API."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import httpx

from .base import (
    CompletionResult,
    LLMProvider,
    LLMProviderAPIError,
    LLMProviderAuthError,
    LLMProviderError,
    LLMProviderRateLimitError,
)


class GeminiProvider(LLMProvider):
    """Gemini text completion provider."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        *,
        base_url: str | None = None,
        timeout: float = 40.0,
        **kwargs: Any,
    ) -> None:
        self.base_url = (base_url or "https://generativelanguage.googleapis.com").rstrip("/")
        self.timeout = timeout
        super().__init__(api_key, model, **kwargs)

    def _setup_client(self, **kwargs: Any) -> None:
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={
                "x-goog-api-key": self.api_key,
                "Content-Type": "application/json",
            },
        )

    @property
    def _generate_path(self) -> str:
        return f"/v1beta/models/{self.model}:generateContent"

    async def _post(self, path: str, json: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client.post(path, json=json)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            message = exc.response.text
            if status in (401, 403):
                raise LLMProviderAuthError(f"Gemini authentication failed: {message}") from exc
            if status == 429:
                raise LLMProviderRateLimitError("Gemini rate limit exceeded") from exc
            raise LLMProviderAPIError(f"Gemini API error ({status}): {message}") from exc
        except httpx.RequestError as exc:
            raise LLMProviderAPIError(f"Gemini request error: {exc}") from exc

    async def generate(
        self,
        prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        **kwargs: Any,
    ) -> CompletionResult:
        start_time = time.time()

        generation_config: Dict[str, Any] = {}
        if max_tokens:
            generation_config["maxOutputTokens"] = max_tokens
        if temperature is not None:
            generation_config["temperature"] = temperature

        payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if generation_config:
            payload["generationConfig"] = generation_config

        data = await self._post(self._generate_path, json=payload)

        candidates = data.get("candidates") or []
        parts = ((candidates[0].get("content") or {}).get("parts") or []) if candidates else []
        text = "".join(part.get("text", "") for part in parts)
        if not text:
            raise LLMProviderError("No response text received from Gemini API")

        usage = data.get("usageMetadata") or {}
        return self._create_response(
            text=text,
            tokens_used=usage.get("totalTokenCount"),
            finish_reason=candidates[0].get("finishReason"),
            response_time_ms=self._measure_time(start_time),
        )

    async def health_check(self) -> Dict[str, Any]:
        try:
            response = await self._client.get(f"/v1beta/models/{self.model}")
            response.raise_for_status()
            return {"status": "healthy", "model": self.model}
        except httpx.HTTPError as exc:
            return {"status": "error", "reason": str(exc)}
