"""Async LLM provider integration for Z AI chat completion API."""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import httpx

from .base import (
    CompletionResult,
    LLMProvider,
    LLMProviderAPIError,
    LLMProviderAuthError,
    LLMProviderError,
    LLMProviderRateLimitError,
)


class ZAIProvider(LLMProvider):
    """Z AI chat completion provider."""

    def __init__(
        self,
        api_key: str,
        model: str = "glm-4.6",
        *,
        base_url: str | None = None,
        timeout: float = 40.0,
        **kwargs: Any,
    ) -> None:
        self.base_url = (base_url or "https://api.z.ai").rstrip("/")
        self.timeout = timeout
        self._chat_completions_path = "/api/paas/v4/chat/completions"
        super().__init__(api_key, model, **kwargs)

    def _setup_client(self, **kwargs: Any) -> None:
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )

    async def _post(self, path: str, json: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client.post(path, json=json)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            message = exc.response.text
            if status in (401, 403):
                raise LLMProviderAuthError(f"Z AI authentication failed: {message}") from exc
            if status == 429:
                raise LLMProviderRateLimitError("Z AI rate limit exceeded") from exc
            raise LLMProviderAPIError(f"Z AI API error ({status}): {message}") from exc
        except httpx.RequestError as exc:
            raise LLMProviderAPIError(f"Z AI request error: {exc}") from exc

    async def generate(
        self,
        prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        **kwargs: Any,
    ) -> CompletionResult:
        start_time = time.time()

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            # Reasoning output would leak into the tool-call draft
            "thinking": {"type": "disabled"},
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if temperature is not None:
            payload["temperature"] = temperature
        payload.update({key: value for key, value in kwargs.items() if value is not None})

        data = await self._post(self._chat_completions_path, json=payload)

        choices = data.get("choices", [])
        if not choices:
            raise LLMProviderError("Z AI response missing choices")

        choice = choices[0]
        content = self._normalize_content((choice.get("message") or {}).get("content"))

        usage = data.get("usage", {})
        return self._create_response(
            text=content,
            tokens_used=usage.get("total_tokens"),
            finish_reason=choice.get("finish_reason"),
            response_time_ms=self._measure_time(start_time),
        )

    async def health_check(self) -> Dict[str, Any]:
        try:
            await self.generate("ping", max_tokens=5, temperature=0)
            return {"status": "healthy", "provider": "zai", "model": self.model}
        except LLMProviderRateLimitError:
            return {
                "status": "degraded",
                "provider": "zai",
                "model": self.model,
                "error": "rate_limited",
            }
        except LLMProviderError as exc:
            return {
                "status": "error",
                "provider": "zai",
                "model": self.model,
                "error": str(exc),
            }

    async def close(self) -> None:
        await self._client.aclose()

    def _normalize_content(self, content: Any) -> str:
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts: List[str] = []
            for item in content:
                if isinstance(item, str):
                    parts.append(item)
                elif isinstance(item, dict) and item.get("text") is not None:
                    parts.append(str(item["text"]))
            return "".join(parts)
        return str(content)
