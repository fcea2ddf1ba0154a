import time
from typing import Any, Dict, Optional

import anthropic
from anthropic import AsyncAnthropic

from .base import (
    CompletionResult,
    LLMProvider,
    LLMProviderAPIError,
    LLMProviderAuthError,
    LLMProviderError,
    LLMProviderRateLimitError,
)


class AnthropicProvider(LLMProvider):
    """Anthropic Claude completion provider"""

    def __init__(self, api_key: str, model: Optional[str] = None, **kwargs):
        if not model:
            raise ValueError("AnthropicProvider requires a model to be specified")

        super().__init__(api_key, model, **kwargs)

    def _setup_client(self, **kwargs) -> None:
        """Initialize the Anthropic client"""
        try:
            self.client = AsyncAnthropic(api_key=self.api_key)
        except Exception as e:
            self.logger.error(f"Failed to initialize Anthropic client: {e}")
            raise LLMProviderAuthError(f"Failed to initialize Anthropic client: {e}")

    async def generate(
        self,
        prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        **kwargs
    ) -> CompletionResult:
        """Send the prompt as a single user turn"""
        start_time = time.time()

        request_params: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens or 1000,
        }
        if temperature is not None:
            request_params["temperature"] = temperature
        request_params.update(kwargs)

        try:
            response = await self.client.messages.create(**request_params)
        except anthropic.AuthenticationError as e:
            raise LLMProviderAuthError(f"Authentication failed: {e}") from e
        except anthropic.RateLimitError as e:
            raise LLMProviderRateLimitError(f"Rate limit exceeded: {e}") from e
        except anthropic.APIError as e:
            raise LLMProviderAPIError(f"API error: {e}") from e

        text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        if not text:
            raise LLMProviderError("Empty response from Anthropic API")

        return self._create_response(
            text=text,
            tokens_used=response.usage.output_tokens if response.usage else None,
            finish_reason=response.stop_reason,
            response_time_ms=self._measure_time(start_time),
        )

    async def health_check(self) -> Dict[str, Any]:
        """Check if Anthropic API is healthy"""
        try:
            result = await self.generate("Hello", max_tokens=10, temperature=0)
            return {
                "status": "healthy",
                "provider": "anthropic",
                "model": self.model,
                "response_time_ms": result.response_time_ms,
            }
        except LLMProviderAuthError:
            return {
                "status": "error",
                "provider": "anthropic",
                "model": self.model,
                "error": "Authentication failed"
            }
        except LLMProviderError as e:
            return {
                "status": "error",
                "provider": "anthropic",
                "model": self.model,
                "error": str(e)
            }
