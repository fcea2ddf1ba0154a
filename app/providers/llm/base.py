from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from pydantic import BaseModel
import time
import logging


class CompletionResult(BaseModel):
    """Standardized completion returned by every provider"""
    text: str
    tokens_used: Optional[int] = None
    model: Optional[str] = None
    finish_reason: Optional[str] = None
    response_time_ms: Optional[float] = None


class LLMProvider(ABC):
    """Abstract base class for text-completion backends.

    The agent loop only needs ``complete(prompt, temperature, max_tokens)``:
    one prompt in, one string out.
    """

    def __init__(self, api_key: str, model: str, **kwargs):
        self.api_key = api_key
        self.model = model
        self.logger = logging.getLogger(f"{self.__class__.__name__}")
        self._setup_client(**kwargs)

    @abstractmethod
    def _setup_client(self, **kwargs) -> None:
        """Initialize the provider-specific client"""
        pass

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        **kwargs
    ) -> CompletionResult:
        """Generate a completion for a single prompt

        Args:
            prompt: Full prompt text
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature
            **kwargs: Additional provider-specific parameters

        Returns:
            CompletionResult with the generated text
        """
        pass

    async def complete(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        result = await self.generate(prompt, max_tokens=max_tokens, temperature=temperature)
        self.logger.debug(
            "Completion from %s: %s tokens in %.0fms",
            self.model, result.tokens_used, result.response_time_ms or 0,
        )
        return result.text

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Check if the provider is healthy and responding"""
        pass

    def _create_response(self, text: str, **metadata) -> CompletionResult:
        """Helper method to create standardized responses"""
        return CompletionResult(
            text=text,
            model=self.model,
            **metadata
        )

    def _measure_time(self, start_time: float) -> float:
        """Helper to measure response time in milliseconds"""
        return (time.time() - start_time) * 1000


class LLMProviderError(Exception):
    """Base exception for LLM provider errors"""
    pass


class LLMProviderRateLimitError(LLMProviderError):
    """Raised when hitting rate limits"""
    pass


class LLMProviderAuthError(LLMProviderError):
    """Raised when authentication fails"""
    pass


class LLMProviderAPIError(LLMProviderError):
    """Raised when API request fails"""
    pass
