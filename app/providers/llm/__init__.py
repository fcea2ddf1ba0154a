from typing import Dict, Optional, Type

from .base import CompletionResult, LLMProvider, LLMProviderError
from .anthropic import AnthropicProvider
from .gemini import GeminiProvider
from .zai import ZAIProvider

PROVIDER_ALIAS_MAP: Dict[str, str] = {
    "google": "gemini",
    "claude": "anthropic",
    "z": "zai",
}


def canonical_provider_name(name: str) -> str:
    """Normalize provider aliases to their canonical identifier."""

    return PROVIDER_ALIAS_MAP.get(name.lower(), name.lower())


# Registry of available completion backends
PROVIDER_REGISTRY: Dict[str, Type[LLMProvider]] = {
    "gemini": GeminiProvider,
    "anthropic": AnthropicProvider,
    "zai": ZAIProvider,
}


class LLMProviderFactory:
    """Factory for creating LLM provider instances."""

    @staticmethod
    def create_provider(
        provider_name: str,
        api_key: str,
        model: Optional[str] = None,
        **kwargs,
    ) -> LLMProvider:
        provider_key = canonical_provider_name(provider_name)
        if provider_key not in PROVIDER_REGISTRY:
            available_providers = ", ".join(PROVIDER_REGISTRY.keys())
            raise ValueError(
                f"Unsupported provider '{provider_name}'. "
                f"Available providers: {available_providers}"
            )

        if not model:
            raise ValueError(f"No model provided for provider '{provider_key}'.")

        return PROVIDER_REGISTRY[provider_key](api_key=api_key, model=model, **kwargs)


def _api_key_for(provider: str) -> str:
    from ...config import settings

    return {
        "gemini": settings.gemini_api_key,
        "anthropic": settings.anthropic_api_key,
        "zai": settings.z_api_key,
    }.get(provider, "")


_default_provider: Optional[LLMProvider] = None


def get_llm_provider(
    provider_name: Optional[str] = None,
    model: Optional[str] = None,
    **kwargs,
) -> LLMProvider:
    """Instantiate the configured completion backend.

    Without overrides the provider is built once and reused.
    """
    global _default_provider
    from ...config import settings

    use_default = provider_name is None and model is None and not kwargs
    if use_default and _default_provider is not None:
        return _default_provider

    resolved_provider = canonical_provider_name((provider_name or settings.llm_provider).strip())
    api_key = _api_key_for(resolved_provider)
    if not api_key:
        raise ValueError(f"No API key configured for provider: {resolved_provider}")

    resolved_model = (model or settings.llm_model or "").strip() or settings.resolve_default_model(resolved_provider)

    provider = LLMProviderFactory.create_provider(
        provider_name=resolved_provider,
        api_key=api_key,
        model=resolved_model,
        **kwargs,
    )
    if use_default:
        _default_provider = provider
    return provider


__all__ = [
    "CompletionResult",
    "LLMProvider",
    "LLMProviderError",
    "AnthropicProvider",
    "GeminiProvider",
    "ZAIProvider",
    "LLMProviderFactory",
    "get_llm_provider",
    "PROVIDER_REGISTRY",
    "canonical_provider_name",
]
