from typing import Dict, List, Optional, Type

from .base import (
    LLMMessage,
    LLMProvider,
    LLMProviderAPIError,
    LLMProviderAuthError,
    LLMProviderError,
    LLMProviderRateLimitError,
    LLMResponse,
)
from .anthropic import AnthropicProvider
from .groq import GroqProvider

PROVIDER_ALIAS_MAP: Dict[str, str] = {
    "claude": "anthropic",
    "llama": "groq",
}


def canonical_provider_name(name: str) -> str:
    """Normalize provider aliases to their canonical identifier."""

    return PROVIDER_ALIAS_MAP.get(name.lower(), name.lower())


# Registry of available LLM providers
PROVIDER_REGISTRY: Dict[str, Type[LLMProvider]] = {
    "groq": GroqProvider,
    "anthropic": AnthropicProvider,
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


def get_llm_provider(provider_name: str, model: Optional[str] = None, **kwargs) -> LLMProvider:
    """Instantiate one provider from settings."""

    from ...config import settings

    resolved = canonical_provider_name(provider_name)
    if resolved == "groq":
        api_key = settings.groq_api_key
        resolved_model = model or settings.groq_model
        kwargs.setdefault("base_url", settings.groq_base_url)
    elif resolved == "anthropic":
        api_key = settings.anthropic_api_key
        resolved_model = model or settings.llm_model
    else:
        api_key = None
        resolved_model = model

    if not api_key:
        raise ValueError(f"No API key configured for provider: {resolved}")

    return LLMProviderFactory.create_provider(resolved, api_key=api_key, model=resolved_model, **kwargs)


def get_nlu_providers() -> List[LLMProvider]:
    """Every configured provider in fallback order: Groq first, then Anthropic."""

    from ...config import settings

    providers: List[LLMProvider] = []
    if settings.has_groq_key:
        providers.append(get_llm_provider("groq"))
    if settings.has_anthropic_key:
        providers.append(get_llm_provider("anthropic"))
    return providers


__all__ = [
    "LLMProvider",
    "LLMMessage",
    "LLMResponse",
    "LLMProviderError",
    "LLMProviderAPIError",
    "LLMProviderAuthError",
    "LLMProviderRateLimitError",
    "AnthropicProvider",
    "GroqProvider",
    "LLMProviderFactory",
    "get_llm_provider",
    "get_nlu_providers",
    "PROVIDER_REGISTRY",
    "canonical_provider_name",
]
