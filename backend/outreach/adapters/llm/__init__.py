"""
LLM Adapters - Unified interface for multiple LLM providers
"""

from typing import Optional

import httpx

from .base import (
    BaseLLMAdapter,
    LLMConfig,
    LLMMessage,
    LLMResponse,
    LLMUsage,
    LLMProviderType,
    LLMAdapterError,
    LLMRateLimitError,
    LLMAuthenticationError,
    LLMBillingError,
    LLMTimeoutError,
    LLMConnectionError,
    LLMVendorError,
    classify_error_response,
    is_rate_limit_error,
)
from .openai_adapter import OpenAIAdapter
from .groq_adapter import GroqAdapter
from .anthropic_adapter import AnthropicAdapter
from .google_adapter import GoogleAdapter

ADAPTERS = {
    "openai": OpenAIAdapter,
    "groq": GroqAdapter,
    "anthropic": AnthropicAdapter,
    "google": GoogleAdapter,
}


def get_adapter(
    provider: str,
    api_key: str,
    config: Optional[LLMConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BaseLLMAdapter:
    """
    Factory function to get the appropriate LLM adapter.

    Args:
        provider: One of "openai", "groq", "anthropic", "google"
        api_key: Decrypted API key for the provider
        config: Optional LLM configuration
        transport: Optional httpx transport (used to stub the network)

    Returns:
        Configured LLM adapter instance

    Raises:
        ValueError: If provider is not supported
    """
    provider = getattr(provider, "value", provider)
    if provider not in ADAPTERS:
        raise ValueError(f"Unsupported provider: {provider}. Must be one of {list(ADAPTERS.keys())}")

    return ADAPTERS[provider](api_key=api_key, config=config, transport=transport)


__all__ = [
    # Factory
    "ADAPTERS",
    "get_adapter",
    # Base classes
    "BaseLLMAdapter",
    "LLMConfig",
    "LLMMessage",
    "LLMResponse",
    "LLMUsage",
    "LLMProviderType",
    # Exceptions
    "LLMAdapterError",
    "LLMRateLimitError",
    "LLMAuthenticationError",
    "LLMBillingError",
    "LLMTimeoutError",
    "LLMConnectionError",
    "LLMVendorError",
    "classify_error_response",
    "is_rate_limit_error",
    # Adapters
    "OpenAIAdapter",
    "GroqAdapter",
    "AnthropicAdapter",
    "GoogleAdapter",
]
