"""
Static per-provider configuration: models, daily limits and rate-limit windows
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List, Tuple

from outreach.adapters.llm import (
    OpenAIAdapter,
    GroqAdapter,
    AnthropicAdapter,
    GoogleAdapter,
)
from outreach.models import AIProvider


@dataclass(frozen=True)
class ProviderConfig:
    """What the key selector and dispatcher need to know about a vendor"""
    provider: AIProvider
    name: str
    default_model: str
    models: Tuple[str, ...]
    daily_limit: int
    rate_limit_reset_hours: int

    @property
    def rate_limit_window(self) -> timedelta:
        return timedelta(hours=self.rate_limit_reset_hours)


PROVIDER_CONFIGS: Dict[AIProvider, ProviderConfig] = {
    AIProvider.OPENAI: ProviderConfig(
        provider=AIProvider.OPENAI,
        name="OpenAI",
        default_model=OpenAIAdapter.DEFAULT_MODEL,
        models=tuple(OpenAIAdapter.MODELS),
        daily_limit=10000,
        rate_limit_reset_hours=1,
    ),
    AIProvider.GROQ: ProviderConfig(
        provider=AIProvider.GROQ,
        name="Groq",
        default_model=GroqAdapter.DEFAULT_MODEL,
        models=tuple(GroqAdapter.MODELS),
        daily_limit=14400,
        rate_limit_reset_hours=1,
    ),
    AIProvider.ANTHROPIC: ProviderConfig(
        provider=AIProvider.ANTHROPIC,
        name="Anthropic Claude",
        default_model=AnthropicAdapter.DEFAULT_MODEL,
        models=tuple(AnthropicAdapter.MODELS),
        daily_limit=5000,
        rate_limit_reset_hours=24,
    ),
    AIProvider.GOOGLE: ProviderConfig(
        provider=AIProvider.GOOGLE,
        name="Google Gemini",
        default_model=GoogleAdapter.DEFAULT_MODEL,
        models=tuple(GoogleAdapter.MODELS),
        daily_limit=15000,
        rate_limit_reset_hours=24,
    ),
}

# Order in which other providers are tried when the preferred one has no usable key
FALLBACK_ORDER: List[AIProvider] = [
    AIProvider.OPENAI,
    AIProvider.GROQ,
    AIProvider.ANTHROPIC,
    AIProvider.GOOGLE,
]


def get_provider_config(provider) -> ProviderConfig:
    """Look up a provider by enum member or string value"""
    return PROVIDER_CONFIGS[AIProvider(provider)]
