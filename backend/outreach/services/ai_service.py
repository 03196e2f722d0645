"""
AI Request Facade
One logical AI request = one key selection + one dispatch + one usage record.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from cryptography.fernet import InvalidToken

from outreach.adapters.llm import (
    BaseLLMAdapter,
    LLMAuthenticationError,
    LLMBillingError,
    LLMConfig,
    LLMConnectionError,
    LLMRateLimitError,
    LLMTimeoutError,
    get_adapter,
    is_rate_limit_error,
)
from outreach.config import get_settings
from outreach.models import AIProvider
from outreach.services.key_manager import RATE_LIMIT_ERROR, KeyManager, key_manager as default_key_manager
from outreach.services.provider_catalog import PROVIDER_CONFIGS
from outreach.utils.security import mask_api_key

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[str, str], BaseLLMAdapter]


class AIErrorKind(str, Enum):
    """Why an AI request failed; each kind needs different user guidance"""
    NO_ACTIVE_KEYS = "no_active_keys"
    ALL_KEYS_RATE_LIMITED = "all_keys_rate_limited"
    RATE_LIMITED = "rate_limited"
    AUTH_INVALID = "auth_invalid"
    BILLING = "billing"
    NETWORK = "network"
    VENDOR_ERROR = "vendor_error"


NO_ACTIVE_KEYS_MESSAGE = (
    "No active API keys found. Please add and activate at least one API key to use AI features."
)
ALL_KEYS_RATE_LIMITED_MESSAGE = (
    "All API keys are currently rate limited or unavailable. "
    "Please wait for rate limits to reset or add additional keys."
)


@dataclass
class AIResult:
    """Outcome of a single AI request; failures are values, not exceptions"""
    success: bool
    content: Optional[str] = None
    provider: Optional[AIProvider] = None
    model: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[AIErrorKind] = None
    fallback_used: bool = False
    key_used: Optional[str] = None
    tokens_used: int = 0

    @property
    def is_key_unavailable(self) -> bool:
        return self.error_kind in (AIErrorKind.NO_ACTIVE_KEYS, AIErrorKind.ALL_KEYS_RATE_LIMITED)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "content": self.content,
            "provider": self.provider.value if self.provider else None,
            "model": self.model,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "fallback_used": self.fallback_used,
            "key_used": self.key_used,
            "tokens_used": self.tokens_used,
        }


def classify_exception(error: Exception) -> AIErrorKind:
    """Map a dispatch failure onto an error kind"""
    if isinstance(error, LLMRateLimitError) or is_rate_limit_error(error):
        return AIErrorKind.RATE_LIMITED
    if isinstance(error, (LLMAuthenticationError, InvalidToken)):
        return AIErrorKind.AUTH_INVALID
    if isinstance(error, LLMBillingError):
        return AIErrorKind.BILLING
    if isinstance(error, (LLMTimeoutError, LLMConnectionError)):
        return AIErrorKind.NETWORK
    return AIErrorKind.VENDOR_ERROR


class AIService:
    """Select a key, dispatch once, record the outcome"""

    def __init__(
        self,
        keys: Optional[KeyManager] = None,
        adapter_factory: AdapterFactory = get_adapter,
    ):
        self.keys = keys or default_key_manager
        self.adapter_factory = adapter_factory

    async def generate_content(
        self,
        prompt: str,
        user_id: str,
        preferred_provider: Optional[AIProvider] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AIResult:
        """
        Generate text with the user's best available key.

        Makes exactly one dispatch attempt. A rate-limited key is quarantined
        for future calls but is not retried here.
        """
        settings = get_settings()
        max_tokens = max_tokens or settings.LLM_DEFAULT_MAX_TOKENS
        temperature = settings.LLM_DEFAULT_TEMPERATURE if temperature is None else temperature

        selection = await self.keys.get_best_available_key(user_id, preferred_provider)
        if selection is None:
            active = await self.keys.get_active_key_count(user_id)
            if active == 0:
                logger.info("AI request for user %s: no active keys", user_id)
                return AIResult(
                    success=False,
                    error=NO_ACTIVE_KEYS_MESSAGE,
                    error_kind=AIErrorKind.NO_ACTIVE_KEYS,
                )
            logger.info("AI request for user %s: all %d key(s) unavailable", user_id, active)
            return AIResult(
                success=False,
                error=ALL_KEYS_RATE_LIMITED_MESSAGE,
                error_kind=AIErrorKind.ALL_KEYS_RATE_LIMITED,
            )

        key = selection.key
        provider = key.provider
        model = key.effective_model

        key_used = "***"
        try:
            api_key = key.decrypt()
            key_used = mask_api_key(api_key)
            adapter = self.adapter_factory(provider.value, api_key)
            response = await adapter.execute(
                prompt,
                LLMConfig(
                    model=model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    timeout=settings.LLM_REQUEST_TIMEOUT,
                ),
            )
        except Exception as e:
            error_kind = classify_exception(e)
            message = str(e) or type(e).__name__
            logger.warning(
                "AI request via %s key %s failed (%s): %s",
                provider.value, key.id, error_kind.value, message,
            )
            if error_kind == AIErrorKind.RATE_LIMITED:
                await self.keys.record_key_usage(
                    key.id, success=False, tokens_used=0, error_type=RATE_LIMIT_ERROR
                )
            return AIResult(
                success=False,
                provider=provider,
                model=model,
                error=message,
                error_kind=error_kind,
                fallback_used=selection.fallback_used,
                key_used=key_used,
            )

        tokens_used = 1
        await self.keys.record_key_usage(key.id, success=True, tokens_used=tokens_used)
        logger.debug("AI request served by %s (%s) key %s", provider.value, model, key_used)

        return AIResult(
            success=True,
            content=response.content,
            provider=provider,
            model=model,
            fallback_used=selection.fallback_used,
            key_used=key_used,
            tokens_used=tokens_used,
        )

    async def make_ai_request(
        self,
        user_id: str,
        prompt: str,
        preferred_provider: Optional[AIProvider] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AIResult:
        """Same as generate_content, for callers that show which key served the request"""
        return await self.generate_content(
            prompt,
            user_id,
            preferred_provider=preferred_provider,
            max_tokens=max_tokens,
            temperature=temperature,
        )


def describe_ai_error(result: AIResult) -> Tuple[str, str]:
    """User-facing (title, description) for a failed AI result"""
    if result.provider is not None:
        provider_name = PROVIDER_CONFIGS[result.provider].name
    else:
        provider_name = "API"
    kind = result.error_kind

    if kind == AIErrorKind.NO_ACTIVE_KEYS:
        return (
            "No Active API Keys",
            "You need to add and activate at least one API key to use AI features. "
            "Go to AI Keys settings to add your keys.",
        )
    if kind == AIErrorKind.ALL_KEYS_RATE_LIMITED:
        return (
            "All Keys Rate Limited",
            "All your API keys are currently rate limited. "
            "Please wait for the limits to reset or add additional keys.",
        )
    if kind == AIErrorKind.RATE_LIMITED:
        return (
            f"{provider_name} Rate Limit Reached",
            f"Your {provider_name} API key has reached its rate limit. The system will "
            "automatically try other available keys or wait for the limit to reset.",
        )
    if kind == AIErrorKind.AUTH_INVALID:
        return (
            f"{provider_name} Authentication Failed",
            f"Your {provider_name} API key appears to be invalid or expired. "
            "Please check your API key in the AI Keys settings.",
        )
    if kind == AIErrorKind.BILLING:
        return (
            f"{provider_name} Billing Issue",
            f"Your {provider_name} account has insufficient credits or a billing issue. "
            "Please check your account status.",
        )
    if kind == AIErrorKind.NETWORK:
        return (
            f"{provider_name} Connection Error",
            f"Unable to connect to {provider_name}. "
            "Please check your internet connection and try again.",
        )

    error = result.error or "Unknown error"
    suffix = "..." if len(error) > 100 else ""
    return (
        f"{provider_name} Error",
        f"An error occurred with {provider_name}: {error[:100]}{suffix}",
    )


ai_service = AIService()
