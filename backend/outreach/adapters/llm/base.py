"""
Base LLM Adapter Interface
All LLM providers must implement this interface
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Type
from enum import Enum

import httpx

from outreach.config import get_settings


class LLMProviderType(str, Enum):
    """Supported LLM providers"""
    OPENAI = "openai"
    GROQ = "groq"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


@dataclass
class LLMConfig:
    """Configuration for LLM request"""
    model: str
    temperature: float = 0.1
    max_tokens: int = 500
    timeout: int = 60  # seconds
    top_p: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    extra_params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMMessage:
    """A message in the conversation"""
    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class LLMUsage:
    """Token usage information"""
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class LLMResponse:
    """Standardized LLM response across all providers"""
    # Core response
    content: str
    raw_response: Dict[str, Any]  # Original response from provider

    # Metadata
    provider: LLMProviderType
    model: str
    finish_reason: Optional[str] = None

    # Usage
    usage: Optional[LLMUsage] = None

    # Timing
    request_time: Optional[datetime] = None
    response_time: Optional[datetime] = None
    latency_ms: Optional[int] = None


class BaseLLMAdapter(ABC):
    """
    Abstract base class for LLM adapters.
    Each provider (OpenAI, Groq, Anthropic, Google) implements this interface.

    Adapters make exactly one HTTP call per execute and never retry; every
    failure surfaces as an LLMAdapterError subclass so callers can decide
    what to do with the key that produced it.
    """

    def __init__(
        self,
        api_key: str,
        config: Optional[LLMConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.config = config
        self._transport = transport

    @property
    @abstractmethod
    def provider(self) -> LLMProviderType:
        """Return the provider type"""
        pass

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Return the default model for this provider"""
        pass

    @property
    @abstractmethod
    def available_models(self) -> List[str]:
        """Return list of available models"""
        pass

    @abstractmethod
    async def execute(
        self,
        prompt: str,
        config: Optional[LLMConfig] = None,
        system_prompt: Optional[str] = None,
    ) -> LLMResponse:
        """
        Execute a prompt against the LLM.

        Args:
            prompt: The user prompt to send
            config: Optional configuration override
            system_prompt: Optional system prompt

        Returns:
            LLMResponse with standardized response data
        """
        pass

    @abstractmethod
    async def execute_chat(
        self,
        messages: List[LLMMessage],
        config: Optional[LLMConfig] = None,
    ) -> LLMResponse:
        """
        Execute a multi-turn chat conversation.

        Args:
            messages: List of messages in the conversation
            config: Optional configuration override

        Returns:
            LLMResponse with standardized response data
        """
        pass

    async def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        max_tokens: int = 500,
        temperature: float = 0.1,
    ) -> str:
        """Single prompt in, generated text out"""
        response = await self.execute(
            prompt,
            LLMConfig(
                model=model or self.default_model,
                max_tokens=max_tokens,
                temperature=temperature,
                timeout=self.config.timeout if self.config else get_settings().LLM_REQUEST_TIMEOUT,
            ),
        )
        return response.content

    def estimate_tokens(self, text: str) -> int:
        """Rough token estimate (~4 characters per token for English)"""
        return max(1, len(text) // 4)

    def _client(self, timeout: int) -> httpx.AsyncClient:
        """HTTP client for a single request"""
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _raise_for_response(self, response: httpx.Response) -> None:
        """Translate a non-200 vendor response into the matching adapter error"""
        if response.status_code == 200:
            return
        error_cls = classify_error_response(response.status_code, response.text)
        raise error_cls(
            f"API error ({response.status_code}): {response.text}",
            self.provider,
            status_code=response.status_code,
            details={"response": response.text},
        )

    def _json_body(self, response: httpx.Response) -> Dict[str, Any]:
        """Decode a 200 reply, treating anything but a JSON object as a vendor error"""
        try:
            data = response.json()
        except ValueError:
            raise LLMVendorError(
                f"Malformed response: {response.text[:200]}",
                self.provider,
                status_code=response.status_code,
            )
        if not isinstance(data, dict):
            raise LLMVendorError(
                "Malformed response: expected a JSON object",
                self.provider,
                status_code=response.status_code,
                details={"response": data},
            )
        return data

    def _malformed(self, response: httpx.Response, data: Dict[str, Any], error: Exception) -> "LLMVendorError":
        """Vendor error for a JSON reply whose envelope is not the expected shape"""
        return LLMVendorError(
            f"Malformed response: {type(error).__name__}: {error}",
            self.provider,
            status_code=response.status_code,
            details={"response": data},
        )

    def _calculate_latency(self, start: datetime, end: datetime) -> int:
        """Calculate latency in milliseconds"""
        return int((end - start).total_seconds() * 1000)


class LLMAdapterError(Exception):
    """Base exception for LLM adapter errors"""
    error_type = "vendor_error"

    def __init__(
        self,
        message: str,
        provider: LLMProviderType,
        status_code: Optional[int] = None,
        details: Optional[Dict] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.details = details or {}


class LLMRateLimitError(LLMAdapterError):
    """Rate limit exceeded"""
    error_type = "rate_limit_exceeded"


class LLMAuthenticationError(LLMAdapterError):
    """Authentication failed"""
    error_type = "authentication_failed"


class LLMBillingError(LLMAdapterError):
    """Account out of credits or billing problem"""
    error_type = "billing"


class LLMTimeoutError(LLMAdapterError):
    """Request timed out"""
    error_type = "timeout"


class LLMConnectionError(LLMAdapterError):
    """Network failure before a response arrived"""
    error_type = "network"


class LLMVendorError(LLMAdapterError):
    """Any other vendor-side failure (5xx, malformed response, bad request)"""
    error_type = "vendor_error"


_AUTH_MARKERS = ("invalid api key", "invalid_api_key", "api key not valid", "unauthorized")
_BILLING_MARKERS = ("insufficient_quota", "insufficient credits", "billing", "credit balance")
_RATE_LIMIT_MARKERS = ("rate_limit", "rate limit", "429", "resource_exhausted", "quota")


def classify_error_response(status_code: int, body: str) -> Type[LLMAdapterError]:
    """
    Map a vendor HTTP failure onto an exception class.

    A 429 is always a rate limit, even when the body mentions quota, so the
    key that received it is quarantined for the provider window.
    """
    text = (body or "").lower()
    if status_code in (401, 403) or any(m in text for m in _AUTH_MARKERS):
        return LLMAuthenticationError
    if status_code == 429:
        return LLMRateLimitError
    if status_code == 402 or any(m in text for m in _BILLING_MARKERS):
        return LLMBillingError
    if any(m in text for m in _RATE_LIMIT_MARKERS):
        return LLMRateLimitError
    return LLMVendorError


def is_rate_limit_error(error: Exception) -> bool:
    """True for errors that should quarantine the key that produced them"""
    if isinstance(error, LLMAdapterError):
        return isinstance(error, LLMRateLimitError)
    message = str(error).lower()
    return "rate_limit" in message or "429" in message
