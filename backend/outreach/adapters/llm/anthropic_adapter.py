"""
Anthropic (Claude) Adapter
"""

from datetime import datetime
from typing import List, Optional

import httpx

from outreach.config import get_settings
from .base import (
    BaseLLMAdapter,
    LLMConfig,
    LLMMessage,
    LLMResponse,
    LLMUsage,
    LLMProviderType,
    LLMConnectionError,
    LLMTimeoutError,
)


class AnthropicAdapter(BaseLLMAdapter):
    """Adapter for Anthropic Claude API"""

    API_BASE = "https://api.anthropic.com/v1"
    API_VERSION = "2023-06-01"
    DEFAULT_MODEL = "claude-3-5-haiku-20241022"

    MODELS = [
        "claude-3-5-haiku-20241022",
        "claude-3-5-sonnet-20241022",
        "claude-3-haiku-20240307",
        "claude-3-opus-20240229",
    ]

    @property
    def provider(self) -> LLMProviderType:
        return LLMProviderType.ANTHROPIC

    @property
    def default_model(self) -> str:
        return self.DEFAULT_MODEL

    @property
    def available_models(self) -> List[str]:
        return self.MODELS

    async def execute(
        self,
        prompt: str,
        config: Optional[LLMConfig] = None,
        system_prompt: Optional[str] = None,
    ) -> LLMResponse:
        """Execute a single prompt"""
        messages = [LLMMessage(role="user", content=prompt)]
        return await self._execute_with_system(messages, system_prompt, config)

    async def execute_chat(
        self,
        messages: List[LLMMessage],
        config: Optional[LLMConfig] = None,
    ) -> LLMResponse:
        """Execute a chat conversation"""
        # Extract system message if present
        system_prompt = None
        chat_messages = []
        for msg in messages:
            if msg.role == "system":
                system_prompt = msg.content
            else:
                chat_messages.append(msg)
        return await self._execute_with_system(chat_messages, system_prompt, config)

    async def _execute_with_system(
        self,
        messages: List[LLMMessage],
        system_prompt: Optional[str],
        config: Optional[LLMConfig],
    ) -> LLMResponse:
        """Execute with optional system prompt"""
        cfg = config or self.config or LLMConfig(
            model=self.default_model,
            timeout=get_settings().LLM_REQUEST_TIMEOUT,
        )
        request_time = datetime.utcnow()

        # Build request
        payload = {
            "model": cfg.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
        }

        if system_prompt:
            payload["system"] = system_prompt

        if cfg.top_p is not None:
            payload["top_p"] = cfg.top_p
        if cfg.stop_sequences:
            payload["stop_sequences"] = cfg.stop_sequences

        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.API_VERSION,
            "Content-Type": "application/json",
        }

        try:
            async with self._client(cfg.timeout) as client:
                response = await client.post(
                    f"{self.API_BASE}/messages",
                    json=payload,
                    headers=headers,
                )
        except httpx.TimeoutException:
            raise LLMTimeoutError(
                f"Request timed out after {cfg.timeout}s",
                self.provider,
            )
        except httpx.RequestError as e:
            raise LLMConnectionError(
                f"Request failed: {str(e)}",
                self.provider,
            )

        response_time = datetime.utcnow()
        self._raise_for_response(response)

        data = self._json_body(response)

        try:
            content = ""
            for block in data.get("content") or []:
                if block.get("type") == "text":
                    content += block.get("text") or ""

            usage_data = data.get("usage") or {}
            input_tokens = usage_data.get("input_tokens", 0)
            output_tokens = usage_data.get("output_tokens", 0)
            usage = LLMUsage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise self._malformed(response, data, e)

        return LLMResponse(
            content=content,
            raw_response=data,
            provider=self.provider,
            model=cfg.model,
            finish_reason=data.get("stop_reason"),
            usage=usage,
            request_time=request_time,
            response_time=response_time,
            latency_ms=self._calculate_latency(request_time, response_time),
        )
