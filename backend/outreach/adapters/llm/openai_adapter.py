"""
OpenAI (ChatGPT) Adapter
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
    LLMVendorError,
)


class OpenAIAdapter(BaseLLMAdapter):
    """Adapter for OpenAI ChatGPT API"""

    API_BASE = "https://api.openai.com/v1"
    DEFAULT_MODEL = "gpt-4o-mini"

    MODELS = [
        "gpt-4o-mini",
        "gpt-4o",
        "gpt-4-turbo",
        "gpt-3.5-turbo",
    ]

    @property
    def provider(self) -> LLMProviderType:
        return LLMProviderType.OPENAI

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
        messages = []
        if system_prompt:
            messages.append(LLMMessage(role="system", content=system_prompt))
        messages.append(LLMMessage(role="user", content=prompt))
        return await self.execute_chat(messages, config)

    async def execute_chat(
        self,
        messages: List[LLMMessage],
        config: Optional[LLMConfig] = None,
    ) -> LLMResponse:
        """Execute a chat conversation"""
        cfg = config or self.config or LLMConfig(
            model=self.default_model,
            timeout=get_settings().LLM_REQUEST_TIMEOUT,
        )
        request_time = datetime.utcnow()

        # Build request
        payload = {
            "model": cfg.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": cfg.temperature,
            "max_tokens": cfg.max_tokens,
        }

        if cfg.top_p is not None:
            payload["top_p"] = cfg.top_p
        if cfg.stop_sequences:
            payload["stop"] = cfg.stop_sequences
        payload.update(cfg.extra_params)

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with self._client(cfg.timeout) as client:
                response = await client.post(
                    f"{self.API_BASE}/chat/completions",
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
        choices = data.get("choices") or []
        if not choices:
            raise LLMVendorError(
                "No choices returned",
                self.provider,
                status_code=response.status_code,
                details={"response": data},
            )

        try:
            choice = choices[0]
            content = choice["message"].get("content") or ""
            finish_reason = choice.get("finish_reason")
            usage_data = data.get("usage") or {}
            usage = LLMUsage(
                prompt_tokens=usage_data.get("prompt_tokens", 0),
                completion_tokens=usage_data.get("completion_tokens", 0),
                total_tokens=usage_data.get("total_tokens", 0),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise self._malformed(response, data, e)

        return LLMResponse(
            content=content,
            raw_response=data,
            provider=self.provider,
            model=cfg.model,
            finish_reason=finish_reason,
            usage=usage,
            request_time=request_time,
            response_time=response_time,
            latency_ms=self._calculate_latency(request_time, response_time),
        )
