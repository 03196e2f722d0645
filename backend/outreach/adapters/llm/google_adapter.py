"""
Google (Gemini) Adapter
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
    classify_error_response,
)


class GoogleAdapter(BaseLLMAdapter):
    """Adapter for Google Gemini API"""

    API_BASE = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL = "gemini-1.5-flash"

    MODELS = [
        "gemini-1.5-flash",
        "gemini-1.5-pro",
        "gemini-2.0-flash",
    ]

    @property
    def provider(self) -> LLMProviderType:
        return LLMProviderType.GOOGLE

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

        # Convert messages to Gemini format
        contents = []
        system_instruction = None

        for msg in messages:
            if msg.role == "system":
                system_instruction = msg.content
            else:
                role = "user" if msg.role == "user" else "model"
                contents.append({
                    "role": role,
                    "parts": [{"text": msg.content}]
                })

        payload = {
            "contents": contents,
            "generationConfig": {
                "temperature": cfg.temperature,
                "maxOutputTokens": cfg.max_tokens,
            }
        }

        if cfg.top_p is not None:
            payload["generationConfig"]["topP"] = cfg.top_p
        if cfg.stop_sequences:
            payload["generationConfig"]["stopSequences"] = cfg.stop_sequences
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        try:
            async with self._client(cfg.timeout) as client:
                response = await client.post(
                    f"{self.API_BASE}/models/{cfg.model}:generateContent",
                    params={"key": self.api_key},
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.TimeoutException:
            raise LLMTimeoutError(
                f"Request timed out after {cfg.timeout}s",
                self.provider,
            )
        except httpx.RequestError as e:
            # Never echo the URL, it carries the key
            raise LLMConnectionError(
                f"Request failed: {type(e).__name__}",
                self.provider,
            )

        response_time = datetime.utcnow()
        self._raise_for_response(response)

        data = self._json_body(response)

        # Errors can arrive in a 200 body
        if "error" in data:
            error = data["error"] if isinstance(data["error"], dict) else {"message": str(data["error"])}
            message = error.get("message", "Unknown error")
            error_cls = classify_error_response(error.get("code", 500), f"{error.get('status', '')} {message}")
            raise error_cls(
                message,
                self.provider,
                status_code=error.get("code"),
                details={"error": error},
            )

        candidates = data.get("candidates") or []
        if not candidates:
            raise LLMVendorError(
                "No response candidates returned",
                self.provider,
                status_code=response.status_code,
                details={"response": data},
            )

        try:
            content = ""
            for part in (candidates[0].get("content") or {}).get("parts") or []:
                if "text" in part:
                    content += part["text"]
            finish_reason = candidates[0].get("finishReason")

            usage_metadata = data.get("usageMetadata") or {}
            usage = LLMUsage(
                prompt_tokens=usage_metadata.get("promptTokenCount", 0),
                completion_tokens=usage_metadata.get("candidatesTokenCount", 0),
                total_tokens=usage_metadata.get("totalTokenCount", 0),
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
