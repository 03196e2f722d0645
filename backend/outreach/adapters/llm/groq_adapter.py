"""
Groq Adapter (OpenAI-compatible chat completions)
"""

from typing import List

from .base import LLMProviderType
from .openai_adapter import OpenAIAdapter


class GroqAdapter(OpenAIAdapter):
    """Adapter for Groq's OpenAI-compatible API"""

    API_BASE = "https://api.groq.com/openai/v1"
    DEFAULT_MODEL = "llama-3.1-8b-instant"

    MODELS = [
        "llama-3.1-8b-instant",
        "llama-3.3-70b-versatile",
        "mixtral-8x7b-32768",
        "gemma2-9b-it",
    ]

    @property
    def provider(self) -> LLMProviderType:
        return LLMProviderType.GROQ

    @property
    def available_models(self) -> List[str]:
        return self.MODELS
