"""LLM provider implementations."""

from .anthropic import AnthropicProvider
from .base import LLMProvider, LLMResponse, get_provider, register_provider
from .openai import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "LLMProvider",
    "LLMResponse",
    "OpenAIProvider",
    "get_provider",
    "register_provider",
]
