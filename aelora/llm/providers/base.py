"""Base class for model backend providers."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from pydantic import BaseModel, Field

# Provider registry - providers register themselves here
_PROVIDER_REGISTRY: dict[str, type["LLMProvider"]] = {}


def register_provider(name: str):
    """
    Decorator to register an LLM provider class.

    Usage:
        @register_provider("openai")
        class OpenAIProvider(LLMProvider):
            ...

    Args:
        name: Provider name (e.g., "openai", "anthropic")

    Returns:
        Decorator function
    """

    def decorator(cls: type["LLMProvider"]) -> type["LLMProvider"]:
        _PROVIDER_REGISTRY[name.lower()] = cls
        return cls

    return decorator


def get_provider(name: str, **kwargs) -> "LLMProvider":
    """
    Instantiate a registered provider by name.

    Args:
        name: Provider name (case-insensitive)
        **kwargs: Passed to the provider constructor (api_key, base_url, ...)

    Raises:
        ValueError: If no provider is registered under that name
    """
    provider_cls = _PROVIDER_REGISTRY.get(name.lower())
    if provider_cls is None:
        available = ", ".join(sorted(_PROVIDER_REGISTRY)) or "none"
        raise ValueError(f"Unknown LLM provider '{name}'. Available providers: {available}")
    return provider_cls(**kwargs)


class LLMResponse(BaseModel):
    """Response from a buffered LLM call.

    ``tool_calls`` use the chat-completions shape:
    ``{"id": ..., "type": "function", "function": {"name": ..., "arguments": "<json>"}}``.
    """

    content: str | None = None
    usage: dict[str, Any] | None = Field(default_factory=dict)
    tool_calls: list[dict[str, Any]] | None = Field(default_factory=list)
    model: str | None = None
    stop_reason: str | None = None


class LLMProvider(ABC):
    """Base class for LLM providers.

    Messages passed in are chat-completions turns (system, user, assistant with
    optional ``tool_calls``, and ``tool`` results). Providers for other wire
    formats convert them.
    """

    name: str = "base"

    @abstractmethod
    async def generate(
        self,
        messages: list[dict[str, Any]],
        model: str,
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
        **kwargs,
    ) -> LLMResponse:
        """
        Make a chat completion request to the LLM.

        Args:
            messages: List of message dicts with 'role' and 'content' keys
            model: Model identifier
            tools: Optional list of function definitions; omitted from the request if empty
            max_tokens: Optional completion length limit
            **kwargs: Provider-specific additional parameters

        Returns:
            LLMResponse with content, usage, tool_calls, model, and stop_reason
        """
        pass

    @abstractmethod
    def stream(
        self,
        messages: list[dict[str, Any]],
        model: str,
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
        **kwargs,
    ) -> AsyncIterator[dict[str, Any]]:
        """
        Stream a chat completion as incremental events.

        Yields:
            Dict with event information:
            - type: "text_delta", "tool_call_delta", "done", "error"
            - data: Event-specific data. ``tool_call_delta`` carries ``index`` plus
              any of ``id``, ``name`` and ``arguments`` fragments for that position.
        """
        ...
