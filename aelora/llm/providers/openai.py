"""OpenAI provider using the Chat Completions API.

Works with any OpenAI-compatible server (vLLM, Ollama, LM Studio, OpenRouter, ...)
through ``base_url``.
"""

import logging
import os
from typing import Any
from urllib.parse import urlparse

from ...errors import BackendError
from .base import LLMProvider, LLMResponse, register_provider

logger = logging.getLogger(__name__)


def _is_localhost_url(url: str | None) -> bool:
    if not url:
        return False
    hostname = urlparse(url).hostname or ""
    return hostname in ("localhost", "127.0.0.1", "::1") or hostname.startswith("127.")


@register_provider("openai")
class OpenAIProvider(LLMProvider):
    """OpenAI (or OpenAI-compatible) provider for chat completions."""

    name = "openai"

    def __init__(self, api_key: str | None = None, base_url: str | None = None, client=None):
        """
        Initialize OpenAI provider.

        Args:
            api_key: API key. If not provided, uses OPENAI_API_KEY env var. Local
                servers (localhost base_url) may run without one.
            base_url: Optional base URL for OpenAI-compatible endpoints.
            client: Optional pre-built AsyncOpenAI client (mainly for tests).
        """
        self.base_url = base_url or os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")

        if client is not None:
            self.client = client
            return

        from openai import AsyncOpenAI

        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            if not _is_localhost_url(self.base_url):
                raise ValueError(
                    "OpenAI API key not provided. Set OPENAI_API_KEY environment variable "
                    "or pass api_key parameter."
                )
            self.api_key = "not-needed"

        self.client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)

    def _request_params(
        self,
        messages: list[dict[str, Any]],
        model: str,
        tools: list[dict[str, Any]] | None,
        max_tokens: int | None,
        **kwargs,
    ) -> dict[str, Any]:
        request_params: dict[str, Any] = {
            "model": model,
            "messages": messages,
        }
        if max_tokens:
            request_params["max_completion_tokens"] = max_tokens
        if tools:
            # [{"type": "function", "function": {"name": "...", "description": "...",
            #   "parameters": {...}}}]
            validated_tools = _validate_tools(tools)
            if validated_tools:
                request_params["tools"] = validated_tools
        request_params.update(kwargs)
        return request_params

    async def generate(
        self,
        messages: list[dict[str, Any]],
        model: str,
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
        **kwargs,
    ) -> LLMResponse:
        """Generate using the Chat Completions API."""
        request_params = self._request_params(messages, model, tools, max_tokens, **kwargs)

        try:
            response = await self.client.chat.completions.create(**request_params)
        except Exception as e:
            raise BackendError(
                f"OpenAI Chat Completions API call failed: {str(e)}", provider=self.name
            ) from e

        if not response:
            raise BackendError("OpenAI API returned no response", provider=self.name)

        content = None
        stop_reason = None
        tool_calls = []
        if response.choices:
            choice = response.choices[0]
            if choice.message:
                content = choice.message.content
                for tool_call in choice.message.tool_calls or []:
                    tool_calls.append(
                        {
                            "id": tool_call.id,
                            "type": "function",
                            "function": {
                                "name": tool_call.function.name,
                                "arguments": tool_call.function.arguments,
                            },
                        }
                    )
            stop_reason = choice.finish_reason

        usage = {"input_tokens": 0, "output_tokens": 0, "total_tokens": 0}
        if getattr(response, "usage", None):
            usage["input_tokens"] = response.usage.prompt_tokens
            usage["output_tokens"] = response.usage.completion_tokens
            usage["total_tokens"] = response.usage.total_tokens

        return LLMResponse(
            content=content,
            usage=usage,
            tool_calls=tool_calls,
            model=getattr(response, "model", None) or model,
            stop_reason=stop_reason,
        )

    async def stream(
        self,
        messages: list[dict[str, Any]],
        model: str,
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
        **kwargs,
    ):
        """Stream using the Chat Completions API.

        Tool-call deltas are forwarded as positional fragments; reassembly is left
        to the caller.
        """
        request_params = self._request_params(messages, model, tools, max_tokens, **kwargs)
        request_params["stream"] = True

        try:
            stream = await self.client.chat.completions.create(**request_params)

            usage = {"input_tokens": 0, "output_tokens": 0, "total_tokens": 0}
            stop_reason = None
            response_model = model

            async for chunk in stream:
                response_model = getattr(chunk, "model", None) or response_model
                if getattr(chunk, "usage", None):
                    usage["input_tokens"] = chunk.usage.prompt_tokens or 0
                    usage["output_tokens"] = chunk.usage.completion_tokens or 0
                    usage["total_tokens"] = chunk.usage.total_tokens or 0

                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                if choice.finish_reason:
                    stop_reason = choice.finish_reason

                delta = choice.delta
                if delta is None:
                    continue

                if delta.content:
                    yield {"type": "text_delta", "data": {"content": delta.content}}

                for tool_call in delta.tool_calls or []:
                    function = tool_call.function
                    yield {
                        "type": "tool_call_delta",
                        "data": {
                            "index": tool_call.index,
                            "id": tool_call.id,
                            "name": function.name if function else None,
                            "arguments": function.arguments if function else None,
                        },
                    }

            yield {
                "type": "done",
                "data": {"usage": usage, "model": response_model, "stop_reason": stop_reason},
            }

        except BackendError:
            raise
        except Exception as e:
            raise BackendError(
                f"OpenAI Chat Completions streaming failed: {str(e)}", provider=self.name
            ) from e


def _validate_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Normalize tool definitions to the chat-completions ``function`` shape."""
    validated_tools = []
    for tool in tools:
        function_data = tool.get("function", tool)
        name = function_data.get("name")
        if not name:
            logger.warning("Skipping invalid tool definition (missing name): %s", tool)
            continue
        function: dict[str, Any] = {
            "name": name,
            "description": function_data.get("description", ""),
        }
        parameters = function_data.get("parameters") or function_data.get("input_schema")
        if parameters:
            function["parameters"] = parameters
        validated_tools.append({"type": "function", "function": function})
    return validated_tools
