"""Anthropic provider using the Messages API."""

import json
import logging
import os
from typing import Any

from ...errors import BackendError
from .base import LLMProvider, LLMResponse, register_provider

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096


@register_provider("anthropic")
class AnthropicProvider(LLMProvider):
    """Anthropic provider for LLM calls using the Messages API."""

    name = "anthropic"

    def __init__(self, api_key: str | None = None, base_url: str | None = None, client=None):
        """
        Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key. If not provided, uses ANTHROPIC_API_KEY env var.
            base_url: Optional API base URL override.
            client: Optional pre-built AsyncAnthropic client (mainly for tests).
        """
        if client is not None:
            self.client = client
            return

        from anthropic import AsyncAnthropic

        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise ValueError(
                "Anthropic API key not provided. Set ANTHROPIC_API_KEY "
                "environment variable or pass api_key parameter."
            )

        client_kwargs: dict[str, Any] = {"api_key": self.api_key}
        if base_url:
            client_kwargs["base_url"] = base_url
        self.client = AsyncAnthropic(**client_kwargs)

    def _request_params(
        self,
        messages: list[dict[str, Any]],
        model: str,
        tools: list[dict[str, Any]] | None,
        max_tokens: int | None,
        **kwargs,
    ) -> dict[str, Any]:
        system_prompt, converted = convert_messages(messages)

        request_params: dict[str, Any] = {
            "model": model,
            "messages": converted,
            # max_tokens is required for Anthropic
            "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
        }
        if system_prompt:
            request_params["system"] = system_prompt
        if tools:
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
        """Make a request to Anthropic using the Messages API."""
        request_params = self._request_params(messages, model, tools, max_tokens, **kwargs)

        try:
            response = await self.client.messages.create(**request_params)
        except Exception as e:
            raise BackendError(
                f"Anthropic Messages API call failed: {str(e)}", provider=self.name
            ) from e

        if not response:
            raise BackendError("Anthropic API returned no response", provider=self.name)

        content_parts = []
        tool_calls = []
        for content_block in response.content:
            if content_block.type == "text":
                content_parts.append(content_block.text)
            elif content_block.type == "tool_use":
                # Anthropic returns tool_use input as a dict
                input_data = content_block.input
                arguments = json.dumps(input_data) if isinstance(input_data, dict) else "{}"
                tool_calls.append(
                    {
                        "id": content_block.id,
                        "type": "function",
                        "function": {"name": content_block.name, "arguments": arguments},
                    }
                )

        usage_data = getattr(response, "usage", None)
        input_tokens = usage_data.input_tokens if usage_data else 0
        output_tokens = usage_data.output_tokens if usage_data else 0

        return LLMResponse(
            content="".join(content_parts) or None,
            usage={
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "total_tokens": input_tokens + output_tokens,
            },
            tool_calls=tool_calls,
            model=getattr(response, "model", None) or model,
            stop_reason=getattr(response, "stop_reason", None),
        )

    async def stream(
        self,
        messages: list[dict[str, Any]],
        model: str,
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
        **kwargs,
    ):
        """
        Stream responses from Anthropic using the Messages API.

        ``tool_use`` blocks are emitted as positional ``tool_call_delta`` fragments
        keyed by the content block index: the id and name arrive with
        ``content_block_start`` and the input JSON with each ``input_json_delta``.
        """
        request_params = self._request_params(messages, model, tools, max_tokens, **kwargs)
        request_params["stream"] = True

        try:
            stream = await self.client.messages.create(**request_params)

            usage = {"input_tokens": 0, "output_tokens": 0, "total_tokens": 0}
            stop_reason = None
            response_model = model

            async for event in stream:
                # Event types: message_start, content_block_start, content_block_delta,
                # content_block_stop, message_delta, message_stop
                event_type = event.type
                event = event.model_dump(mode="json") if hasattr(event, "model_dump") else event

                if event_type == "content_block_start":
                    content_block = event.get("content_block") or {}
                    if content_block.get("type") == "text" and content_block.get("text"):
                        yield {"type": "text_delta", "data": {"content": content_block["text"]}}
                    elif content_block.get("type") == "tool_use":
                        yield {
                            "type": "tool_call_delta",
                            "data": {
                                "index": event.get("index", 0),
                                "id": content_block.get("id"),
                                "name": content_block.get("name"),
                                "arguments": None,
                            },
                        }

                elif event_type == "content_block_delta":
                    delta = event.get("delta") or {}
                    if delta.get("type") == "text_delta" and delta.get("text"):
                        yield {"type": "text_delta", "data": {"content": delta["text"]}}
                    elif delta.get("type") == "input_json_delta" and delta.get("partial_json"):
                        yield {
                            "type": "tool_call_delta",
                            "data": {
                                "index": event.get("index", 0),
                                "id": None,
                                "name": None,
                                "arguments": delta["partial_json"],
                            },
                        }

                elif event_type == "message_start":
                    message = event.get("message") or {}
                    response_model = message.get("model") or response_model
                    usage_data = message.get("usage") or {}
                    usage["input_tokens"] = usage_data.get("input_tokens") or 0

                elif event_type == "message_delta":
                    delta = event.get("delta") or {}
                    stop_reason = delta.get("stop_reason") or stop_reason
                    # usage lives at the top level for message_delta, not inside delta
                    usage_data = event.get("usage") or {}
                    if usage_data.get("output_tokens") is not None:
                        usage["output_tokens"] = usage_data["output_tokens"]

                elif event_type == "message_stop":
                    usage["total_tokens"] = usage["input_tokens"] + usage["output_tokens"]
                    yield {
                        "type": "done",
                        "data": {
                            "usage": usage,
                            "model": response_model,
                            "stop_reason": stop_reason,
                        },
                    }

                elif event_type == "error":
                    error_obj = event.get("error") or {}
                    error_msg = error_obj.get("message") or "Stream failed"
                    if error_obj.get("type"):
                        error_msg = f"{error_obj['type']}: {error_msg}"
                    yield {"type": "error", "data": {"error": error_msg}}
                    break

        except BackendError:
            raise
        except Exception as e:
            raise BackendError(
                f"Anthropic Messages API streaming failed: {str(e)}", provider=self.name
            ) from e


def convert_messages(messages: list[dict[str, Any]]) -> tuple[str | None, list[dict[str, Any]]]:
    """
    Convert chat-completions turns to Anthropic Messages format.

    - ``system`` turns are lifted into the ``system`` parameter
    - assistant ``tool_calls`` become ``tool_use`` content blocks
    - consecutive ``tool`` turns become one user message of ``tool_result`` blocks

    Returns:
        (system_prompt, messages)
    """
    system_parts: list[str] = []
    converted: list[dict[str, Any]] = []

    for message in messages:
        role = message.get("role")
        content = message.get("content")

        if role == "system":
            if content:
                system_parts.append(content if isinstance(content, str) else json.dumps(content))
            continue

        if role == "tool":
            block = {
                "type": "tool_result",
                "tool_use_id": message.get("tool_call_id"),
                "content": content if isinstance(content, str) else json.dumps(content),
            }
            previous = converted[-1] if converted else None
            if (
                previous
                and previous["role"] == "user"
                and isinstance(previous["content"], list)
                and all(b.get("type") == "tool_result" for b in previous["content"])
            ):
                previous["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
            continue

        if role == "assistant" and message.get("tool_calls"):
            blocks: list[dict[str, Any]] = []
            if content:
                blocks.append({"type": "text", "text": content})
            for tool_call in message["tool_calls"]:
                function = tool_call.get("function", {})
                try:
                    tool_input = json.loads(function.get("arguments") or "{}")
                except json.JSONDecodeError:
                    tool_input = {}
                if not isinstance(tool_input, dict):
                    tool_input = {}
                blocks.append(
                    {
                        "type": "tool_use",
                        "id": tool_call.get("id"),
                        "name": function.get("name"),
                        "input": tool_input,
                    }
                )
            converted.append({"role": "assistant", "content": blocks})
            continue

        converted.append({"role": role, "content": content if content is not None else ""})

    system_prompt = "\n\n".join(system_parts) if system_parts else None
    return system_prompt, converted


def _validate_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Convert OpenAI-style tool definitions to Anthropic format.

    Anthropic expects ``[{"name": ..., "description": ..., "input_schema": {...}}]``;
    a definition without a schema gets an empty object schema.
    """
    validated_tools = []
    for tool in tools:
        function_data = tool.get("function", tool)
        name = function_data.get("name")
        if not name:
            logger.warning("Skipping invalid tool definition (missing name): %s", tool)
            continue
        validated_tools.append(
            {
                "name": name,
                "description": function_data.get("description", ""),
                "input_schema": function_data.get("parameters")
                or function_data.get("input_schema")
                or {"type": "object", "properties": {}},
            }
        )
    return validated_tools
