"""Reassembly of streamed model output.

Providers stream tool calls as positional fragments: each fragment carries the
call's index and may contribute the call id, a piece of the function name or a
piece of the JSON argument text. Fragments for different indices can interleave;
calls are rebuilt per index once the stream ends and ordered by index.
"""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterator, Callable
from typing import Any

from pydantic import BaseModel, Field

from ..errors import BackendError


class _PartialCall(BaseModel):
    id: str = ""
    name: str = ""
    arguments: str = ""


class ToolCallAccumulator:
    """Accumulates ``tool_call_delta`` fragments keyed by index."""

    def __init__(self):
        self._calls: dict[int, _PartialCall] = {}

    def __len__(self) -> int:
        return len(self._calls)

    def add(
        self,
        index: int,
        id: str | None = None,
        name: str | None = None,
        arguments: str | None = None,
    ) -> None:
        partial = self._calls.setdefault(index, _PartialCall())
        if id:
            partial.id = id
        if name:
            partial.name += name
        if arguments:
            partial.arguments += arguments

    def build(self) -> list[dict[str, Any]]:
        """Return the reconstructed calls sorted by index ascending."""
        return [
            {
                "id": partial.id,
                "type": "function",
                "function": {"name": partial.name, "arguments": partial.arguments},
            }
            for _, partial in sorted(self._calls.items())
        ]


class StreamedMessage(BaseModel):
    """A model message reassembled from a stream."""

    content: str | None = None
    tool_calls: list[dict[str, Any]] = Field(default_factory=list)
    usage: dict[str, Any] = Field(default_factory=dict)
    model: str | None = None
    stop_reason: str | None = None


async def collect_stream(
    events: AsyncIterator[dict[str, Any]],
    on_token: Callable[[str], Any] | None = None,
) -> StreamedMessage:
    """
    Consume a provider event stream into one message.

    Text deltas are appended to the content and forwarded to ``on_token`` in order;
    the callback may be a plain function or a coroutine function.

    Raises:
        BackendError: If the stream reports an ``error`` event
    """
    content_parts: list[str] = []
    accumulator = ToolCallAccumulator()
    message = StreamedMessage()

    async for event in events:
        event_type = event.get("type")
        data = event.get("data") or {}

        if event_type == "text_delta":
            text = data.get("content")
            if text:
                content_parts.append(text)
                if on_token is not None:
                    result = on_token(text)
                    if inspect.isawaitable(result):
                        await result

        elif event_type == "tool_call_delta":
            accumulator.add(
                data.get("index", 0),
                id=data.get("id"),
                name=data.get("name"),
                arguments=data.get("arguments"),
            )

        elif event_type == "done":
            message.usage = data.get("usage") or {}
            message.model = data.get("model")
            message.stop_reason = data.get("stop_reason")

        elif event_type == "error":
            raise BackendError(data.get("error") or "Stream failed")

    message.content = "".join(content_parts) or None
    message.tool_calls = accumulator.build()
    return message
