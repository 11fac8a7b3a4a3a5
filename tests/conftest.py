"""Shared pytest configuration and fixtures."""

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from aelora.llm.providers.base import LLMProvider, LLMResponse
from aelora.tools.capability import CallContext
from aelora.tools.registry import CapabilityRegistry, ToggleStore
from aelora.tools.tool import Tool


def tool_call(call_id: str, name: str, arguments: Any = None) -> dict[str, Any]:
    """Build a chat-completions tool call dict."""
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}}


class FakeProvider(LLMProvider):
    """Provider that replays scripted responses and records every request.

    Each scripted item is an ``LLMResponse``, an exception to raise, or (for
    streaming) a list of stream events.
    """

    name = "fake"

    def __init__(self, responses: list[Any] | None = None, delay: float = 0.0):
        self.responses = list(responses or [])
        self.requests: list[dict[str, Any]] = []
        self.delay = delay

    def _next(self) -> Any:
        if not self.responses:
            return LLMResponse(content="(script exhausted)")
        return self.responses.pop(0)

    async def generate(self, messages, model, tools=None, max_tokens=None, **kwargs):
        self.requests.append(
            {"messages": [dict(m) for m in messages], "model": model, "tools": tools}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self._next()
        if isinstance(item, Exception):
            raise item
        return item

    async def stream(self, messages, model, tools=None, max_tokens=None, **kwargs):
        self.requests.append(
            {"messages": [dict(m) for m in messages], "model": model, "tools": tools}
        )
        item = self._next()
        if isinstance(item, Exception):
            raise item
        for event in item:
            yield event


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def echo_tool():
    def echo(ctx: CallContext, args: dict) -> str:
        return f"echo: {args.get('text', '')}"

    return Tool(
        name="echo",
        description="Echo text back",
        parameters={
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        },
        handler=echo,
    )


@pytest.fixture
def blocked_tool():
    def blocked(ctx: CallContext, args: dict) -> str:
        return "should not run"

    return Tool(name="blocked", description="Always disabled", handler=blocked, enabled=False)


@pytest.fixture
def registry(tmp_path, echo_tool, blocked_tool):
    reg = CapabilityRegistry(ToggleStore(tmp_path / "toggles.json"))
    reg.register(echo_tool)
    reg.register(blocked_tool)
    return reg


@pytest.fixture
def call_context():
    return CallContext(conversation_id="c1", user_id="u1")


@pytest.fixture
def mock_http_client():
    """Mock httpx.AsyncClient for API calls."""
    client = AsyncMock()
    client.get = AsyncMock()
    client.post = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def mock_tracer():
    """Mock OpenTelemetry tracer."""
    tracer = MagicMock()
    span = MagicMock()
    span.__enter__ = MagicMock(return_value=span)
    span.__exit__ = MagicMock(return_value=False)
    tracer.start_as_current_span = MagicMock(return_value=span)
    return tracer


@pytest.fixture
def mock_openai_client():
    """Mock OpenAI AsyncOpenAI client."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    return client


@pytest.fixture
def mock_anthropic_client():
    """Mock Anthropic AsyncAnthropic client."""
    client = MagicMock()
    client.messages.create = AsyncMock()
    return client
