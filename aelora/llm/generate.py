"""Deadline-bounded calls to the model backend.

Every backend round goes through ``llm_generate`` (buffered) or ``llm_stream``
(incremental). Both apply an optional deadline, convert provider exceptions to
``BackendError`` and record an ``llm.completion`` span.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from ..errors import BackendError, BackendTimeoutError
from ..utils.tracing import get_tracer, mark_error
from .providers.base import LLMProvider, LLMResponse
from .stream import StreamedMessage, collect_stream

logger = logging.getLogger(__name__)


async def _with_deadline(coro, timeout: float | None, provider: LLMProvider):
    try:
        if timeout is None:
            return await coro
        return await asyncio.wait_for(coro, timeout)
    except asyncio.TimeoutError as e:
        raise BackendTimeoutError(timeout, provider=provider.name) from e
    except BackendError:
        raise
    except Exception as e:
        raise BackendError(f"Model backend call failed: {e}", provider=provider.name) from e


async def llm_generate(
    provider: LLMProvider,
    messages: list[dict[str, Any]],
    model: str,
    tools: list[dict[str, Any]] | None = None,
    max_tokens: int | None = None,
    timeout: float | None = None,
    **kwargs,
) -> LLMResponse:
    """
    Make one buffered completion call.

    ``tools`` is left out of the request entirely when empty.

    Raises:
        BackendTimeoutError: If the call exceeds ``timeout`` seconds
        BackendError: For any other backend failure
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(
        name="llm.completion",
        attributes={
            "llm.provider": provider.name,
            "llm.model": model,
            "llm.streaming": False,
            "llm.messages": len(messages),
            "llm.tools": len(tools or []),
        },
    ) as span:
        try:
            response = await _with_deadline(
                provider.generate(
                    messages=messages,
                    model=model,
                    tools=tools or None,
                    max_tokens=max_tokens,
                    **kwargs,
                ),
                timeout,
                provider,
            )
        except BackendError as e:
            mark_error(span, e)
            raise

        span.set_attribute("llm.tool_calls", len(response.tool_calls or []))
        return response


async def llm_stream(
    provider: LLMProvider,
    messages: list[dict[str, Any]],
    model: str,
    tools: list[dict[str, Any]] | None = None,
    max_tokens: int | None = None,
    timeout: float | None = None,
    on_token: Callable[[str], Any] | None = None,
    **kwargs,
) -> StreamedMessage:
    """
    Make one streaming completion call and reassemble the result.

    Text fragments are forwarded to ``on_token`` as they arrive. The deadline
    covers the whole stream.

    Raises:
        BackendTimeoutError: If the stream does not finish within ``timeout`` seconds
        BackendError: For any other backend failure
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(
        name="llm.completion",
        attributes={
            "llm.provider": provider.name,
            "llm.model": model,
            "llm.streaming": True,
            "llm.messages": len(messages),
            "llm.tools": len(tools or []),
        },
    ) as span:
        events = provider.stream(
            messages=messages,
            model=model,
            tools=tools or None,
            max_tokens=max_tokens,
            **kwargs,
        )
        try:
            message = await _with_deadline(collect_stream(events, on_token), timeout, provider)
        except BackendError as e:
            mark_error(span, e)
            raise
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

        span.set_attribute("llm.tool_calls", len(message.tool_calls))
        return message
