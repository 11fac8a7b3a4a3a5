"""The completion loop: drive the model, dispatch capability calls, repeat."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel

from ..llm.generate import llm_generate, llm_stream
from ..llm.providers.base import LLMProvider
from ..tools.capability import CallContext, SendToChannel, _no_channel
from ..tools.registry import CapabilityRegistry
from .agent import AgentRunOptions

logger = logging.getLogger(__name__)

NO_RESPONSE = "(no response)"
MAX_DEPTH_REACHED = "(reached maximum tool call depth)"

DEFAULT_MAX_ITERATIONS = 10
DEFAULT_AGENT_MAX_ITERATIONS = 5


class LoopState(str, Enum):
    DONE = "done"
    ITERATION_CAP_REACHED = "iteration_cap_reached"


class LoopResult(BaseModel):
    """Final text of a loop run plus how it ended."""

    text: str
    state: LoopState
    iterations: int
    artifacts: list[dict[str, Any]] = []


def parse_arguments(raw: Any, name: str) -> dict[str, Any]:
    """Parse a call's JSON argument text; anything but a JSON object becomes ``{}``."""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning('Loop: malformed arguments for "%s", using {}: %.200s', name, raw)
        return {}
    if not isinstance(parsed, dict):
        logger.warning('Loop: non-object arguments for "%s", using {}', name)
        return {}
    return parsed


class CompletionLoop:
    """
    Runs model rounds until a plain-text answer or the iteration cap.

    Capability calls within a round are dispatched one at a time, in the order
    the model emitted them, and each result is appended before the next call.
    Only backend errors escape ``run``.
    """

    def __init__(
        self,
        provider: LLMProvider,
        registry: CapabilityRegistry,
        model: str,
        max_tokens: int | None = None,
        timeout: float | None = None,
        default_max_iterations: int = DEFAULT_MAX_ITERATIONS,
        agent_max_iterations: int = DEFAULT_AGENT_MAX_ITERATIONS,
        send_to_channel: SendToChannel | None = None,
    ):
        self.provider = provider
        self.registry = registry
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.default_max_iterations = default_max_iterations
        self.agent_max_iterations = agent_max_iterations
        self.send_to_channel = send_to_channel or _no_channel

    async def run(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        *,
        conversation_id: str | None = None,
        user_id: str | None = None,
        max_iterations: int | None = None,
        model: str | None = None,
        allow_agent_dispatch: bool = True,
        allowed_names: set[str] | None = None,
        on_token: Callable[[str], Any] | None = None,
    ) -> LoopResult:
        """
        Run the loop over ``messages``, which is extended in place.

        Args:
            messages: System prompt, history and the new user turn
            tools: Function-call definitions offered to the model
            allow_agent_dispatch: False inside agent loops; agent names then
                resolve as unknown tools
            allowed_names: If set, only these names may be dispatched
            on_token: Enables streaming; receives each text fragment in order

        Raises:
            BackendError: If a backend round fails or times out
        """
        cap = max_iterations or self.default_max_iterations
        context = CallContext(
            conversation_id=conversation_id,
            user_id=user_id,
            send_to_channel=self.send_to_channel,
            run_agent=self.run_agent if allow_agent_dispatch else None,
        )

        for iteration in range(1, cap + 1):
            content, tool_calls = await self._round(messages, tools, model, on_token)

            if not tool_calls:
                return LoopResult(
                    text=content or NO_RESPONSE,
                    state=LoopState.DONE,
                    iterations=iteration,
                    artifacts=context.artifacts,
                )

            messages.append({"role": "assistant", "content": content, "tool_calls": tool_calls})

            for call in tool_calls:
                function = call.get("function") or {}
                name = function.get("name", "")
                args = parse_arguments(function.get("arguments"), name)
                result = await self._dispatch(
                    name, args, context, allow_agent_dispatch, allowed_names
                )
                messages.append({"role": "tool", "tool_call_id": call.get("id", ""), "content": result})

        logger.warning("Loop: hit max iterations (%d)", cap)
        return LoopResult(
            text=MAX_DEPTH_REACHED,
            state=LoopState.ITERATION_CAP_REACHED,
            iterations=cap,
            artifacts=context.artifacts,
        )

    async def _round(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        model: str | None,
        on_token: Callable[[str], Any] | None,
    ) -> tuple[str | None, list[dict[str, Any]]]:
        if on_token is not None:
            streamed = await llm_stream(
                self.provider,
                messages=messages,
                model=model or self.model,
                tools=tools,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
                on_token=on_token,
            )
            return streamed.content, streamed.tool_calls

        response = await llm_generate(
            self.provider,
            messages=messages,
            model=model or self.model,
            tools=tools,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )
        return response.content, response.tool_calls or []

    async def _dispatch(
        self,
        name: str,
        args: dict[str, Any],
        context: CallContext,
        allow_agent_dispatch: bool,
        allowed_names: set[str] | None,
    ) -> str:
        if allowed_names is not None and name not in allowed_names:
            return f'Error: unknown tool "{name}"'
        if not allow_agent_dispatch and self.registry.is_agent(name):
            return f'Error: unknown tool "{name}"'
        return await self.registry.invoke(name, args, context)

    def resolve_allowlist(self, allowlist: list[str] | None) -> set[str]:
        """Tool names an agent may call: ``*`` is every enabled tool, empty is none."""
        if not allowlist:
            return set()
        enabled = {t.name for t in self.registry.tools()}
        if "*" in allowlist:
            return enabled
        return enabled & set(allowlist)

    async def run_agent(self, options: AgentRunOptions) -> str:
        """Run a nested, tools-only loop for an agent."""
        names = self.resolve_allowlist(options.tools)
        tools = self.registry.definitions_for(names=names, include_agents=False)
        messages = [
            {"role": "system", "content": options.system_prompt},
            {"role": "user", "content": options.user_prompt},
        ]
        result = await self.run(
            messages,
            tools,
            conversation_id=options.conversation_id,
            user_id=options.user_id,
            max_iterations=options.max_iterations or self.agent_max_iterations,
            model=options.model,
            allow_agent_dispatch=False,
            allowed_names=names,
        )
        return result.text
