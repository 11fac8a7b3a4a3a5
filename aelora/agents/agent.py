"""Agent capability: a delegate that runs its own nested completion loop."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field

from ..tools.capability import CallContext, Capability

logger = logging.getLogger(__name__)

PostProcess = Callable[[str, dict[str, Any]], str]


class AgentRunOptions(BaseModel):
    """Inputs for one nested agent loop.

    Attributes:
        system_prompt: The agent's own system prompt
        user_prompt: The user message seeding the loop
        tools: Tool allow-list: ``["*"]`` for every enabled tool, explicit names for
            exactly those, ``None``/empty for no tools
        max_iterations: Iteration cap; falls back to the configured agent default
        model: Model override; falls back to the main model
        conversation_id: Originating conversation, passed through to tool contexts
        user_id: Invoking user, passed through to tool contexts
    """

    system_prompt: str
    user_prompt: str
    tools: list[str] | None = None
    max_iterations: int | None = Field(default=None, ge=1)
    model: str | None = None
    conversation_id: str | None = None
    user_id: str | None = None


class Agent(Capability):
    """
    A capability backed by a nested completion loop.

    The nested loop only ever calls tools, never other agents.
    """

    kind = "agent"

    def __init__(
        self,
        name: str,
        description: str,
        system_prompt: str,
        parameters: dict[str, Any] | None = None,
        tools: list[str] | None = None,
        max_iterations: int | None = None,
        model: str | None = None,
        post_process: PostProcess | None = None,
        enabled: bool = True,
    ):
        super().__init__(name, description, parameters, enabled)
        self.system_prompt = system_prompt
        self.tools = list(tools) if tools else []
        self.max_iterations = max_iterations
        self.model = model
        self.post_process = post_process

    @property
    def has_handler(self) -> bool:
        return bool(self.system_prompt)

    def run_options(self, args: dict[str, Any], context: CallContext) -> AgentRunOptions:
        return AgentRunOptions(
            system_prompt=self.system_prompt,
            user_prompt=json.dumps(args),
            tools=self.tools,
            max_iterations=self.max_iterations,
            model=self.model,
            conversation_id=context.conversation_id,
            user_id=context.user_id,
        )

    async def invoke(self, args: dict[str, Any], context: CallContext) -> str:
        if context.run_agent is None:
            raise RuntimeError("agent dispatch is not available in this context")

        raw = await context.run_agent(self.run_options(args, context))
        if self.post_process is not None:
            return self.post_process(raw, args)
        return raw
