"""Capability interface shared by tools and agents.

A capability is a named unit the model can invoke through function calling. It
has an immutable definition (name, description, optional JSON parameter schema),
a mutable ``enabled`` flag, and an async ``invoke(args, context)``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

SendToChannel = Callable[[str, str], Awaitable[None]]
# Receives an AgentRunOptions
AgentRunner = Callable[[Any], Awaitable[str]]

CapabilityKind = Literal["tool", "agent"]


async def _no_channel(destination_id: str, text: str) -> None:
    raise RuntimeError("No outbound channel is configured")


class ToolOutput(BaseModel):
    """Handler result carrying text for the model plus structured side-channel data."""

    text: str
    data: dict[str, Any] | None = None


class CallContext(BaseModel):
    """Per-invocation context handed to capability handlers.

    Attributes:
        conversation_id: Originating conversation/channel id (None for stateless calls)
        user_id: Invoking user id, if known
        send_to_channel: Coroutine sending an out-of-band message to a destination
        artifacts: Structured data returned by handlers during this invocation
        run_agent: Nested-loop runner; only set where agent dispatch is permitted
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    conversation_id: str | None = None
    user_id: str | None = None
    send_to_channel: SendToChannel = _no_channel
    artifacts: list[dict[str, Any]] = Field(default_factory=list)
    run_agent: AgentRunner | None = None


class Capability(ABC):
    """Base class for everything the model can call."""

    kind: CapabilityKind = "tool"

    def __init__(
        self,
        name: str,
        description: str = "",
        parameters: dict[str, Any] | None = None,
        enabled: bool = True,
    ):
        self._name = name
        self._description = description
        self._parameters = parameters
        self.enabled = enabled

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> dict[str, Any] | None:
        return self._parameters

    @property
    def is_agent(self) -> bool:
        return self.kind == "agent"

    @property
    def has_handler(self) -> bool:
        """Whether the capability can actually be executed."""
        return True

    def definition(self, protocol: str = "openai") -> dict[str, Any]:
        """Project this capability into the function-call schema of a model protocol."""
        if protocol == "anthropic":
            return {
                "name": self.name,
                "description": self.description,
                "input_schema": self.parameters or {"type": "object", "properties": {}},
            }
        function: dict[str, Any] = {"name": self.name, "description": self.description}
        if self.parameters:
            function["parameters"] = self.parameters
        return {"type": "function", "function": function}

    def validate_args(self, args: dict[str, Any]) -> list[str]:
        """Return argument validation errors (empty when valid)."""
        return validate_against_schema(args, self.parameters)

    @abstractmethod
    async def invoke(self, args: dict[str, Any], context: CallContext) -> str | ToolOutput:
        """Run the capability and return its textual (or structured) result."""
        ...

    def __repr__(self) -> str:
        state = "enabled" if self.enabled else "disabled"
        return f"<{type(self).__name__} {self.name!r} ({state})>"


_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list, tuple),
    "object": (dict,),
}


def validate_against_schema(args: dict[str, Any], schema: dict[str, Any] | None) -> list[str]:
    """
    Check required fields, primitive types and enums of a flat JSON object schema.

    Only the subset of JSON Schema that tool definitions use is checked.
    """
    if not schema:
        return []

    errors: list[str] = []
    properties: dict[str, Any] = schema.get("properties") or {}

    for key in schema.get("required") or []:
        if args.get(key) is None:
            errors.append(f'"{key}" is required')

    for key, value in args.items():
        prop = properties.get(key)
        if prop is None or value is None:
            continue
        expected = prop.get("type")
        python_types = _JSON_TYPES.get(expected) if isinstance(expected, str) else None
        # bool is an int subclass; keep booleans out of numeric fields
        if python_types and (
            not isinstance(value, python_types)
            or (expected in ("integer", "number") and isinstance(value, bool))
        ):
            article = "an" if expected[0] in "aeiou" else "a"
            errors.append(f'"{key}" must be {article} {expected}')
            continue
        if "enum" in prop and value not in prop["enum"]:
            errors.append(f'"{key}" must be one of: {", ".join(map(str, prop["enum"]))}')

    return errors
