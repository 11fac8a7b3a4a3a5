"""Capabilities: the tool interface, the registry and builtin tools."""

from .capability import CallContext, Capability, ToolOutput, validate_against_schema
from .registry import CapabilityRegistry, ToggleResult, ToggleStore
from .tool import Tool, tool

__all__ = [
    "CallContext",
    "Capability",
    "CapabilityRegistry",
    "ToggleResult",
    "ToggleStore",
    "Tool",
    "ToolOutput",
    "tool",
    "validate_against_schema",
]
