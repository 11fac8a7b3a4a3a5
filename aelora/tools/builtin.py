"""The static table of builtin capabilities.

Each entry maps a capability name to a factory taking :class:`BuiltinDeps`.
``Runtime.from_settings`` registers every entry whose factory returns a value.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from ..agents.researcher import create_researcher_agent
from ..config import Settings
from ..memory.facts import FactStore
from .capability import Capability
from .memory import create_memory_tool
from .ping import create_ping_tool
from .web_search import WebSearchToolConfig, create_web_search_tool


@dataclass
class BuiltinDeps:
    settings: Settings
    facts: FactStore


def _web_search(deps: BuiltinDeps) -> Capability:
    return create_web_search_tool(
        WebSearchToolConfig(
            api_key=deps.settings.web_search.api_key,
            max_results=deps.settings.web_search.max_results,
        )
    )


def _researcher(deps: BuiltinDeps) -> Capability | None:
    if not deps.settings.agents.enabled:
        return None
    return create_researcher_agent()


BUILTIN_FACTORIES: dict[str, Callable[[BuiltinDeps], Capability | None]] = {
    "ping": lambda deps: create_ping_tool(),
    "memory": lambda deps: create_memory_tool(deps.facts),
    "web_search": _web_search,
    "researcher": _researcher,
}


def create_builtins(deps: BuiltinDeps) -> list[Capability]:
    """Instantiate every builtin capability, skipping factories that opt out."""
    capabilities = []
    for factory in BUILTIN_FACTORIES.values():
        capability = factory(deps)
        if capability is not None:
            capabilities.append(capability)
    return capabilities
