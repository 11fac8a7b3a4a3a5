"""Capability registry: registration, listing, dispatch and persisted toggles."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel

from ..utils.serializer import to_attribute
from ..utils.storage import JsonFile
from ..utils.tracing import get_tracer, mark_error
from .capability import CallContext, Capability, ToolOutput

logger = logging.getLogger(__name__)


class ToggleResult(BaseModel):
    """Outcome of a toggle request."""

    found: bool
    enabled: bool


class ToggleStore:
    """Persisted enabled/disabled overrides: a JSON object of name -> bool."""

    def __init__(self, path: str | os.PathLike[str]):
        self._file = JsonFile(path)

    def load(self) -> dict[str, bool]:
        data = self._file.load({})
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed toggle overrides in %s", self._file.path)
            return {}
        return {str(k): bool(v) for k, v in data.items()}

    def save(self, overrides: dict[str, bool]) -> None:
        self._file.save(overrides)


class CapabilityRegistry:
    """
    Holds every tool and agent the model may call, keyed by unique name.

    Tools and agents share one namespace; registering a name twice logs a
    warning and the later registration wins.
    """

    def __init__(self, toggle_store: ToggleStore | None = None):
        self._capabilities: dict[str, Capability] = {}
        self._toggle_store = toggle_store
        self._overrides: dict[str, bool] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._capabilities

    def __len__(self) -> int:
        return len(self._capabilities)

    # -- Registration ---------------------------------------------------------

    def register(self, capability: Any) -> bool:
        """
        Register a capability.

        Returns:
            True if registered; False if the candidate was rejected
        """
        if not isinstance(capability, Capability):
            logger.warning("Capabilities: skipping %r (not a Capability)", capability)
            return False
        if not capability.name:
            logger.warning("Capabilities: skipping %r (missing name)", capability)
            return False
        if not capability.has_handler:
            logger.warning("Capabilities: skipping %r (no executable handler)", capability.name)
            return False

        existing = self._capabilities.get(capability.name)
        if existing is not None:
            logger.warning(
                'Capabilities: name collision on "%s" (%s replaced by %s)',
                capability.name,
                existing.kind,
                capability.kind,
            )
            # Keep registration order stable for the replacement
            del self._capabilities[capability.name]

        self._capabilities[capability.name] = capability
        logger.info(
            'Capabilities: loaded %s "%s" (%s)',
            capability.kind,
            capability.name,
            "enabled" if capability.enabled else "disabled",
        )
        return True

    def register_all(self, capabilities: Iterable[Any]) -> int:
        """Register many capabilities; returns how many were accepted."""
        count = sum(1 for capability in capabilities if self.register(capability))
        logger.info(
            "Capabilities: %d registered, %d enabled", len(self), len(self.list_enabled())
        )
        return count

    def apply_overrides(self) -> int:
        """Apply persisted toggle overrides to registered capabilities."""
        if self._toggle_store is None:
            return 0
        self._overrides = self._toggle_store.load()
        applied = 0
        for name, enabled in self._overrides.items():
            capability = self._capabilities.get(name)
            if capability is None:
                logger.debug("Ignoring toggle override for unknown capability %s", name)
                continue
            capability.enabled = enabled
            applied += 1
        return applied

    # -- Lookup ---------------------------------------------------------------

    def get(self, name: str) -> Capability | None:
        return self._capabilities.get(name)

    def is_agent(self, name: str) -> bool:
        capability = self._capabilities.get(name)
        return capability is not None and capability.is_agent

    def list_all(self) -> list[Capability]:
        return list(self._capabilities.values())

    def list_enabled(self) -> list[Capability]:
        return [c for c in self._capabilities.values() if c.enabled]

    def tools(self, enabled_only: bool = True) -> list[Capability]:
        return [
            c
            for c in self._capabilities.values()
            if not c.is_agent and (c.enabled or not enabled_only)
        ]

    def agents(self, enabled_only: bool = True) -> list[Capability]:
        return [
            c
            for c in self._capabilities.values()
            if c.is_agent and (c.enabled or not enabled_only)
        ]

    def definitions_for(
        self,
        protocol: str = "openai",
        names: Iterable[str] | None = None,
        include_agents: bool = True,
    ) -> list[dict[str, Any]]:
        """
        Project enabled capabilities into the model's function-call schema.

        Args:
            protocol: "openai" or "anthropic"
            names: Optional allow-list of capability names
            include_agents: Whether agents are offered alongside tools
        """
        allowed = set(names) if names is not None else None
        capabilities = self.tools() + (self.agents() if include_agents else [])
        return [
            c.definition(protocol)
            for c in capabilities
            if allowed is None or c.name in allowed
        ]

    # -- Dispatch -------------------------------------------------------------

    async def invoke(self, name: str, args: dict[str, Any], context: CallContext) -> str:
        """
        Invoke a capability and return its textual result.

        Unknown or disabled names, invalid arguments and handler failures all come
        back as error text rather than exceptions.
        """
        capability = self._capabilities.get(name)
        if capability is None:
            return f'Error: unknown tool "{name}"'
        if not capability.enabled:
            return f'Error: {capability.kind} "{name}" is currently disabled'

        errors = capability.validate_args(args)
        if errors:
            logger.warning('Capabilities: invalid arguments for "%s": %s', name, errors)
            return f"Invalid arguments: {'; '.join(errors)}"

        tracer = get_tracer()
        with tracer.start_as_current_span(
            name=f"capability.{name}",
            attributes={
                "capability.name": name,
                "capability.kind": capability.kind,
                "capability.arguments": to_attribute(args),
            },
        ) as span:
            started = time.perf_counter()
            logger.info('Capabilities: executing %s "%s"', capability.kind, name)
            try:
                result = await capability.invoke(args, context)
            except Exception as e:
                elapsed_ms = (time.perf_counter() - started) * 1000
                logger.error(
                    'Capabilities: execution error in "%s" after %.0fms',
                    name,
                    elapsed_ms,
                    exc_info=True,
                )
                mark_error(span, e)
                return f'Error executing {capability.kind} "{name}": {e}'

            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info('Capabilities: "%s" finished in %.0fms', name, elapsed_ms)
            span.set_attribute("capability.elapsed_ms", elapsed_ms)

        if isinstance(result, ToolOutput):
            if result.data is not None:
                context.artifacts.append({"capability": name, "data": result.data})
            return result.text
        return str(result)

    # -- Toggles --------------------------------------------------------------

    def toggle(self, name: str) -> ToggleResult:
        """Flip a capability's enabled flag and persist the override."""
        capability = self._capabilities.get(name)
        if capability is None:
            return ToggleResult(found=False, enabled=False)

        capability.enabled = not capability.enabled
        self._overrides[name] = capability.enabled
        logger.info(
            'Capabilities: "%s" is now %s', name, "enabled" if capability.enabled else "disabled"
        )

        if self._toggle_store is not None:
            try:
                self._toggle_store.save(self._overrides)
            except OSError:
                logger.error("Capabilities: failed to persist toggle overrides", exc_info=True)

        return ToggleResult(found=True, enabled=capability.enabled)
