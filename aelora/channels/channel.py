"""Outbound message sinks.

A channel delivers text to a destination (a Discord channel id, for example).
Capabilities reach it through ``CallContext.send_to_channel``. Implementations
raise on failure; inside a capability the error becomes that capability's
error text.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class Channel(ABC):
    """Base class for outbound message sinks."""

    @property
    @abstractmethod
    def id(self) -> str:
        """Unique channel identifier (e.g., "discord")."""
        ...

    @abstractmethod
    async def send(self, destination_id: str, text: str) -> None:
        """Deliver ``text`` to ``destination_id``."""
        ...

    async def aclose(self) -> None:  # noqa: B027
        """Release any held resources."""
