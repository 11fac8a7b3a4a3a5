"""Outbound message channels."""

from .channel import Channel
from .discord import DiscordChannel, DiscordChannelConfig

__all__ = [
    "Channel",
    "DiscordChannel",
    "DiscordChannelConfig",
]
