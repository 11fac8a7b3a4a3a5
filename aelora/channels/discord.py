"""Discord channel: posts messages through the Discord REST API with httpx."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from ..utils.retry import retry_with_backoff
from .channel import Channel

logger = logging.getLogger(__name__)

DISCORD_API_BASE = "https://discord.com/api/v10"
# Discord rejects message bodies longer than this
MAX_MESSAGE_LENGTH = 2000


@dataclass
class DiscordChannelConfig:
    """Configuration for the Discord channel.

    Attributes:
        bot_token: Discord bot token
        api_base: REST API base URL
        max_retries: Retries on rate limiting and transport errors
    """

    bot_token: str
    api_base: str = DISCORD_API_BASE
    max_retries: int = 2
    timeout: float = 15.0


class DiscordRateLimited(Exception):
    def __init__(self, retry_after: float | None):
        super().__init__(f"Discord rate limited (retry after {retry_after}s)")
        self.retry_after = retry_after


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split text into chunks Discord accepts, preferring line breaks."""
    if len(text) <= limit:
        return [text]

    chunks = []
    remaining = text
    while len(remaining) > limit:
        cut = remaining.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(remaining[:cut])
        remaining = remaining[cut:].lstrip("\n")
    if remaining:
        chunks.append(remaining)
    return chunks


def _is_retryable(error: Exception) -> bool:
    return isinstance(error, (DiscordRateLimited, httpx.TransportError))


def _retry_after(error: Exception) -> float | None:
    if isinstance(error, DiscordRateLimited):
        return error.retry_after
    return None


class DiscordChannel(Channel):
    """Sends text to Discord channels by id."""

    def __init__(self, config: DiscordChannelConfig, client: httpx.AsyncClient | None = None):
        if not config.bot_token:
            raise ValueError("Discord bot token is required")
        self._config = config
        self._client = client or httpx.AsyncClient(timeout=config.timeout)

    @property
    def id(self) -> str:
        return "discord"

    async def send(self, destination_id: str, text: str) -> None:
        for chunk in split_message(text):
            await retry_with_backoff(
                self._post_message,
                destination_id,
                chunk,
                max_retries=self._config.max_retries,
                retry_on=_is_retryable,
                delay_for=_retry_after,
            )

    async def _post_message(self, channel_id: str, content: str) -> None:
        response = await self._client.post(
            f"{self._config.api_base}/channels/{channel_id}/messages",
            json={"content": content},
            headers={"Authorization": f"Bot {self._config.bot_token}"},
        )

        if response.status_code == 429:
            try:
                retry_after = response.json().get("retry_after")
            except ValueError:
                retry_after = None
            logger.warning("Discord: rate limited posting to %s", channel_id)
            raise DiscordRateLimited(retry_after)

        if response.status_code >= 400:
            raise RuntimeError(f"Discord API error ({response.status_code}): {response.text}")

    async def aclose(self) -> None:
        await self._client.aclose()
