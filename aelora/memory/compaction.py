"""Summarization of evicted conversation turns into a rolling summary.

Turns evicted from a conversation's active history wait in its compaction queue.
A periodic job drains each queue that has grown past a threshold and folds the
turns into the conversation's rolling summary with one summarization call. A
transcript too large for one call is split into chunks that are folded in
sequence; if any chunk fails the whole drain is treated as failed.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from ..errors import CompactionError
from ..llm.generate import llm_generate
from ..llm.providers.base import LLMProvider
from ..llm.text import strip_think_blocks

logger = logging.getLogger(__name__)

# -- Constants ----------------------------------------------------------------

SUMMARY_SYSTEM_PROMPT = (
    "You maintain a rolling summary of an ongoing chat conversation.\n"
    "Produce a concise summary preserving the topics discussed, decisions made, "
    "and any context needed to continue the conversation (names, preferences, "
    "open questions, commitments).\n"
    "Hard cap: {max_chars} characters.\n"
    "Output only the summary, with no preamble or commentary."
)

COMPACTION_PROMPT = (
    "Existing summary (if any):\n"
    "{existing_summary}\n"
    "\n"
    "New messages to fold into the summary:\n"
    "{messages_to_fold}"
)

SUMMARIZABLE_ROLES = ("user", "assistant")

# -- Helpers ------------------------------------------------------------------


def _content_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        # Multimodal content parts: keep the text, mark anything else
        parts = []
        for part in content:
            if isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
            else:
                parts.append("[attachment]")
        return " ".join(parts)
    try:
        return json.dumps(content)
    except (TypeError, ValueError):
        return str(content)


def estimate_tokens(message: dict) -> int:
    """Rough size of a turn, at about four characters per token."""
    content = message.get("content")
    if content is None:
        return 0
    if not isinstance(content, str):
        try:
            content = json.dumps(content)
        except (TypeError, ValueError):
            return 0
    return -(-len(content) // 4)


def format_messages_for_prompt(messages: list[dict]) -> str:
    """Format turns as a compact ``role: content`` transcript."""
    parts = []
    for m in messages:
        parts.append(f"{m.get('role', 'unknown')}: {_content_text(m.get('content'))}")
    return "\n\n".join(parts)


def chunk_messages(messages: list[dict], max_tokens: int) -> list[list[dict]]:
    """
    Split turns into consecutive chunks whose estimated size fits ``max_tokens``.

    Order is preserved. A single turn larger than the budget forms its own chunk.
    """
    chunks: list[list[dict]] = []
    current: list[dict] = []
    current_tokens = 0

    for message in messages:
        tokens = estimate_tokens(message)
        if current and current_tokens + tokens > max_tokens:
            chunks.append(current)
            current, current_tokens = [], 0
        current.append(message)
        current_tokens += tokens

    if current:
        chunks.append(current)
    return chunks


# -- Summarizer ---------------------------------------------------------------


class Summarizer:
    """Folds batches of turns into a bounded rolling summary via the model backend."""

    def __init__(
        self,
        provider: LLMProvider,
        model: str,
        max_summary_chars: int = 1500,
        max_transcript_tokens: int = 6000,
        timeout: float | None = None,
    ):
        self.provider = provider
        self.model = model
        self.max_summary_chars = max_summary_chars
        self.max_transcript_tokens = max_transcript_tokens
        self.timeout = timeout

    async def summarize(self, existing_summary: str | None, messages: list[dict]) -> str:
        """
        Produce the new summary for ``messages`` given the prior summary.

        Raises:
            BackendError: If a summarization call fails
            CompactionError: If the backend returns an empty summary
        """
        chunks = chunk_messages(messages, self.max_transcript_tokens)
        if len(chunks) > 1:
            logger.info(
                "Compaction: transcript of %d turns split into %d chunks",
                len(messages),
                len(chunks),
            )

        summary = existing_summary
        for chunk in chunks:
            summary = await self._summarize_chunk(summary, chunk)
        return summary or ""

    async def _summarize_chunk(self, existing_summary: str | None, messages: list[dict]) -> str:
        prompt = COMPACTION_PROMPT.replace(
            "{existing_summary}", existing_summary or "(none)"
        ).replace("{messages_to_fold}", format_messages_for_prompt(messages))

        response = await llm_generate(
            self.provider,
            messages=[
                {
                    "role": "system",
                    "content": SUMMARY_SYSTEM_PROMPT.format(max_chars=self.max_summary_chars),
                },
                {"role": "user", "content": prompt},
            ],
            model=self.model,
            # Room for the capped summary plus some slack
            max_tokens=self.max_summary_chars // 4 + 256,
            timeout=self.timeout,
        )

        summary = strip_think_blocks(response.content or "")
        if not summary:
            raise CompactionError("summarization returned an empty summary")
        return summary[: self.max_summary_chars].rstrip()
