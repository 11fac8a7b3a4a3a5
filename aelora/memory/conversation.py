"""Per-conversation bounded history, compaction queues and rolling summaries."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone

from pydantic import BaseModel, Field, ValidationError

from ..errors import AeloraError
from ..utils.storage import JsonFile
from ..utils.tracing import get_tracer, mark_error
from .compaction import SUMMARIZABLE_ROLES, Summarizer

logger = logging.getLogger(__name__)


class RollingSummary(BaseModel):
    """The compacted memory of a conversation's evicted turns."""

    text: str
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SummaryStore:
    """Persists rolling summaries as a JSON object keyed by conversation id."""

    def __init__(self, path: str | os.PathLike[str]):
        self._file = JsonFile(path)

    def load(self) -> dict[str, RollingSummary]:
        raw = self._file.load({})
        summaries: dict[str, RollingSummary] = {}
        if not isinstance(raw, dict):
            return summaries
        for conversation_id, value in raw.items():
            try:
                summaries[conversation_id] = RollingSummary.model_validate(value)
            except ValidationError:
                logger.warning("Skipping malformed summary for %s", conversation_id)
        return summaries

    def save(self, summaries: dict[str, RollingSummary]) -> None:
        self._file.save({cid: s.model_dump(mode="json") for cid, s in summaries.items()})


class ConversationMemory:
    """
    Bounded, summarizable memory for many conversations.

    Active history never exceeds ``max_history`` turns. Turns evicted from the
    front go to the conversation's compaction queue (user and assistant turns
    only) and are folded into a rolling summary by ``compact_pending``.
    """

    def __init__(
        self,
        max_history: int = 20,
        summarizer: Summarizer | None = None,
        summary_store: SummaryStore | None = None,
    ):
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self.max_history = max_history
        self.summarizer = summarizer
        self._summary_store = summary_store
        self._histories: dict[str, list[dict]] = {}
        self._queues: dict[str, list[dict]] = {}
        self._summaries: dict[str, RollingSummary] = (
            summary_store.load() if summary_store is not None else {}
        )

    # -- History --------------------------------------------------------------

    def history_for(self, conversation_id: str) -> list[dict]:
        """Return the live turn list for a conversation, creating it if absent."""
        return self._histories.setdefault(conversation_id, [])

    def append(self, conversation_id: str, turn: dict) -> None:
        self.history_for(conversation_id).append(turn)

    def trim(self, conversation_id: str) -> list[dict]:
        """
        Evict turns from the front until the history fits ``max_history``.

        Returns:
            The evicted turns, oldest first
        """
        history = self.history_for(conversation_id)
        overflow = len(history) - self.max_history
        if overflow <= 0:
            return []

        evicted = history[:overflow]
        del history[:overflow]

        queue = self._queues.setdefault(conversation_id, [])
        queue.extend(turn for turn in evicted if turn.get("role") in SUMMARIZABLE_ROLES)
        return evicted

    def pop_last(self, conversation_id: str, turn: dict) -> bool:
        """Roll back ``turn`` if it is still in the active history."""
        history = self._histories.get(conversation_id)
        if not history:
            return False
        for i in range(len(history) - 1, -1, -1):
            if history[i] is turn:
                del history[i]
                return True
        return False

    def clear(self, conversation_id: str) -> None:
        """Drop the active history. The summary and compaction queue are kept."""
        self._histories.pop(conversation_id, None)

    def reset(self, conversation_id: str) -> None:
        """Forget everything about a conversation: history, queue and summary."""
        self._histories.pop(conversation_id, None)
        self._queues.pop(conversation_id, None)
        if self._summaries.pop(conversation_id, None) is not None:
            self._persist_summaries()

    # -- Compaction queue & summaries -----------------------------------------

    def pending(self, conversation_id: str) -> list[dict]:
        """A copy of the turns waiting for compaction."""
        return list(self._queues.get(conversation_id, []))

    def summary_for(self, conversation_id: str) -> RollingSummary | None:
        return self._summaries.get(conversation_id)

    def set_summary(self, conversation_id: str, text: str) -> RollingSummary:
        summary = RollingSummary(text=text)
        self._summaries[conversation_id] = summary
        self._persist_summaries()
        return summary

    def _persist_summaries(self) -> None:
        if self._summary_store is None:
            return
        try:
            self._summary_store.save(self._summaries)
        except OSError:
            logger.error("Memory: failed to persist summaries", exc_info=True)

    def _drain(self, conversation_id: str) -> list[dict]:
        # Splice the snapshot out; turns queued while summarizing stay behind
        queue = self._queues.get(conversation_id, [])
        drained = queue[:]
        del queue[: len(drained)]
        return drained

    def _restore(self, conversation_id: str, turns: list[dict]) -> None:
        queue = self._queues.setdefault(conversation_id, [])
        queue[:0] = turns

    async def compact_pending(self, min_queue_size: int) -> int:
        """
        Fold every sufficiently long compaction queue into its rolling summary.

        Each qualifying queue is drained whole. On success the new summary replaces
        the old one and is persisted; on failure the drained turns go back to the
        front of the queue and the conversation is skipped this cycle.

        Returns:
            Number of conversations compacted
        """
        if self.summarizer is None:
            raise RuntimeError("compact_pending requires a summarizer")

        due = [cid for cid, queue in self._queues.items() if queue and len(queue) >= min_queue_size]
        tracer = get_tracer()
        compacted = 0

        for conversation_id in due:
            drained = self._drain(conversation_id)
            previous = self._summaries.get(conversation_id)

            with tracer.start_as_current_span(
                name="memory.compaction",
                attributes={"conversation.id": conversation_id, "compaction.turns": len(drained)},
            ) as span:
                try:
                    text = await self.summarizer.summarize(
                        previous.text if previous else None, drained
                    )
                except AeloraError as e:
                    self._restore(conversation_id, drained)
                    mark_error(span, e)
                    logger.error(
                        "Compaction failed for %s, %d turn(s) restored to queue: %s",
                        conversation_id,
                        len(drained),
                        e,
                    )
                    continue

            self.set_summary(conversation_id, text)
            compacted += 1
            logger.info(
                "Compacted %d turn(s) for %s into a %d-char summary",
                len(drained),
                conversation_id,
                len(text),
            )

        return compacted
