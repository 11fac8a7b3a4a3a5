"""Conversation memory, compaction and long-term facts."""

from .compaction import Summarizer, chunk_messages, estimate_tokens, format_messages_for_prompt
from .conversation import ConversationMemory, RollingSummary, SummaryStore
from .extraction import FactExtractor
from .facts import (
    GLOBAL_SCOPE,
    FactMatch,
    FactStore,
    MemoryFact,
    SaveResult,
    channel_scope,
    user_scope,
)

__all__ = [
    "ConversationMemory",
    "FactExtractor",
    "FactMatch",
    "FactStore",
    "GLOBAL_SCOPE",
    "MemoryFact",
    "RollingSummary",
    "SaveResult",
    "Summarizer",
    "SummaryStore",
    "channel_scope",
    "chunk_messages",
    "estimate_tokens",
    "format_messages_for_prompt",
    "user_scope",
]
