"""Scoped long-term memory facts.

Facts are short statements stored under a scope key: ``user:<id>``,
``channel:<id>`` or ``global``. Each scope keeps at most ``MAX_FACTS_PER_SCOPE``
facts (oldest dropped first) and rejects exact duplicates.
"""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime, timezone

from pydantic import BaseModel, Field, ValidationError

from ..utils.storage import JsonFile

logger = logging.getLogger(__name__)

MAX_FACTS_PER_SCOPE = 20
MAX_FACT_LENGTH = 300
GLOBAL_SCOPE = "global"


def user_scope(user_id: str) -> str:
    return f"user:{user_id}"


def channel_scope(channel_id: str) -> str:
    return f"channel:{channel_id}"


class MemoryFact(BaseModel):
    """One remembered statement."""

    fact: str
    saved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SaveResult(BaseModel):
    success: bool
    error: str | None = None


class FactMatch(BaseModel):
    """A search hit: the fact plus where it lives."""

    scope: str
    index: int
    fact: MemoryFact
    score: int


class FactStore:
    """In-memory fact store, persisted as one JSON document after each change."""

    def __init__(
        self,
        path: str | os.PathLike[str] | None = None,
        max_facts_per_scope: int = MAX_FACTS_PER_SCOPE,
        max_fact_length: int = MAX_FACT_LENGTH,
    ):
        self._file = JsonFile(path) if path is not None else None
        self.max_facts_per_scope = max_facts_per_scope
        self.max_fact_length = max_fact_length
        self._store: dict[str, list[MemoryFact]] = {}
        self._load()

    def _load(self) -> None:
        if self._file is None:
            return
        raw = self._file.load({})
        if not isinstance(raw, dict):
            logger.warning("Memory: ignoring malformed store in %s", self._file.path)
            return
        for scope, facts in raw.items():
            try:
                self._store[scope] = [MemoryFact.model_validate(f) for f in facts]
            except (ValidationError, TypeError):
                logger.warning("Memory: skipping malformed scope %s", scope)

    def _save(self) -> None:
        if self._file is None:
            return
        try:
            self._file.save(
                {
                    scope: [f.model_dump(mode="json") for f in facts]
                    for scope, facts in self._store.items()
                }
            )
        except OSError:
            logger.error("Memory: failed to save", exc_info=True)

    def save(self, scope: str, fact: str) -> SaveResult:
        """Append a fact to a scope, rejecting empty text and exact duplicates."""
        trimmed = fact.strip()[: self.max_fact_length]
        if not trimmed:
            return SaveResult(success=False, error="Fact cannot be empty")

        facts = self._store.setdefault(scope, [])
        if any(f.fact == trimmed for f in facts):
            return SaveResult(success=False, error="Duplicate fact, already remembered")

        facts.append(MemoryFact(fact=trimmed))
        if len(facts) > self.max_facts_per_scope:
            del facts[: len(facts) - self.max_facts_per_scope]

        self._save()
        return SaveResult(success=True)

    def get(self, scope: str) -> list[MemoryFact]:
        return list(self._store.get(scope, []))

    def delete(self, scope: str, index: int) -> bool:
        facts = self._store.get(scope)
        if not facts or index < 0 or index >= len(facts):
            return False
        facts.pop(index)
        if not facts:
            del self._store[scope]
        self._save()
        return True

    def clear_scope(self, scope: str) -> int:
        facts = self._store.pop(scope, None)
        if not facts:
            return 0
        self._save()
        return len(facts)

    def all(self) -> dict[str, list[MemoryFact]]:
        return {scope: list(facts) for scope, facts in self._store.items()}

    def search(self, query: str, scopes: list[str] | None = None) -> list[FactMatch]:
        """
        Case-insensitive keyword search.

        A fact matches when it contains at least one query term; results are ranked
        by the number of distinct terms matched, then newest first.
        """
        terms = {t for t in re.split(r"\s+", query.lower().strip()) if t}
        if not terms:
            return []

        matches: list[FactMatch] = []
        for scope, facts in self._store.items():
            if scopes is not None and scope not in scopes:
                continue
            for index, fact in enumerate(facts):
                text = fact.fact.lower()
                score = sum(1 for term in terms if term in text)
                if score:
                    matches.append(FactMatch(scope=scope, index=index, fact=fact, score=score))

        matches.sort(key=lambda m: (-m.score, -m.fact.saved_at.timestamp()))
        return matches
