"""Background extraction of noteworthy facts from conversation exchanges."""

from __future__ import annotations

import json
import logging
import re
import time

from ..errors import BackendError
from ..llm.generate import llm_generate
from ..llm.providers.base import LLMProvider
from ..llm.text import strip_think_blocks
from .facts import GLOBAL_SCOPE, FactStore, channel_scope, user_scope

logger = logging.getLogger(__name__)

EXTRACT_SYSTEM = (
    "Extract important facts from this conversation snippet. Reply with ONLY raw JSON, "
    "no explanation, no reasoning, no markdown.\n\n"
    "Extract facts that would be useful to remember for future conversations:\n"
    "- User preferences, opinions, or tastes\n"
    "- Personal details (name, location, job, projects, pets, etc.)\n"
    "- Decisions made or plans committed to\n"
    "- Technical context (what they're working on, tools they use)\n"
    "- Relationship dynamics or recurring topics\n\n"
    "Rules:\n"
    "- Only extract facts that are clearly stated or strongly implied, not speculation\n"
    "- Each fact must be a short, self-contained statement (under 200 chars)\n"
    "- If no noteworthy facts exist, return empty arrays\n\n"
    "Response format:\n"
    '{"user_facts":["fact1","fact2"],"channel_facts":["fact3"],"global_facts":["fact4"]}'
)

SNIPPET_CHARS = 500
USER_FACTS_PER_RUN = 3
CHANNEL_FACTS_PER_RUN = 2
GLOBAL_FACTS_PER_RUN = 1
DUPLICATE_THRESHOLD = 0.6


def extract_json(text: str) -> str | None:
    """Return the first balanced ``{...}`` object in ``text``, if any."""
    start = text.find("{")
    if start == -1:
        return None
    depth = 0
    for i in range(start, len(text)):
        if text[i] == "{":
            depth += 1
        elif text[i] == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def significant_words(text: str) -> set[str]:
    """Lowercase words longer than three characters, punctuation stripped."""
    cleaned = re.sub(r"[^\w\s]", "", text.lower())
    return {w for w in cleaned.split() if len(w) > 3}


def is_duplicate(facts: FactStore, new_fact: str, scope: str) -> bool:
    """True if a fact in ``scope`` overlaps ``new_fact`` by Jaccard similarity > 0.6."""
    new_words = significant_words(new_fact)
    if not new_words:
        return False

    query = " ".join(list(new_words)[:3])
    for match in facts.search(query, [scope]):
        existing = significant_words(match.fact.fact)
        if not existing:
            continue
        overlap = len(new_words & existing) / len(new_words | existing)
        if overlap > DUPLICATE_THRESHOLD:
            return True
    return False


class FactExtractor:
    """
    Throttled, best-effort fact extraction.

    Each channel must see ``min_messages`` tracked messages and ``cooldown``
    seconds must pass between extractions. Failures are logged, never raised.
    """

    def __init__(
        self,
        provider: LLMProvider,
        model: str,
        facts: FactStore,
        cooldown: float = 120.0,
        min_messages: int = 4,
        timeout: float | None = None,
    ):
        self.provider = provider
        self.model = model
        self.facts = facts
        self.cooldown = cooldown
        self.min_messages = min_messages
        self.timeout = timeout
        self._last_extraction: dict[str, float] = {}
        self._message_counts: dict[str, int] = {}

    def track_message(self, channel_id: str) -> None:
        self._message_counts[channel_id] = self._message_counts.get(channel_id, 0) + 1

    def _due(self, channel_id: str) -> bool:
        now = time.monotonic()
        last = self._last_extraction.get(channel_id)
        if last is not None and now - last < self.cooldown:
            return False
        if self._message_counts.get(channel_id, 0) < self.min_messages:
            return False
        self._message_counts[channel_id] = 0
        self._last_extraction[channel_id] = now
        return True

    async def extract(
        self,
        user_message: str,
        bot_response: str,
        channel_id: str,
        user_id: str | None = None,
    ) -> int:
        """
        Extract facts from one exchange and save them.

        Returns:
            Number of facts saved (0 when throttled or on failure)
        """
        if not self._due(channel_id):
            return 0

        snippet = (
            f"User: {user_message[:SNIPPET_CHARS]}\n\nBot: {bot_response[:SNIPPET_CHARS]}"
        )
        try:
            response = await llm_generate(
                self.provider,
                messages=[
                    {"role": "system", "content": EXTRACT_SYSTEM},
                    {"role": "user", "content": snippet},
                ],
                model=self.model,
                max_tokens=400,
                timeout=self.timeout,
            )
        except BackendError as e:
            logger.warning("FactExtractor: extraction failed: %s", e)
            return 0

        raw = strip_think_blocks(response.content or "")
        if not raw:
            return 0

        json_str = extract_json(raw)
        if json_str is None:
            logger.warning("FactExtractor: no JSON found in response: %s", raw[:100])
            return 0
        try:
            parsed = json.loads(json_str)
        except json.JSONDecodeError:
            logger.warning("FactExtractor: failed to parse JSON: %s", json_str[:100])
            return 0
        if not isinstance(parsed, dict):
            return 0

        targets = [(channel_scope(channel_id), "channel_facts", CHANNEL_FACTS_PER_RUN)]
        if user_id:
            targets.insert(0, (user_scope(user_id), "user_facts", USER_FACTS_PER_RUN))
        targets.append((GLOBAL_SCOPE, "global_facts", GLOBAL_FACTS_PER_RUN))

        saved = 0
        for scope, key, limit in targets:
            candidates = parsed.get(key)
            if not isinstance(candidates, list):
                continue
            for fact in candidates[:limit]:
                if not isinstance(fact, str) or not fact.strip():
                    continue
                if is_duplicate(self.facts, fact, scope):
                    continue
                if self.facts.save(scope, fact.strip()).success:
                    saved += 1

        if saved:
            logger.info("FactExtractor: saved %d fact(s) from channel %s", saved, channel_id)
        return saved
