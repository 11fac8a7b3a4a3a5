"""The ``memory`` tool: lets the model save, list, forget and search facts."""

from __future__ import annotations

from typing import Any

from ..memory.facts import GLOBAL_SCOPE, FactStore, MemoryFact, channel_scope, user_scope
from .capability import CallContext
from .tool import Tool

MAX_SEARCH_RESULTS = 20

MEMORY_PARAMETERS: dict[str, Any] = {
    "type": "object",
    "properties": {
        "action": {
            "type": "string",
            "description": "The action to perform.",
            "enum": ["save", "list", "forget", "clear", "search"],
        },
        "scope": {
            "type": "string",
            "description": "Scope: 'user', 'channel', or 'global'.",
            "enum": ["user", "channel", "global"],
        },
        "fact": {
            "type": "string",
            "description": "The fact to remember (short, specific). Required for save.",
        },
        "index": {
            "type": "integer",
            "description": "Index of the fact to forget (from list). Required for forget.",
        },
        "query": {
            "type": "string",
            "description": "Search query (keywords). Required for search.",
        },
    },
    "required": ["action"],
}


def _resolve_scope(scope: str | None, context: CallContext) -> str | None:
    if scope == "user":
        return user_scope(context.user_id) if context.user_id else None
    if scope == "channel":
        return channel_scope(context.conversation_id) if context.conversation_id else None
    if scope == "global":
        return GLOBAL_SCOPE
    return None


def _numbered(title: str, facts: list[MemoryFact]) -> list[str]:
    lines = [f"**{title}** ({len(facts)}):"]
    lines.extend(f"{i}. {f.fact}" for i, f in enumerate(facts))
    return lines


class MemoryActions:
    """Action handlers for the memory tool, bound to one fact store."""

    def __init__(self, facts: FactStore):
        self.facts = facts

    def save(self, args: dict[str, Any], context: CallContext) -> str:
        fact, scope = args.get("fact"), args.get("scope")
        if not fact:
            return "Error: fact is required for save."
        if not scope:
            return "Error: scope is required for save (user, channel, or global)."
        key = _resolve_scope(scope, context)
        if key is None:
            return f"Error: no {scope} context available."

        result = self.facts.save(key, fact)
        if not result.success:
            return f"Error: {result.error}"
        return f'Remembered ({scope}): "{fact}"'

    def list(self, args: dict[str, Any], context: CallContext) -> str:
        scope = args.get("scope")
        if scope:
            key = _resolve_scope(scope, context)
            if key is None:
                return f"Error: no {scope} context available."
            facts = self.facts.get(key)
            if not facts:
                return f"No facts stored for this {scope}."
            return "\n".join(_numbered(f"{scope} facts", facts))

        sections = [("Global facts", GLOBAL_SCOPE)]
        if context.user_id:
            sections.append(("User facts", user_scope(context.user_id)))
        if context.conversation_id:
            sections.append(("Channel facts", channel_scope(context.conversation_id)))

        lines: list[str] = []
        for title, key in sections:
            facts = self.facts.get(key)
            if not facts:
                continue
            if lines:
                lines.append("")
            lines.extend(_numbered(title, facts))

        return "\n".join(lines) if lines else "No facts stored yet."

    def forget(self, args: dict[str, Any], context: CallContext) -> str:
        scope, index = args.get("scope"), args.get("index")
        if not scope:
            return "Error: scope is required for forget (user, channel, or global)."
        if index is None:
            return "Error: index is required for forget."
        key = _resolve_scope(scope, context)
        if key is None:
            return f"Error: no {scope} context available."

        if not self.facts.delete(key, int(index)):
            return f"Error: invalid index {index}. Use 'list' to see available facts."
        return f"Forgot fact #{index} from {scope}."

    def clear(self, args: dict[str, Any], context: CallContext) -> str:
        scope = args.get("scope")
        if not scope:
            return "Error: scope is required for clear (user, channel, or global)."
        key = _resolve_scope(scope, context)
        if key is None:
            return f"Error: no {scope} context available."

        count = self.facts.clear_scope(key)
        if count == 0:
            return f"No facts to clear for this {scope}."
        return f"Cleared {count} fact(s) from {scope}."

    def search(self, args: dict[str, Any], context: CallContext) -> str:
        query = args.get("query")
        if not query:
            return "Error: query is required for search."

        matches = self.facts.search(query)
        if not matches:
            return f'No results found for "{query}".'

        lines = [f'**Memory facts matching "{query}"** ({len(matches)}):']
        lines.extend(
            f"- [{m.scope}#{m.index}] {m.fact.fact}" for m in matches[:MAX_SEARCH_RESULTS]
        )
        if len(matches) > MAX_SEARCH_RESULTS:
            lines.append(f"_({len(matches) - MAX_SEARCH_RESULTS} more)_")
        return "\n".join(lines)


def create_memory_tool(facts: FactStore) -> Tool:
    actions = MemoryActions(facts)

    def memory(ctx: CallContext, args: dict[str, Any]) -> str:
        handler = getattr(actions, args["action"])
        return handler(args, ctx)

    return Tool(
        name="memory",
        description=(
            "Persistent memory across restarts. "
            "Actions: 'save' a fact, 'list' stored facts, 'forget' one by index, "
            "'clear' a scope, 'search' facts by keyword. "
            "Scopes: 'user' (current user), 'channel' (current channel), "
            "'global' (shared knowledge)."
        ),
        parameters=MEMORY_PARAMETERS,
        handler=memory,
    )
