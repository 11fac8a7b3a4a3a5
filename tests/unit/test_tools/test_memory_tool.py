"""Tests for the memory tool."""

import pytest

from aelora.memory.facts import FactStore
from aelora.tools.capability import CallContext
from aelora.tools.memory import create_memory_tool
from aelora.tools.registry import CapabilityRegistry


@pytest.fixture
def facts():
    return FactStore()


@pytest.fixture
def memory_registry(facts):
    reg = CapabilityRegistry()
    reg.register(create_memory_tool(facts))
    return reg


async def _call(reg, args, context=None):
    return await reg.invoke("memory", args, context or CallContext(conversation_id="c1", user_id="u1"))


class TestMemoryTool:
    @pytest.mark.asyncio
    async def test_save_and_list_scope(self, memory_registry, facts):
        result = await _call(memory_registry, {"action": "save", "scope": "user", "fact": "Likes tea"})

        assert result == 'Remembered (user): "Likes tea"'
        assert [f.fact for f in facts.get("user:u1")] == ["Likes tea"]

        listed = await _call(memory_registry, {"action": "list", "scope": "user"})
        assert listed == "**user facts** (1):\n0. Likes tea"

    @pytest.mark.asyncio
    async def test_save_requires_fact_and_scope(self, memory_registry):
        assert await _call(memory_registry, {"action": "save", "scope": "user"}) == (
            "Error: fact is required for save."
        )
        assert await _call(memory_registry, {"action": "save", "fact": "x"}) == (
            "Error: scope is required for save (user, channel, or global)."
        )

    @pytest.mark.asyncio
    async def test_missing_user_context(self, memory_registry):
        result = await _call(
            memory_registry,
            {"action": "save", "scope": "user", "fact": "x"},
            CallContext(conversation_id="c1"),
        )
        assert result == "Error: no user context available."

    @pytest.mark.asyncio
    async def test_duplicate_save_reports_error(self, memory_registry):
        args = {"action": "save", "scope": "global", "fact": "The sky is blue"}
        await _call(memory_registry, args)
        assert await _call(memory_registry, args) == "Error: Duplicate fact, already remembered"

    @pytest.mark.asyncio
    async def test_list_all_scopes(self, memory_registry, facts):
        facts.save("global", "g1")
        facts.save("channel:c1", "c-fact")

        listed = await _call(memory_registry, {"action": "list"})

        assert listed == "**Global facts** (1):\n0. g1\n\n**Channel facts** (1):\n0. c-fact"

    @pytest.mark.asyncio
    async def test_list_empty(self, memory_registry):
        assert await _call(memory_registry, {"action": "list"}) == "No facts stored yet."

    @pytest.mark.asyncio
    async def test_forget(self, memory_registry, facts):
        facts.save("channel:c1", "first")
        facts.save("channel:c1", "second")

        result = await _call(memory_registry, {"action": "forget", "scope": "channel", "index": 0})

        assert result == "Forgot fact #0 from channel."
        assert [f.fact for f in facts.get("channel:c1")] == ["second"]

    @pytest.mark.asyncio
    async def test_forget_invalid_index(self, memory_registry):
        result = await _call(memory_registry, {"action": "forget", "scope": "global", "index": 4})
        assert result == "Error: invalid index 4. Use 'list' to see available facts."

    @pytest.mark.asyncio
    async def test_clear(self, memory_registry, facts):
        facts.save("global", "a")
        facts.save("global", "b")

        assert await _call(memory_registry, {"action": "clear", "scope": "global"}) == (
            "Cleared 2 fact(s) from global."
        )
        assert await _call(memory_registry, {"action": "clear", "scope": "global"}) == (
            "No facts to clear for this global."
        )

    @pytest.mark.asyncio
    async def test_search(self, memory_registry, facts):
        facts.save("user:u1", "Works on a compiler project")
        facts.save("global", "Office closes at six")

        result = await _call(memory_registry, {"action": "search", "query": "compiler"})

        assert result.startswith('**Memory facts matching "compiler"** (1):')
        assert "- [user:u1#0] Works on a compiler project" in result

    @pytest.mark.asyncio
    async def test_unknown_action_is_rejected_before_dispatch(self, memory_registry):
        result = await _call(memory_registry, {"action": "explode"})
        assert result.startswith("Invalid arguments:")
