"""Tests for aelora.runtime.Runtime."""

import asyncio
import gc
import json

import pytest
from conftest import FakeProvider, tool_call

from aelora.agents.loop import CompletionLoop
from aelora.channels.discord import DiscordChannel
from aelora.config import DiscordSettings, LLMSettings, MemorySettings, Settings
from aelora.errors import BackendError
from aelora.llm.providers.base import LLMResponse
from aelora.memory.compaction import Summarizer
from aelora.memory.conversation import ConversationMemory
from aelora.memory.extraction import FactExtractor
from aelora.memory.facts import FactStore
from aelora.prompt import PromptComposer, SystemStatus
from aelora.runtime import Runtime


def _runtime(provider, registry, max_history=20, extractor=None):
    memory = ConversationMemory(max_history=max_history, summarizer=Summarizer(provider, "m"))
    composer = PromptComposer("You are Aelora.", registry=registry, memory=memory)
    loop = CompletionLoop(provider, registry, "m")
    return Runtime(loop, memory, composer, extractor=extractor, compaction_min_queue=2)


class TestRespond:
    @pytest.mark.asyncio
    async def test_appends_user_and_assistant_turns(self, registry):
        provider = FakeProvider([LLMResponse(content="Hi there")])
        runtime = _runtime(provider, registry)

        reply = await runtime.respond("c1", "hello")

        assert reply == "Hi there"
        assert runtime.memory.history_for("c1") == [
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": "Hi there"},
        ]
        sent = provider.requests[0]["messages"]
        assert sent[0]["role"] == "system"
        assert sent[0]["content"].startswith("You are Aelora.")
        assert sent[-1] == {"role": "user", "content": "hello"}

    @pytest.mark.asyncio
    async def test_tool_turns_are_not_kept_in_history(self, registry):
        provider = FakeProvider(
            [
                LLMResponse(tool_calls=[tool_call("1", "echo", {"text": "x"})]),
                LLMResponse(content="done"),
            ]
        )
        runtime = _runtime(provider, registry)

        await runtime.respond("c1", "go")

        assert [t["role"] for t in runtime.memory.history_for("c1")] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_bounded_history_queues_overflow(self, registry):
        provider = FakeProvider([LLMResponse(content=f"a{i}") for i in range(3)])
        runtime = _runtime(provider, registry, max_history=4)

        for i in range(3):
            await runtime.respond("c1", f"u{i}")

        history = runtime.memory.history_for("c1")
        assert [t["content"] for t in history] == ["u1", "a1", "u2", "a2"]
        assert [t["content"] for t in runtime.memory.pending("c1")] == ["u0", "a0"]

    @pytest.mark.asyncio
    async def test_backend_error_rolls_back_user_turn(self, registry):
        provider = FakeProvider([LLMResponse(content="first"), RuntimeError("down")])
        runtime = _runtime(provider, registry)
        await runtime.respond("c1", "one")

        with pytest.raises(BackendError):
            await runtime.respond("c1", "two")

        assert [t["content"] for t in runtime.memory.history_for("c1")] == ["one", "first"]

    @pytest.mark.asyncio
    async def test_same_conversation_is_serialized(self, registry):
        provider = FakeProvider(
            [LLMResponse(content="r1"), LLMResponse(content="r2")], delay=0.02
        )
        runtime = _runtime(provider, registry)

        await asyncio.gather(runtime.respond("c1", "m1"), runtime.respond("c1", "m2"))

        # The second request must see the first exchange complete
        second = provider.requests[1]["messages"]
        assert [m["content"] for m in second[1:]] == ["m1", "r1", "m2"]

    @pytest.mark.asyncio
    async def test_streaming_respond(self, registry):
        provider = FakeProvider([[{"type": "text_delta", "data": {"content": "streamed"}}]])
        runtime = _runtime(provider, registry)
        tokens = []

        reply = await runtime.respond("c1", "hi", on_token=tokens.append)

        assert reply == "streamed"
        assert tokens == ["streamed"]


class TestOtherEntryPoints:
    @pytest.mark.asyncio
    async def test_respond_once_is_stateless(self, registry):
        provider = FakeProvider([LLMResponse(content="one-off")])
        runtime = _runtime(provider, registry)

        assert await runtime.respond_once("quick question") == "one-off"
        assert runtime.memory._histories == {}
        assert provider.requests[0]["tools"] is not None

    @pytest.mark.asyncio
    async def test_clear_and_reset(self, registry):
        provider = FakeProvider([LLMResponse(content=f"a{i}") for i in range(3)])
        runtime = _runtime(provider, registry, max_history=2)
        for i in range(3):
            await runtime.respond("c1", f"u{i}")
        runtime.memory.set_summary("c1", "earlier chat")

        await runtime.clear("c1")
        assert runtime.memory.history_for("c1") == []
        assert runtime.memory.pending("c1") != []
        assert runtime.memory.summary_for("c1") is not None

        await runtime.reset("c1")
        assert runtime.memory.pending("c1") == []
        assert runtime.memory.summary_for("c1") is None

    @pytest.mark.asyncio
    async def test_clear_waits_for_in_flight_turn(self, registry):
        provider = FakeProvider([LLMResponse(content="reply")], delay=0.05)
        runtime = _runtime(provider, registry)

        turn = asyncio.create_task(runtime.respond("c1", "hello"))
        await asyncio.sleep(0.01)
        await runtime.clear("c1")

        assert turn.done()
        assert await turn == "reply"
        assert runtime.memory.history_for("c1") == []

    @pytest.mark.asyncio
    async def test_reset_waits_for_in_flight_turn(self, registry):
        provider = FakeProvider([LLMResponse(content="reply")], delay=0.05)
        runtime = _runtime(provider, registry, max_history=1)

        turn = asyncio.create_task(runtime.respond("c1", "hello"))
        await asyncio.sleep(0.01)
        await runtime.reset("c1")
        await turn

        assert runtime.memory.history_for("c1") == []
        assert runtime.memory.pending("c1") == []

    @pytest.mark.asyncio
    async def test_idle_conversation_locks_are_released(self, registry):
        provider = FakeProvider([LLMResponse(content=f"r{i}") for i in range(3)])
        runtime = _runtime(provider, registry)

        for i in range(3):
            await runtime.respond(f"c{i}", "hi")
        await runtime.reset("c0")
        gc.collect()

        assert len(runtime._locks) == 0

    @pytest.mark.asyncio
    async def test_compact_pending_uses_default_threshold(self, registry):
        provider = FakeProvider(
            [LLMResponse(content=f"a{i}") for i in range(2)] + [LLMResponse(content="summary")]
        )
        runtime = _runtime(provider, registry, max_history=2)
        for i in range(2):
            await runtime.respond("c1", f"u{i}")

        assert await runtime.compact_pending() == 1
        assert runtime.memory.summary_for("c1").text == "summary"
        assert runtime.memory.pending("c1") == []

    def test_toggle_delegates_to_registry(self, registry):
        runtime = _runtime(FakeProvider(), registry)
        assert runtime.toggle("echo").enabled is False
        assert registry.get("echo").enabled is False

    @pytest.mark.asyncio
    async def test_fact_extraction_runs_in_background(self, registry):
        provider = FakeProvider(
            [
                LLMResponse(content="Nice to meet you"),
                LLMResponse(content=json.dumps({"user_facts": ["Lives in Lisbon"]})),
            ]
        )
        facts = FactStore()
        extractor = FactExtractor(provider, "m", facts, cooldown=0, min_messages=1)
        runtime = _runtime(provider, registry, extractor=extractor)

        await runtime.respond("c1", "I live in Lisbon", user_id="u1")
        await runtime.drain()

        assert [f.fact for f in facts.get("user:u1")] == ["Lives in Lisbon"]


class TestFromSettings:
    def test_wires_builtins_and_persistence(self, tmp_path):
        settings = Settings(
            llm=LLMSettings(max_history=6, system_prompt="Be brief."),
            memory=MemorySettings(data_dir=str(tmp_path)),
        )
        runtime = Runtime.from_settings(
            settings,
            provider=FakeProvider(),
            status_provider=lambda: SystemStatus(model="m"),
        )

        assert [c.name for c in runtime.registry.list_all()] == [
            "ping",
            "memory",
            "web_search",
            "researcher",
        ]
        assert runtime.memory.max_history == 6
        assert runtime.extractor is not None
        prompt = runtime.composer.compose("c1", "u1")
        assert prompt.startswith("Be brief.")
        assert "- **Model**: m" in prompt

        runtime.toggle("ping")
        assert json.loads((tmp_path / "toggles.json").read_text()) == {"ping": False}

    def test_persisted_toggles_applied_at_startup(self, tmp_path):
        (tmp_path / "toggles.json").write_text(json.dumps({"web_search": False}))
        settings = Settings(memory=MemorySettings(data_dir=str(tmp_path), extract_facts=False))

        runtime = Runtime.from_settings(settings, provider=FakeProvider())

        assert runtime.registry.get("web_search").enabled is False
        assert runtime.extractor is None

    @pytest.mark.asyncio
    async def test_discord_token_wires_outbound_channel(self, tmp_path):
        settings = Settings(
            memory=MemorySettings(data_dir=str(tmp_path)),
            discord=DiscordSettings(bot_token="discord-token"),
        )

        runtime = Runtime.from_settings(settings, provider=FakeProvider())

        assert isinstance(runtime.channel, DiscordChannel)
        assert runtime.loop.send_to_channel == runtime.channel.send
        await runtime.aclose()

    def test_no_channel_without_token(self, tmp_path):
        settings = Settings(memory=MemorySettings(data_dir=str(tmp_path)))

        runtime = Runtime.from_settings(settings, provider=FakeProvider())

        assert runtime.channel is None
