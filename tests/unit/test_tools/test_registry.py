"""Tests for aelora.tools.registry."""

import json
from unittest.mock import patch

import pytest

from aelora.agents.agent import Agent
from aelora.tools.capability import CallContext, ToolOutput
from aelora.tools.registry import CapabilityRegistry, ToggleStore
from aelora.tools.tool import Tool


def _tool(name, handler=None, **kwargs):
    return Tool(name=name, description=f"{name} tool", handler=handler or (lambda ctx: name), **kwargs)


class TestRegistration:
    def test_rejects_non_capability(self):
        reg = CapabilityRegistry()
        assert reg.register({"name": "dict"}) is False
        assert len(reg) == 0

    def test_rejects_missing_name(self):
        reg = CapabilityRegistry()
        assert reg.register(_tool("")) is False

    def test_rejects_tool_without_handler(self):
        reg = CapabilityRegistry()
        assert reg.register(Tool(name="nohandler", description="x")) is False
        assert "nohandler" not in reg

    def test_rejects_agent_without_system_prompt(self):
        reg = CapabilityRegistry()
        assert reg.register(Agent(name="a", description="x", system_prompt="")) is False

    def test_collision_replaces_and_warns(self, caplog):
        reg = CapabilityRegistry()
        first = _tool("dup")
        second = Agent(name="dup", description="agent", system_prompt="be an agent")

        reg.register(first)
        with caplog.at_level("WARNING"):
            reg.register(second)

        assert reg.get("dup") is second
        assert reg.is_agent("dup")
        assert len(reg) == 1
        assert "collision" in caplog.text

    def test_registration_order_is_preserved(self):
        reg = CapabilityRegistry()
        reg.register_all([_tool("a"), _tool("b"), _tool("c")])
        assert [c.name for c in reg.list_all()] == ["a", "b", "c"]

    def test_list_enabled_filters_disabled(self, registry):
        assert [c.name for c in registry.list_enabled()] == ["echo"]
        assert [c.name for c in registry.list_all()] == ["echo", "blocked"]

    def test_tools_and_agents_split_by_kind(self):
        reg = CapabilityRegistry()
        reg.register(_tool("t"))
        reg.register(Agent(name="a", description="x", system_prompt="p"))
        assert [c.name for c in reg.tools()] == ["t"]
        assert [c.name for c in reg.agents()] == ["a"]


class TestDefinitions:
    def test_openai_definitions_cover_enabled_only(self, registry):
        defs = registry.definitions_for()
        assert len(defs) == 1
        assert defs[0]["type"] == "function"
        assert defs[0]["function"]["name"] == "echo"
        assert defs[0]["function"]["parameters"]["required"] == ["text"]

    def test_parameters_omitted_when_no_schema(self):
        reg = CapabilityRegistry()
        reg.register(_tool("bare"))
        assert "parameters" not in reg.definitions_for()[0]["function"]

    def test_anthropic_definitions(self, registry):
        defs = registry.definitions_for("anthropic")
        assert defs == [
            {
                "name": "echo",
                "description": "Echo text back",
                "input_schema": {
                    "type": "object",
                    "properties": {"text": {"type": "string"}},
                    "required": ["text"],
                },
            }
        ]

    def test_names_allow_list_and_agent_exclusion(self):
        reg = CapabilityRegistry()
        reg.register_all(
            [_tool("a"), _tool("b"), Agent(name="helper", description="x", system_prompt="p")]
        )
        names = [d["function"]["name"] for d in reg.definitions_for(names={"b", "helper"})]
        assert names == ["b", "helper"]
        names = [d["function"]["name"] for d in reg.definitions_for(include_agents=False)]
        assert names == ["a", "b"]


class TestInvoke:
    @pytest.mark.asyncio
    async def test_invokes_enabled_tool(self, registry, call_context):
        assert await registry.invoke("echo", {"text": "hi"}, call_context) == "echo: hi"

    @pytest.mark.asyncio
    async def test_disabled_tool_returns_error_text(self, registry, call_context):
        result = await registry.invoke("blocked", {}, call_context)
        assert result == 'Error: tool "blocked" is currently disabled'

    @pytest.mark.asyncio
    async def test_disabled_agent_uses_agent_kind(self, call_context):
        reg = CapabilityRegistry()
        reg.register(Agent(name="helper", description="x", system_prompt="p", enabled=False))
        result = await reg.invoke("helper", {}, call_context)
        assert result == 'Error: agent "helper" is currently disabled'

    @pytest.mark.asyncio
    async def test_unknown_tool_returns_error_text(self, registry, call_context):
        result = await registry.invoke("ghost", {}, call_context)
        assert result == 'Error: unknown tool "ghost"'

    @pytest.mark.asyncio
    async def test_invalid_arguments_skip_handler(self, call_context):
        calls = []

        def handler(ctx, args):
            calls.append(args)
            return "ran"

        reg = CapabilityRegistry()
        reg.register(
            Tool(
                name="strict",
                handler=handler,
                parameters={
                    "type": "object",
                    "properties": {
                        "text": {"type": "string"},
                        "count": {"type": "integer"},
                    },
                    "required": ["text"],
                },
            )
        )

        result = await reg.invoke("strict", {"count": "three"}, call_context)

        assert result == 'Invalid arguments: "text" is required; "count" must be an integer'
        assert calls == []

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_error_text(self, call_context):
        def boom(ctx):
            raise ValueError("kaput")

        reg = CapabilityRegistry()
        reg.register(Tool(name="boom", handler=boom))

        result = await reg.invoke("boom", {}, call_context)
        assert result == 'Error executing tool "boom": kaput'

    @pytest.mark.asyncio
    async def test_tool_output_data_goes_to_artifacts(self):
        reg = CapabilityRegistry()
        reg.register(
            Tool(name="rich", handler=lambda ctx: ToolOutput(text="done", data={"rows": 2}))
        )
        context = CallContext()

        result = await reg.invoke("rich", {}, context)

        assert result == "done"
        assert context.artifacts == [{"capability": "rich", "data": {"rows": 2}}]

    @pytest.mark.asyncio
    async def test_invocation_is_traced(self, registry, call_context, mock_tracer):
        with patch("aelora.tools.registry.get_tracer", return_value=mock_tracer):
            await registry.invoke("echo", {"text": "x"}, call_context)

        assert mock_tracer.start_as_current_span.call_args.kwargs["name"] == "capability.echo"


class TestToggle:
    def test_toggle_flips_and_persists(self, tmp_path, registry):
        result = registry.toggle("echo")

        assert result.found is True
        assert result.enabled is False
        assert registry.get("echo").enabled is False
        saved = json.loads((tmp_path / "toggles.json").read_text())
        assert saved == {"echo": False}

    def test_toggle_unknown(self, registry):
        result = registry.toggle("ghost")
        assert result.found is False

    def test_overrides_survive_restart(self, tmp_path, echo_tool, blocked_tool):
        reg = CapabilityRegistry(ToggleStore(tmp_path / "toggles.json"))
        reg.register_all([echo_tool, blocked_tool])
        reg.toggle("blocked")

        fresh = CapabilityRegistry(ToggleStore(tmp_path / "toggles.json"))
        fresh.register(_tool("echo"))
        fresh.register(_tool("blocked", enabled=False))
        applied = fresh.apply_overrides()

        assert applied == 1
        assert fresh.get("blocked").enabled is True

    def test_unknown_override_names_are_ignored(self, tmp_path):
        (tmp_path / "toggles.json").write_text(json.dumps({"gone": False}))
        reg = CapabilityRegistry(ToggleStore(tmp_path / "toggles.json"))
        reg.register(_tool("echo"))
        assert reg.apply_overrides() == 0
        assert reg.get("echo").enabled is True
