"""System prompt composition.

The system prompt is rebuilt for every request from the base persona, live
system status, the enabled capability inventory, the conversation's rolling
summary and scoped memory facts.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import BaseModel

from .memory.conversation import ConversationMemory
from .memory.facts import GLOBAL_SCOPE, FactStore, MemoryFact, channel_scope, user_scope
from .tools.registry import CapabilityRegistry

logger = logging.getLogger(__name__)

DEFAULT_BASE_PROMPT = "You are a helpful assistant."

TRUNCATION_HINT = "_({count} more stored; use the memory tool's search action to find them)_"


class HeartbeatStatus(BaseModel):
    running: bool
    handlers: int = 0


class CronJobStatus(BaseModel):
    name: str
    enabled: bool = True


class SystemStatus(BaseModel):
    """Live status snapshot. Fields left as None are omitted from the prompt."""

    bot_name: str | None = None
    bot_tag: str | None = None
    connected: bool | None = None
    guild_count: int = 0
    model: str | None = None
    uptime_seconds: float | None = None
    heartbeat: HeartbeatStatus | None = None
    cron_jobs: list[CronJobStatus] = []


StatusProvider = Callable[[], SystemStatus | None]


class FactLimits(BaseModel):
    global_facts: int = 5
    user_facts: int = 10
    channel_facts: int = 10


def format_uptime(seconds: float) -> str:
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{hours}h {minutes}m"


def render_status(status: SystemStatus) -> str:
    lines = ["## System Status"]
    if status.bot_name:
        tag = f" ({status.bot_tag})" if status.bot_tag else ""
        lines.append(f"- **Bot**: {status.bot_name}{tag}")
    if status.connected is not None:
        state = "connected" if status.connected else "disconnected"
        lines.append(f"- **Discord**: {state}, {status.guild_count} guild(s)")
    if status.model:
        lines.append(f"- **Model**: {status.model}")
    if status.uptime_seconds is not None:
        lines.append(f"- **Uptime**: {format_uptime(status.uptime_seconds)}")
    if status.heartbeat is not None:
        state = "running" if status.heartbeat.running else "stopped"
        lines.append(f"- **Heartbeat**: {state}, {status.heartbeat.handlers} handler(s)")
    active = sum(1 for job in status.cron_jobs if job.enabled)
    if active:
        lines.append(f"- **Cron**: {active} active job(s)")

    if len(lines) == 1:
        return ""
    return "\n".join(lines)


def _fact_block(title: str, facts: list[MemoryFact], limit: int) -> list[str]:
    if not facts or limit <= 0:
        return []
    # Facts are stored oldest first
    shown = facts[-limit:]
    lines = [f"### {title}"]
    lines.extend(f"- {f.fact}" for f in shown)
    hidden = len(facts) - len(shown)
    if hidden > 0:
        lines.append(TRUNCATION_HINT.format(count=hidden))
    return lines


class PromptComposer:
    """Builds the system prompt for a request."""

    def __init__(
        self,
        base_prompt: str | None = None,
        registry: CapabilityRegistry | None = None,
        memory: ConversationMemory | None = None,
        facts: FactStore | None = None,
        status_provider: StatusProvider | None = None,
        limits: FactLimits | None = None,
    ):
        self.base_prompt = base_prompt or DEFAULT_BASE_PROMPT
        self.registry = registry
        self.memory = memory
        self.facts = facts
        self.status_provider = status_provider
        self.limits = limits or FactLimits()

    def compose(self, conversation_id: str | None = None, user_id: str | None = None) -> str:
        sections = [
            self.base_prompt,
            self._status_section(),
            self._inventory_section(),
            self._summary_section(conversation_id),
            self._memory_section(conversation_id, user_id),
        ]
        return "\n\n".join(s for s in sections if s)

    def _status_section(self) -> str:
        if self.status_provider is None:
            return ""
        try:
            status = self.status_provider()
        except Exception:
            logger.error("Prompt: status provider failed", exc_info=True)
            return ""
        if status is None:
            return ""
        return render_status(status)

    def _inventory_section(self) -> str:
        if self.registry is None:
            return ""
        tools = self.registry.tools()
        agents = self.registry.agents()
        if not tools and not agents:
            return ""

        lines = ["## Currently Available"]
        if tools:
            lines.append("\n### Tools")
            lines.extend(f"- **{t.name}** - {t.description}" for t in tools)
        if agents:
            lines.append("\n### Agents")
            lines.extend(f"- **{a.name}** - {a.description}" for a in agents)
        return "\n".join(lines)

    def _summary_section(self, conversation_id: str | None) -> str:
        if self.memory is None or conversation_id is None:
            return ""
        summary = self.memory.summary_for(conversation_id)
        if summary is None or not summary.text:
            return ""
        return f"## Conversation Summary\n{summary.text}"

    def _memory_section(self, conversation_id: str | None, user_id: str | None) -> str:
        if self.facts is None:
            return ""

        lines = _fact_block("Global", self.facts.get(GLOBAL_SCOPE), self.limits.global_facts)
        if user_id:
            lines += _fact_block(
                "About this user", self.facts.get(user_scope(user_id)), self.limits.user_facts
            )
        if conversation_id:
            lines += _fact_block(
                "About this channel",
                self.facts.get(channel_scope(conversation_id)),
                self.limits.channel_facts,
            )

        if not lines:
            return ""
        return "## Memory\n" + "\n".join(lines)
