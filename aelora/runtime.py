"""Runtime: the entry points a chat front end calls.

The runtime owns the registry, conversation memory, prompt composer and
completion loop, and serializes turns within each conversation.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable
from typing import Any

from .agents.agent import AgentRunOptions
from .agents.loop import CompletionLoop
from .channels.channel import Channel
from .channels.discord import DiscordChannel, DiscordChannelConfig
from .config import Settings
from .errors import BackendError
from .llm.providers.base import LLMProvider, get_provider
from .memory.compaction import Summarizer
from .memory.conversation import ConversationMemory, SummaryStore
from .memory.extraction import FactExtractor
from .memory.facts import FactStore
from .prompt import FactLimits, PromptComposer, StatusProvider
from .tools.builtin import BuiltinDeps, create_builtins
from .tools.registry import CapabilityRegistry, ToggleResult, ToggleStore

logger = logging.getLogger(__name__)


class Runtime:
    """
    Conversational runtime.

    Turns for the same conversation id run one at a time; different
    conversations run concurrently.
    """

    def __init__(
        self,
        loop: CompletionLoop,
        memory: ConversationMemory,
        composer: PromptComposer,
        extractor: FactExtractor | None = None,
        compaction_min_queue: int = 10,
        channel: Channel | None = None,
    ):
        self.loop = loop
        self.registry = loop.registry
        self.memory = memory
        self.composer = composer
        self.extractor = extractor
        self.compaction_min_queue = compaction_min_queue
        self.channel = channel
        # Entries vanish once no turn holds or waits on the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._background: set[asyncio.Task] = set()

    def _lock_for(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = self._locks[conversation_id] = asyncio.Lock()
        return lock

    async def respond(
        self,
        conversation_id: str,
        user_content: Any,
        on_token: Callable[[str], Any] | None = None,
        user_id: str | None = None,
    ) -> str:
        """
        Answer a user message within a conversation.

        The user turn and the reply are added to history; on a backend failure
        the user turn is rolled back and the error re-raised.

        Raises:
            BackendError: If the model backend fails or times out
        """
        async with self._lock_for(conversation_id):
            user_turn = {"role": "user", "content": user_content}
            self.memory.append(conversation_id, user_turn)
            self.memory.trim(conversation_id)

            messages = [
                {
                    "role": "system",
                    "content": self.composer.compose(conversation_id, user_id),
                },
                *self.memory.history_for(conversation_id),
            ]

            try:
                result = await self.loop.run(
                    messages,
                    self.registry.definitions_for(),
                    conversation_id=conversation_id,
                    user_id=user_id,
                    on_token=on_token,
                )
            except BackendError:
                self.memory.pop_last(conversation_id, user_turn)
                raise

            self.memory.append(conversation_id, {"role": "assistant", "content": result.text})
            self.memory.trim(conversation_id)

        if self.extractor is not None and isinstance(user_content, str):
            self.extractor.track_message(conversation_id)
            self._spawn(
                self.extractor.extract(user_content, result.text, conversation_id, user_id)
            )
        return result.text

    async def respond_once(
        self, prompt: str, on_token: Callable[[str], Any] | None = None
    ) -> str:
        """Answer a single prompt without touching conversation memory."""
        messages = [
            {"role": "system", "content": self.composer.compose()},
            {"role": "user", "content": prompt},
        ]
        result = await self.loop.run(messages, self.registry.definitions_for(), on_token=on_token)
        return result.text

    async def run_agent(self, options: AgentRunOptions) -> str:
        return await self.loop.run_agent(options)

    async def clear(self, conversation_id: str) -> None:
        """Drop the active history once any in-flight turn has finished."""
        async with self._lock_for(conversation_id):
            self.memory.clear(conversation_id)

    async def reset(self, conversation_id: str) -> None:
        """Forget the conversation once any in-flight turn has finished."""
        async with self._lock_for(conversation_id):
            self.memory.reset(conversation_id)

    async def compact_pending(self, min_queue_size: int | None = None) -> int:
        return await self.memory.compact_pending(
            min_queue_size if min_queue_size is not None else self.compaction_min_queue
        )

    def toggle(self, name: str) -> ToggleResult:
        return self.registry.toggle(name)

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Wait for background work (fact extraction) to finish."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def aclose(self) -> None:
        """Finish background work and release the outbound channel."""
        await self.drain()
        if self.channel is not None:
            await self.channel.aclose()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        provider: LLMProvider | None = None,
        status_provider: StatusProvider | None = None,
        channel: Channel | None = None,
    ) -> Runtime:
        """Wire a runtime from settings and the builtin capability table."""
        llm = settings.llm
        mem = settings.memory
        data_path = settings.data_path

        if provider is None:
            provider = get_provider(llm.provider, api_key=llm.api_key, base_url=llm.base_url)
        if channel is None and settings.discord.bot_token:
            channel = DiscordChannel(DiscordChannelConfig(bot_token=settings.discord.bot_token))

        facts = FactStore(data_path / "memory.json")
        registry = CapabilityRegistry(ToggleStore(data_path / "toggles.json"))
        registry.register_all(create_builtins(BuiltinDeps(settings=settings, facts=facts)))
        registry.apply_overrides()

        summarizer = Summarizer(
            provider,
            llm.model,
            max_summary_chars=mem.max_summary_chars,
            max_transcript_tokens=mem.max_transcript_tokens,
            timeout=llm.timeout,
        )
        memory = ConversationMemory(
            max_history=llm.max_history,
            summarizer=summarizer,
            summary_store=SummaryStore(data_path / "summaries.json"),
        )
        composer = PromptComposer(
            base_prompt=llm.system_prompt,
            registry=registry,
            memory=memory,
            facts=facts,
            status_provider=status_provider,
            limits=FactLimits(
                global_facts=mem.global_facts_limit,
                user_facts=mem.user_facts_limit,
                channel_facts=mem.channel_facts_limit,
            ),
        )
        loop = CompletionLoop(
            provider,
            registry,
            llm.model,
            max_tokens=llm.max_tokens,
            timeout=llm.timeout,
            default_max_iterations=llm.max_iterations,
            agent_max_iterations=settings.agents.max_iterations,
            send_to_channel=channel.send if channel is not None else None,
        )
        extractor = None
        if mem.extract_facts:
            extractor = FactExtractor(
                provider,
                llm.model,
                facts,
                cooldown=mem.extraction_cooldown,
                min_messages=mem.extraction_min_messages,
                timeout=llm.timeout,
            )

        return cls(
            loop,
            memory,
            composer,
            extractor=extractor,
            compaction_min_queue=mem.compaction_min_queue,
            channel=channel,
        )
