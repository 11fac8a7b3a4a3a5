__version__ = "0.1.0"

from .agents import (
    Agent,
    AgentRunOptions,
    CompletionLoop,
    LoopResult,
    LoopState,
)
from .channels import Channel, DiscordChannel, DiscordChannelConfig
from .config import Settings, load_settings
from .errors import AeloraError, BackendError, BackendTimeoutError, CompactionError, ConfigError
from .llm.providers import LLMProvider, LLMResponse, get_provider, register_provider
from .memory import ConversationMemory, FactExtractor, FactStore, Summarizer
from .prompt import PromptComposer, SystemStatus
from .runtime import Runtime
from .tools import (
    CallContext,
    Capability,
    CapabilityRegistry,
    Tool,
    ToolOutput,
    tool,
)

__all__ = [
    "AeloraError",
    "Agent",
    "AgentRunOptions",
    "BackendError",
    "BackendTimeoutError",
    "CallContext",
    "Capability",
    "CapabilityRegistry",
    "Channel",
    "CompactionError",
    "CompletionLoop",
    "ConfigError",
    "ConversationMemory",
    "DiscordChannel",
    "DiscordChannelConfig",
    "FactExtractor",
    "FactStore",
    "LLMProvider",
    "LLMResponse",
    "LoopResult",
    "LoopState",
    "PromptComposer",
    "Runtime",
    "Settings",
    "Summarizer",
    "SystemStatus",
    "Tool",
    "ToolOutput",
    "get_provider",
    "load_settings",
    "register_provider",
    "tool",
]
