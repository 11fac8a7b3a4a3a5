"""Model backend access: providers, deadline-bounded calls and stream reassembly."""

from .generate import llm_generate, llm_stream
from .providers import LLMProvider, LLMResponse, get_provider, register_provider
from .stream import StreamedMessage, ToolCallAccumulator, collect_stream
from .text import strip_think_blocks

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "StreamedMessage",
    "ToolCallAccumulator",
    "collect_stream",
    "get_provider",
    "llm_generate",
    "llm_stream",
    "register_provider",
    "strip_think_blocks",
]
