from .agent import Agent, AgentRunOptions
from .loop import MAX_DEPTH_REACHED, NO_RESPONSE, CompletionLoop, LoopResult, LoopState

__all__ = [
    "Agent",
    "AgentRunOptions",
    "CompletionLoop",
    "LoopResult",
    "LoopState",
    "MAX_DEPTH_REACHED",
    "NO_RESPONSE",
]
