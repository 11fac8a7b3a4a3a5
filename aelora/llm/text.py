"""Cleanup of raw model output."""

import re

_THINK_BLOCK = re.compile(r"<think>.*?</think>\s*", re.DOTALL)
_UNCLOSED_THINK = re.compile(r"<think>.*$", re.DOTALL)


def strip_think_blocks(text: str) -> str:
    """Remove ``<think>...</think>`` reasoning blocks, including an unterminated trailing one."""
    return _UNCLOSED_THINK.sub("", _THINK_BLOCK.sub("", text)).strip()
