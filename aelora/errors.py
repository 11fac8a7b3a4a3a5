"""Exception types raised by the Aelora runtime.

Only backend failures propagate out of a completion loop; capability failures,
malformed arguments and iteration exhaustion are turned into text instead.
"""

from __future__ import annotations


class AeloraError(Exception):
    """Base class for all Aelora errors."""


class ConfigError(AeloraError):
    """Raised when the settings file cannot be parsed or validated."""


class BackendError(AeloraError):
    """Raised when the model backend fails (network, API or protocol error)."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class BackendTimeoutError(BackendError):
    """Raised when a backend call exceeds the configured deadline."""

    def __init__(self, timeout: float, provider: str | None = None):
        super().__init__(f"Model backend did not respond within {timeout:g}s", provider)
        self.timeout = timeout


class CompactionError(AeloraError):
    """Raised when a summarization call produces no usable summary."""
