"""Base error definitions for chat_dumpster."""

from typing import Any, Dict


class DumpsterError(Exception):
    """Base exception for all chat_dumpster errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context


class ConfigurationError(DumpsterError):
    """Configuration is invalid or missing."""
    pass
