"""Common utilities for chat_dumpster."""

from .config import ConfigLoader
from .config_utils import expand_path_variables
from .logging import setup_logging, LogContext
from .logging_config import LoggingConfig
from .errors import DumpsterError, ConfigurationError
from .path_utils import (
    is_safe_member_path,
    sanitize_title,
    sanitize_dumpster_name,
)

__all__ = [
    'ConfigLoader',
    'LoggingConfig',
    'expand_path_variables',
    'setup_logging',
    'LogContext',
    'DumpsterError',
    'ConfigurationError',
    'is_safe_member_path',
    'sanitize_title',
    'sanitize_dumpster_name',
]
