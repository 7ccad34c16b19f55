"""Process execution, error types and logging helpers shared across the tool."""

from .command_runner import CommandResult, CommandRunner
from .errors import (
    BuildToolError,
    ConfigError,
    ConfigErrorKind,
    ExternalToolError,
    ValidationError,
    TOOL_NOT_FOUND_EXIT_CODE,
)

__all__ = [
    "CommandResult",
    "CommandRunner",
    "BuildToolError",
    "ConfigError",
    "ConfigErrorKind",
    "ExternalToolError",
    "ValidationError",
    "TOOL_NOT_FOUND_EXIT_CODE",
]
