"""Error taxonomy shared by the resolver, dispatcher and task commands."""
from __future__ import annotations

from enum import Enum
from typing import Optional

# Conventional shell status for "command not found".
TOOL_NOT_FOUND_EXIT_CODE = 127


class BuildToolError(Exception):
    """Base class for errors that terminate a build tool command."""

    exit_code: int = 1


class ConfigErrorKind(Enum):
    """Reasons a configuration cannot be resolved."""
    MISSING_FILE = "missing_file"
    MISSING_FIELD = "missing_field"


class ConfigError(BuildToolError):
    """The base configuration file is absent or a required field is empty."""

    def __init__(self, kind: ConfigErrorKind, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.field = field

    @classmethod
    def missing_file(cls, path: object) -> "ConfigError":
        return cls(ConfigErrorKind.MISSING_FILE, f"versions file not found at: {path}")

    @classmethod
    def missing_field(cls, name: str) -> "ConfigError":
        return cls(ConfigErrorKind.MISSING_FIELD, f"{name} not set", field=name)


class ValidationError(BuildToolError):
    """Invalid command-line usage or an unmet precondition."""


class ExternalToolError(BuildToolError):
    """An external binary exited non-zero or could not be found on PATH."""

    def __init__(self, tool: str, message: str, exit_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.tool = tool
        self.tool_missing = exit_code is None
        self.exit_code = TOOL_NOT_FOUND_EXIT_CODE if exit_code is None else exit_code

    @classmethod
    def not_found(cls, tool: str, hint: Optional[str] = None) -> "ExternalToolError":
        message = f"{tool} not found"
        if hint:
            message = f"{message}. {hint}"
        return cls(tool, message)
