from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence


@dataclass(slots=True)
class CommandResult:
    """Represents the outcome of an external command execution."""

    command: Sequence[str]
    return_code: Optional[int]
    stdout: str
    stderr: str
    duration: float
    tool_available: bool
    exception: Optional[BaseException] = None

    def succeeded(self) -> bool:
        """Return True when the command finished successfully."""
        return self.return_code == 0 and self.tool_available

    @property
    def output(self) -> str:
        """Combined captured output, stderr first since tools report failures there."""
        return (self.stderr.strip() + "\n" + self.stdout.strip()).strip()


class CommandRunner:
    """Thin wrapper over subprocess that captures execution metadata.

    Commands are always passed to the OS as an argument vector, never through a
    shell, so argument values are never interpreted.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        capture: bool = True,
    ) -> CommandResult:
        """Execute a command and return its exit status, output and timing.

        With ``capture=False`` the child inherits the terminal and stdout/stderr
        are left empty on the result; used for long builds whose progress the
        user needs to see.
        """
        start = time.time()
        try:
            self.logger.debug("Executing command: %s (cwd=%s)", " ".join(command), cwd)
            completed = subprocess.run(
                list(command),
                capture_output=capture,
                text=True,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env else None,
            )
            duration = time.time() - start
            return CommandResult(
                command=command,
                return_code=completed.returncode,
                stdout=completed.stdout or "",
                stderr=completed.stderr or "",
                duration=duration,
                tool_available=True,
            )
        except FileNotFoundError as exc:
            duration = time.time() - start
            self.logger.error("Command not found: %s", command[0])
            return CommandResult(
                command=command,
                return_code=None,
                stdout="",
                stderr=f"Command not found: {command[0]}",
                duration=duration,
                tool_available=False,
                exception=exc,
            )
