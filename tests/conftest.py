"""Shared fixtures: a recording command runner and a versions.env on disk."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import pytest

from rocm_build.build.models import BuildMetadata
from rocm_build.common.command_runner import CommandResult, CommandRunner

FIXED_METADATA = BuildMetadata(timestamp="2025-01-02T03:04:05Z", revision_id="abc1234")

VERSIONS_ENV = """\
# test versions
ROCM_VERSION=7.1-complete
LLAMACPP_VERSION=b7079
LLAMACPP_ROCM_ARCH=gfx900,gfx906
BUILD_DATE=
VCS_REF=
"""


def make_result(
    command: Sequence[str],
    return_code: Optional[int] = 0,
    *,
    stdout: str = "",
    stderr: str = "",
    tool_available: bool = True,
) -> CommandResult:
    """Helper to create a command result without running anything."""
    return CommandResult(
        command=list(command),
        return_code=return_code,
        stdout=stdout,
        stderr=stderr,
        duration=0.01,
        tool_available=tool_available,
    )


Response = Union[CommandResult, Callable[[Sequence[str]], CommandResult]]


class FakeCommandRunner(CommandRunner):
    """Records every command; answers from prefix-matched scripted responses, else succeeds."""

    def __init__(self, responses: Optional[Dict[Tuple[str, ...], Response]] = None) -> None:
        super().__init__()
        self.responses = dict(responses or {})
        self.calls: List[List[str]] = []
        self.capture_flags: List[bool] = []

    def run(self, command, *, cwd=None, env=None, capture=True) -> CommandResult:  # type: ignore[override]
        self.calls.append(list(command))
        self.capture_flags.append(capture)
        for prefix, response in self.responses.items():
            if tuple(command[: len(prefix)]) == prefix:
                return response(command) if callable(response) else response
        return make_result(command, 0)

    def called(self, *prefix: str) -> bool:
        return any(tuple(call[: len(prefix)]) == prefix for call in self.calls)


@pytest.fixture
def runner() -> FakeCommandRunner:
    return FakeCommandRunner()


@pytest.fixture
def versions_file(tmp_path: Path) -> Path:
    path = tmp_path / "versions.env"
    path.write_text(VERSIONS_ENV)
    return path
