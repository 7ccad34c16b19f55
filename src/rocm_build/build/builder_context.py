"""Idempotent management of the named buildx builder."""
from __future__ import annotations

import logging
from typing import Optional

from ..common.command_runner import CommandResult, CommandRunner
from ..common.errors import ExternalToolError


class BuilderContext:
    """Ensure a named docker buildx builder exists before building."""

    def __init__(
        self,
        name: str,
        command_runner: CommandRunner,
        driver: str = "docker-container",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.name = name
        self.driver = driver
        self.command_runner = command_runner
        self.logger = logger or logging.getLogger(__name__)

    def exists(self) -> bool:
        result = self.command_runner.run(["docker", "buildx", "inspect", self.name])
        if not result.tool_available:
            raise ExternalToolError.not_found("docker", "Install Docker with buildx support")
        return result.succeeded()

    def ensure(self) -> str:
        """
        Create the builder if missing and return its name.

        Check-then-create: if another process creates the builder between the
        check and the create, the "already exists" failure counts as success.
        """
        if self.exists():
            self.logger.debug("Builder %s already exists", self.name)
            return self.name

        self.logger.info("Creating buildx builder: %s", self.name)
        result = self.command_runner.run(
            ["docker", "buildx", "create", "--name", self.name, "--driver", self.driver, "--bootstrap"]
        )
        if result.succeeded():
            return self.name
        if self._already_exists(result) or (result.tool_available and self.exists()):
            self.logger.debug("Builder %s was created concurrently", self.name)
            return self.name

        if not result.tool_available:
            raise ExternalToolError.not_found("docker", "Install Docker with buildx support")
        raise ExternalToolError(
            "docker",
            f"Failed to create buildx builder {self.name}: {result.output or 'unknown error'}",
            exit_code=result.return_code,
        )

    def remove(self) -> bool:
        """Remove the builder; a missing builder is not an error."""
        result = self.command_runner.run(["docker", "buildx", "rm", self.name])
        if not result.succeeded():
            self.logger.debug("Builder %s not removed: %s", self.name, result.output)
        return result.succeeded()

    @staticmethod
    def _already_exists(result: CommandResult) -> bool:
        output = result.output.lower()
        return result.tool_available and ("already exists" in output or "existing instance" in output)
