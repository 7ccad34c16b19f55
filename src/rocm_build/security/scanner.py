"""Vulnerability scanning with trivy, falling back to grype."""
from __future__ import annotations

import logging
import shutil
from typing import Callable, List, Optional, Sequence

from ..common.command_runner import CommandRunner
from ..common.errors import ExternalToolError

HIGH_SEVERITIES: Sequence[str] = ("HIGH", "CRITICAL")
ALL_SEVERITIES: Sequence[str] = ("UNKNOWN", "LOW", "MEDIUM", "HIGH", "CRITICAL")

SCANNERS: Sequence[str] = ("trivy", "grype")


class ImageScanner:
    """Run the first available vulnerability scanner against an image."""

    def __init__(
        self,
        command_runner: CommandRunner,
        which: Callable[[str], Optional[str]] = shutil.which,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.command_runner = command_runner
        self.which = which
        self.logger = logger or logging.getLogger(__name__)

    def detect_tool(self) -> str:
        for tool in SCANNERS:
            if self.which(tool):
                return tool
        raise ExternalToolError.not_found(
            "trivy or grype",
            "No security scanner found. Install with: brew install trivy",
        )

    def build_command(self, tool: str, image: str, severities: Sequence[str]) -> List[str]:
        if tool == "trivy":
            return ["trivy", "image", "--severity", ",".join(severities), image]
        # grype has no severity filter equivalent; it reports everything
        return ["grype", image]

    def scan(self, image: str, severities: Sequence[str] = HIGH_SEVERITIES) -> None:
        """
        Scan an image, streaming the report to the terminal.

        Raises:
            ExternalToolError: If no scanner is installed or the scan exits non-zero
        """
        tool = self.detect_tool()
        self.logger.info("Scanning image for vulnerabilities: %s", image)
        self.logger.info("Using %s for security scan...", tool)

        result = self.command_runner.run(self.build_command(tool, image, severities), capture=False)
        if not result.tool_available:
            raise ExternalToolError.not_found(tool)
        if not result.succeeded():
            raise ExternalToolError(
                tool,
                f"Security scan of {image} failed with exit code {result.return_code}",
                exit_code=result.return_code,
            )
