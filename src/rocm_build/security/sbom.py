from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Callable, Optional

from ..common.command_runner import CommandRunner
from ..common.errors import ExternalToolError


class SbomGenerator:
    """Generate a JSON Software Bill of Materials with syft."""

    def __init__(
        self,
        command_runner: CommandRunner,
        which: Callable[[str], Optional[str]] = shutil.which,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.command_runner = command_runner
        self.which = which
        self.logger = logger or logging.getLogger(__name__)

    def generate(self, image: str, output_path: Path) -> Path:
        if not self.which("syft"):
            raise ExternalToolError.not_found("syft", "Install with: brew install syft")

        self.logger.info("Generating SBOM for %s...", image)
        result = self.command_runner.run(["syft", image, "-o", "json"])
        if not result.succeeded():
            raise ExternalToolError(
                "syft",
                f"SBOM generation failed: {result.output or 'unknown error'}",
                exit_code=result.return_code,
            )

        output_path = Path(output_path)
        output_path.write_text(result.stdout)
        self.logger.info("SBOM saved to %s", output_path)
        return output_path
