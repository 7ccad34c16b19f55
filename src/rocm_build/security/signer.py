"""Image signing and signature verification with cosign."""
from __future__ import annotations

import logging
import re
import shutil
from typing import Callable, List, Optional

from ..common.command_runner import CommandRunner
from ..common.errors import ExternalToolError

COSIGN_INSTALL_HINT = "Install with: brew install cosign"
_GIT_VERSION_RE = re.compile(r"GitVersion:\s*v?(\d+)")


def parse_cosign_major_version(output: str) -> Optional[int]:
    """Extract the major version from `cosign version` output."""
    match = _GIT_VERSION_RE.search(output)
    return int(match.group(1)) if match else None


class ImageSigner:
    """Sign and verify images with cosign."""

    def __init__(
        self,
        command_runner: CommandRunner,
        which: Callable[[str], Optional[str]] = shutil.which,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.command_runner = command_runner
        self.which = which
        self.logger = logger or logging.getLogger(__name__)

    def _require_cosign(self) -> None:
        if not self.which("cosign"):
            raise ExternalToolError.not_found("cosign", COSIGN_INSTALL_HINT)

    def major_version(self) -> Optional[int]:
        result = self.command_runner.run(["cosign", "version"])
        if not result.tool_available:
            raise ExternalToolError.not_found("cosign", COSIGN_INSTALL_HINT)
        return parse_cosign_major_version(result.stdout + "\n" + result.stderr)

    def sign_command(self, image: str, key: Optional[str], major_version: Optional[int]) -> List[str]:
        """
        Build the cosign sign command.

        Keyless signing needs cosign v2; v1 can only sign with an explicit key.
        """
        v2 = major_version is not None and major_version >= 2
        if not key and not v2:
            raise ExternalToolError(
                "cosign",
                "cosign v1.x does not support keyless signing. Either upgrade to cosign v2.x "
                "(brew upgrade cosign) or generate a key pair with 'cosign generate-key-pair' "
                f"and sign with: cosign sign --key cosign.key {image}",
                exit_code=1,
            )
        command = ["cosign", "sign"]
        if v2:
            command.append("--yes")
        if key:
            command.extend(["--key", key])
        command.append(image)
        return command

    def sign(self, image: str, key: Optional[str] = None) -> None:
        self._require_cosign()
        command = self.sign_command(image, key, self.major_version())

        self.logger.info("Signing image: %s", image)
        result = self.command_runner.run(command, capture=False)
        if not result.succeeded():
            raise ExternalToolError(
                "cosign",
                f"Signing {image} failed with exit code {result.return_code}",
                exit_code=result.return_code,
            )

    def verify(self, image: str, key: Optional[str] = None) -> None:
        self._require_cosign()
        command = ["cosign", "verify"]
        if key:
            command.extend(["--key", key])
        command.append(image)

        self.logger.info("Verifying image signature: %s", image)
        result = self.command_runner.run(command, capture=False)
        if not result.succeeded():
            raise ExternalToolError(
                "cosign",
                f"Signature verification of {image} failed with exit code {result.return_code}",
                exit_code=result.return_code,
            )
