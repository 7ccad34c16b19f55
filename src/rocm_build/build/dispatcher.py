"""Execute (or print) an assembled build invocation and run trailing steps."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ..common.command_runner import CommandRunner
from ..common.errors import ExternalToolError
from ..config.settings import BuildSettings
from ..security.scanner import ImageScanner
from ..security.signer import ImageSigner
from .builder_context import BuilderContext
from .models import ExitOutcome, Invocation, InvocationOptions, OutcomeStatus

CONFIRM_PROMPT = "Continue? [y/N] "
AFFIRMATIVE_REPLIES = frozenset({"y", "yes"})

# Shell convention for a child killed by signal N
SIGNAL_EXIT_BASE = 128


def confirm(prompt: str = CONFIRM_PROMPT, reader: Callable[[str], str] = input) -> bool:
    """Ask a yes/no question; anything but an explicit yes (including EOF or Ctrl-C) means no."""
    try:
        reply = reader(prompt)
    except (EOFError, KeyboardInterrupt):
        return False
    return reply.strip().lower() in AFFIRMATIVE_REPLIES


def exit_status(return_code: int) -> int:
    """Map a subprocess return code to a process exit status; signal deaths become 128 + N."""
    if return_code < 0:
        return SIGNAL_EXIT_BASE + abs(return_code)
    return return_code


class BuildDispatcher:
    """
    Run a build invocation through its lifecycle.

    Dry run prints the command and stops. A push asks for confirmation
    first. Otherwise the buildx builder is ensured, the build runs with its
    output streamed, and its exit status is returned unchanged. Scan and
    sign run afterwards only for successful, non-dry-run builds, and their
    failures are recorded as warnings without changing the exit status.
    """

    def __init__(
        self,
        command_runner: CommandRunner,
        settings: Optional[BuildSettings] = None,
        confirm_push: Callable[[], bool] = confirm,
        printer: Callable[[str], None] = print,
        scanner: Optional[ImageScanner] = None,
        signer: Optional[ImageSigner] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.command_runner = command_runner
        self.settings = settings or BuildSettings()
        self.confirm_push = confirm_push
        self.printer = printer
        self.scanner = scanner or ImageScanner(command_runner)
        self.signer = signer or ImageSigner(command_runner)
        self.logger = logger or logging.getLogger(__name__)
        self.builder = BuilderContext(
            self.settings.builder_name,
            command_runner,
            driver=self.settings.builder_driver,
            logger=self.logger,
        )

    def dispatch(self, invocation: Invocation, options: InvocationOptions) -> ExitOutcome:
        self.log_summary(invocation)

        if options.dry_run:
            self.logger.info("DRY RUN - Command that would be executed:")
            self.printer(invocation.render())
            return ExitOutcome(status=OutcomeStatus.DRY_RUN)

        if options.push:
            self.logger.warning("Push enabled - image will be published to Docker Hub")
            if not self.confirm_push():
                self.logger.info("Build cancelled")
                return ExitOutcome(status=OutcomeStatus.CANCELLED)

        self.builder.ensure()

        self.logger.info("Starting build...")
        result = self.command_runner.run(invocation.argv, capture=False)
        if not result.tool_available:
            raise ExternalToolError.not_found(invocation.argv[0], "Install Docker with buildx support")
        if not result.succeeded():
            self.logger.error("Build failed with exit code: %s", result.return_code)
            return ExitOutcome(status=OutcomeStatus.FAILED, exit_code=exit_status(result.return_code))

        self.logger.info("Build completed successfully in %.1fs", result.duration)
        outcome = ExitOutcome(status=OutcomeStatus.SUCCEEDED)

        if options.run_scan:
            self._trailing_step("scan", lambda: self.scanner.scan(invocation.tags.latest), outcome)
        if options.run_sign:
            self._trailing_step("sign", lambda: self.signer.sign(invocation.tags.latest), outcome)

        return outcome

    def _trailing_step(self, name: str, step: Callable[[], None], outcome: ExitOutcome) -> None:
        try:
            step()
        except ExternalToolError as exc:
            self.logger.warning("Post-build %s failed: %s", name, exc)
            outcome.warnings.append(f"{name}: {exc}")

    def log_summary(self, invocation: Invocation) -> None:
        config = invocation.config
        self.logger.info("Build Configuration:")
        self.logger.info("  Platform:          %s", invocation.platform)
        self.logger.info("  Dockerfile:        %s", invocation.dockerfile)
        self.logger.info("  ROCm Version:      %s", config.rocm_version)
        self.logger.info("  llama.cpp Version: %s", config.llamacpp_version)
        self.logger.info("  ROCm Archs:        %s", config.architectures)
        self.logger.info("  Build Date:        %s", invocation.metadata.timestamp)
        self.logger.info("  VCS Ref:           %s", invocation.metadata.revision_id)
        self.logger.info("  Tags:")
        for tag in invocation.tags:
            self.logger.info("    - %s", tag)
        self.logger.info("  SBOM:              enabled")
        self.logger.info("  Provenance:        enabled")

        self.logger.warning("This build will take a LONG time (30+ minutes) due to:")
        self.logger.warning("  - Large ROCm base image download")
        self.logger.warning("  - Compilation for multiple GPU architectures")
        self.logger.warning("  - llama.cpp build with HIP/ROCm support")
