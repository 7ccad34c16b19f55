from __future__ import annotations

import argparse
import logging
import os
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Sequence

from ..build.builder_context import BuilderContext
from ..build.metadata import collect_metadata
from ..build.models import TagSet
from ..common.command_runner import CommandRunner
from ..common.errors import BuildToolError, ExternalToolError, ValidationError
from ..common.log_config import debug_enabled, setup_logging
from ..config.resolver import EffectiveConfig, resolve, update_versions_file
from ..config.settings import BuildSettings
from ..runtime.docker_images import ImageRuntime
from ..security.sbom import SbomGenerator
from ..security.scanner import ALL_SEVERITIES, HIGH_SEVERITIES, ImageScanner
from ..security.signer import ImageSigner

logger = logging.getLogger(__name__)

REQUIRED_BINARIES = ("docker", "git")


@dataclass
class TaskContext:
    """Collaborators shared by every task; replaced with fakes in tests."""

    settings: BuildSettings = field(default_factory=BuildSettings)
    command_runner: CommandRunner = field(default_factory=CommandRunner)
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)
    which: Callable[[str], Optional[str]] = shutil.which
    runtime: Optional[ImageRuntime] = None
    printer: Callable[[str], None] = print

    def config(self) -> EffectiveConfig:
        return resolve(self.settings.versions_file, self.environ)

    def tags(self) -> TagSet:
        return TagSet.derive(self.settings.image_repo, self.config())

    def default_image(self, image: Optional[str]) -> str:
        return image or self.tags().latest

    def image_runtime(self) -> ImageRuntime:
        if self.runtime is None:
            self.runtime = ImageRuntime()
        return self.runtime

    def builder(self) -> BuilderContext:
        return BuilderContext(self.settings.builder_name, self.command_runner, driver=self.settings.builder_driver)


def check_deps(args: argparse.Namespace, ctx: TaskContext) -> None:
    """Verify docker, git and docker buildx are installed."""
    logger.info("Checking dependencies...")
    missing = [binary for binary in REQUIRED_BINARIES if not ctx.which(binary)]
    if missing:
        raise ValidationError(f"Required but not installed: {', '.join(missing)}")

    if not ctx.command_runner.run(["docker", "buildx", "version"]).succeeded():
        raise ValidationError("docker buildx is required")
    logger.info("All required dependencies are installed")


def validate(args: argparse.Namespace, ctx: TaskContext) -> None:
    logger.info("Validating configuration...")
    ctx.config()
    if not Path(ctx.settings.dockerfile).is_file():
        raise ValidationError(f"{ctx.settings.dockerfile} not found")
    logger.info("Configuration valid")


def lint(args: argparse.Namespace, ctx: TaskContext) -> None:
    if not ctx.which("hadolint"):
        logger.info("hadolint not installed, skipping")
        return

    logger.info("Linting %s...", ctx.settings.dockerfile)
    result = ctx.command_runner.run(["hadolint", ctx.settings.dockerfile], capture=False)
    if not result.succeeded():
        raise ExternalToolError("hadolint", "Dockerfile lint failed", exit_code=result.return_code)


def scan(args: argparse.Namespace, ctx: TaskContext) -> None:
    ImageScanner(ctx.command_runner, which=ctx.which).scan(ctx.default_image(args.image), HIGH_SEVERITIES)


def scan_all(args: argparse.Namespace, ctx: TaskContext) -> None:
    """Deep scan with every severity level."""
    ImageScanner(ctx.command_runner, which=ctx.which).scan(ctx.default_image(args.image), ALL_SEVERITIES)


def sbom(args: argparse.Namespace, ctx: TaskContext) -> None:
    config = ctx.config()
    image = args.image or TagSet.derive(ctx.settings.image_repo, config).latest
    SbomGenerator(ctx.command_runner, which=ctx.which).generate(
        image, ctx.settings.sbom_path(config.llamacpp_version)
    )


def sign(args: argparse.Namespace, ctx: TaskContext) -> None:
    """Sign the image; it must already be pushed."""
    ImageSigner(ctx.command_runner, which=ctx.which).sign(ctx.default_image(args.image), key=args.key)


def verify(args: argparse.Namespace, ctx: TaskContext) -> None:
    ImageSigner(ctx.command_runner, which=ctx.which).verify(ctx.default_image(args.image), key=args.key)


def smoke_test(args: argparse.Namespace, ctx: TaskContext) -> None:
    ctx.image_runtime().smoke_test(ctx.default_image(args.image))


def clean(args: argparse.Namespace, ctx: TaskContext) -> None:
    logger.info("Removing local images...")
    ctx.image_runtime().remove_images(list(ctx.tags()))
    logger.info("Cleanup complete")


def clean_all(args: argparse.Namespace, ctx: TaskContext) -> None:
    """Remove local images, generated SBOMs and the buildx builder."""
    clean(args, ctx)

    logger.info("Removing build artifacts...")
    sbom_pattern = ctx.settings.sbom_file_template.format(version="*")
    for artifact in Path(".").glob(sbom_pattern):
        artifact.unlink()
        logger.debug("Removed %s", artifact)

    ctx.builder().remove()
    logger.info("Deep cleanup complete")


def update_versions(args: argparse.Namespace, ctx: TaskContext) -> None:
    """Write the current build date and revision into versions.env."""
    logger.info("Updating %s with current build info...", ctx.settings.versions_file)
    metadata = collect_metadata()
    updated = update_versions_file(ctx.settings.versions_file, metadata.timestamp, metadata.revision_id)
    if not updated:
        logger.warning("No BUILD_DATE or VCS_REF lines found in %s", ctx.settings.versions_file)


def version(args: argparse.Namespace, ctx: TaskContext) -> None:
    config = ctx.config()
    tags = TagSet.derive(ctx.settings.image_repo, config)
    metadata = collect_metadata()
    lines = [
        "ROCm llama.cpp Docker Image Version Information",
        "================================================",
        "",
        f"ROCm Version:      {config.rocm_version}",
        f"llama.cpp Version: {config.llamacpp_version}",
        f"ROCm Archs:        {config.architectures}",
        f"Image Repository:  {ctx.settings.image_repo}",
        f"Tags:              {tags.latest}, {tags.versioned}",
        "",
        "Build Information:",
        f"  Build Date:      {metadata.timestamp}",
        f"  VCS Revision:    {metadata.revision_id}",
        f"  Platform:        {ctx.settings.supported_platform}",
    ]
    for line in lines:
        ctx.printer(line)


TASKS: Dict[str, Callable[[argparse.Namespace, TaskContext], None]] = {
    "check-deps": check_deps,
    "validate": validate,
    "lint": lint,
    "scan": scan,
    "scan-all": scan_all,
    "sbom": sbom,
    "sign": sign,
    "verify": verify,
    "smoke-test": smoke_test,
    "clean": clean,
    "clean-all": clean_all,
    "update-versions": update_versions,
    "version": version,
}

# Tasks that operate on an image and accept an explicit reference
IMAGE_TASKS = ("scan", "scan-all", "sbom", "sign", "verify", "smoke-test")


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="rocm-build-tasks",
        description="Validation, security, cleanup and maintenance tasks for the ROCm llama.cpp image.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    subparsers = parser.add_subparsers(dest="task", required=True, metavar="TASK")
    for name, handler in TASKS.items():
        summary = (handler.__doc__ or "").strip().splitlines()[0] if handler.__doc__ else None
        task_parser = subparsers.add_parser(name, help=summary)
        if name in IMAGE_TASKS:
            task_parser.add_argument(
                "image",
                nargs="?",
                default=None,
                help="Image reference (default: the latest tag derived from versions.env).",
            )
        if name in ("sign", "verify"):
            task_parser.add_argument("--key", default=None, help="cosign key (private for sign, public for verify).")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None, ctx: Optional[TaskContext] = None) -> int:
    """Entry point for the task runner."""
    args = parse_args(argv if argv is not None else sys.argv[1:])
    setup_logging(args.verbose or debug_enabled())

    try:
        TASKS[args.task](args, ctx or TaskContext())
    except BuildToolError as exc:
        logger.error("%s", exc)
        return exc.exit_code

    return 0


if __name__ == "__main__":
    sys.exit(main())
