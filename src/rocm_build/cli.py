"""Command-line entry point: build the ROCm llama.cpp image with docker buildx."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Mapping, Optional, Sequence

from .build.dispatcher import BuildDispatcher
from .build.invocation import InvocationBuilder
from .build.models import InvocationOptions, OutcomeStatus
from .common.command_runner import CommandRunner
from .common.errors import BuildToolError, ValidationError
from .common.log_config import debug_enabled, setup_logging
from .config.resolver import resolve
from .config.settings import BuildSettings

logger = logging.getLogger(__name__)

EPILOG = """\
examples:
  rocm-build                 build for AMD64 (the only supported platform)
  rocm-build --push          build and push (asks for confirmation)
  rocm-build --scan          build, then run a security scan
  rocm-build --dry-run       show the build command without executing it

environment:
  ROCM_VERSION, LLAMACPP_VERSION, LLAMACPP_ROCM_ARCH
                             override the values in versions.env
  ROCM_BUILD_VERSIONS_FILE   location of versions.env (default: ./versions.env)
  DEBUG=true                 enable debug output

Building this image takes a LONG time due to compilation for
multiple AMD GPU architectures (gfx803, gfx900, gfx906, etc.)
"""


class _UsageParser(argparse.ArgumentParser):
    """ArgumentParser that reports bad usage as a ValidationError instead of exiting with 2."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_help(sys.stderr)
        raise ValidationError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _UsageParser(
        prog="rocm-build",
        description="Build ROCm llama.cpp Docker image with AMD GPU support.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    parser.add_argument(
        "--platform",
        default="linux/amd64",
        help="Platform to build (default: linux/amd64). ROCm only supports AMD64.",
    )
    parser.add_argument("--push", action="store_true", help="Push image to registry after build.")
    parser.add_argument("--no-cache", action="store_true", help="Build without using cache.")
    parser.add_argument("--dry-run", action="store_true", help="Show build command without executing.")
    parser.add_argument("--scan", action="store_true", help="Run security scan after build.")
    parser.add_argument("--sign", action="store_true", help="Sign image with cosign after build.")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> InvocationOptions:
    """Parse command-line flags into invocation options. --help exits immediately."""
    args = build_parser().parse_args(argv)
    return InvocationOptions(
        platform=args.platform,
        push=args.push,
        no_cache=args.no_cache,
        dry_run=args.dry_run,
        scan=args.scan,
        sign=args.sign,
    )


def run_build(
    options: InvocationOptions,
    *,
    settings: Optional[BuildSettings] = None,
    environ: Optional[Mapping[str, str]] = None,
    builder: Optional[InvocationBuilder] = None,
    dispatcher: Optional[BuildDispatcher] = None,
) -> int:
    """
    Resolve the configuration, build the invocation and dispatch it.

    Returns:
        Process exit code: 0 on success, dry run or cancelled push; the build
        tool's own status when the build fails

    Raises:
        BuildToolError: On configuration errors or a missing build tool
    """
    settings = settings or BuildSettings()
    environ = os.environ if environ is None else environ

    config = resolve(settings.versions_file, environ)
    invocation = (builder or InvocationBuilder(settings)).build(config, options)
    outcome = (dispatcher or BuildDispatcher(CommandRunner(), settings)).dispatch(invocation, options)

    if outcome.status is OutcomeStatus.FAILED:
        return outcome.exit_code
    if outcome.status is OutcomeStatus.CANCELLED:
        return 0

    for warning in outcome.warnings:
        logger.warning("Completed with warning: %s", warning)
    logger.info("All operations completed successfully")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the build command."""
    setup_logging(debug_enabled())
    logger.info("ROCm llama.cpp Docker Build Script")

    try:
        options = parse_args(argv if argv is not None else sys.argv[1:])
        return run_build(options)
    except BuildToolError as exc:
        logger.error("%s", exc)
        return exc.exit_code


if __name__ == "__main__":
    sys.exit(main())
