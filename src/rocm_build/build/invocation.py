"""Assemble the docker buildx argument vector from a resolved configuration."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from ..config.resolver import BUILD_DATE_KEY, VCS_REF_KEY, EffectiveConfig
from ..config.settings import BuildSettings
from .metadata import collect_metadata
from .models import BuildMetadata, Invocation, InvocationOptions, TagSet

logger = logging.getLogger(__name__)


def coerce_platform(requested: Optional[str], supported: str = "linux/amd64") -> str:
    """Map any requested platform onto the single supported one, warning on mismatch."""
    if requested and requested != supported:
        logger.warning("ROCm only supports %s platform, using %s (requested %s)", supported, supported, requested)
    return supported


class InvocationBuilder:
    """Build a docker buildx invocation without executing anything."""

    def __init__(
        self,
        settings: Optional[BuildSettings] = None,
        metadata_provider: Callable[[], BuildMetadata] = collect_metadata,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings or BuildSettings()
        self.metadata_provider = metadata_provider
        self.logger = logger or logging.getLogger(__name__)

    def build(self, config: EffectiveConfig, options: InvocationOptions) -> Invocation:
        """
        Assemble the invocation for the given configuration and options.

        Every value is its own argv element so that configuration content such as
        'gfx900; rm -rf /' reaches docker as one opaque token.

        Args:
            config: Resolved build configuration
            options: Caller intent (platform, push, no-cache, ...)

        Returns:
            Invocation with the argument vector, tags and metadata
        """
        metadata = self.metadata_provider()
        tags = TagSet.derive(self.settings.image_repo, config)
        platform = coerce_platform(options.platform, self.settings.supported_platform)

        if config.is_multi_target:
            self.logger.info("Multi-architecture build detected")
        else:
            self.logger.info("Single architecture build detected: %s", config.architectures)
            self.logger.info("Tags will be prefixed with: %s-", config.architectures)

        build_args = dict(config.as_build_args())
        build_args[BUILD_DATE_KEY] = metadata.timestamp
        build_args[VCS_REF_KEY] = metadata.revision_id

        argv: List[str] = [
            "docker", "buildx", "build",
            "--builder", self.settings.builder_name,
            "--platform", platform,
            "--file", self.settings.dockerfile,
        ]
        for key, value in build_args.items():
            argv.extend(["--build-arg", f"{key}={value}"])

        argv.extend(["--sbom=true", "--provenance=true"])

        for tag in tags:
            argv.extend(["-t", tag])

        if options.no_cache:
            argv.append("--no-cache")

        argv.append("--push" if options.push else "--load")

        # Build context is always the final positional argument
        argv.append(self.settings.build_context)

        return Invocation(
            argv=tuple(argv),
            config=config,
            metadata=metadata,
            tags=tags,
            platform=platform,
            dockerfile=self.settings.dockerfile,
        )
