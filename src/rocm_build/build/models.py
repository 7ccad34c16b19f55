"""Data models for build invocations and their outcomes."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Tuple

from ..config.resolver import EffectiveConfig

UNKNOWN_REVISION = "unknown"


@dataclass(frozen=True, slots=True)
class BuildMetadata:
    """Per-invocation build metadata; generated fresh and never persisted."""

    timestamp: str
    revision_id: str = UNKNOWN_REVISION


@dataclass(frozen=True, slots=True)
class TagSet:
    """
    The two image tags produced by every build.

    Single-target builds prefix both tags with the architecture
    (gfx1151-latest, gfx1151-<version>); multi-target builds do not
    (latest, <version>). Scan, sign, sbom and cleanup all read their
    default image from here.
    """

    latest: str
    versioned: str

    @classmethod
    def derive(cls, image_repo: str, config: EffectiveConfig) -> "TagSet":
        prefix = "" if config.is_multi_target else f"{config.architectures}-"
        return cls(
            latest=f"{image_repo}:{prefix}latest",
            versioned=f"{image_repo}:{prefix}{config.llamacpp_version}",
        )

    def __iter__(self) -> Iterator[str]:
        yield self.latest
        yield self.versioned


@dataclass(slots=True)
class InvocationOptions:
    """Caller intent for a single run of the build command."""

    platform: str = "linux/amd64"
    push: bool = False
    no_cache: bool = False
    dry_run: bool = False
    scan: bool = False
    sign: bool = False

    @property
    def run_scan(self) -> bool:
        return self.scan and not self.dry_run

    @property
    def run_sign(self) -> bool:
        return self.sign and not self.dry_run


@dataclass(frozen=True, slots=True)
class Invocation:
    """A fully assembled, not yet executed, build command."""

    argv: Tuple[str, ...]
    config: EffectiveConfig
    metadata: BuildMetadata
    tags: TagSet
    platform: str
    dockerfile: str

    def render(self) -> str:
        """Human readable single-line form, for display only."""
        return " ".join(self.argv)


class OutcomeStatus(Enum):
    """Terminal states of a dispatch."""
    DRY_RUN = "dry_run"
    CANCELLED = "cancelled"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class ExitOutcome:
    """Result of dispatching an invocation."""

    status: OutcomeStatus
    exit_code: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.exit_code == 0
