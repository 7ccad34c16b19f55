"""Invocation building and dispatch for docker buildx."""

from .builder_context import BuilderContext
from .dispatcher import BuildDispatcher, confirm
from .invocation import InvocationBuilder, coerce_platform
from .metadata import build_timestamp, collect_metadata, lookup_revision
from .models import (
    BuildMetadata,
    ExitOutcome,
    Invocation,
    InvocationOptions,
    OutcomeStatus,
    TagSet,
    UNKNOWN_REVISION,
)

__all__ = [
    "BuilderContext",
    "BuildDispatcher",
    "BuildMetadata",
    "ExitOutcome",
    "Invocation",
    "InvocationBuilder",
    "InvocationOptions",
    "OutcomeStatus",
    "TagSet",
    "UNKNOWN_REVISION",
    "build_timestamp",
    "coerce_platform",
    "collect_metadata",
    "confirm",
    "lookup_revision",
]
