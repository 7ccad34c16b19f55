"""Build timestamp and source revision lookup."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

from .models import BuildMetadata, UNKNOWN_REVISION

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def build_timestamp(now: Optional[datetime] = None) -> str:
    """Return the UTC build timestamp with second precision."""
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(TIMESTAMP_FORMAT)


def lookup_revision(source_dir: Union[str, Path] = ".") -> str:
    """
    Return the short hash of HEAD for the repository containing source_dir.

    Never raises: any failure (not a repository, no commits, git missing)
    yields the 'unknown' sentinel.
    """
    try:
        # GitPython refuses to import when no git executable is installed
        from git import Repo
        from git.exc import GitError
    except ImportError as exc:
        logger.debug("GitPython unavailable: %s", exc)
        return UNKNOWN_REVISION

    try:
        with Repo(source_dir, search_parent_directories=True) as repo:
            return repo.git.rev_parse("--short", "HEAD").strip() or UNKNOWN_REVISION
    except (GitError, ValueError, OSError) as exc:
        logger.debug("Could not determine source revision: %s", exc)
        return UNKNOWN_REVISION


def collect_metadata(
    *,
    source_dir: Union[str, Path] = ".",
    clock: Optional[Callable[[], datetime]] = None,
    revision_lookup: Callable[[Union[str, Path]], str] = lookup_revision,
) -> BuildMetadata:
    """Compute fresh build metadata for one invocation."""
    now = clock() if clock else None
    return BuildMetadata(
        timestamp=build_timestamp(now),
        revision_id=revision_lookup(source_dir),
    )
