"""Build settings and versions.env resolution."""

from .resolver import (
    EffectiveConfig,
    VERSION_KEYS,
    load_base_file,
    resolve,
    update_versions_file,
)
from .settings import BuildSettings

__all__ = [
    "BuildSettings",
    "EffectiveConfig",
    "VERSION_KEYS",
    "load_base_file",
    "resolve",
    "update_versions_file",
]
