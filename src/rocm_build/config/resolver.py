"""Resolve versions.env plus caller overrides into a validated build configuration."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field

from ..common.errors import ConfigError

logger = logging.getLogger(__name__)

ROCM_VERSION_KEY = "ROCM_VERSION"
LLAMACPP_VERSION_KEY = "LLAMACPP_VERSION"
ROCM_ARCH_KEY = "LLAMACPP_ROCM_ARCH"

# Validation order is significant: the first empty field is the one reported.
VERSION_KEYS: Tuple[str, ...] = (ROCM_VERSION_KEY, LLAMACPP_VERSION_KEY, ROCM_ARCH_KEY)

BUILD_DATE_KEY = "BUILD_DATE"
VCS_REF_KEY = "VCS_REF"

ARCH_SEPARATOR = ","


class EffectiveConfig(BaseModel):
    """Resolved build configuration; constructed once and passed explicitly."""

    model_config = ConfigDict(frozen=True)

    rocm_version: str = Field(min_length=1, description="Tag of the ROCm base runtime image.")
    llamacpp_version: str = Field(min_length=1, description="llama.cpp tag, branch or commit to embed.")
    target_architectures: Tuple[str, ...] = Field(
        min_length=1,
        description="GPU compilation targets, in the order given by the configuration.",
    )

    @classmethod
    def from_values(cls, rocm_version: str, llamacpp_version: str, architectures: str) -> "EffectiveConfig":
        """Build a config from the serialized comma-separated architecture list."""
        return cls(
            rocm_version=rocm_version,
            llamacpp_version=llamacpp_version,
            target_architectures=tuple(architectures.split(ARCH_SEPARATOR)),
        )

    @property
    def architectures(self) -> str:
        """Serialized architecture list, exactly as it was configured."""
        return ARCH_SEPARATOR.join(self.target_architectures)

    @property
    def is_multi_target(self) -> bool:
        return len(self.target_architectures) > 1

    def as_build_args(self) -> Dict[str, str]:
        return {
            ROCM_VERSION_KEY: self.rocm_version,
            LLAMACPP_VERSION_KEY: self.llamacpp_version,
            ROCM_ARCH_KEY: self.architectures,
        }


def load_base_file(path: Path) -> Dict[str, str]:
    """
    Read KEY=value pairs from the base configuration file.

    Args:
        path: Location of versions.env

    Returns:
        Mapping of every key in the file; keys declared without a value map to ''.

    Raises:
        ConfigError: If the file does not exist
    """
    if not path.is_file():
        raise ConfigError.missing_file(path)

    logger.info("Loading versions from: %s", path)
    values = dotenv_values(path, interpolate=False)
    return {key: value or "" for key, value in values.items()}


def resolve(base_file_path: Path, overrides: Optional[Mapping[str, str]] = None) -> EffectiveConfig:
    """
    Resolve the effective configuration.

    A non-empty override always wins over the base file; an absent or empty
    override falls through to the base file value. Keys other than the three
    version keys are ignored.

    Args:
        base_file_path: Path to versions.env
        overrides: Caller-supplied values, usually the process environment

    Raises:
        ConfigError: If the file is missing or a field is empty after precedence
    """
    base = load_base_file(Path(base_file_path))
    overrides = overrides or {}

    resolved: Dict[str, str] = {}
    for key in VERSION_KEYS:
        override = overrides.get(key) or ""
        if override:
            logger.debug("Using %s from environment override", key)
        resolved[key] = override or base.get(key, "")

    for key in VERSION_KEYS:
        if not resolved[key]:
            raise ConfigError.missing_field(key)

    config = EffectiveConfig.from_values(
        resolved[ROCM_VERSION_KEY],
        resolved[LLAMACPP_VERSION_KEY],
        resolved[ROCM_ARCH_KEY],
    )
    logger.info("ROCm version: %s", config.rocm_version)
    logger.info("llama.cpp version: %s", config.llamacpp_version)
    logger.info("ROCm architectures: %s", config.architectures)
    return config


def update_versions_file(path: Path, build_date: str, vcs_ref: str) -> List[str]:
    """
    Rewrite the BUILD_DATE and VCS_REF bookkeeping lines of versions.env in place.

    Only lines that already declare one of the two keys are rewritten; every
    other line is preserved unchanged. Returns the keys that were updated.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError.missing_file(path)

    replacements = {BUILD_DATE_KEY: build_date, VCS_REF_KEY: vcs_ref}
    patterns = {key: re.compile(rf"^{key}=.*$") for key in replacements}

    updated: List[str] = []
    lines = path.read_text().splitlines(keepends=True)
    for index, line in enumerate(lines):
        body = line.rstrip("\r\n")
        ending = line[len(body):]
        for key, pattern in patterns.items():
            if pattern.match(body):
                lines[index] = f"{key}={replacements[key]}{ending}"
                updated.append(key)
                break

    path.write_text("".join(lines))
    for key in updated:
        logger.info("Updated %s=%s", key, replacements[key])
    return updated
