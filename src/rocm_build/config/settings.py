import os
from pathlib import Path

from pydantic import BaseModel, Field


class BuildSettings(BaseModel):
    """Fixed settings of the build tool itself, independent of versions.env."""

    # Image settings
    image_repo: str = "cmooreio/rocm-llama.cpp"
    dockerfile: str = "Dockerfile"
    build_context: str = "."

    # ROCm base images are published for AMD64 only
    supported_platform: str = "linux/amd64"

    # Buildx settings
    builder_name: str = "llama-rocm-builder"
    builder_driver: str = "docker-container"

    # File settings
    versions_file: Path = Field(
        default_factory=lambda: Path(os.environ.get('ROCM_BUILD_VERSIONS_FILE', 'versions.env'))
    )
    sbom_file_template: str = Field(
        default="sbom-{version}.json",
        description="Output filename for generated SBOMs, formatted with the app version.",
    )

    def sbom_path(self, version: str) -> Path:
        """Path of the SBOM document for the given app version."""
        return Path(self.sbom_file_template.format(version=version))

