"""Local image operations through the Docker SDK: smoke tests and cleanup."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import docker
from docker.errors import ContainerError, DockerException, ImageNotFound

from ..common.errors import ExternalToolError

FALLBACK_ENTRYPOINT = "llama-cli"


class ImageRuntime:
    """Run and remove locally built images."""

    def __init__(self, client: Optional[docker.DockerClient] = None, logger: Optional[logging.Logger] = None) -> None:
        self._client = client
        self.logger = logger or logging.getLogger(__name__)

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as exc:
                raise ExternalToolError("docker", f"Docker daemon not reachable: {exc}", exit_code=1) from exc
        return self._client

    def _run(self, image: str, command: List[str], entrypoint: Optional[str] = None) -> str:
        output = self.client.containers.run(image, command, entrypoint=entrypoint, remove=True)
        return output.decode("utf-8", errors="replace") if isinstance(output, bytes) else str(output)

    def smoke_test(self, image: str) -> None:
        """
        Check that the image starts and its server binary answers --version and --help.

        Raises:
            ExternalToolError: If a container exits non-zero or the image is missing
        """
        self.logger.info("Running smoke tests against %s...", image)
        try:
            try:
                version = self._run(image, ["--version"])
            except ContainerError:
                self.logger.info("Default entrypoint has no --version, retrying with %s", FALLBACK_ENTRYPOINT)
                version = self._run(image, ["--version"], entrypoint=FALLBACK_ENTRYPOINT)
            self.logger.info("Version output: %s", version.strip())

            self.logger.info("Testing help command...")
            self._run(image, ["--help"])
        except ImageNotFound as exc:
            raise ExternalToolError("docker", f"Image not found: {image}", exit_code=1) from exc
        except ContainerError as exc:
            raise ExternalToolError("docker", f"Smoke test failed for {image}: {exc}", exit_code=exc.exit_status) from exc
        except DockerException as exc:
            raise ExternalToolError("docker", f"Smoke test failed for {image}: {exc}", exit_code=1) from exc

        self.logger.info("Smoke tests passed")

    def remove_images(self, images: Iterable[str]) -> List[str]:
        """Remove the given local images, ignoring ones that do not exist. Returns the removed names."""
        removed: List[str] = []
        for image in images:
            try:
                self.client.images.remove(image)
            except ImageNotFound:
                self.logger.debug("Image %s not present, skipping", image)
                continue
            except DockerException as exc:
                self.logger.warning("Failed to remove image %s: %s", image, exc)
                continue
            self.logger.info("Removed image %s", image)
            removed.append(image)
        return removed
