"""Docker SDK helpers for locally built images."""

from .docker_images import ImageRuntime

__all__ = ["ImageRuntime"]
