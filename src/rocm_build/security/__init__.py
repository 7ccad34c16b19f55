"""External scan, sign and SBOM collaborators."""

from .sbom import SbomGenerator
from .scanner import ALL_SEVERITIES, HIGH_SEVERITIES, ImageScanner
from .signer import ImageSigner, parse_cosign_major_version

__all__ = [
    "ALL_SEVERITIES",
    "HIGH_SEVERITIES",
    "ImageScanner",
    "ImageSigner",
    "SbomGenerator",
    "parse_cosign_major_version",
]
