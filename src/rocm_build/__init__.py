"""Build automation for the ROCm llama.cpp server image."""

__version__ = "0.1.0"
