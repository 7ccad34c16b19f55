import logging
import os
from typing import Mapping, Optional


def debug_enabled(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Return True when the DEBUG environment toggle is set to 'true'."""
    env = os.environ if environ is None else environ
    return env.get("DEBUG", "false").strip().lower() == "true"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the command-line entry points."""
    level = logging.DEBUG if verbose else logging.INFO

    # Only install a handler if nobody configured logging already
    if not logging.getLogger().handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
        logging.getLogger().addHandler(console_handler)
    logging.getLogger().setLevel(level)

    logging.getLogger('rocm_build').setLevel(level)

    # Set log level for specific loggers to reduce noise
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('docker').setLevel(logging.WARNING)
    logging.getLogger('git').setLevel(logging.WARNING)
