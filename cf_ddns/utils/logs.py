"""
Logging setup for CF-DDNS.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Client libraries that are chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "cloudflare")


def setup_logging(debug: bool = False) -> logging.Logger:
    """
    Configure root logging to stdout.

    Args:
        debug: Enable DEBUG output, including HTTP client internals

    Returns:
        logging.Logger: The application logger
    """
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Set client library loggers to WARNING unless root is DEBUG
    library_level = logging.DEBUG if debug else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    return logging.getLogger("cf-ddns")
