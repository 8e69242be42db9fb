"""Shared logging setup."""

import logging


def configure_logging(level: str = "INFO", *, broker_level: str = "WARNING") -> None:
    """Configure process-wide logging for mailers and the mail worker."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # dramatiq logs every message at INFO; keep job output readable.
    logging.getLogger("dramatiq").setLevel(broker_level.upper())
