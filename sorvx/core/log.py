"""Logging setup for the API process and the CLI."""
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Attach one stream handler to the ``sorvx`` logger (idempotent)."""
    global _configured
    root = logging.getLogger("sorvx")
    root.setLevel(level.upper())
    if _configured:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True
