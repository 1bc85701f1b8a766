# logging_config.py
"""
Logging setup for the API process and the scheduled tasks.

Modules log through `logging.getLogger(__name__)`; this only wires the
root handler once.
"""
import logging
import sys

from config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str = LOG_LEVEL) -> None:
     """Attach a stream handler to the root logger (idempotent)."""
     global _configured
     if _configured:
          return

     handler = logging.StreamHandler(sys.stdout)
     handler.setFormatter(logging.Formatter(LOG_FORMAT))

     root = logging.getLogger()
     root.addHandler(handler)
     root.setLevel(level)
     _configured = True
