"""
Purpose:
- One place to configure stdlib logging for the API, CLI and tests.
- Modules log through logging.getLogger(__name__); this only sets format and level.
"""

from __future__ import annotations
import logging

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_configured = False

def setup_logging(level: str | int = "INFO") -> None:
    global _configured
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    if not _configured:
        logging.basicConfig(level=level, format=LOG_FORMAT)
        _configured = True
    root.setLevel(level)
    # httpx logs every request at INFO; keep it quieter than our own messages
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
