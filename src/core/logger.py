"""core/logger.py — The process-wide ``relay`` logger.

Modules log through children of LOGGER::

    from core.logger import LOGGER

    log = LOGGER.getChild("state")
"""

import logging
import sys

LOGGER = logging.getLogger("relay")
LOGGER.setLevel(logging.INFO)

_handler = logging.StreamHandler(sys.stderr)
_handler.setFormatter(logging.Formatter("%(asctime)s %(name)s [%(process)d] %(levelname)-5s %(message)s"))
LOGGER.addHandler(_handler)

_QUIET_PATHS = ("/health",)


class QuietAccessFilter(logging.Filter):
    """Demote uvicorn access lines for health probes to DEBUG."""

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        if any(p in msg for p in _QUIET_PATHS):
            record.levelno = logging.DEBUG
            record.levelname = "DEBUG"
        return True


def configure_logging(level: str = "INFO") -> None:
    """Apply ``level`` to the relay logger and quieten uvicorn's access log."""
    LOGGER.setLevel(level.upper())
    access = logging.getLogger("uvicorn.access")
    if not any(isinstance(f, QuietAccessFilter) for f in access.filters):
        access.addFilter(QuietAccessFilter())
