"""Logging setup: one stream handler on the ``billdesk`` logger tree."""

import logging
import sys

from billdesk.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger("billdesk")
    root.setLevel(getattr(logging, (level or settings.log_level).upper(), logging.INFO))
    if not any(getattr(h, "_billdesk", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler._billdesk = True
        root.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
