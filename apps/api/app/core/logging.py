"""Logging setup shared by the API process and scripts."""
from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # SQLAlchemy echoes every statement at INFO when its logger inherits our level.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
