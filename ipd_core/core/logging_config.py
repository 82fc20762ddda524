# ipd_core/core/logging_config.py
import logging
import sys

from ipd_core.core.config import settings

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Attach one console handler to the ``ipd_core`` logger tree."""
    global _configured
    if _configured:
        return

    lvl = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    root = logging.getLogger("ipd_core")
    root.setLevel(lvl)

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(lvl)
    ch.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    root.addHandler(ch)
    _configured = True
