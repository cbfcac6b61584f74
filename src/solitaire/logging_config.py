"""Logging configuration for the solitaire engine."""

import logging
import sys
from typing import Optional

from solitaire import common as C

_FORMATS = {
    "simple": "%(name)s - %(levelname)s - %(message)s",
    "detailed": "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
}


def setup_logging(level: Optional[str] = None, format_style: str = "simple") -> None:
    """
    Set up logging for the whole package.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR). Defaults to the
            ``log_level`` setting, which SOLI_LOG_LEVEL can override.
        format_style: "simple" or "detailed"
    """
    if level is None:
        level = C.get_current_settings().get("log_level", "WARNING")
    numeric_level = getattr(logging, str(level).upper(), logging.WARNING)

    logging.basicConfig(
        level=numeric_level,
        format=_FORMATS.get(format_style, _FORMATS["simple"]),
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("solitaire").setLevel(numeric_level)
