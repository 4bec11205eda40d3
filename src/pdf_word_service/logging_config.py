"""
Logging setup shared by the web API and the Streamlit client.

Level and format come from LOG_LEVEL and LOG_FORMAT; the root logger gets a
single stdout handler so repeated setup calls do not duplicate output.
"""

import logging
import os
import sys

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEV_FORMAT = "%(asctime)s [%(levelname)8s] %(name)s:%(lineno)d - %(message)s"

_configured = False


def _level_from_env() -> int:
    level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    if level_str == "WARN":
        level_str = "WARNING"
    level = logging.getLevelName(level_str)
    return level if isinstance(level, int) else logging.INFO


def _format_from_env() -> str:
    fmt = os.getenv("LOG_FORMAT", "standard").lower()
    if fmt in {"dev", "development"}:
        return DEV_FORMAT
    return DEFAULT_FORMAT


def setup_logging(level: int | None = None, *, force: bool = False) -> None:
    """Configure the root logger once per process."""
    global _configured
    if _configured and not force:
        return

    log_level = level if level is not None else _level_from_env()
    root = logging.getLogger()
    root.setLevel(log_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(_format_from_env()))
    root.addHandler(handler)
    _configured = True
