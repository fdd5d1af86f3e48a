import logging
import os
from typing import Dict


PACKAGE_LOGGER = "snatch_core"

_LOGGER_CACHE: Dict[str, logging.Logger] = {}


def _debug_from_env() -> bool:
    return str(os.getenv("SNATCH_DEBUG", "false")).lower() in ("true", "1", "yes")


def get_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    """Return a configured logger.

    Respects SNATCH_DEBUG env var to set DEBUG/INFO level.
    Ensures we don't duplicate handlers across multiple imports.
    """
    lg = _LOGGER_CACHE.get(name)
    if lg:
        return lg
    lg = logging.getLogger(name)
    if not lg.handlers:
        level = logging.DEBUG if _debug_from_env() else logging.INFO
        lg.setLevel(level)
        handler = logging.StreamHandler()
        handler.setLevel(logging.DEBUG)
        fmt = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        handler.setFormatter(fmt)
        lg.addHandler(handler)
        lg.propagate = False
    _LOGGER_CACHE[name] = lg
    return lg


def set_verbose(verbose: bool) -> None:
    """Switch the package logger between DEBUG and INFO at runtime."""
    lg = get_logger(PACKAGE_LOGGER)
    if verbose or _debug_from_env():
        lg.setLevel(logging.DEBUG)
    else:
        lg.setLevel(logging.INFO)


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    return f"{size / (1024 * 1024):.1f}MB"
