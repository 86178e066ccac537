"""Centralized logging configuration for CLI and web entry points.

The root level comes from, in order: ``verbose``, ``quiet``, the ``level``
argument, the ``LOG_LEVEL`` environment variable, then INFO. Each package
area can be tuned separately with ``LOG_LEVEL_{AREA}``, e.g.
``LOG_LEVEL_PIPELINE=DEBUG`` to trace scheduler ticks.
"""

from __future__ import annotations

import logging
import os

LOG_FORMAT: str = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_MODULE_LOGGERS: dict[str, str] = {
    "PIPELINE": "Portfolio_Pulse.pipeline",
    "AGENTS": "Portfolio_Pulse.agents",
    "SERVICES": "Portfolio_Pulse.services",
    "WEB": "Portfolio_Pulse.web",
    "ANALYSIS": "Portfolio_Pulse.analysis",
}

# Third-party loggers that flood DEBUG output with per-request chatter.
_NOISY_LOGGERS: tuple[str, ...] = (
    "uvicorn.access",
    "yfinance",
    "peewee",
    "httpx",
    "httpcore",
)


def _resolve_level(name: str | None) -> int | None:
    if not name:
        return None
    resolved = logging.getLevelName(name.strip().upper())
    return resolved if isinstance(resolved, int) else None


def configure_logging(
    *,
    level: str = "",
    verbose: bool = False,
    quiet: bool = False,
) -> None:
    """Configure the root logger with one format across CLI and web.

    Uses ``force=True`` so a handler installed earlier (by uvicorn or a
    previous call) is replaced rather than duplicated.
    """
    if verbose:
        effective = logging.DEBUG
    elif quiet:
        effective = logging.WARNING
    else:
        effective = (
            _resolve_level(level) or _resolve_level(os.environ.get("LOG_LEVEL")) or logging.INFO
        )

    logging.basicConfig(level=effective, format=LOG_FORMAT, force=True)

    # Our middleware logs requests; yfinance and httpx log every call.
    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    for area, logger_name in _MODULE_LOGGERS.items():
        module_level = _resolve_level(os.environ.get(f"LOG_LEVEL_{area}"))
        if module_level is not None:
            logging.getLogger(logger_name).setLevel(module_level)
