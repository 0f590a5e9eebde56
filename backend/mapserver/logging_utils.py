from __future__ import annotations

import logging
from pathlib import Path
from tempfile import gettempdir
from typing import Any

from pythonjsonlogger import jsonlogger

from .settings import settings

LOGGER_NAME = "mapserver"
LOG_FILE_NAME = "mapserver.log.jsonl"
_JSON_FIELDS = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Default level per event. Per-query misses are DEBUG so a busy server does not
# log every empty route or off-map viewport; data problems that still leave a
# usable map are WARNING; a map that cannot be served at all is ERROR.
# Events not listed here log at INFO.
EVENT_LEVELS: dict[str, int] = {
    "route_no_path": logging.DEBUG,
    "raster_query_failed": logging.DEBUG,
    "graph_edge_dropped_unknown_vertex": logging.WARNING,
    "map_startup_unavailable": logging.WARNING,
    "map_build_failed": logging.ERROR,
}


def event_level(event: str) -> int:
    return EVENT_LEVELS.get(event, logging.INFO)


def _parse_level(name: str) -> int:
    level = logging.getLevelName(str(name or "").upper())
    return level if isinstance(level, int) else logging.INFO


def _writable_log_dir(configured_out_dir: str) -> Path | None:
    for log_dir in (
        Path(configured_out_dir) / "logs",
        Path.cwd() / "out" / "logs",
        Path(gettempdir()) / LOGGER_NAME / "logs",
    ):
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            marker = log_dir / ".writetest"
            marker.touch(exist_ok=True)
            marker.unlink(missing_ok=True)
        except OSError:
            continue
        return log_dir
    return None


def configure_logging(level: str | None = None) -> logging.Logger:
    """JSON logger shared by the whole service, set up once per process.

    Records go to stderr and, when some log directory is writable, to a JSONL
    file as well. ``level`` overrides ``settings.log_level`` on first setup.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if getattr(logger, "_configured", False):
        return logger

    logger.setLevel(_parse_level(level or settings.log_level))
    logger.propagate = False
    formatter = jsonlogger.JsonFormatter(_JSON_FIELDS)

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    log_dir = _writable_log_dir(settings.out_dir)
    if log_dir is not None:
        try:
            file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8")
        except OSError:
            file_handler = None
        if file_handler is not None:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    logger._configured = True  # type: ignore[attr-defined]
    return logger


LOGGER: logging.Logger | None = None


def log_event(event: str, *, level: int | None = None, **fields: Any) -> None:
    """Log ``event`` as the message and as a top-level ``event`` key.

    The level comes from ``EVENT_LEVELS`` unless given explicitly.
    """
    global LOGGER
    if LOGGER is None:
        LOGGER = configure_logging()
    resolved = event_level(event) if level is None else int(level)
    if not LOGGER.isEnabledFor(resolved):
        return
    LOGGER.log(resolved, event, extra={"event": event, **fields})
