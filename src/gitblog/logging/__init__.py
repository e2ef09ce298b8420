from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Iterator

from gitblog.config.models import LoggingSettings

LOG_FORMAT = "[%(asctime)s][%(levelname)s][%(name)s][%(scope)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
NO_SCOPE = "-"

# What a log line belongs to: the "owner/name" of the request being served,
# "sweeper" inside the GC loop, NO_SCOPE otherwise.
_log_scope: ContextVar[str] = ContextVar("gitblog_log_scope", default=NO_SCOPE)


@contextmanager
def log_scope(scope: str) -> Iterator[None]:
    """Tag every record emitted in the current task with `scope`."""
    token = _log_scope.set(scope)
    try:
        yield
    finally:
        _log_scope.reset(token)


def current_scope() -> str:
    return _log_scope.get()


class ScopeFilter(logging.Filter):
    """Adds `record.scope` so handlers can format it; never drops records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "scope"):
            record.scope = _log_scope.get()
        return True


def _build_handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    handler.addFilter(ScopeFilter())
    return handler


def init_logging(settings: LoggingSettings) -> None:
    """
    Initialize application logging.

    Records go to stderr and, when `settings.file.path` is set, to a file
    rotated at midnight. Each line carries the request or sweep scope it was
    emitted under. aiohttp's per-request access log is kept only when
    `settings.access_log` is enabled.
    """

    root_logger = logging.getLogger()

    level = logging.getLevelNamesMapping().get(settings.level.upper())
    if level is None:
        raise ValueError(f"Invalid logging level: {settings.level}")

    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.addHandler(_build_handler(logging.StreamHandler(), level))
    logging.getLogger("aiohttp.access").setLevel(logging.INFO if settings.access_log else logging.WARNING)

    file_path = settings.file.path.strip()
    if not file_path:
        return

    try:
        log_path = Path(file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=str(log_path),
            when="midnight",
            backupCount=settings.file.rotation.backup_count,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y-%m-%d"
        root_logger.addHandler(_build_handler(file_handler, level))
    except OSError:
        root_logger.error("File logging handler failed to initialize. path=%s", file_path, exc_info=True)


__all__ = ["LOG_FORMAT", "NO_SCOPE", "ScopeFilter", "current_scope", "init_logging", "log_scope"]
