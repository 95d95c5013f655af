"""
Leveled logger that appends key=value context to every message.

Each record carries its app level in ``record.app_level`` and the console
handler renders it with that level's format.
"""
import logging
import sys
import traceback
from typing import Any, Dict

from dockmanager.logging.formatters import LogLevel, get_formatter_for_level
from dockmanager.helpers.getters import isDebugMode


STDLIB_LEVELS = {
    LogLevel.WARNING: logging.WARNING,
    LogLevel.SLOW: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.INFO: logging.INFO,
    LogLevel.REQUEST: logging.INFO,
    LogLevel.GREAT: logging.INFO,
}

LIBRARY_PATH_MARKERS = ('site-packages', 'dist-packages', '/lib/python')


class LevelFormatter(logging.Formatter):
    """Picks the format of the record's app level."""

    def format(self, record: logging.LogRecord) -> str:
        level = getattr(record, 'app_level', LogLevel.INFO)
        text = get_formatter_for_level(level).format(record)
        stack = getattr(record, 'app_traceback', None)
        if stack:
            text = f"{text}\n{stack}"
        return text


def application_traceback() -> str:
    """Traceback of the exception being handled, limited to project frames."""
    exc_type, exc, tb = sys.exc_info()
    if exc is None:
        return ''
    lines = []
    for frame in traceback.extract_tb(tb):
        if any(marker in frame.filename for marker in LIBRARY_PATH_MARKERS):
            continue
        lines.append(f'  File "{frame.filename}", line {frame.lineno}, in {frame.name}')
        if frame.line:
            lines.append(f'    {frame.line}')
    lines.extend(line.rstrip() for line in traceback.format_exception_only(exc_type, exc))
    return '\n'.join(lines)


class CustomLogger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("Node registered", node_id=node.id)
        logger.slow("Prune took too long", duration=12.4, threshold=5.0)
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if isDebugMode() else logging.INFO)
        # already formatted here; the root handler would print it twice
        self.logger.propagate = False

        handler = logging.StreamHandler()
        handler.setFormatter(LevelFormatter())
        self.logger.handlers = [handler]

    def _log(self, level: LogLevel, message: str, exc_info: bool = False, **context: Any) -> None:
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            message = f"{message} | {pairs}"

        extra = {'app_level': level, 'app_context': context}
        if exc_info:
            extra['app_traceback'] = application_traceback()

        self.logger.log(STDLIB_LEVELS[level], message, extra=extra)

    def warning(self, message: str, **context: Any) -> None:
        self._log(LogLevel.WARNING, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(LogLevel.INFO, message, **context)

    def great(self, message: str, **context: Any) -> None:
        """Something finished well, e.g. a node answered its ping."""
        self._log(LogLevel.GREAT, message, **context)

    def error(self, message: str, exc_info: bool = True, **context: Any) -> None:
        """Logs at ERROR. Inside an ``except`` block the project frames of the traceback are appended."""
        self._log(LogLevel.ERROR, message, exc_info=exc_info, **context)

    def request(
        self,
        message: str,
        method: str,
        path: str,
        status_code: int,
        duration: float,
        **context: Any
    ) -> None:
        self._log(
            LogLevel.REQUEST,
            message,
            method=method,
            path=path,
            status_code=status_code,
            duration=duration,
            **context
        )

    def slow(self, message: str, duration: float, threshold: float = 1.0, **context: Any) -> None:
        """An operation took longer than ``threshold`` seconds."""
        self._log(LogLevel.SLOW, message, duration=duration, threshold=threshold, **context)


_registry: Dict[str, CustomLogger] = {}


def get_logger(name: str) -> CustomLogger:
    """One CustomLogger per name, created on first use."""
    logger = _registry.get(name)
    if logger is None:
        logger = _registry[name] = CustomLogger(name)
    return logger
