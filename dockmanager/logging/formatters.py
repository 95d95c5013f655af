"""
Log levels and their console formats
"""
import logging
from enum import Enum


class LogLevel(str, Enum):
    WARNING = "warning"
    INFO = "info"
    REQUEST = "request"
    ERROR = "error"
    SLOW = "slow"
    GREAT = "great"


DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Request lines carry method/path in the message, so the logger name is dropped
LEVEL_FORMATS = {
    LogLevel.ERROR: '❌ [ERROR] %(asctime)s - %(name)s - %(message)s',
    LogLevel.WARNING: '⚠️  [WARNING] %(asctime)s - %(name)s - %(message)s',
    LogLevel.INFO: 'ℹ️  [INFO] %(asctime)s - %(name)s - %(message)s',
    LogLevel.REQUEST: '🌐 [REQUEST] %(asctime)s - %(message)s',
    LogLevel.SLOW: '🐌 [SLOW] %(asctime)s - %(name)s - %(message)s',
    LogLevel.GREAT: '✅ [GREAT] %(asctime)s - %(name)s - %(message)s',
}

_formatters = {}


def get_formatter_for_level(level: LogLevel) -> logging.Formatter:
    """Shared formatter for a log level"""
    if level not in _formatters:
        _formatters[level] = logging.Formatter(LEVEL_FORMATS.get(level, DEFAULT_FORMAT))
    return _formatters[level]
