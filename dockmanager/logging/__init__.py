"""
Leveled application logger (warning, info, request, error, slow, great)
"""
from dockmanager.logging.custom_logger import CustomLogger, get_logger
from dockmanager.logging.formatters import LogLevel

__all__ = [
    'CustomLogger',
    'LogLevel',
    'get_logger',
]
