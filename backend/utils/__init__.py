"""
File Update Monitor Utilities Package.

Configuration and logging shared across the monitor.
Requires Python 3.11+.
"""

from utils.config import MonitorSettings, Settings, get_settings
from utils.logger import close_log_file, configure_logging, get_logger, LoggerMixin

__all__ = [
    "MonitorSettings",
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "close_log_file",
    "LoggerMixin",
]
