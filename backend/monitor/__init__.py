"""
File Update Monitor Package.

Debounced content-change notifications for a directory tree.
Requires Python 3.11+.
"""

from monitor.bridge import EventChannel
from monitor.classifier import content_path
from monitor.debouncer import Debouncer
from monitor.events import EventKind, RawEvent
from monitor.exceptions import (
    CallbackError,
    ChannelHandoffError,
    MonitorError,
    MonitorStateError,
    ProviderEventError,
    WatchRegistrationError,
)
from monitor.file_monitor import Monitor, MonitorState

__all__ = [
    "Monitor",
    "MonitorState",
    "EventChannel",
    "Debouncer",
    "content_path",
    "EventKind",
    "RawEvent",
    "MonitorError",
    "WatchRegistrationError",
    "ProviderEventError",
    "ChannelHandoffError",
    "CallbackError",
    "MonitorStateError",
]
