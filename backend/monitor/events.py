"""
File Update Monitor Raw Events.

Provider-neutral representation of filesystem notifications.
Requires Python 3.11+.
"""

from dataclasses import dataclass
from enum import Enum

from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CLOSED_NO_WRITE,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    EVENT_TYPE_OPENED,
    FileSystemEvent,
)


class EventKind(str, Enum):
    """Kind of change reported by the watch provider."""

    CREATE = "create"
    MODIFY_DATA = "modify_data"
    MODIFY_METADATA = "modify_metadata"
    REMOVE = "remove"
    RENAME = "rename"
    ACCESS = "access"
    OTHER = "other"


_ACCESS_EVENT_TYPES = frozenset(
    {EVENT_TYPE_OPENED, EVENT_TYPE_CLOSED, EVENT_TYPE_CLOSED_NO_WRITE}
)


@dataclass(frozen=True)
class RawEvent:
    """An unfiltered notification: a kind plus the affected paths."""

    kind: EventKind
    paths: tuple[str | bytes, ...]
    is_directory: bool = False

    @classmethod
    def from_watchdog(cls, event: FileSystemEvent) -> "RawEvent":
        """
        Convert a watchdog event.

        Directory modifications only reflect entry or attribute changes,
        so they are reported as metadata changes.

        Args:
            event: Event delivered to a watchdog handler

        Returns:
            Equivalent RawEvent
        """
        event_type = event.event_type

        if event_type == EVENT_TYPE_MODIFIED:
            kind = EventKind.MODIFY_METADATA if event.is_directory else EventKind.MODIFY_DATA
        elif event_type == EVENT_TYPE_CREATED:
            kind = EventKind.CREATE
        elif event_type == EVENT_TYPE_DELETED:
            kind = EventKind.REMOVE
        elif event_type == EVENT_TYPE_MOVED:
            kind = EventKind.RENAME
        elif event_type in _ACCESS_EVENT_TYPES:
            kind = EventKind.ACCESS
        else:
            kind = EventKind.OTHER

        paths: tuple[str | bytes, ...] = (event.src_path,)
        dest_path = getattr(event, "dest_path", "")
        if kind is EventKind.RENAME and dest_path:
            paths = (event.src_path, dest_path)

        return cls(kind=kind, paths=paths, is_directory=event.is_directory)
