"""
File Update Monitor Event Classifier.

Picks content modifications out of the raw event stream.
Requires Python 3.11+.
"""

from monitor.events import EventKind, RawEvent


def _as_text(path: str | bytes) -> str | None:
    """Return the path as UTF-8 representable text, or None."""
    try:
        if isinstance(path, bytes):
            return path.decode("utf-8")
        # Undecodable names arrive from os.fsdecode with lone surrogates
        path.encode("utf-8")
    except UnicodeError:
        return None
    return path


def content_path(event: RawEvent) -> str | None:
    """
    Extract the changed file's path from a content modification event.

    Args:
        event: Raw event from the channel

    Returns:
        The event's first path, or None if the event is not a content
        modification of a file or its path cannot be represented as text
    """
    if event.kind is not EventKind.MODIFY_DATA or event.is_directory:
        return None
    if not event.paths:
        return None
    return _as_text(event.paths[0])
