"""
File Update Monitor Event Channel.

Turns watchdog's thread-delivered notifications into an async sequence.
Requires Python 3.11+.
"""

import asyncio
import os
import queue
import threading
from collections.abc import AsyncIterator, Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from monitor.events import EventKind, RawEvent
from monitor.exceptions import (
    ChannelHandoffError,
    ProviderEventError,
    WatchRegistrationError,
)
from utils.config import get_settings
from utils.logger import LoggerMixin

ChannelItem = RawEvent | ProviderEventError

# (st_size, st_mtime_ns)
FileSnapshot = tuple[int, int]


def _snapshot(path: str | bytes) -> FileSnapshot | None:
    try:
        stat = os.stat(path)
    except (OSError, ValueError):
        return None
    return stat.st_size, stat.st_mtime_ns


def _source_path(event: Any) -> str | None:
    """Best-effort printable source path of a possibly malformed event."""
    try:
        src_path = event.src_path
        return os.fsdecode(src_path) if src_path else None
    except (AttributeError, TypeError, ValueError):
        return None


class _ChannelHandler(FileSystemEventHandler, LoggerMixin):
    """
    Hands every watchdog event to the channel.

    Runs on the observer's dispatch thread. A full queue blocks that
    thread until the consumer catches up or the channel is closed.

    watchdog reports attribute changes (chmod, chown) as plain file
    modifications. The handler keeps the size and mtime last seen for
    each file and downgrades a modification that changed neither to
    MODIFY_METADATA. A utime() that moves mtime still looks like a write.
    """

    def __init__(self, channel: "EventChannel") -> None:
        super().__init__()
        self._channel = channel
        self._snapshots: dict[str | bytes, FileSnapshot] = {}

    def seed(self, directory: str, recursive: bool) -> int:
        """
        Record the current size and mtime of files already present.

        Must run before the observer starts, so that a write racing
        with start-up still differs from its snapshot.

        Returns:
            Number of files recorded
        """
        for dirpath, _dirnames, filenames in os.walk(directory):
            for name in filenames:
                path = os.path.join(dirpath, name)
                snapshot = _snapshot(path)
                if snapshot is not None:
                    self._snapshots[path] = snapshot
            if not recursive:
                break
        return len(self._snapshots)

    def _refine(self, event: RawEvent) -> RawEvent:
        """Tell content writes apart from metadata-only modifications."""
        if event.kind in (EventKind.REMOVE, EventKind.RENAME):
            self._snapshots.pop(event.paths[0], None)
            return event
        if event.kind is not EventKind.MODIFY_DATA or not event.paths:
            return event

        path = event.paths[0]
        current = _snapshot(path)
        if current is None:
            self._snapshots.pop(path, None)
            return event

        previous = self._snapshots.get(path)
        self._snapshots[path] = current
        if previous == current:
            return replace(event, kind=EventKind.MODIFY_METADATA)
        return event

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Convert and hand off a single event."""
        try:
            item: ChannelItem = self._refine(RawEvent.from_watchdog(event))
        except Exception as e:
            item = ProviderEventError(
                "Unusable event from watch provider",
                path=_source_path(event),
                cause=e,
            )

        try:
            self._channel.hand_off(item)
        except ChannelHandoffError as e:
            self.log.warning("event_handoff_failed", **e.to_dict())


class EventChannel(LoggerMixin):
    """
    Bounded bridge between a watchdog observer and an async consumer.

    Iterating the channel yields RawEvent values, or ProviderEventError
    values for events that could not be converted. Iteration ends when
    the channel is closed or the observer stops on its own.

    The queue is polled from a worker thread owned by the channel, so
    callbacks occupying the loop's default executor never stall intake.
    """

    def __init__(
        self,
        directory: str | os.PathLike[str],
        recursive: bool = True,
        *,
        capacity: int | None = None,
        poll_interval: float | None = None,
        observer_factory: Callable[[], BaseObserver] = Observer,
    ) -> None:
        """
        Initialize the channel.

        Args:
            directory: Directory to watch
            recursive: Whether to watch subdirectories
            capacity: Queue size, defaults to the configured value
            poll_interval: Seconds between closed-state checks while waiting
            observer_factory: Creates the watchdog observer
        """
        settings = get_settings().monitor

        self._directory = os.fspath(directory)
        self._recursive = recursive
        self._capacity = capacity or settings.queue_capacity
        self._poll_interval = poll_interval or settings.poll_interval_seconds
        self._observer_factory = observer_factory

        self._queue: queue.Queue[ChannelItem] = queue.Queue(maxsize=self._capacity)
        self._handler = _ChannelHandler(self)
        self._observer: BaseObserver | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._closed = threading.Event()

    @property
    def directory(self) -> str:
        """Directory being watched."""
        return self._directory

    @property
    def closed(self) -> bool:
        """Whether the channel has been closed."""
        return self._closed.is_set()

    def open(self) -> None:
        """
        Register the watch and start the observer.

        Raises:
            WatchRegistrationError: If the directory cannot be watched
        """
        if self.closed:
            raise WatchRegistrationError("Channel already closed", path=self._directory)
        if self._observer is not None:
            return

        if not Path(self._directory).is_dir():
            raise WatchRegistrationError(
                "Directory does not exist or is not a directory",
                path=self._directory,
            )

        known_files = self._handler.seed(self._directory, self._recursive)

        observer = self._observer_factory()
        try:
            observer.schedule(self._handler, self._directory, recursive=self._recursive)
            observer.start()
        except Exception as e:
            observer.unschedule_all()
            raise WatchRegistrationError(
                "Failed to register watch", path=self._directory, cause=e
            ) from e

        self._observer = observer
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="event-channel")
        self.log.info(
            "watch_registered",
            path=self._directory,
            recursive=self._recursive,
            capacity=self._capacity,
            known_files=known_files,
        )

    def hand_off(self, item: ChannelItem) -> None:
        """
        Put an item on the queue, blocking while it is full.

        Called from the provider's thread.

        Raises:
            ChannelHandoffError: If the channel is closed before the item fits
        """
        while not self.closed:
            try:
                self._queue.put(item, timeout=self._poll_interval)
                return
            except queue.Full:
                continue

        raise ChannelHandoffError("Event channel is closed", path=self._describe(item))

    def close(self) -> None:
        """
        Stop the observer and release the watch. Safe from any thread.

        Joins the observer thread, so async callers should run it in a
        worker thread.
        """
        if self.closed:
            return
        self._closed.set()

        if self._executor is not None:
            self._executor.shutdown(wait=False)

        observer = self._observer
        self._observer = None
        if observer is not None:
            observer.stop()
            if observer.is_alive() and threading.current_thread() is not observer:
                observer.join(timeout=5.0)
            self.log.info("watch_released", path=self._directory)

    def _provider_alive(self) -> bool:
        observer = self._observer
        return observer is not None and observer.is_alive()

    def _next_item(self) -> ChannelItem | None:
        """Block until an item arrives, or return None once finished."""
        while not self.closed:
            try:
                return self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                if not self._provider_alive():
                    self.log.info("watch_provider_stopped", path=self._directory)
                    return None
        return None

    @staticmethod
    def _describe(item: ChannelItem) -> str | None:
        if isinstance(item, RawEvent) and item.paths:
            return os.fsdecode(item.paths[0])
        if isinstance(item, ProviderEventError):
            return item.path
        return None

    def __aiter__(self) -> AsyncIterator[ChannelItem]:
        return self

    async def __anext__(self) -> ChannelItem:
        executor = self._executor
        if executor is None or self.closed:
            raise StopAsyncIteration

        loop = asyncio.get_running_loop()
        try:
            item = await loop.run_in_executor(executor, self._next_item)
        except RuntimeError:
            # Executor shut down by a concurrent close()
            if self.closed:
                raise StopAsyncIteration
            raise
        if item is None:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "EventChannel":
        self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await asyncio.to_thread(self.close)
