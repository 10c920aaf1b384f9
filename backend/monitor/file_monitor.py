"""
File Update Monitor.

Watches a directory tree and reports debounced content changes.
Requires Python 3.11+.
"""

import asyncio
import os
import threading
from collections.abc import Callable
from enum import Enum

from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from monitor.bridge import EventChannel
from monitor.classifier import content_path
from monitor.debouncer import ChangeCallback, Debouncer
from monitor.exceptions import (
    CallbackError,
    MonitorStateError,
    ProviderEventError,
    WatchRegistrationError,
)
from utils.config import ErrorPolicy, MonitorSettings, get_settings
from utils.logger import LoggerMixin


class MonitorState(str, Enum):
    """Lifecycle of a Monitor. There is no way back to IDLE."""

    IDLE = "idle"
    WATCHING = "watching"
    TERMINATED = "terminated"


class Monitor(LoggerMixin):
    """
    Calls back with a file's path once its content stops changing.

    Usage:
        monitor = Monitor("./data", 200, lambda path: print(path))
        await monitor.start()
    """

    def __init__(
        self,
        directory: str | os.PathLike[str],
        interval_ms: int,
        callback: ChangeCallback,
        *,
        recursive: bool | None = None,
        error_policy: ErrorPolicy | None = None,
        settings: MonitorSettings | None = None,
        observer_factory: Callable[[], BaseObserver] = Observer,
    ) -> None:
        """
        Initialize the monitor. Nothing is watched until start().

        Args:
            directory: Directory tree to watch
            interval_ms: Quiet period per file in milliseconds
            callback: Called with the path of each changed file; may be async
                and must be safe to call concurrently for different paths
            recursive: Whether to watch subdirectories
            error_policy: "log" keeps watching after a callback error,
                "stop" ends the watch and re-raises it from start()
            settings: Monitor settings, defaults to the application settings
            observer_factory: Creates the watchdog observer
        """
        if isinstance(interval_ms, bool) or not isinstance(interval_ms, int):
            raise ValueError(f"interval_ms must be an integer, got {interval_ms!r}")
        if interval_ms < 0:
            raise ValueError(f"interval_ms must be >= 0, got {interval_ms}")

        self._settings = settings or get_settings().monitor
        self._directory = os.fspath(directory)
        self._interval_ms = interval_ms
        self._callback = callback
        self._recursive = self._settings.recursive if recursive is None else recursive
        self._error_policy = error_policy or self._settings.error_policy
        if self._error_policy not in ("log", "stop"):
            raise ValueError(f"Unknown error policy: {self._error_policy!r}")
        self._observer_factory = observer_factory

        self._state = MonitorState.IDLE
        self._left_idle = asyncio.Event()
        self._stop_requested = threading.Event()
        self._channel: EventChannel | None = None
        self._debouncer: Debouncer | None = None
        self._fatal: CallbackError | None = None
        self._error_count = 0

    @property
    def directory(self) -> str:
        """Directory being watched."""
        return self._directory

    @property
    def interval_ms(self) -> int:
        """Quiet period per file in milliseconds."""
        return self._interval_ms

    @property
    def state(self) -> MonitorState:
        """Current lifecycle state."""
        return self._state

    @property
    def error_count(self) -> int:
        """Provider and callback errors seen so far."""
        return self._error_count

    @property
    def pending_count(self) -> int:
        """Files waiting for their quiet period to end."""
        return self._debouncer.pending_count if self._debouncer is not None else 0

    async def wait_until_watching(self) -> bool:
        """
        Wait for start() to register the watch or fail.

        Returns:
            True if the monitor is watching
        """
        await self._left_idle.wait()
        return self._state is MonitorState.WATCHING

    async def start(self) -> None:
        """
        Watch the directory until the provider stops, stop() is called,
        or a fatal error occurs.

        Raises:
            MonitorStateError: If the monitor was already started
            WatchRegistrationError: If the directory cannot be watched
            CallbackError: If the callback fails under the "stop" policy
        """
        if self._state is not MonitorState.IDLE:
            raise MonitorStateError(
                f"Cannot start a monitor that is {self._state.value}",
                path=self._directory,
            )

        channel = EventChannel(
            self._directory,
            self._recursive,
            capacity=self._settings.queue_capacity,
            poll_interval=self._settings.poll_interval_seconds,
            observer_factory=self._observer_factory,
        )
        try:
            channel.open()
        except WatchRegistrationError as e:
            self._set_state(MonitorState.TERMINATED)
            self.log.error("watch_registration_failed", **e.to_dict())
            raise

        debouncer = Debouncer(
            self._interval_ms,
            self._callback,
            on_error=self._on_callback_error,
        )
        self._channel = channel
        self._debouncer = debouncer
        self._set_state(MonitorState.WATCHING)
        self.log.info(
            "monitor_started",
            path=self._directory,
            interval_ms=self._interval_ms,
            recursive=self._recursive,
            error_policy=self._error_policy,
        )

        try:
            if not self._stop_requested.is_set():
                await self._consume(channel, debouncer)
        finally:
            await self._terminate(channel, debouncer)

        if self._fatal is not None:
            raise self._fatal

    def run(self) -> None:
        """Blocking wrapper around start()."""
        asyncio.run(self.start())

    def stop(self) -> None:
        """Ask a running monitor to terminate. Safe from any thread."""
        self._stop_requested.set()
        channel = self._channel
        if channel is not None:
            channel.close()

    async def _consume(self, channel: EventChannel, debouncer: Debouncer) -> None:
        async for item in channel:
            if isinstance(item, ProviderEventError):
                self._error_count += 1
                self.log.warning("watch_event_error", **item.to_dict())
                continue

            path = content_path(item)
            if path is None:
                self.log.debug("event_ignored", kind=item.kind.value, paths=len(item.paths))
                continue

            self.log.debug("content_modified", path=path)
            debouncer.put(path)

    def _on_callback_error(self, error: CallbackError) -> None:
        self._error_count += 1
        self.log.error("change_callback_failed", exc_info=error.cause, **error.to_dict())

        if self._error_policy == "stop" and self._fatal is None:
            self._fatal = error
            # Closing joins the observer thread; keep that off the loop
            self._stop_requested.set()
            threading.Thread(target=self.stop, name="monitor-stop", daemon=True).start()

    async def _terminate(self, channel: EventChannel, debouncer: Debouncer) -> None:
        debouncer.shutdown()
        await asyncio.to_thread(channel.close)

        try:
            await asyncio.wait_for(
                debouncer.wait_idle(),
                timeout=self._settings.shutdown_timeout_seconds,
            )
        except TimeoutError:
            self.log.warning("callbacks_still_running", path=self._directory)
        finally:
            self._set_state(MonitorState.TERMINATED)
            self.log.info(
                "monitor_stopped",
                path=self._directory,
                errors=self._error_count,
            )

    def _set_state(self, state: MonitorState) -> None:
        self._state = state
        self._left_idle.set()

    def __repr__(self) -> str:
        return (
            f"Monitor(directory={self._directory!r}, interval_ms={self._interval_ms}, "
            f"state={self._state.value})"
        )
