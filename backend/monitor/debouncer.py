"""
File Update Monitor Debouncer.

Coalesces rapid arrivals of the same key into one delayed callback.
Requires Python 3.11+.
"""

import asyncio
import inspect
import itertools
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from monitor.exceptions import CallbackError
from utils.logger import LoggerMixin

ChangeCallback = Callable[[str], Any]
ErrorHandler = Callable[[CallbackError], None]


@dataclass
class DebounceEntry:
    """Pending timer state for one key."""

    key: str
    generation: int
    deadline: float
    handle: asyncio.TimerHandle


class Debouncer(LoggerMixin):
    """
    Per-key debouncer running on an asyncio event loop.

    Every put() for a key moves that key's deadline to now + delay. A
    timer only acts if its generation is still the latest one recorded
    for the key, so a stale timer that slips past cancellation does
    nothing. The entry is removed before the callback runs.

    Synchronous callbacks run in the loop's default executor and async
    callbacks run as tasks, so different keys may be handled
    concurrently. Invocations for the same key never overlap.

    put(), flush() and shutdown() must be called from the loop's thread.
    """

    def __init__(
        self,
        delay_ms: int,
        callback: ChangeCallback,
        *,
        on_error: ErrorHandler | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """
        Initialize the debouncer.

        Args:
            delay_ms: Quiet period in milliseconds, 0 disables coalescing
            callback: Called with the key once its quiet period ends
            on_error: Receives a CallbackError whenever the callback raises
            loop: Event loop for timers, defaults to the running loop
        """
        if delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")

        self._delay = delay_ms / 1000.0
        self._callback = callback
        self._on_error = on_error
        self._loop = loop

        self._entries: dict[str, DebounceEntry] = {}
        self._generations = itertools.count(1)
        self._inflight: dict[str, asyncio.Future[None]] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def delay(self) -> float:
        """Quiet period in seconds."""
        return self._delay

    @property
    def pending_count(self) -> int:
        """Get number of keys waiting for their timer."""
        return len(self._entries)

    @property
    def pending_keys(self) -> list[str]:
        """Get keys waiting for their timer."""
        return list(self._entries)

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def put(self, key: str) -> None:
        """
        Record an arrival for a key, restarting its quiet period.

        Args:
            key: Path of the changed file
        """
        if self._closed:
            self.log.debug("put_after_shutdown", key=key)
            return

        if self._delay == 0:
            self._dispatch(key)
            return

        loop = self._get_loop()
        previous = self._entries.get(key)
        if previous is not None:
            previous.handle.cancel()

        generation = next(self._generations)
        deadline = loop.time() + self._delay
        self._entries[key] = DebounceEntry(
            key=key,
            generation=generation,
            deadline=deadline,
            handle=loop.call_at(deadline, self._fire, key, generation),
        )

    def _fire(self, key: str, generation: int) -> None:
        entry = self._entries.get(key)
        if entry is None or entry.generation != generation:
            return

        del self._entries[key]
        self._dispatch(key)

    def _dispatch(self, key: str) -> None:
        task = self._get_loop().create_task(self._invoke(key))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _invoke(self, key: str) -> None:
        """Run the callback once the previous invocation for key is done."""
        previous = self._inflight.get(key)
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._inflight[key] = done

        try:
            if previous is not None:
                await asyncio.shield(previous)
            await self._call(key)
        finally:
            done.set_result(None)
            if self._inflight.get(key) is done:
                del self._inflight[key]

    async def _call(self, key: str) -> None:
        self.log.debug("debounce_fired", key=key)
        try:
            if inspect.iscoroutinefunction(self._callback):
                await self._callback(key)
            else:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, self._callback, key)
        except Exception as e:
            self._report(CallbackError(key, e))

    def _report(self, error: CallbackError) -> None:
        if self._on_error is None:
            self.log.error("debounce_callback_failed", exc_info=error.cause, **error.to_dict())
            return

        try:
            self._on_error(error)
        except Exception:
            self.log.exception("debounce_error_handler_failed", key=error.key)

    def flush(self) -> list[str]:
        """
        Fire every pending key now instead of waiting for its timer.

        Returns:
            Keys that were pending
        """
        keys = list(self._entries)
        for key in keys:
            self._entries.pop(key).handle.cancel()
            self._dispatch(key)

        if keys:
            self.log.debug("debouncer_flushed", count=len(keys))
        return keys

    def shutdown(self) -> None:
        """Cancel all pending timers without firing them."""
        self._closed = True

        dropped = len(self._entries)
        for entry in self._entries.values():
            entry.handle.cancel()
        self._entries.clear()

        self.log.debug("debouncer_shutdown", dropped=dropped, inflight=len(self._tasks))

    async def wait_idle(self) -> None:
        """Wait until no callback invocation is running."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))
