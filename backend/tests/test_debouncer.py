"""
Tests for the Debouncer.

Requires Python 3.11+.
"""

import asyncio
import threading
import time

import pytest

from monitor.debouncer import Debouncer
from monitor.exceptions import CallbackError


class Recorder:
    """Thread-safe callback that records (key, monotonic time) pairs."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, float]] = []
        self._lock = threading.Lock()

    def __call__(self, key: str) -> None:
        with self._lock:
            self.calls.append((key, time.monotonic()))

    @property
    def keys(self) -> list[str]:
        return [key for key, _ in self.calls]


@pytest.fixture
def recorder() -> Recorder:
    """Create a recording callback."""
    return Recorder()


class TestDebouncer:
    """Test cases for Debouncer."""

    @pytest.mark.asyncio
    async def test_coalesces_same_key(self, recorder: Recorder):
        """Test rapid arrivals for one key fire once after the last one."""
        debouncer = Debouncer(100, recorder)

        for _ in range(3):
            debouncer.put("a.txt")
            last_put = time.monotonic()
            await asyncio.sleep(0.03)

        await asyncio.sleep(0.2)
        await debouncer.wait_idle()

        assert recorder.keys == ["a.txt"]
        assert recorder.calls[0][1] - last_put >= 0.095

    @pytest.mark.asyncio
    async def test_immediate_reput_fires_once(self, recorder: Recorder):
        """Test put twice in a row resets the timer instead of firing twice."""
        debouncer = Debouncer(50, recorder)

        debouncer.put("a.txt")
        debouncer.put("a.txt")
        assert debouncer.pending_count == 1

        await asyncio.sleep(0.15)
        await debouncer.wait_idle()

        assert recorder.keys == ["a.txt"]
        assert debouncer.pending_count == 0

    @pytest.mark.asyncio
    async def test_distinct_keys_fire_independently(self, recorder: Recorder):
        """Test every key fires once regardless of interleaving."""
        debouncer = Debouncer(50, recorder)

        for key in ["a.txt", "b.txt", "a.txt", "c.txt", "b.txt"]:
            debouncer.put(key)
            await asyncio.sleep(0.01)

        await asyncio.sleep(0.15)
        await debouncer.wait_idle()

        assert sorted(recorder.keys) == ["a.txt", "b.txt", "c.txt"]

    @pytest.mark.asyncio
    async def test_separate_windows_fire_separately(self, recorder: Recorder):
        """Test arrivals further apart than the delay fire each time."""
        debouncer = Debouncer(30, recorder)

        debouncer.put("a.txt")
        await asyncio.sleep(0.1)
        debouncer.put("a.txt")
        await asyncio.sleep(0.1)
        await debouncer.wait_idle()

        assert recorder.keys == ["a.txt", "a.txt"]

    @pytest.mark.asyncio
    async def test_zero_delay_fires_every_arrival(self, recorder: Recorder):
        """Test a zero delay disables coalescing."""
        debouncer = Debouncer(0, recorder)

        debouncer.put("a.txt")
        debouncer.put("a.txt")
        assert debouncer.pending_count == 0

        await debouncer.wait_idle()

        assert recorder.keys == ["a.txt", "a.txt"]

    @pytest.mark.asyncio
    async def test_shutdown_drops_pending(self, recorder: Recorder):
        """Test shutdown cancels timers without firing them."""
        debouncer = Debouncer(50, recorder)

        debouncer.put("a.txt")
        debouncer.put("b.txt")
        debouncer.shutdown()

        assert debouncer.pending_count == 0

        debouncer.put("c.txt")
        await asyncio.sleep(0.15)
        await debouncer.wait_idle()

        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_flush(self, recorder: Recorder):
        """Test flush fires pending keys now and only once."""
        debouncer = Debouncer(100, recorder)

        debouncer.put("a.txt")
        debouncer.put("b.txt")
        flushed = debouncer.flush()
        await debouncer.wait_idle()

        assert flushed == ["a.txt", "b.txt"]
        assert sorted(recorder.keys) == ["a.txt", "b.txt"]

        await asyncio.sleep(0.15)
        assert len(recorder.calls) == 2

    @pytest.mark.asyncio
    async def test_stale_timer_is_ignored(self, recorder: Recorder):
        """Test a timer from an older generation does not fire."""
        debouncer = Debouncer(100, recorder)

        debouncer.put("a.txt")
        stale = debouncer._entries["a.txt"].generation
        debouncer.put("a.txt")

        debouncer._fire("a.txt", stale)
        await debouncer.wait_idle()

        assert recorder.calls == []
        assert debouncer.pending_keys == ["a.txt"]
        debouncer.shutdown()

    @pytest.mark.asyncio
    async def test_callback_error_is_surfaced(self, recorder: Recorder):
        """Test callback failures reach on_error and spare other keys."""
        errors: list[CallbackError] = []

        def callback(key: str) -> None:
            if key == "bad.txt":
                raise ValueError("boom")
            recorder(key)

        debouncer = Debouncer(20, callback, on_error=errors.append)

        debouncer.put("bad.txt")
        debouncer.put("good.txt")
        await asyncio.sleep(0.1)
        await debouncer.wait_idle()

        assert recorder.keys == ["good.txt"]
        assert len(errors) == 1
        assert errors[0].key == "bad.txt"
        assert isinstance(errors[0].cause, ValueError)

    @pytest.mark.asyncio
    async def test_callback_error_without_handler(self, recorder: Recorder):
        """Test failures are logged and the debouncer keeps working."""
        calls = 0

        def callback(key: str) -> None:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("first call fails")
            recorder(key)

        debouncer = Debouncer(0, callback)

        debouncer.put("a.txt")
        await debouncer.wait_idle()
        debouncer.put("a.txt")
        await debouncer.wait_idle()

        assert recorder.keys == ["a.txt"]

    @pytest.mark.asyncio
    async def test_same_key_never_overlaps(self):
        """Test invocations for one key run one after another."""
        running = 0
        max_running = 0
        calls = 0

        async def callback(key: str) -> None:
            nonlocal running, max_running, calls
            running += 1
            max_running = max(max_running, running)
            await asyncio.sleep(0.05)
            running -= 1
            calls += 1

        debouncer = Debouncer(0, callback)

        debouncer.put("a.txt")
        debouncer.put("a.txt")
        debouncer.put("a.txt")
        await debouncer.wait_idle()

        assert calls == 3
        assert max_running == 1

    @pytest.mark.asyncio
    async def test_distinct_keys_run_concurrently(self):
        """Test synchronous callbacks for different keys overlap."""
        barrier = threading.Barrier(2, timeout=2.0)
        errors: list[CallbackError] = []
        seen: list[str] = []

        def callback(key: str) -> None:
            barrier.wait()
            seen.append(key)

        debouncer = Debouncer(10, callback, on_error=errors.append)

        debouncer.put("a.txt")
        debouncer.put("b.txt")
        await asyncio.sleep(0.05)
        await debouncer.wait_idle()

        assert errors == []
        assert sorted(seen) == ["a.txt", "b.txt"]

    @pytest.mark.asyncio
    async def test_async_callback(self):
        """Test coroutine callbacks are awaited."""
        seen: list[str] = []

        async def callback(key: str) -> None:
            await asyncio.sleep(0)
            seen.append(key)

        debouncer = Debouncer(10, callback)

        debouncer.put("a.txt")
        await asyncio.sleep(0.05)
        await debouncer.wait_idle()

        assert seen == ["a.txt"]

    def test_negative_delay(self, recorder: Recorder):
        """Test negative delays are rejected."""
        with pytest.raises(ValueError):
            Debouncer(-1, recorder)

    def test_delay_in_seconds(self, recorder: Recorder):
        """Test the delay is exposed in seconds."""
        assert Debouncer(250, recorder).delay == 0.25
