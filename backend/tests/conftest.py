"""
File Update Monitor Test Configuration.

Pytest fixtures and configuration.
Requires Python 3.11+.
"""

import threading
from pathlib import Path
from typing import Any

import pytest

from utils.config import MonitorSettings


class FakeObserver:
    """Stand-in for a watchdog observer whose events are emitted by hand."""

    def __init__(self) -> None:
        self.handler: Any = None
        self.path: str | None = None
        self.recursive: bool | None = None
        self.started = False
        self.stopped = False
        self.unscheduled = False
        self.fail_start: Exception | None = None

    def schedule(self, handler: Any, path: str, recursive: bool = False) -> None:
        self.handler = handler
        self.path = path
        self.recursive = recursive

    def start(self) -> None:
        if self.fail_start is not None:
            raise self.fail_start
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: float | None = None) -> None:
        pass

    def is_alive(self) -> bool:
        return self.started and not self.stopped

    def unschedule_all(self) -> None:
        self.unscheduled = True

    def emit(self, event: Any) -> None:
        """Deliver an event the way the observer's dispatch thread would."""
        self.handler.dispatch(event)

    def emit_in_thread(self, *events: Any) -> threading.Thread:
        """Deliver events from a separate thread, like a real provider."""
        thread = threading.Thread(
            target=lambda: [self.emit(event) for event in events],
            daemon=True,
        )
        thread.start()
        return thread


@pytest.fixture
def fake_observer() -> FakeObserver:
    """Create a fake observer."""
    return FakeObserver()


@pytest.fixture
def monitor_settings() -> MonitorSettings:
    """Settings with short polling so tests shut down quickly."""
    return MonitorSettings(
        debounce_interval_ms=100,
        queue_capacity=1,
        poll_interval_seconds=0.02,
        error_policy="log",
        shutdown_timeout_seconds=2.0,
    )


@pytest.fixture
def watched_dir(tmp_path: Path) -> Path:
    """Create a directory with two existing files to modify."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "a.txt").write_text("a")
    (data_dir / "b.txt").write_text("b")
    return data_dir
