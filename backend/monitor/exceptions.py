"""
File Update Monitor Exceptions.

Error kinds raised, yielded or reported by the watch pipeline.
Requires Python 3.11+.
"""

from typing import Any


class MonitorError(Exception):
    """
    Base exception for all monitor errors.

    Attributes:
        message: Human-readable error message
        path: Path the error relates to, if any
        cause: Original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.path is not None:
            result += f" (path: {self.path})"
        if self.cause is not None:
            result += f" - caused by {type(self.cause).__name__}: {self.cause}"
        return result

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "path": self.path,
            "cause": str(self.cause) if self.cause is not None else None,
        }


class WatchRegistrationError(MonitorError):
    """The watch provider refused to watch a directory. Always fatal."""


class ProviderEventError(MonitorError):
    """The watch provider delivered an event that could not be used."""


class ChannelHandoffError(MonitorError):
    """An event arrived after the consuming side of the channel closed."""


class CallbackError(MonitorError):
    """The user callback raised while handling a debounced path."""

    def __init__(self, key: str, cause: BaseException) -> None:
        super().__init__("Change callback failed", path=key, cause=cause)
        self.key = key


class MonitorStateError(MonitorError):
    """An operation is not valid in the monitor's current state."""
