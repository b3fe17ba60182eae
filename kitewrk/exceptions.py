"""Error taxonomy for the load harness."""

from __future__ import annotations


class KitewrkError(RuntimeError):
    """Base class for harness failures."""


class BuildkiteAPIError(KitewrkError):
    """Raised when the build service rejects or fails a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BuildCreateError(KitewrkError):
    """Raised when a build could not be created."""


class BuildPollError(KitewrkError):
    """Raised when the status of a created build could not be read."""


class BuildSkippedError(KitewrkError):
    """Raised when a build finished without running, usually because build skipping is enabled."""


class BuildCancelledError(KitewrkError):
    """Raised when the run was cancelled before a build reached a terminal state."""


__all__ = [
    "KitewrkError",
    "BuildkiteAPIError",
    "BuildCreateError",
    "BuildPollError",
    "BuildSkippedError",
    "BuildCancelledError",
]
