"""Error taxonomy for the device connectivity layer."""
from __future__ import annotations

from typing import Optional


class AerospinError(Exception):
    """Base class for every error raised inside the control core."""


class ResolutionFailure(AerospinError):
    """No viable endpoint could be determined for the device."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Endpoint unresolved: {reason}")
        self.reason = reason


class CommandFailed(AerospinError):
    """A device request returned non-2xx, timed out, or never reached the device."""

    def __init__(self, path: str, cause: str, *, status: Optional[int] = None, detail: str = "") -> None:
        label = f"HTTP {status}" if status is not None else cause
        message = f"{path} failed: {label}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.path = path
        self.cause = cause
        self.status = status


class ResetRecoveryExhausted(AerospinError):
    """The post-reset reconnection loop ran out of attempts."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Device did not come back after {attempts} reconnection attempts")
        self.attempts = attempts
