"""Bounded retry policy with exponential backoff."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

from ..config import MonitorSettings


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_min: float = 1.0
    backoff_max: float = 8.0
    factor: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_settings(cls, settings: MonitorSettings) -> "RetryPolicy":
        return cls(
            max_attempts=int(settings.retry_attempts),
            backoff_min=settings.backoff_base,
            backoff_max=settings.backoff_max,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the failed ``attempt`` (1-based) before the next one."""
        if attempt < 1:
            return 0.0
        return min(self.backoff_min * (self.factor ** (attempt - 1)), self.backoff_max)

    def exhausted(self, attempt: int) -> bool:
        return attempt >= self.max_attempts

    def schedule(self) -> Iterator[Tuple[int, float]]:
        """Yield ``(attempt, delay_before)`` pairs; the first attempt starts immediately."""
        for attempt in range(1, self.max_attempts + 1):
            yield attempt, self.delay_for(attempt - 1)
