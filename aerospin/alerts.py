"""Alert boundary: classified notifications raised by the control core."""
from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, List, Optional, Protocol

logger = logging.getLogger(__name__)


class AlertLevel(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    INFO = "info"


class AlertCategory(str, Enum):
    CONNECTION = "connection"
    SAFETY = "safety"
    OPERATION = "operation"
    SYSTEM = "system"


@dataclass(frozen=True)
class Alert:
    id: str
    level: AlertLevel
    category: AlertCategory
    message: str
    timestamp: float


class AlertEmitter(Protocol):
    def emit(self, level: AlertLevel, category: AlertCategory, message: str) -> None:
        ...


class AlertLog:
    """Keep the most recent alerts, newest first, and fan them out to listeners."""

    def __init__(self, capacity: int = 50) -> None:
        self._alerts: Deque[Alert] = deque(maxlen=capacity)
        self._listeners: List[Callable[[Alert], None]] = []
        self._counter = 0

    def emit(self, level: AlertLevel, category: AlertCategory, message: str) -> None:
        self._counter += 1
        alert = Alert(
            id=f"{int(time.time() * 1000)}-{self._counter}",
            level=AlertLevel(level),
            category=AlertCategory(category),
            message=message,
            timestamp=time.time(),
        )
        self._alerts.appendleft(alert)
        logger.debug("[%s/%s] %s", alert.category.value, alert.level.value, message)
        for listener in list(self._listeners):
            try:
                listener(alert)
            except Exception:  # noqa: BLE001
                logger.exception("Alert listener failed")

    def subscribe(self, listener: Callable[[Alert], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def latest(self, category: Optional[AlertCategory] = None) -> List[Alert]:
        if category is None:
            return list(self._alerts)
        return [alert for alert in self._alerts if alert.category == category]

    def clear(self) -> None:
        self._alerts.clear()

    def __len__(self) -> int:  # pragma: no cover - trivial
        return len(self._alerts)
