"""In-memory data model for the device, the link, and the session log."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

SPEED_MIN = 0
SPEED_MAX = 100


class _Choice(str, Enum):
    """String enum that parses device text case-insensitively."""

    @classmethod
    def parse(cls, raw: str) -> "_Choice":
        text = raw.strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        raise ValueError(f"Unknown {cls.__name__.lower()}: {raw!r}")

    def __str__(self) -> str:
        return self.value


class Direction(_Choice):
    NONE = "None"
    FORWARD = "Forward"
    REVERSE = "Reverse"


class Brake(_Choice):
    NONE = "None"
    PULL = "Pull"
    PUSH = "Push"


@dataclass
class DeviceState:
    direction: Direction = Direction.NONE
    brake: Brake = Brake.NONE
    speed: int = 0
    session_active: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "brake": self.brake.value,
            "speed": self.speed,
            "session_active": self.session_active,
        }


@dataclass
class ConnectionState:
    is_connected: bool = False
    connection_attempts: int = 0
    last_connection_check: Optional[float] = None
    current_endpoint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SessionEvent:
    timestamp: datetime
    text: str

    def __str__(self) -> str:
        return f"{self.timestamp.strftime('%H:%M:%S')}: {self.text}"


@dataclass
class SessionData:
    start_time: Optional[datetime] = None
    duration: str = ""
    events: List[SessionEvent] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "duration": self.duration,
            "events": [str(event) for event in self.events],
        }
