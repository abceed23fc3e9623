"""Single owner of the in-memory device state."""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..alerts import AlertCategory, AlertEmitter, AlertLevel
from ..config import TimeoutSettings
from ..errors import CommandFailed
from ..transport.http_client import DeviceTransport
from ..transport.link_monitor import ConnectionMonitor
from .models import SPEED_MAX, SPEED_MIN, Brake, DeviceState, Direction
from .status import parse_status

logger = logging.getLogger(__name__)

STATUS_PATH = "/status"
FIELDS = ("direction", "brake", "speed", "session_active")
# Fixed order in which changed fields are pushed to the device.
COMMAND_ORDER = ("direction", "brake", "speed")

EventSink = Callable[[str], None]


def direction_path(direction: Direction) -> str:
    return f"/direction?state={direction.value.lower()}"


def brake_path(brake: Brake) -> str:
    if brake == Brake.NONE:
        return "/brake?action=none&state=off"
    return f"/brake?action={brake.value.lower()}&state=on"


def speed_path(speed: int) -> str:
    return f"/speed?value={speed}"


class DeviceStateReconciler:
    """
    Two ways in: ``apply_intent`` (optimistic, always wins locally, then pushed
    to the device) and ``fold_status`` (authoritative text read back from the
    device). Both end in ``_merge``. Failed pushes never roll the local state
    back.
    """

    def __init__(
        self,
        transport: DeviceTransport,
        monitor: ConnectionMonitor,
        *,
        timeouts: TimeoutSettings,
        alerts: Optional[AlertEmitter] = None,
    ) -> None:
        self._transport = transport
        self._monitor = monitor
        self._timeouts = timeouts
        self._alerts = alerts

        self._state = DeviceState()
        self._previous_brake = Brake.NONE
        self._stop_generation = 0

        self.on_event: Optional[EventSink] = None

    # ------------------------------------------------------------------
    @property
    def state(self) -> DeviceState:
        return dataclasses.replace(self._state)

    @property
    def previous_brake(self) -> Brake:
        return self._previous_brake

    @property
    def is_connected(self) -> bool:
        return self._monitor.is_connected

    @property
    def endpoint(self) -> Optional[str]:
        return self._monitor.current_endpoint

    def snapshot_brake(self) -> Brake:
        self._previous_brake = self._state.brake
        return self._previous_brake

    def preempt(self) -> None:
        """Drop the unsent commands of every intent push currently in flight."""
        self._stop_generation += 1

    async def apply_intent(self, **updates: Any) -> bool:
        """
        Apply a partial update now and push it to the device if the link is up.

        ``speed`` must already be an int within 0-100; anything else raises
        ``ValueError``/``TypeError`` instead of being clamped. Returns ``True``
        when every command reached the device.
        """
        changes = validate_updates(updates)
        current = self._state
        was_active = current.session_active

        new_brake = changes.get("brake")
        if new_brake is not None and new_brake != current.brake and current.brake != Brake.NONE:
            self._previous_brake = current.brake
        commands = self._commands_for(changes)

        self._merge(changes)

        if was_active:
            for key in COMMAND_ORDER:
                if key in changes:
                    self.record(f"{key} changed to {changes[key]}")

        if not self._monitor.is_connected:
            for key, _ in commands:
                self._emit(AlertLevel.INFO, f"{_describe(key, changes[key])} (offline)")
            return False

        generation = self._stop_generation
        failures: List[CommandFailed] = []
        for index, (key, path) in enumerate(commands):
            if self._stop_generation != generation:
                dropped = [pending for _, pending in commands[index:]]
                logger.warning("Safety stop in progress, dropping queued commands: %s", dropped)
                return False
            try:
                await self.send(path)
            except CommandFailed as exc:
                logger.warning("Device command failed, keeping local state: %s", exc)
                failures.append(exc)
                self._emit(AlertLevel.WARNING, f"{_describe(key, changes[key])} locally, device did not confirm")
            else:
                self._emit(AlertLevel.SUCCESS, _describe(key, changes[key]))

        if failures:
            if was_active:
                self.record("Device communication lost - operating offline")
            return False
        return True

    def apply_local(self, **updates: Any) -> None:
        """Merge without events or device commands; used by the safety and session paths."""
        self._merge(validate_updates(updates))

    def fold_status(self, text: str) -> Dict[str, Any]:
        updates = parse_status(text)
        if updates:
            self._merge(updates)
        return updates

    async def refresh_status(self, endpoint: Optional[str] = None) -> bool:
        try:
            text = await self.send(STATUS_PATH, timeout=self._timeouts.probe, endpoint=endpoint)
        except CommandFailed as exc:
            logger.debug("Status refresh failed: %s", exc)
            return False
        folded = self.fold_status(text)
        logger.debug("Folded device status: %s", folded)
        return True

    async def send(self, path: str, *, timeout: Optional[float] = None, endpoint: Optional[str] = None) -> str:
        target = endpoint or self._monitor.current_endpoint
        if target is None:
            raise CommandFailed(path, "offline")
        return await self._transport.get(target, path, timeout=timeout or self._timeouts.command)

    def record(self, text: str) -> None:
        if self.on_event is not None:
            self.on_event(text)

    # ------------------------------------------------------------------
    def _merge(self, updates: Dict[str, Any]) -> None:
        self._state = dataclasses.replace(self._state, **updates)

    def _commands_for(self, changes: Dict[str, Any]) -> List[Tuple[str, str]]:
        commands: List[Tuple[str, str]] = []
        for key in COMMAND_ORDER:
            if key not in changes:
                continue
            value = changes[key]
            if key == "direction":
                commands.append((key, direction_path(value)))
            elif key == "brake":
                commands.append((key, brake_path(value)))
            else:
                commands.append((key, speed_path(value)))
        return commands

    def _emit(self, level: AlertLevel, message: str) -> None:
        if self._alerts is not None:
            self._alerts.emit(level, AlertCategory.OPERATION, message)


def validate_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(updates) - set(FIELDS)
    if unknown:
        raise TypeError(f"Unknown device state fields: {', '.join(sorted(unknown))}")
    changes: Dict[str, Any] = {}
    for key, value in updates.items():
        if value is None:
            continue
        if key == "direction":
            changes[key] = value if isinstance(value, Direction) else Direction.parse(str(value))
        elif key == "brake":
            changes[key] = value if isinstance(value, Brake) else Brake.parse(str(value))
        elif key == "speed":
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"speed must be an int, got {value!r}")
            if value < SPEED_MIN or value > SPEED_MAX:
                raise ValueError(f"speed must be within {SPEED_MIN}-{SPEED_MAX}, got {value}")
            changes[key] = value
        else:
            changes[key] = bool(value)
    return changes


def _describe(key: str, value: Any) -> str:
    if key == "direction":
        return f"Motor direction set to {value}"
    if key == "brake":
        if value == Brake.NONE:
            return "Brake released"
        return f"{value} brake applied"
    return f"Motor speed set to {value}%"
