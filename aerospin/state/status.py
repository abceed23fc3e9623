"""Parse the plain-text payloads the device serves."""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from .models import SPEED_MAX, SPEED_MIN, Brake, Direction

logger = logging.getLogger(__name__)


def parse_status(text: str) -> Dict[str, Any]:
    """
    Turn a ``/status`` body into a partial device-state update.

    Recognised lines are ``Direction: <v>``, ``Brake: <v>``, ``Speed: <n>`` and
    ``Session: Active|<other>``. Anything else, including values the enums do
    not know, is skipped.
    """
    updates: Dict[str, Any] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or ":" not in line:
            continue
        key, _, value = line.partition(":")
        key = key.strip().lower()
        value = value.strip()
        if key == "direction":
            try:
                updates["direction"] = Direction.parse(value)
            except ValueError:
                logger.debug("Ignoring unknown direction in status: %s", value)
        elif key == "brake":
            try:
                updates["brake"] = Brake.parse(value)
            except ValueError:
                logger.debug("Ignoring unknown brake in status: %s", value)
        elif key == "speed":
            updates["speed"] = _parse_speed(value)
        elif key == "session":
            updates["session_active"] = value == "Active"
    return updates


def parse_log_lines(text: str) -> List[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def _parse_speed(value: str) -> int:
    digits = ""
    for char in value:
        if char.isdigit() or (char == "-" and not digits):
            digits += char
        else:
            break
    try:
        speed = int(digits)
    except ValueError:
        return 0
    if speed < SPEED_MIN or speed > SPEED_MAX:
        logger.warning("Device reported speed %s outside %s-%s, clamping", speed, SPEED_MIN, SPEED_MAX)
        return max(SPEED_MIN, min(SPEED_MAX, speed))
    return speed
