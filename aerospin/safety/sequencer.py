"""Emergency stop, reset, and brake release as ordered composite operations."""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from ..alerts import AlertCategory, AlertEmitter, AlertLevel
from ..config import ResetSettings, TimeoutSettings
from ..errors import CommandFailed, ResetRecoveryExhausted
from ..session.recorder import SessionRecorder
from ..state.models import Brake, Direction, SessionEvent
from ..state.reconciler import DeviceStateReconciler, brake_path, direction_path, speed_path
from ..transport.link_monitor import ConnectionMonitor

logger = logging.getLogger(__name__)

RESET_PATH = "/reset"


class SafetySequencer:
    """
    None of these operations moves the brake to a new position. Emergency stop
    cuts motive force only, reset keeps the brake it found and re-applies it
    once the rebooted device answers again, and release is an explicit user
    brake intent.
    """

    def __init__(
        self,
        reconciler: DeviceStateReconciler,
        recorder: SessionRecorder,
        monitor: ConnectionMonitor,
        *,
        timeouts: TimeoutSettings,
        reset: ResetSettings,
        alerts: Optional[AlertEmitter] = None,
    ) -> None:
        self._reconciler = reconciler
        self._recorder = recorder
        self._monitor = monitor
        self._timeouts = timeouts
        self._reset = reset
        self._alerts = alerts

    async def emergency_stop(self) -> bool:
        self._reconciler.preempt()
        preserved = self._reconciler.snapshot_brake()
        self._reconciler.apply_local(speed=0, direction=Direction.NONE)
        self._emit(AlertLevel.ERROR, "Emergency stop activated - All operations halted")

        delivered = False
        if not self._monitor.is_connected:
            outcome = "offline mode, local stop applied"
        else:
            failed = 0
            # Brake is deliberately not part of this sequence.
            for path in (speed_path(0), direction_path(Direction.NONE)):
                try:
                    await self._reconciler.send(path, timeout=self._timeouts.emergency)
                except CommandFailed as exc:
                    logger.warning("Emergency stop command failed: %s", exc)
                    failed += 1
            delivered = failed == 0
            if delivered:
                outcome = "commands sent to device"
            else:
                outcome = "device communication failed, local stop applied"

        self._recorder.record(
            f"EMERGENCY STOP ACTIVATED - speed 0, direction None, brake preserved: {preserved} ({outcome})"
        )
        return delivered

    async def reset_device(self) -> List[SessionEvent]:
        """
        Reset locally and on the device, keeping the brake.

        Returns the session events discarded at the end of the sequence, which
        include the reset bookkeeping itself.
        """
        self._reconciler.preempt()
        preserved = self._reconciler.snapshot_brake()
        if self._recorder.active:
            self._recorder.record("Emergency reset initiated")
            await self._recorder.end_session()

        self._reconciler.apply_local(
            direction=Direction.NONE,
            speed=0,
            session_active=False,
            brake=preserved,
        )

        if self._monitor.is_connected:
            await self._reset_online(preserved)
        else:
            self._recorder.record(f"Device reset (offline mode) - brake preserved: {preserved}")
        self._emit(AlertLevel.SUCCESS, "Device reset completed", category=AlertCategory.OPERATION)
        return self._recorder.clear()

    async def release_brake(self) -> bool:
        was_active = self._recorder.active
        delivered = await self._reconciler.apply_intent(brake=Brake.NONE)
        if was_active:
            self._recorder.record("Brake released")
        return delivered

    # ------------------------------------------------------------------
    async def _reset_online(self, preserved: Brake) -> None:
        try:
            await self._reconciler.send(RESET_PATH, timeout=self._timeouts.reset)
        except CommandFailed as exc:
            logger.info("Reset command did not complete, device may be restarting: %s", exc)
            self._recorder.record("Reset command sent - device restarting")
        else:
            self._recorder.record("Reset command acknowledged - waiting for device restart")
        self._monitor.mark_disconnected("device restarting after reset")

        try:
            attempts = await self._await_reconnect()
        except ResetRecoveryExhausted as exc:
            logger.warning("%s", exc)
            self._recorder.record(
                f"Device reset completed - manual reconnection required (brake preserved: {preserved})"
            )
            self._emit(AlertLevel.WARNING, f"Device did not reconnect after reset, {preserved} brake kept locally")
            return

        logger.info("Device back after reset (attempt %d)", attempts)
        self._recorder.record("Device reset completed - reconnected")
        if preserved == Brake.NONE:
            await self._reconciler.refresh_status()
            return
        try:
            await self._reconciler.send(brake_path(preserved), timeout=self._timeouts.command)
        except CommandFailed as exc:
            logger.error("Could not restore %s brake after reset: %s", preserved, exc)
            self._recorder.record(f"Failed to restore {preserved} brake after reset - check brake manually")
            self._emit(AlertLevel.ERROR, f"{preserved} brake could not be restored after reset")
            return
        self._recorder.record(f"{preserved} brake restored after reset")
        await self._reconciler.refresh_status()

    async def _await_reconnect(self) -> int:
        settings = self._reset
        await asyncio.sleep(settings.settle_delay)
        for attempt in range(1, settings.reconnect_attempts + 1):
            if await self._monitor.check_liveness(refresh=False, timeout=self._timeouts.probe):
                return attempt
            if attempt < settings.reconnect_attempts:
                await asyncio.sleep(settings.reconnect_delay)
        raise ResetRecoveryExhausted(settings.reconnect_attempts)

    def _emit(self, level: AlertLevel, message: str, *, category: AlertCategory = AlertCategory.SAFETY) -> None:
        if self._alerts is not None:
            self._alerts.emit(level, category, message)
