"""Session lifecycle, running duration, and the timestamped event log."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime
from typing import List, Optional

from ..config import SessionSettings
from ..errors import CommandFailed
from ..state.models import Direction, SessionData, SessionEvent
from ..state.reconciler import DeviceStateReconciler
from ..state.status import parse_log_lines

logger = logging.getLogger(__name__)

START_PATH = "/startSession"
END_PATH = "/endSession"
LOG_PATH = "/getSessionLog"


def format_duration(seconds: float) -> str:
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class SessionRecorder:
    """
    Own :class:`SessionData`.

    Two timers run between ``start()`` and ``stop()``: a duration ticker and a
    device-log poller. Both are no-ops while no session is active. The poller
    replaces the local log with the device's copy because the device is the
    authoritative event source once it is reachable.
    """

    def __init__(self, reconciler: DeviceStateReconciler, *, settings: SessionSettings) -> None:
        self._reconciler = reconciler
        self._settings = settings
        self._data = SessionData()
        self._tick_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None

        reconciler.on_event = self.record

    # ------------------------------------------------------------------
    @property
    def active(self) -> bool:
        return self._reconciler.state.session_active

    @property
    def data(self) -> SessionData:
        return SessionData(
            start_time=self._data.start_time,
            duration=self._data.duration,
            events=list(self._data.events),
        )

    @property
    def events(self) -> List[SessionEvent]:
        return list(self._data.events)

    @property
    def duration(self) -> str:
        if self._data.start_time is None:
            return "00:00:00"
        return format_duration((datetime.now() - self._data.start_time).total_seconds())

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        if self._tick_task is None or self._tick_task.done():
            self._tick_task = loop.create_task(self._tick_loop(), name="SessionDuration")
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = loop.create_task(self._poll_loop(), name="SessionLogPoller")

    async def stop(self) -> None:
        tasks = [task for task in (self._tick_task, self._poll_task) if task is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tick_task = None
        self._poll_task = None

    def record(self, text: str) -> SessionEvent:
        event = SessionEvent(timestamp=datetime.now(), text=text)
        self._data.events.append(event)
        logger.info("Session event: %s", text)
        return event

    async def start_session(self) -> None:
        if self.active:
            logger.warning("start_session called while a session is already active")
            return
        started = datetime.now()
        self._reconciler.apply_local(session_active=True)
        self._data = SessionData(start_time=started, duration="00:00:00", events=[])
        endpoint = self._reconciler.endpoint if self._reconciler.is_connected else None
        self.record(f"Session started at {started.strftime('%Y-%m-%d %H:%M:%S')} (link: {endpoint or 'offline'})")

        if not self._reconciler.is_connected:
            self.record("Operating in offline mode")
            return
        try:
            await self._reconciler.send(START_PATH)
        except CommandFailed as exc:
            logger.warning("Device did not acknowledge session start: %s", exc)
            self.record("Device connection lost - continuing offline")
        else:
            self.record("Connected to device successfully")

    async def end_session(self) -> None:
        """Close the session; brake is left where it is."""
        if not self.active:
            logger.warning("end_session called without an active session")
            return
        self.record(f"Session ended at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        if self._reconciler.is_connected:
            try:
                final_log = await self._reconciler.send(END_PATH)
            except CommandFailed as exc:
                logger.info("Session ended offline: %s", exc)
                self.record("Session ended offline - data saved locally")
            else:
                self._merge_device_lines(parse_log_lines(final_log))
                self.record("Session data saved to device")

        await asyncio.sleep(self._settings.end_flush_delay)
        self._data.duration = self.duration
        self._reconciler.apply_local(session_active=False, direction=Direction.NONE, speed=0)

    def clear(self) -> List[SessionEvent]:
        """Drop the session data and hand back the events that were discarded."""
        discarded = list(self._data.events)
        self._data = SessionData()
        return discarded

    def report(self) -> str:
        lines = [
            f"Start: {self._data.start_time.strftime('%Y-%m-%d %H:%M:%S') if self._data.start_time else '-'}",
            f"Duration: {self._data.duration or '00:00:00'}",
            "Events:",
        ]
        lines.extend(f"  {event}" for event in self._data.events)
        return "\n".join(lines)

    async def refresh_device_log(self) -> bool:
        try:
            text = await self._reconciler.send(LOG_PATH)
        except CommandFailed as exc:
            logger.debug("Session log fetch failed: %s", exc)
            return False
        lines = parse_log_lines(text)
        if not lines:
            # An empty device log must not wipe what was recorded locally.
            return False
        fetched = datetime.now()
        self._data.events = [SessionEvent(timestamp=fetched, text=line) for line in lines]
        return True

    # ------------------------------------------------------------------
    async def _tick_loop(self) -> None:
        while True:
            if self.active and self._data.start_time is not None:
                self._data.duration = self.duration
            await asyncio.sleep(self._settings.tick_interval)

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._settings.log_poll_interval)
            if not (self.active and self._reconciler.is_connected):
                continue
            try:
                await self._reconciler.refresh_status()
                await self.refresh_device_log()
            except Exception:  # noqa: BLE001
                logger.exception("Session log polling failed")

    def _merge_device_lines(self, lines: List[str]) -> None:
        known = {event.text for event in self._data.events}
        now = datetime.now()
        for line in lines:
            if line not in known:
                self._data.events.append(SessionEvent(timestamp=now, text=line))
                known.add(line)
