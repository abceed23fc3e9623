"""Periodic liveness probing for the device link."""
from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging
import time
from typing import Awaitable, Callable, List, Optional

from ..alerts import AlertCategory, AlertEmitter, AlertLevel
from ..config import MonitorSettings
from ..errors import CommandFailed
from ..state.models import ConnectionState
from .http_client import DeviceTransport
from .resolver import EndpointResolver
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

PING_PATH = "/ping"

OnlineCallback = Callable[[str], Awaitable[None]]


class ConnectionMonitor:
    """
    Own :class:`ConnectionState` and keep ``is_connected`` current.

    ``start()`` schedules an initial probe after ``initial_delay`` and then one
    tick per interval: ``connected_interval`` while the link is up,
    ``disconnected_interval`` while it is down. A tick that lands while a probe
    sequence is still running is dropped. Connection changes reach the alert
    emitter once per transition.
    """

    def __init__(
        self,
        resolver: EndpointResolver,
        transport: DeviceTransport,
        *,
        settings: MonitorSettings,
        probe_timeout: float = 2.0,
        alerts: Optional[AlertEmitter] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> None:
        self._resolver = resolver
        self._transport = transport
        self._settings = settings
        self._probe_timeout = probe_timeout
        self._alerts = alerts
        self._policy = policy or RetryPolicy.from_settings(settings)

        self._state = ConnectionState()
        self._timer_task: Optional[asyncio.Task] = None
        self._probe_task: Optional[asyncio.Task] = None

        self.on_online: Optional[OnlineCallback] = None

    # ------------------------------------------------------------------
    @property
    def state(self) -> ConnectionState:
        return dataclasses.replace(self._state)

    @property
    def is_connected(self) -> bool:
        return self._state.is_connected

    @property
    def current_endpoint(self) -> Optional[str]:
        return self._state.current_endpoint

    @property
    def running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start(self) -> None:
        if self.running:
            return
        self._timer_task = asyncio.get_running_loop().create_task(self._run(), name="ConnectionMonitor")

    async def stop(self) -> None:
        tasks = [task for task in (self._timer_task, self._probe_task) if task is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._timer_task = None
        self._probe_task = None

    def tick(self) -> bool:
        """Start a probe sequence unless one is already in flight."""
        if self._probe_task is not None and not self._probe_task.done():
            logger.debug("Probe still running, skipping tick")
            return False
        self._probe_task = asyncio.get_running_loop().create_task(self._guarded_probe(), name="ConnectionProbe")
        return True

    async def probe_now(self) -> bool:
        """Probe immediately, joining the sequence already in flight if there is one."""
        task = self._probe_task
        if task is None or task.done():
            task = self._probe_task = asyncio.get_running_loop().create_task(
                self._guarded_probe(), name="ConnectionProbe"
            )
        return await asyncio.shield(task)

    async def probe(self) -> bool:
        for attempt, delay in self._policy.schedule():
            if delay > 0:
                await asyncio.sleep(delay)
            self._state.last_connection_check = time.time()
            endpoint = await self._first_reachable(self._candidates())
            if endpoint is not None:
                await self._record_success(endpoint, refresh=True)
                return True
            logger.debug("Probe attempt %d/%d found no endpoint", attempt, self._policy.max_attempts)
        self._record_failure()
        return False

    async def check_liveness(self, *, refresh: bool = True, timeout: Optional[float] = None) -> bool:
        """Ping the last known endpoint once; used while waiting for a rebooting device."""
        endpoint = self._state.current_endpoint or self._resolver.resolve()
        if endpoint is None:
            candidates = self._candidates()
            if not candidates:
                return False
            endpoint = candidates[0]
        self._state.last_connection_check = time.time()
        if not await self._ping(endpoint, timeout):
            return False
        await self._record_success(endpoint, refresh=refresh)
        return True

    def mark_disconnected(self, reason: str) -> None:
        logger.info("Marking device disconnected: %s", reason)
        self._set_connected(False)

    # ------------------------------------------------------------------
    async def _run(self) -> None:
        await asyncio.sleep(self._settings.initial_delay)
        while True:
            self.tick()
            if self._probe_task is not None:
                # pick the next interval from this probe's outcome
                await asyncio.wait({self._probe_task})
            if self._state.is_connected:
                interval = self._settings.connected_interval
            else:
                interval = self._settings.disconnected_interval
            await asyncio.sleep(interval)

    async def _guarded_probe(self) -> bool:
        try:
            return await self.probe()
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            logger.exception("Connection probe crashed")
            return False

    def _candidates(self) -> List[str]:
        candidates = self._resolver.candidates()
        current = self._state.current_endpoint
        if current and current not in candidates:
            candidates.append(current)
        return candidates

    async def _first_reachable(self, candidates: List[str]) -> Optional[str]:
        for endpoint in candidates:
            if await self._ping(endpoint, None):
                return endpoint
        return None

    async def _ping(self, endpoint: str, timeout: Optional[float]) -> bool:
        try:
            await self._transport.get(endpoint, PING_PATH, timeout=timeout or self._probe_timeout)
        except CommandFailed as exc:
            logger.debug("Ping %s failed: %s", endpoint, exc)
            return False
        return True

    async def _record_success(self, endpoint: str, *, refresh: bool) -> None:
        if endpoint != self._state.current_endpoint:
            logger.info("Device endpoint is now %s", endpoint)
        self._state.current_endpoint = endpoint
        self._state.connection_attempts = 0
        self._set_connected(True)
        if refresh and self.on_online is not None:
            try:
                await self.on_online(endpoint)
            except Exception:  # noqa: BLE001
                logger.exception("Status refresh after probe failed")

    def _record_failure(self) -> None:
        self._state.connection_attempts += 1
        logger.debug("Device unreachable (%d consecutive failed probes)", self._state.connection_attempts)
        self._set_connected(False)

    def _set_connected(self, connected: bool) -> None:
        was_connected = self._state.is_connected
        self._state.is_connected = connected
        if connected == was_connected:
            return
        if connected:
            logger.info("Connected to device at %s", self._state.current_endpoint)
            self._emit(AlertLevel.SUCCESS, f"Connected to AEROSPIN CONTROL at {self._state.current_endpoint}")
        else:
            logger.warning("Lost connection to device")
            self._emit(AlertLevel.ERROR, "Device connection lost")

    def _emit(self, level: AlertLevel, message: str) -> None:
        if self._alerts is not None:
            self._alerts.emit(level, AlertCategory.CONNECTION, message)
