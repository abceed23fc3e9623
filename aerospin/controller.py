"""Wire the connectivity, state, safety and session components together."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .alerts import AlertEmitter, AlertLog
from .config import ControlConfig
from .safety.sequencer import SafetySequencer
from .session.recorder import SessionRecorder
from .state.models import Brake, DeviceState, Direction, SessionEvent
from .state.reconciler import DeviceStateReconciler
from .transport.http_client import DeviceTransport
from .transport.link_monitor import ConnectionMonitor
from .transport.resolver import EndpointResolver, NetworkInfoProvider

logger = logging.getLogger(__name__)


class DeviceController:
    """
    Everything runs on the caller's event loop. ``start()`` arms the connection
    monitor and the session timers, ``stop()`` tears all of them down.
    """

    def __init__(
        self,
        config: Optional[ControlConfig] = None,
        *,
        transport: Optional[DeviceTransport] = None,
        network_info: Optional[NetworkInfoProvider] = None,
        alerts: Optional[AlertEmitter] = None,
    ) -> None:
        self.config = config or ControlConfig.default()
        self.alerts = alerts if alerts is not None else AlertLog()
        self.transport = transport or DeviceTransport(default_timeout=self.config.timeouts.command)
        self.resolver = EndpointResolver(self.config.endpoints, network_info=network_info)
        self.monitor = ConnectionMonitor(
            self.resolver,
            self.transport,
            settings=self.config.monitor,
            probe_timeout=self.config.timeouts.probe,
            alerts=self.alerts,
        )
        self.reconciler = DeviceStateReconciler(
            self.transport,
            self.monitor,
            timeouts=self.config.timeouts,
            alerts=self.alerts,
        )
        self.recorder = SessionRecorder(self.reconciler, settings=self.config.session)
        self.safety = SafetySequencer(
            self.reconciler,
            self.recorder,
            self.monitor,
            timeouts=self.config.timeouts,
            reset=self.config.reset,
            alerts=self.alerts,
        )
        self.monitor.on_online = self.reconciler.refresh_status

    # ------------------------------------------------------------------
    def start(self) -> None:
        logger.info("Starting device controller")
        self.monitor.start()
        self.recorder.start()

    async def stop(self) -> None:
        await self.monitor.stop()
        await self.recorder.stop()
        logger.info("Device controller stopped")

    @property
    def state(self) -> DeviceState:
        return self.reconciler.state

    @property
    def is_connected(self) -> bool:
        return self.monitor.is_connected

    # ------------------------------------------------------------------
    async def update(self, **updates: Any) -> bool:
        return await self.reconciler.apply_intent(**updates)

    async def set_direction(self, direction: Direction) -> bool:
        return await self.reconciler.apply_intent(direction=direction)

    async def set_brake(self, brake: Brake) -> bool:
        return await self.reconciler.apply_intent(brake=brake)

    async def set_speed(self, speed: int) -> bool:
        return await self.reconciler.apply_intent(speed=speed)

    async def emergency_stop(self) -> bool:
        return await self.safety.emergency_stop()

    async def reset_device(self) -> List[SessionEvent]:
        return await self.safety.reset_device()

    async def release_brake(self) -> bool:
        return await self.safety.release_brake()

    async def start_session(self) -> None:
        await self.recorder.start_session()

    async def end_session(self) -> None:
        await self.recorder.end_session()

    async def probe_now(self) -> bool:
        return await self.monitor.probe_now()

    def snapshot(self) -> Dict[str, Any]:
        session = self.recorder.data
        session.duration = self.recorder.duration if self.recorder.active else session.duration
        return {
            "device": self.reconciler.state.to_dict(),
            "previous_brake": self.reconciler.previous_brake.value,
            "connection": self.monitor.state.to_dict(),
            "resolver_reason": self.resolver.last_reason,
            "session": session.to_dict(),
        }
