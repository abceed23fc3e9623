"""Thread-safe bridge between a synchronous host (GUI, REPL) and the async controller."""
from __future__ import annotations

import asyncio
import queue
import threading
from concurrent.futures import Future
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .alerts import Alert, AlertLog
from .config import ControlConfig
from .controller import DeviceController
from .state.models import Brake, Direction, SessionEvent
from .state.reconciler import validate_updates
from .transport.http_client import DeviceTransport
from .transport.resolver import NetworkInfoProvider


class ClientAPI:
    """
    Run a :class:`DeviceController` on a private event loop thread.

    Every state mutation still happens on that one thread; callers get
    ``concurrent.futures.Future`` objects back. Argument validation runs in the
    caller's thread so contract violations raise immediately.
    """

    def __init__(
        self,
        config: Optional[ControlConfig] = None,
        *,
        transport: Optional[DeviceTransport] = None,
        network_info: Optional[NetworkInfoProvider] = None,
    ) -> None:
        self._config = config or ControlConfig.default()
        self._transport = transport
        self._network_info = network_info

        self.alerts = AlertLog()
        self.controller: Optional[DeviceController] = None
        self.on_alert: Optional[Callable[[Alert], None]] = None

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_async: Optional[asyncio.Event] = None
        self._ready = threading.Event()
        self._lock = threading.Lock()
        self._alert_queue: "queue.SimpleQueue[Alert]" = queue.SimpleQueue()

        self.alerts.subscribe(self._handle_alert)

    # ------------------------------------------------------------------
    def configure(self, config: ControlConfig) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                raise RuntimeError("Stop the client before reconfiguring it")
            self._config = config

    def start(self, timeout: float = 5.0) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            self._ready.clear()
            self._thread = threading.Thread(target=self._run_loop, name="AerospinClient", daemon=True)
            self._thread.start()
        if not self._ready.wait(timeout):
            raise RuntimeError("Controller loop did not start in time")

    def stop(self, timeout: float = 5.0) -> None:
        loop = self._loop
        if loop is None:
            return
        if self._stop_async is not None:
            loop.call_soon_threadsafe(self._stop_async.set)
        if self._thread:
            self._thread.join(timeout=timeout)
        self._thread = None
        self._loop = None
        self._stop_async = None
        self.controller = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self._ready.is_set()

    # ------------------------------------------------------------------
    def update(self, **updates: Any) -> "Future[bool]":
        validate_updates(updates)
        return self._submit(lambda ctl: ctl.update(**updates))

    def set_direction(self, direction: Direction) -> "Future[bool]":
        return self.update(direction=direction)

    def set_brake(self, brake: Brake) -> "Future[bool]":
        return self.update(brake=brake)

    def set_speed(self, speed: int) -> "Future[bool]":
        return self.update(speed=speed)

    def emergency_stop(self) -> "Future[bool]":
        return self._submit(lambda ctl: ctl.emergency_stop())

    def reset_device(self) -> "Future[List[SessionEvent]]":
        return self._submit(lambda ctl: ctl.reset_device())

    def release_brake(self) -> "Future[bool]":
        return self._submit(lambda ctl: ctl.release_brake())

    def start_session(self) -> "Future[None]":
        return self._submit(lambda ctl: ctl.start_session())

    def end_session(self) -> "Future[None]":
        return self._submit(lambda ctl: ctl.end_session())

    def snapshot(self, timeout: float = 2.0) -> Dict[str, Any]:
        async def _read(ctl: DeviceController) -> Dict[str, Any]:
            return ctl.snapshot()

        return self._submit(_read).result(timeout=timeout)

    def drain_alerts(self) -> List[Alert]:
        drained: List[Alert] = []
        while True:
            try:
                drained.append(self._alert_queue.get_nowait())
            except queue.Empty:
                break
        return drained

    # ------------------------------------------------------------------
    def _submit(self, factory: Callable[[DeviceController], Awaitable[Any]]) -> "Future[Any]":
        loop = self._loop
        controller = self.controller
        if loop is None or controller is None or not self._ready.is_set():
            raise RuntimeError("Call start() before issuing commands")

        async def _call() -> Any:
            return await factory(controller)

        return asyncio.run_coroutine_threadsafe(_call(), loop)

    def _run_loop(self) -> None:
        loop = asyncio.new_event_loop()
        self._loop = loop
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(self._main())
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    async def _main(self) -> None:
        self._stop_async = asyncio.Event()
        controller = DeviceController(
            self._config,
            transport=self._transport,
            network_info=self._network_info,
            alerts=self.alerts,
        )
        self.controller = controller
        controller.start()
        self._ready.set()
        try:
            await self._stop_async.wait()
        finally:
            await controller.stop()
            self._ready.clear()

    def _handle_alert(self, alert: Alert) -> None:
        if self.on_alert:
            self.on_alert(alert)
        else:
            self._alert_queue.put(alert)
