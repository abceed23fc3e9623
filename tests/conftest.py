import asyncio
from typing import Dict, List, Optional, Set, Tuple

import pytest

from aerospin.alerts import AlertLog
from aerospin.config import ControlConfig
from aerospin.controller import DeviceController
from aerospin.errors import CommandFailed
from aerospin.transport.resolver import NetworkInfo

DEVICE_URL = "http://192.168.4.1"


class FakeTransport:
    """In-memory stand-in for DeviceTransport that records every request."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, Optional[float]]] = []
        self.responses: Dict[str, str] = {}
        self.failing: Set[str] = set()
        self.reachable: Optional[Set[str]] = None
        self.gate: Optional[asyncio.Event] = None
        self.delays: Dict[str, float] = {}

    async def get(self, endpoint: str, path: str, *, timeout: Optional[float] = None) -> str:
        self.calls.append((endpoint, path, timeout))
        if self.gate is not None:
            await self.gate.wait()
        for prefix, seconds in self.delays.items():
            if path.startswith(prefix):
                await asyncio.sleep(seconds)
        if self.reachable is not None and endpoint not in self.reachable:
            raise CommandFailed(path, "network")
        for prefix in self.failing:
            if path.startswith(prefix):
                raise CommandFailed(path, "status", status=500)
        for prefix, text in self.responses.items():
            if path.startswith(prefix):
                return text
        return "OK"

    def paths(self) -> List[str]:
        return [path for _, path, _ in self.calls]

    def clear(self) -> None:
        self.calls.clear()


def fast_config(**overrides) -> ControlConfig:
    data = {
        "schema": "aerospin/v1",
        "monitor": {
            "initial_delay": 0,
            "connected_interval": 0.05,
            "disconnected_interval": 0.02,
            "retry_attempts": 1,
            "backoff_base": 0,
            "backoff_max": 0,
        },
        "reset": {"settle_delay": 0, "reconnect_attempts": 3, "reconnect_delay": 0},
        "session": {"tick_interval": 0.01, "log_poll_interval": 0.02, "end_flush_delay": 0},
    }
    for section, values in overrides.items():
        data.setdefault(section, {}).update(values)
    return ControlConfig.from_dict(data)


def on_device_subnet() -> NetworkInfo:
    return NetworkInfo(ip_address="192.168.4.37", network_type="wifi")


def make_controller(transport: FakeTransport, config: Optional[ControlConfig] = None) -> DeviceController:
    return DeviceController(
        config or fast_config(),
        transport=transport,  # type: ignore[arg-type]
        network_info=on_device_subnet,
        alerts=AlertLog(),
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def controller(transport: FakeTransport) -> DeviceController:
    return make_controller(transport)
