"""Work out which base URL the device is reachable at."""
from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional
from urllib.parse import urlparse

from ..config import EndpointSettings
from ..errors import ResolutionFailure

logger = logging.getLogger(__name__)


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"
    CHECKING = "checking"


@dataclass(frozen=True)
class NetworkInfo:
    """What the host knows about its current network attachment."""

    ip_address: Optional[str]
    is_connected: bool = True
    network_type: str = "unknown"
    permission: PermissionStatus = PermissionStatus.GRANTED


NetworkInfoProvider = Callable[[], NetworkInfo]


def host_network_info(probe_host: str = "192.168.4.1", probe_port: int = 80) -> NetworkInfo:
    """
    Report the address of the interface that routes towards ``probe_host``.

    A UDP ``connect`` only selects a route, no packet leaves the host.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect((probe_host, probe_port))
        ip_address = sock.getsockname()[0]
    except OSError as exc:
        logger.debug("No route towards %s: %s", probe_host, exc)
        return NetworkInfo(ip_address=None, is_connected=False)
    finally:
        sock.close()
    return NetworkInfo(ip_address=ip_address, is_connected=True, network_type="wifi")


def derive_candidate(ip_address: str, device_host: int) -> Optional[str]:
    parts = ip_address.split(".")
    if len(parts) != 4 or not all(part.isdigit() for part in parts):
        return None
    return f"http://{'.'.join(parts[:3])}.{device_host}"


class EndpointResolver:
    """Single discovery strategy: proxy, known subnet, placeholder guard, derived guess."""

    def __init__(
        self,
        settings: EndpointSettings,
        *,
        network_info: Optional[NetworkInfoProvider] = None,
    ) -> None:
        self._settings = settings
        if network_info is None:
            device_host = urlparse(settings.device_url).hostname or "192.168.4.1"
            network_info = lambda: host_network_info(device_host)  # noqa: E731
        self._network_info = network_info
        self.last_reason: Optional[str] = None

    def resolve(self) -> Optional[str]:
        settings = self._settings
        if settings.proxy_url:
            self.last_reason = "proxy"
            return settings.proxy_url

        try:
            info = self._network_info()
        except Exception as exc:  # noqa: BLE001
            self.last_reason = f"network info unavailable: {exc}"
            logger.debug("Endpoint resolution failed: %s", self.last_reason)
            return None

        if info.permission == PermissionStatus.DENIED:
            self.last_reason = "network permission denied"
            return None
        if not info.is_connected or not info.ip_address:
            self.last_reason = "host not attached to a network"
            return None

        ip_address = info.ip_address
        if ip_address.startswith(settings.subnet_prefix):
            self.last_reason = f"on device subnet ({ip_address})"
            return settings.device_url
        if ip_address in settings.invalid_ips:
            self.last_reason = f"placeholder address {ip_address}"
            return None

        candidate = derive_candidate(ip_address, settings.device_host)
        if candidate is None:
            self.last_reason = f"unparseable address {ip_address}"
            return None
        self.last_reason = f"derived from {ip_address}"
        return candidate

    def require(self) -> str:
        endpoint = self.resolve()
        if endpoint is None:
            raise ResolutionFailure(self.last_reason or "unknown")
        return endpoint

    def candidates(self) -> List[str]:
        """Resolved endpoint first, then the static fallback list, without duplicates."""
        ordered: List[str] = []
        try:
            ordered.append(self.require())
        except ResolutionFailure as exc:
            logger.debug("%s, falling back to known endpoints", exc)
        if self._settings.proxy_url:
            return ordered
        for url in self._settings.fallback_urls:
            if url not in ordered:
                ordered.append(url)
        return ordered
