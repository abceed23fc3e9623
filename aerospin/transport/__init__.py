"""Endpoint discovery, HTTP transport and link monitoring."""

from .http_client import DeviceTransport
from .link_monitor import ConnectionMonitor
from .resolver import EndpointResolver, NetworkInfo, PermissionStatus
from .retry import RetryPolicy

__all__ = ["ConnectionMonitor", "DeviceTransport", "EndpointResolver", "NetworkInfo", "PermissionStatus", "RetryPolicy"]
