"""Configuration loader for the AEROSPIN control client."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

SCHEMA = "aerospin/v1"


@dataclass(frozen=True)
class EndpointSettings:
    """Where the device is expected to live on the local network."""

    device_url: str = "http://192.168.4.1"
    subnet_prefix: str = "192.168.4."
    device_host: int = 1
    # Set for web deployments that route device calls through a reverse proxy.
    proxy_url: Optional[str] = None
    fallback_urls: Tuple[str, ...] = (
        "http://192.168.4.1",
        "http://192.168.1.1",
        "http://192.168.0.1",
    )
    invalid_ips: Tuple[str, ...] = ("0.0.0.0", "127.0.0.1")


@dataclass(frozen=True)
class TimeoutSettings:
    probe: float = 2.0
    command: float = 3.0
    emergency: float = 1.5
    reset: float = 8.0


@dataclass(frozen=True)
class MonitorSettings:
    initial_delay: float = 3.0
    connected_interval: float = 20.0
    disconnected_interval: float = 5.0
    retry_attempts: int = 3
    backoff_base: float = 1.0
    backoff_max: float = 8.0


@dataclass(frozen=True)
class ResetSettings:
    settle_delay: float = 5.0
    reconnect_attempts: int = 8
    reconnect_delay: float = 3.0


@dataclass(frozen=True)
class SessionSettings:
    tick_interval: float = 1.0
    log_poll_interval: float = 15.0
    end_flush_delay: float = 0.1


@dataclass(frozen=True)
class ControlConfig:
    """Strongly-typed configuration for the control client."""

    schema: str = SCHEMA
    endpoints: EndpointSettings = field(default_factory=EndpointSettings)
    timeouts: TimeoutSettings = field(default_factory=TimeoutSettings)
    monitor: MonitorSettings = field(default_factory=MonitorSettings)
    reset: ResetSettings = field(default_factory=ResetSettings)
    session: SessionSettings = field(default_factory=SessionSettings)

    @classmethod
    def default(cls) -> "ControlConfig":
        return cls()

    @classmethod
    def load(cls, path: Path) -> "ControlConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ControlConfig":
        if data.get("schema") != SCHEMA:
            raise ValueError(f"Unsupported config schema: {data.get('schema')}")
        endpoints_raw = data.get("endpoints", {}) or {}
        timeouts_raw = data.get("timeouts", {}) or {}
        monitor_raw = data.get("monitor", {}) or {}
        reset_raw = data.get("reset", {}) or {}
        session_raw = data.get("session", {}) or {}

        defaults = EndpointSettings()
        device_host = int(endpoints_raw.get("device_host", defaults.device_host))
        if not 0 < device_host < 255:
            raise ValueError(f"device_host must be a host octet, got {device_host}")
        proxy_url = endpoints_raw.get("proxy_url")
        endpoints = EndpointSettings(
            device_url=_normalize_url(endpoints_raw.get("device_url", defaults.device_url)),
            subnet_prefix=_normalize_prefix(endpoints_raw.get("subnet_prefix", defaults.subnet_prefix)),
            device_host=device_host,
            proxy_url=_normalize_url(proxy_url) if proxy_url else None,
            fallback_urls=tuple(
                _normalize_url(url) for url in endpoints_raw.get("fallback_urls", defaults.fallback_urls)
            ),
            invalid_ips=tuple(str(ip) for ip in endpoints_raw.get("invalid_ips", defaults.invalid_ips)),
        )

        timeouts = TimeoutSettings(
            probe=_positive("timeouts.probe", timeouts_raw.get("probe", 2.0)),
            command=_positive("timeouts.command", timeouts_raw.get("command", 3.0)),
            emergency=_positive("timeouts.emergency", timeouts_raw.get("emergency", 1.5)),
            reset=_positive("timeouts.reset", timeouts_raw.get("reset", 8.0)),
        )

        monitor = MonitorSettings(
            initial_delay=_non_negative("monitor.initial_delay", monitor_raw.get("initial_delay", 3.0)),
            connected_interval=_positive("monitor.connected_interval", monitor_raw.get("connected_interval", 20.0)),
            disconnected_interval=_positive(
                "monitor.disconnected_interval", monitor_raw.get("disconnected_interval", 5.0)
            ),
            retry_attempts=int(_positive("monitor.retry_attempts", monitor_raw.get("retry_attempts", 3))),
            backoff_base=_non_negative("monitor.backoff_base", monitor_raw.get("backoff_base", 1.0)),
            backoff_max=_non_negative("monitor.backoff_max", monitor_raw.get("backoff_max", 8.0)),
        )

        reset = ResetSettings(
            settle_delay=_non_negative("reset.settle_delay", reset_raw.get("settle_delay", 5.0)),
            reconnect_attempts=int(_positive("reset.reconnect_attempts", reset_raw.get("reconnect_attempts", 8))),
            reconnect_delay=_non_negative("reset.reconnect_delay", reset_raw.get("reconnect_delay", 3.0)),
        )

        session = SessionSettings(
            tick_interval=_positive("session.tick_interval", session_raw.get("tick_interval", 1.0)),
            log_poll_interval=_positive("session.log_poll_interval", session_raw.get("log_poll_interval", 15.0)),
            end_flush_delay=_non_negative("session.end_flush_delay", session_raw.get("end_flush_delay", 0.1)),
        )

        return cls(
            schema=data["schema"],
            endpoints=endpoints,
            timeouts=timeouts,
            monitor=monitor,
            reset=reset,
            session=session,
        )


def _normalize_url(raw: object) -> str:
    text = str(raw).strip()
    if not text:
        raise ValueError("Endpoint URL must not be empty")
    return text.rstrip("/")


def _normalize_prefix(raw: object) -> str:
    text = str(raw).strip()
    if not text.endswith("."):
        text = f"{text}."
    if text.count(".") != 3:
        raise ValueError(f"Subnet prefix must cover three octets: {raw}")
    return text


def _positive(name: str, raw: object) -> float:
    value = _as_float(name, raw)
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw}")
    return value


def _non_negative(name: str, raw: object) -> float:
    value = _as_float(name, raw)
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {raw}")
    return value


def _as_float(name: str, raw: object) -> float:
    if isinstance(raw, (bool, list, tuple, dict)):
        raise ValueError(f"Invalid value for {name}: {raw!r}")
    try:
        return float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from exc
