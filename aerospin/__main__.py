"""Headless console: keep the device link monitored and log what happens."""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from .alerts import Alert, AlertLog
from .config import ControlConfig
from .controller import DeviceController

logger = logging.getLogger("aerospin")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="AEROSPIN device link monitor")
    parser.add_argument("--config", type=Path, default=None, help="Path to a config.yml file")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--status-every", type=float, default=30.0, help="Seconds between status lines")
    return parser.parse_args(argv)


async def run(config: ControlConfig, status_every: float) -> None:
    alerts = AlertLog()
    alerts.subscribe(_log_alert)
    controller = DeviceController(config, alerts=alerts)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Windows: fall back to KeyboardInterrupt
            pass

    controller.start()
    try:
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=status_every)
            except asyncio.TimeoutError:
                snapshot = controller.snapshot()
                logger.info("device=%s connection=%s", snapshot["device"], snapshot["connection"])
    finally:
        await controller.stop()


def _log_alert(alert: Alert) -> None:
    logger.info("[%s] %s: %s", alert.category.value, alert.level.value.upper(), alert.message)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = ControlConfig.load(args.config) if args.config else ControlConfig.default()
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.error("Could not load config: %s", exc)
        return 2
    try:
        asyncio.run(run(config, args.status_every))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
