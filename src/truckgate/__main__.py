"""Command line entry point: ``truckgate`` / ``python -m truckgate``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from typing import Any

from truckgate.config import TruckGateConfig
from truckgate.service import TruckGateService


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Truck lifecycle service for a logistics gate.",
    )
    parser.add_argument("--host", help="Interface the HTTP gateway binds to.")
    parser.add_argument("--port", type=int, help="Port the HTTP gateway listens on.")
    parser.add_argument(
        "--no-mqtt",
        action="store_true",
        help="Do not connect to the message bus; outbound events are only logged.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging level.",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> TruckGateConfig:
    overrides: dict[str, Any] = {}
    if args.host:
        overrides["http_host"] = args.host
    if args.port is not None:
        overrides["http_port"] = args.port
    if args.no_mqtt:
        overrides["mqtt_enabled"] = False
    return TruckGateConfig.from_env(**overrides)


async def run(config: TruckGateConfig) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with TruckGateService(config) as service:
        await service.serve(stop)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run(build_config(args)))


if __name__ == "__main__":
    main()
