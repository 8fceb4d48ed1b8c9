"""Service wiring: store, bus, coordinator, dispatcher and HTTP gateway."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any

from aiohttp import web

from truckgate._mqtt import LoggingEventPublisher, MqttBusRuntime, MqttEventPublisher
from truckgate._redact import redact_for_log
from truckgate.config import TruckGateConfig
from truckgate.coordinator import EventPublisher, LifecycleCoordinator
from truckgate.exceptions import TruckGateError
from truckgate.gateway import create_app
from truckgate.ingestion.decode import BusMessage
from truckgate.ingestion.dispatcher import InboundEventDispatcher
from truckgate.state.store import InMemoryTruckStore, TruckStore

_logger = logging.getLogger(__name__)


class TruckGateService:
    """Owns the runtime pieces of a truckgate process.

    Usage::

        async with TruckGateService(TruckGateConfig.from_env()) as service:
            await service.serve(stop_event)
    """

    def __init__(
        self,
        config: TruckGateConfig,
        *,
        store: TruckStore | None = None,
        publisher: EventPublisher | None = None,
    ) -> None:
        self._config = config
        self._store: TruckStore = store if store is not None else InMemoryTruckStore()
        self._publisher = publisher
        self._loop: asyncio.AbstractEventLoop | None = None
        self._runtime: MqttBusRuntime | None = None
        self._coordinator: LifecycleCoordinator | None = None
        self._dispatcher: InboundEventDispatcher | None = None
        self._pending: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TruckGateService:
        self._loop = asyncio.get_running_loop()
        _logger.debug("Starting with config=%s", redact_for_log(dataclasses.asdict(self._config)))
        publisher = self._publisher
        if publisher is None:
            publisher = await self._start_bus() if self._config.mqtt_enabled else LoggingEventPublisher()
        self._coordinator = LifecycleCoordinator.from_config(self._config, self._store, publisher)
        self._dispatcher = InboundEventDispatcher(
            self._coordinator,
            reject_unknown_events=self._config.reject_unknown_events,
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        runtime = self._runtime
        self._runtime = None
        if runtime is not None and self._loop is not None:
            await self._loop.run_in_executor(None, runtime.stop)
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._loop = None

    async def _start_bus(self) -> MqttEventPublisher:
        assert self._loop is not None  # noqa: S101
        runtime = MqttBusRuntime(loop=self._loop, config=self._config, on_message=self._on_bus_message)
        await self._loop.run_in_executor(None, runtime.start)
        self._runtime = runtime
        return MqttEventPublisher(runtime, topic=self._config.outbound_topic)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def coordinator(self) -> LifecycleCoordinator:
        if self._coordinator is None:
            raise TruckGateError("Service not started. Use 'async with TruckGateService(...) as service:'")
        return self._coordinator

    @property
    def dispatcher(self) -> InboundEventDispatcher:
        if self._dispatcher is None:
            raise TruckGateError("Service not started. Use 'async with TruckGateService(...) as service:'")
        return self._dispatcher

    # ------------------------------------------------------------------
    # Bus and HTTP
    # ------------------------------------------------------------------

    def _on_bus_message(self, message: BusMessage) -> None:
        """Schedule one bus message; each message is processed independently."""
        if self._loop is None:
            _logger.debug("Dropping %s received after shutdown", message.kind)
            return
        task = self._loop.create_task(self.dispatcher.handle(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def create_web_app(self) -> web.Application:
        return create_app(self.coordinator, api_prefix=self._config.api_prefix)

    async def serve(self, stop: asyncio.Event) -> None:
        """Serve the HTTP gateway until *stop* is set."""
        runner = web.AppRunner(self.create_web_app())
        await runner.setup()
        try:
            site = web.TCPSite(runner, self._config.http_host, self._config.http_port)
            await site.start()
            _logger.info("Gateway listening on %s:%s", self._config.http_host, self._config.http_port)
            await stop.wait()
        finally:
            await runner.cleanup()
