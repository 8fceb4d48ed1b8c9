from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest
from aiohttp.test_utils import TestClient, TestServer

from truckgate.__main__ import _parse_args, build_config
from truckgate._mqtt import LoggingEventPublisher
from truckgate.config import TruckGateConfig
from truckgate.exceptions import TruckGateError
from truckgate.ingestion.decode import BusMessage
from truckgate.models.events import MessageType
from truckgate.models.truck import TruckStatus
from truckgate.service import TruckGateService
from truckgate.state.store import InMemoryTruckStore

PLATE = "AB-CD-12"


@dataclass
class RecordingPublisher:
    events: list[tuple[MessageType, dict[str, Any]]] = field(default_factory=list)

    async def publish(self, kind: MessageType, payload: Mapping[str, Any]) -> None:
        self.events.append((kind, dict(payload)))


def test_accessors_require_started_service() -> None:
    service = TruckGateService(TruckGateConfig(mqtt_enabled=False))
    with pytest.raises(TruckGateError, match="not started"):
        _ = service.coordinator
    with pytest.raises(TruckGateError, match="not started"):
        _ = service.dispatcher


@pytest.mark.asyncio
async def test_disabled_bus_logs_events() -> None:
    async with TruckGateService(TruckGateConfig(mqtt_enabled=False)) as service:
        publisher = service.coordinator._publisher  # type: ignore[attr-defined]
        assert isinstance(publisher, LoggingEventPublisher)
        truck = await service.coordinator.request_arrival(PLATE)
    assert truck.status == TruckStatus.ARRIVING


@pytest.mark.asyncio
async def test_bus_messages_reach_the_store() -> None:
    store = InMemoryTruckStore()
    publisher = RecordingPublisher()

    async with TruckGateService(TruckGateConfig(mqtt_enabled=False), store=store, publisher=publisher) as service:
        await service.coordinator.request_arrival(PLATE)
        service._on_bus_message(BusMessage(kind="TruckCleared", payload={"licensePlate": PLATE}))  # type: ignore[attr-defined]
        service._on_bus_message(  # type: ignore[attr-defined]
            BusMessage(
                kind="ShipContainerUnloaded",
                payload={"licensePlate": PLATE, "container": {"serialShippingContainerCode": "X1"}},
            )
        )

    truck = await store.find_by_plate(PLATE)
    assert truck.is_cleared
    assert truck.container is not None
    assert truck.container.serial_shipping_container_code == "X1"
    assert [kind for kind, _ in publisher.events] == [MessageType.TRUCK_ARRIVING]


@pytest.mark.asyncio
async def test_web_app_uses_configured_prefix() -> None:
    config = TruckGateConfig(mqtt_enabled=False, api_prefix="/gate")
    async with TruckGateService(config, publisher=RecordingPublisher()) as service:
        async with TestClient(TestServer(service.create_web_app())) as client:
            resp = await client.post("/gate/truck/arrive", json={"licensePlate": PLATE})
            assert resp.status == 201


@pytest.mark.asyncio
async def test_messages_after_shutdown_are_dropped() -> None:
    service = TruckGateService(TruckGateConfig(mqtt_enabled=False), publisher=RecordingPublisher())
    async with service:
        pass

    service._on_bus_message(BusMessage(kind="TruckCleared", payload={"licensePlate": PLATE}))  # type: ignore[attr-defined]
    await asyncio.sleep(0)

    assert not service._pending  # type: ignore[attr-defined]


def test_cli_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRUCKGATE_HTTP_PORT", "9090")

    config = build_config(_parse_args(["--host", "127.0.0.1", "--no-mqtt"]))

    assert config.http_host == "127.0.0.1"
    assert config.http_port == 9090
    assert config.mqtt_enabled is False


@pytest.mark.asyncio
async def test_startup_log_masks_broker_password(caplog: pytest.LogCaptureFixture) -> None:
    config = TruckGateConfig(mqtt_enabled=False, mqtt_password="s3cret")

    with caplog.at_level(logging.DEBUG, logger="truckgate.service"):
        async with TruckGateService(config, publisher=RecordingPublisher()):
            pass

    assert "Starting with config" in caplog.text
    assert "s3cret" not in caplog.text
