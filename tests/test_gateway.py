"""HTTP gateway tests against an in-process aiohttp test server."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from truckgate.coordinator import LifecycleCoordinator
from truckgate.gateway import create_app
from truckgate.models.events import MessageType
from truckgate.models.truck import Container, Truck, TruckStatus
from truckgate.state.store import InMemoryTruckStore

PLATE = "AB-CD-12"

_CONTAINER_BODY = {
    "serialShippingContainerCode": "ABasdjfs",
    "containerType": "NORMAL",
    "products": [{"name": "Ca324", "productType": "NORMAL"}],
}


@dataclass
class RecordingPublisher:
    events: list[tuple[MessageType, dict[str, Any]]] = field(default_factory=list)

    async def publish(self, kind: MessageType, payload: Mapping[str, Any]) -> None:
        self.events.append((kind, dict(payload)))

    def of_kind(self, kind: MessageType) -> list[dict[str, Any]]:
        return [payload for published, payload in self.events if published == kind]


@pytest.fixture
def store() -> InMemoryTruckStore:
    return InMemoryTruckStore()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest_asyncio.fixture
async def client(store: InMemoryTruckStore, publisher: RecordingPublisher) -> AsyncIterator[TestClient]:
    app = create_app(LifecycleCoordinator(store, publisher))
    async with TestClient(TestServer(app)) as test_client:
        yield test_client


# ------------------------------------------------------------------
# POST /api/truck/arrive
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_arrive_without_plate_is_bad_request(client: TestClient, store: InMemoryTruckStore) -> None:
    resp = await client.post("/api/truck/arrive", json={"container": _CONTAINER_BODY})

    assert resp.status == 400
    assert (await resp.json())["error"] == "validation"
    assert await store.get_all() == []


@pytest.mark.asyncio
async def test_arrive_with_invalid_json_is_bad_request(client: TestClient) -> None:
    resp = await client.post("/api/truck/arrive", data=b"{not json", headers={"Content-Type": "application/json"})
    assert resp.status == 400


@pytest.mark.asyncio
async def test_arrive_with_undecodable_body_is_bad_request(client: TestClient, store: InMemoryTruckStore) -> None:
    resp = await client.post(
        "/api/truck/arrive",
        data=b'{"licensePlate": "\xff\xfe"}',
        headers={"Content-Type": "application/json; charset=utf-8"},
    )

    assert resp.status == 400
    assert (await resp.json())["error"] == "validation"
    assert await store.get_all() == []


@pytest.mark.asyncio
async def test_arrive_creates_truck_and_publishes(
    client: TestClient,
    store: InMemoryTruckStore,
    publisher: RecordingPublisher,
) -> None:
    resp = await client.post("/api/truck/arrive", json={"licensePlate": PLATE, "container": _CONTAINER_BODY})

    assert resp.status == 201
    body = await resp.json()
    assert body["licensePlate"] == PLATE
    assert body["status"] == "ARRIVING"
    assert (await store.find_by_plate(PLATE)).status == TruckStatus.ARRIVING
    arriving = publisher.of_kind(MessageType.TRUCK_ARRIVING)
    assert len(arriving) == 1
    assert arriving[0]["licensePlate"] == PLATE
    assert arriving[0]["container"]["serialShippingContainerCode"] == "ABasdjfs"


@pytest.mark.asyncio
async def test_second_arrive_is_bad_request(client: TestClient, publisher: RecordingPublisher) -> None:
    await client.post("/api/truck/arrive", json={"licensePlate": PLATE})

    resp = await client.post("/api/truck/arrive", json={"licensePlate": PLATE})

    assert resp.status == 400
    assert (await resp.json())["error"] == "precondition"
    assert len(publisher.events) == 1


# ------------------------------------------------------------------
# POST /api/truck/depart
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_depart_without_plate_is_bad_request(client: TestClient) -> None:
    resp = await client.post("/api/truck/depart", json={"container": _CONTAINER_BODY})
    assert resp.status == 400


@pytest.mark.asyncio
async def test_depart_unknown_truck_is_not_found(client: TestClient, store: InMemoryTruckStore) -> None:
    resp = await client.post("/api/truck/depart", json={"licensePlate": PLATE})

    assert resp.status == 404
    assert (await resp.json())["error"] == "not_found"
    assert not await store.exists(PLATE)


@pytest.mark.asyncio
async def test_depart_while_arriving_is_bad_request(client: TestClient, publisher: RecordingPublisher) -> None:
    await client.post("/api/truck/arrive", json={"licensePlate": PLATE})

    resp = await client.post("/api/truck/depart", json={"licensePlate": PLATE})

    assert resp.status == 400
    assert publisher.of_kind(MessageType.TRUCK_DEPARTING) == []


@pytest.mark.asyncio
async def test_depart_from_arrived_keeps_container(
    client: TestClient,
    store: InMemoryTruckStore,
    publisher: RecordingPublisher,
) -> None:
    container = Container.model_validate(_CONTAINER_BODY)
    await store.create(Truck(license_plate=PLATE, status=TruckStatus.ARRIVED, container=container))

    resp = await client.post(
        "/api/truck/depart",
        json={"licensePlate": PLATE, "container": {"serialShippingContainerCode": "OTHER"}},
    )

    assert resp.status == 200
    body = await resp.json()
    assert body["status"] == "DEPARTING"
    assert body["container"]["serialShippingContainerCode"] == "ABasdjfs"
    assert (await store.find_by_plate(PLATE)).container == container
    departing = publisher.of_kind(MessageType.TRUCK_DEPARTING)
    assert len(departing) == 1
    assert departing[0]["licensePlate"] == PLATE


# ------------------------------------------------------------------
# Queries, confirmations, administration
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_trucks(client: TestClient, store: InMemoryTruckStore) -> None:
    for plate in ("AB", "AB-CD", "AB-12"):
        await store.create(Truck(license_plate=plate))

    resp = await client.get("/api/truck")

    assert resp.status == 200
    plates = {truck["licensePlate"] for truck in await resp.json()}
    assert {"AB", "AB-CD", "AB-12"} <= plates


@pytest.mark.asyncio
async def test_get_truck(client: TestClient, store: InMemoryTruckStore) -> None:
    await store.create(Truck(license_plate=PLATE))

    found = await client.get(f"/api/truck/{PLATE}")
    missing = await client.get("/api/truck/ZZ-99")

    assert found.status == 200
    assert (await found.json())["licensePlate"] == PLATE
    assert missing.status == 404


@pytest.mark.asyncio
async def test_gate_confirmations(client: TestClient, store: InMemoryTruckStore) -> None:
    await client.post("/api/truck/arrive", json={"licensePlate": PLATE})

    arrived = await client.post(f"/api/truck/{PLATE}/arrived")
    assert arrived.status == 200
    assert (await arrived.json())["status"] == "ARRIVED"

    await client.post("/api/truck/depart", json={"licensePlate": PLATE})
    departed = await client.post(f"/api/truck/{PLATE}/departed")
    assert departed.status == 200
    assert (await store.find_by_plate(PLATE)).status == TruckStatus.DEPARTED


@pytest.mark.asyncio
async def test_confirm_arrival_twice_is_bad_request(client: TestClient) -> None:
    await client.post("/api/truck/arrive", json={"licensePlate": PLATE})
    await client.post(f"/api/truck/{PLATE}/arrived")

    resp = await client.post(f"/api/truck/{PLATE}/arrived")

    assert resp.status == 400


@pytest.mark.asyncio
async def test_delete_truck(client: TestClient, store: InMemoryTruckStore) -> None:
    await store.create(Truck(license_plate=PLATE))

    resp = await client.delete(f"/api/truck/{PLATE}")

    assert resp.status == 200
    assert not await store.exists(PLATE)
    assert (await client.delete(f"/api/truck/{PLATE}")).status == 404


@pytest.mark.asyncio
async def test_health(client: TestClient) -> None:
    resp = await client.get("/api/health")
    assert resp.status == 200
    assert await resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_store_timeout_is_gateway_timeout(store: InMemoryTruckStore, publisher: RecordingPublisher) -> None:
    app = create_app(LifecycleCoordinator(store, publisher, store_timeout=0.05), api_prefix="/v1/")
    await store.create(Truck(license_plate=PLATE, status=TruckStatus.ARRIVED))

    async with TestClient(TestServer(app)) as test_client:
        async with store.lock(PLATE):
            resp = await test_client.post("/v1/truck/depart", json={"licensePlate": PLATE})
        assert resp.status == 504
        assert (await resp.json())["error"] == "timeout"

    assert (await store.find_by_plate(PLATE)).status == TruckStatus.ARRIVED
