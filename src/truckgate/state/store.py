"""Keyed truck persistence.

The store is the single source of truth for truck records. It has no
lifecycle rules of its own; the coordinator is the only component allowed
to decide what gets written.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any, Protocol

from truckgate.exceptions import TruckAlreadyExistsError, TruckNotFoundError
from truckgate.models.truck import Container, Truck, TruckStatus

_logger = logging.getLogger(__name__)


class TruckStore(Protocol):
    """Structural store interface used by the coordinator.

    Store methods never lock on their own. Callers doing a
    read-modify-write hold :meth:`lock` for the plate for the whole
    sequence, which is what keeps concurrent updates to one truck from
    losing each other.
    """

    def lock(self, plate: str) -> AbstractAsyncContextManager[Any]: ...

    async def create(self, truck: Truck) -> Truck: ...

    async def exists(self, plate: str) -> bool: ...

    async def get(self, plate: str) -> Truck | None: ...

    async def find_by_plate(self, plate: str) -> Truck: ...

    async def get_all(self) -> list[Truck]: ...

    async def update_status(self, plate: str, status: TruckStatus) -> Truck: ...

    async def update_container(self, plate: str, container: Container | None) -> Truck: ...

    async def update_cleared_at(self, plate: str, cleared_at: datetime | None) -> Truck: ...

    async def save(self, truck: Truck) -> Truck: ...

    async def remove(self, plate: str) -> Truck: ...


class InMemoryTruckStore:
    """In-process store with one :class:`asyncio.Lock` per plate.

    Records are frozen models, so handing them out never exposes mutable
    store state. Every write replaces the record in a single assignment.
    """

    def __init__(self) -> None:
        self._trucks: dict[str, Truck] = {}
        # A lock lives only while some caller holds or waits on it.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def lock(self, plate: str) -> asyncio.Lock:
        lock = self._locks.get(plate)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[plate] = lock
        return lock

    def _require(self, plate: str) -> Truck:
        truck = self._trucks.get(plate)
        if truck is None:
            raise TruckNotFoundError(f"No truck with license plate {plate!r}", plate=plate)
        return truck

    async def create(self, truck: Truck) -> Truck:
        plate = truck.license_plate
        if plate in self._trucks:
            raise TruckAlreadyExistsError(f"Truck {plate!r} already exists", plate=plate)
        self._trucks[plate] = truck
        _logger.debug("Created truck %s status=%s", plate, truck.status)
        return truck

    async def exists(self, plate: str) -> bool:
        return plate in self._trucks

    async def get(self, plate: str) -> Truck | None:
        return self._trucks.get(plate)

    async def find_by_plate(self, plate: str) -> Truck:
        return self._require(plate)

    async def get_all(self) -> list[Truck]:
        return list(self._trucks.values())

    async def update_status(self, plate: str, status: TruckStatus) -> Truck:
        updated = self._require(plate).model_copy(update={"status": status})
        self._trucks[plate] = updated
        _logger.debug("Truck %s status=%s", plate, status)
        return updated

    async def update_container(self, plate: str, container: Container | None) -> Truck:
        updated = self._require(plate).model_copy(update={"container": container})
        self._trucks[plate] = updated
        _logger.debug(
            "Truck %s container=%s",
            plate,
            container.serial_shipping_container_code if container is not None else None,
        )
        return updated

    async def update_cleared_at(self, plate: str, cleared_at: datetime | None) -> Truck:
        updated = self._require(plate).model_copy(update={"cleared_at": cleared_at})
        self._trucks[plate] = updated
        return updated

    async def save(self, truck: Truck) -> Truck:
        """Replace the whole record for an existing plate."""
        self._require(truck.license_plate)
        self._trucks[truck.license_plate] = truck
        return truck

    async def remove(self, plate: str) -> Truck:
        truck = self._require(plate)
        del self._trucks[plate]
        _logger.debug("Removed truck %s", plate)
        return truck
