"""Truck lifecycle coordinator.

Owns the read-modify-write cycle for every truck operation: re-read the
record from the store, apply the transition rules, write the result and
announce it on the bus. Operations on one plate are serialised through the
store's per-plate lock; different plates proceed independently.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from typing import Any, Protocol, TypeVar

from truckgate.config import TruckGateConfig
from truckgate.exceptions import TruckPublishError, TruckStoreTimeoutError, TruckValidationError
from truckgate.models.events import MessageType, truck_arriving_payload, truck_departing_payload
from truckgate.models.truck import Container, Truck
from truckgate.state.machine import (
    LifecycleAction,
    advance,
    attach_container,
    begin_visit,
    detach_container,
    mark_cleared,
)
from truckgate.state.store import TruckStore

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventPublisher(Protocol):
    """Fire-and-forget delivery of an outbound event to the bus."""

    async def publish(self, kind: MessageType, payload: Mapping[str, Any]) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _normalize_plate(plate: Any) -> str:
    if not isinstance(plate, str) or not plate.strip():
        raise TruckValidationError("A license plate is required")
    return plate.strip()


class LifecycleCoordinator:
    """Apply lifecycle requests and shipping events to truck records.

    Usage::

        coordinator = LifecycleCoordinator(InMemoryTruckStore(), publisher)
        truck = await coordinator.request_arrival("AB-CD-12")

    Every operation takes an optional ``timeout`` (seconds) bounding the
    store work, falling back to ``store_timeout``. The same value bounds the
    outbound publish, falling back to ``publish_timeout``. A ``None`` or
    non-positive bound means no limit.
    """

    def __init__(
        self,
        store: TruckStore,
        publisher: EventPublisher,
        *,
        store_timeout: float | None = 5.0,
        publish_timeout: float | None = 5.0,
        require_clearance_for_departure: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._publisher = publisher
        self._store_timeout = store_timeout
        self._publish_timeout = publish_timeout
        self._require_clearance = require_clearance_for_departure
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: TruckGateConfig,
        store: TruckStore,
        publisher: EventPublisher,
    ) -> LifecycleCoordinator:
        return cls(
            store,
            publisher,
            store_timeout=config.store_timeout,
            publish_timeout=config.publish_timeout,
            require_clearance_for_departure=config.require_clearance_for_departure,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _bounded(self, plate: str, work: Awaitable[T], timeout: float | None) -> T:
        effective = timeout if timeout is not None else self._store_timeout
        if effective is None or effective <= 0:
            return await work
        try:
            return await asyncio.wait_for(work, effective)
        except TimeoutError as exc:
            raise TruckStoreTimeoutError(
                f"Store operation for {plate or 'all trucks'} timed out after {effective}s",
                plate=plate,
                timeout=effective,
            ) from exc

    async def _locked(self, plate: str, fn: Callable[[], Awaitable[T]], timeout: float | None) -> T:
        """Run *fn* while holding the plate's lock, within the timeout.

        Cancellation can only land on an ``await`` before the single write
        call, so a timed-out operation never leaves a partial update.
        """

        async def _run() -> T:
            async with self._store.lock(plate):
                return await fn()

        return await self._bounded(plate, _run(), timeout)

    async def _publish(self, kind: MessageType, payload: Mapping[str, Any], timeout: float | None) -> None:
        """Best-effort publish; the committed state change is authoritative.

        Bounded by the caller's *timeout* when given, else ``publish_timeout``.
        """
        effective = timeout if timeout is not None else self._publish_timeout
        try:
            work = self._publisher.publish(kind, payload)
            if effective is None or effective <= 0:
                await work
            else:
                await asyncio.wait_for(work, effective)
        except TimeoutError:
            _logger.warning("Publishing %s timed out after %ss", kind, effective)
        except TruckPublishError as exc:
            _logger.warning("Publishing %s failed: %s", kind, exc)
        except Exception:
            _logger.exception("Publishing %s failed unexpectedly", kind)

    async def _advance(self, action: LifecycleAction, plate: str, timeout: float | None) -> Truck:
        async def _apply() -> Truck:
            truck = await self._store.find_by_plate(plate)
            updated = advance(action, truck, require_clearance=self._require_clearance)
            return await self._store.update_status(plate, updated.status)

        return await self._locked(plate, _apply, timeout)

    # ------------------------------------------------------------------
    # Lifecycle requests
    # ------------------------------------------------------------------

    async def request_arrival(
        self,
        plate: str,
        container: Container | None = None,
        *,
        timeout: float | None = None,
    ) -> Truck:
        """Start a visit for *plate* and announce ``TruckArriving``.

        Legal for an unseen plate or one whose previous visit ended in
        ``DEPARTED``. *container* is announced with the event but never
        stored; only shipping events change what a truck carries.

        Raises
        ------
        TruckValidationError
            If *plate* is blank.
        TruckPreconditionError
            If the truck is already arriving, arrived or departing.
        """
        plate = _normalize_plate(plate)

        async def _apply() -> Truck:
            current = await self._store.get(plate)
            truck = begin_visit(plate, current)
            if current is None:
                return await self._store.create(truck)
            return await self._store.save(truck)

        truck = await self._locked(plate, _apply, timeout)
        _logger.info("Truck %s arriving", plate)
        await self._publish(MessageType.TRUCK_ARRIVING, truck_arriving_payload(truck, container), timeout)
        return truck

    async def request_departure(self, plate: str, *, timeout: float | None = None) -> Truck:
        """Move an ``ARRIVED`` truck to ``DEPARTING`` and announce ``TruckDeparting``.

        The container on the truck is left exactly as it was.

        Raises
        ------
        TruckValidationError
            If *plate* is blank.
        TruckNotFoundError
            If the plate has no record.
        TruckPreconditionError
            If the truck is not ``ARRIVED`` (or not cleared when clearance
            is required).
        """
        plate = _normalize_plate(plate)
        truck = await self._advance(LifecycleAction.REQUEST_DEPARTURE, plate, timeout)
        _logger.info("Truck %s departing", plate)
        await self._publish(MessageType.TRUCK_DEPARTING, truck_departing_payload(truck), timeout)
        return truck

    async def confirm_arrival(self, plate: str, *, timeout: float | None = None) -> Truck:
        """Record that an ``ARRIVING`` truck is now at the gate."""
        plate = _normalize_plate(plate)
        truck = await self._advance(LifecycleAction.CONFIRM_ARRIVAL, plate, timeout)
        _logger.info("Truck %s arrived", plate)
        return truck

    async def confirm_departure(self, plate: str, *, timeout: float | None = None) -> Truck:
        """Record that an empty ``DEPARTING`` truck has left."""
        plate = _normalize_plate(plate)
        truck = await self._advance(LifecycleAction.CONFIRM_DEPARTURE, plate, timeout)
        _logger.info("Truck %s departed", plate)
        return truck

    # ------------------------------------------------------------------
    # Shipping events
    # ------------------------------------------------------------------

    async def container_loaded(
        self,
        plate: str,
        container: Container,
        *,
        timeout: float | None = None,
    ) -> Truck:
        """Put *container* on the truck, replacing any previous one.

        Replaying the same container is a no-op.

        Raises
        ------
        TruckNotFoundError
            If the plate has no record.
        """
        plate = _normalize_plate(plate)

        async def _apply() -> Truck:
            truck = await self._store.find_by_plate(plate)
            updated = attach_container(truck, container)
            if updated is None:
                _logger.debug("Truck %s container unchanged", plate)
                return truck
            return await self._store.update_container(plate, updated.container)

        return await self._locked(plate, _apply, timeout)

    async def container_unloaded(self, plate: str, *, timeout: float | None = None) -> Truck:
        """Take the container off the truck; a no-op if it carries none.

        Raises
        ------
        TruckNotFoundError
            If the plate has no record.
        """
        plate = _normalize_plate(plate)

        async def _apply() -> Truck:
            truck = await self._store.find_by_plate(plate)
            if detach_container(truck) is None:
                _logger.debug("Truck %s already empty", plate)
                return truck
            return await self._store.update_container(plate, None)

        return await self._locked(plate, _apply, timeout)

    async def cleared(self, plate: str, *, timeout: float | None = None) -> Truck:
        """Record that the truck passed clearance; status is unchanged.

        Raises
        ------
        TruckNotFoundError
            If the plate has no record.
        """
        plate = _normalize_plate(plate)

        async def _apply() -> Truck:
            truck = await self._store.find_by_plate(plate)
            updated = mark_cleared(truck, self._clock())
            if updated is None:
                return truck
            return await self._store.update_cleared_at(plate, updated.cleared_at)

        truck = await self._locked(plate, _apply, timeout)
        _logger.info("Truck %s cleared", plate)
        return truck

    # ------------------------------------------------------------------
    # Queries and administration
    # ------------------------------------------------------------------

    async def list_all(self, *, timeout: float | None = None) -> list[Truck]:
        return await self._bounded("", self._store.get_all(), timeout)

    async def find_by_plate(self, plate: str, *, timeout: float | None = None) -> Truck:
        """Return the record for *plate*.

        Raises
        ------
        TruckNotFoundError
            If the plate has no record.
        """
        plate = _normalize_plate(plate)
        return await self._bounded(plate, self._store.find_by_plate(plate), timeout)

    async def remove(self, plate: str, *, timeout: float | None = None) -> Truck:
        """Administratively delete the record for *plate*."""
        plate = _normalize_plate(plate)

        async def _apply() -> Truck:
            return await self._store.remove(plate)

        truck = await self._locked(plate, _apply, timeout)
        _logger.info("Truck %s removed", plate)
        return truck
