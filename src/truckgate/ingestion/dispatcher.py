"""Inbound event dispatcher.

Routes shipping-side bus events to the lifecycle coordinator. The "ship"
events are named from the ship's point of view, so they map onto the
opposite truck operation:

* ``ShipContainerUnloaded`` (container came off the ship onto a truck)
  -> :meth:`LifecycleCoordinator.container_loaded`
* ``ShipContainerLoaded`` (container went from a truck onto the ship)
  -> :meth:`LifecycleCoordinator.container_unloaded`
* ``TruckCleared`` -> :meth:`LifecycleCoordinator.cleared`

Retrying is left to the bus transport; this layer logs failures and moves on.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from truckgate._redact import redact_for_log
from truckgate.coordinator import LifecycleCoordinator
from truckgate.exceptions import (
    TruckDecodeError,
    TruckNotFoundError,
    TruckPreconditionError,
    TruckStoreError,
)
from truckgate.ingestion.decode import BusMessage, decode_inbound_event
from truckgate.models.events import (
    INBOUND_MESSAGE_TYPES,
    InboundEvent,
    MessageType,
    ShipContainerLoaded,
    ShipContainerUnloaded,
    TruckCleared,
)

_logger = logging.getLogger(__name__)


class DispatchOutcome(enum.StrEnum):
    """What happened to a bus message; transports map this to ack/requeue."""

    HANDLED = "handled"
    IGNORED = "ignored"
    REJECTED = "rejected"
    DROPPED = "dropped"
    FAILED = "failed"


class InboundEventDispatcher:
    """Decode bus messages and invoke the matching coordinator operation."""

    def __init__(
        self,
        coordinator: LifecycleCoordinator,
        *,
        reject_unknown_events: bool = False,
    ) -> None:
        self._coordinator = coordinator
        self._reject_unknown = reject_unknown_events
        self._handlers: dict[MessageType, Callable[[Any], Awaitable[DispatchOutcome]]] = {
            MessageType.SHIP_CONTAINER_LOADED: self._on_ship_container_loaded,
            MessageType.SHIP_CONTAINER_UNLOADED: self._on_ship_container_unloaded,
            MessageType.TRUCK_CLEARED: self._on_truck_cleared,
        }

    async def dispatch(self, kind: str, payload: Mapping[str, Any] | None) -> DispatchOutcome:
        """Decode one message and apply it.

        Raises
        ------
        TruckDecodeError
            If the payload is missing or malformed, or the kind is unknown
            and unknown kinds are rejected.
        TruckNotFoundError, TruckPreconditionError, TruckStoreError
            Propagated from the coordinator.
        """
        if not payload:
            raise TruckDecodeError(f"Expected a body for message type {kind}", kind=kind)

        message_type = MessageType.parse(kind)
        if message_type is None or message_type not in INBOUND_MESSAGE_TYPES:
            if self._reject_unknown:
                raise TruckDecodeError(f"Unsupported message type {kind!r}", kind=kind)
            _logger.debug("Ignoring message type %s", kind)
            return DispatchOutcome.IGNORED

        event: InboundEvent = decode_inbound_event(message_type, payload)
        _logger.debug("Dispatching %s plate=%s", message_type, event.license_plate)
        return await self._handlers[message_type](event)

    async def handle(self, message: BusMessage) -> DispatchOutcome:
        """Bus callback: dispatch and log instead of raising domain errors."""
        try:
            return await self.dispatch(message.kind, message.payload)
        except TruckDecodeError as exc:
            _logger.warning(
                "Rejected %s message: %s payload=%s",
                message.kind,
                exc,
                redact_for_log(message.payload),
            )
            return DispatchOutcome.REJECTED
        except (TruckNotFoundError, TruckPreconditionError) as exc:
            _logger.warning("Dropped %s message: %s", message.kind, exc)
            return DispatchOutcome.DROPPED
        except TruckStoreError as exc:
            _logger.error("Failed to apply %s message: %s", message.kind, exc)
            return DispatchOutcome.FAILED
        except Exception:
            _logger.exception("Unexpected error applying %s message", message.kind)
            return DispatchOutcome.FAILED

    async def _on_ship_container_unloaded(self, event: ShipContainerUnloaded) -> DispatchOutcome:
        if event.container is None:
            _logger.debug("%s for %s carries no container", event.kind, event.license_plate)
            return DispatchOutcome.IGNORED
        await self._coordinator.container_loaded(event.license_plate, event.container)
        return DispatchOutcome.HANDLED

    async def _on_ship_container_loaded(self, event: ShipContainerLoaded) -> DispatchOutcome:
        await self._coordinator.container_unloaded(event.license_plate)
        return DispatchOutcome.HANDLED

    async def _on_truck_cleared(self, event: TruckCleared) -> DispatchOutcome:
        await self._coordinator.cleared(event.license_plate)
        return DispatchOutcome.HANDLED
