"""Bus event vocabulary.

Inbound events come from the shipping side of the terminal; outbound
events announce truck lifecycle changes to the rest of the system. The
three inbound kinds form a closed tagged union discriminated on ``kind``.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator

from truckgate.models._base import GateBaseModel
from truckgate.models.truck import Container, Truck


class MessageType(enum.StrEnum):
    """Event kinds carried in the bus envelope ``type`` field."""

    TRUCK_ARRIVING = "TruckArriving"
    TRUCK_DEPARTING = "TruckDeparting"
    SHIP_CONTAINER_LOADED = "ShipContainerLoaded"
    SHIP_CONTAINER_UNLOADED = "ShipContainerUnloaded"
    TRUCK_CLEARED = "TruckCleared"

    @classmethod
    def parse(cls, value: Any) -> MessageType | None:
        """Return the member for *value*, or ``None`` for unknown kinds."""
        if isinstance(value, MessageType):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip())
        except ValueError:
            return None


INBOUND_MESSAGE_TYPES: frozenset[MessageType] = frozenset(
    {
        MessageType.SHIP_CONTAINER_LOADED,
        MessageType.SHIP_CONTAINER_UNLOADED,
        MessageType.TRUCK_CLEARED,
    }
)


class _TruckEvent(GateBaseModel):
    license_plate: str

    @field_validator("license_plate")
    @classmethod
    def _normalize_plate(cls, value: str) -> str:
        plate = value.strip()
        if not plate:
            raise ValueError("licensePlate must be non-empty")
        return plate


class ShipContainerLoaded(_TruckEvent):
    """A container went from a truck onto a ship; the truck is now empty."""

    kind: Literal["ShipContainerLoaded"] = "ShipContainerLoaded"
    container: Container | None = None


class ShipContainerUnloaded(_TruckEvent):
    """A container came off a ship onto a truck."""

    kind: Literal["ShipContainerUnloaded"] = "ShipContainerUnloaded"
    container: Container | None = None


class TruckCleared(_TruckEvent):
    """The truck passed clearance."""

    kind: Literal["TruckCleared"] = "TruckCleared"


InboundEvent = Annotated[
    ShipContainerLoaded | ShipContainerUnloaded | TruckCleared,
    Field(discriminator="kind"),
]


def truck_arriving_payload(truck: Truck, container: Container | None = None) -> dict[str, Any]:
    """Build the ``TruckArriving`` body.

    *container* is the container announced with the arrival request. It is
    forwarded to subscribers but is not part of the stored record.
    """
    payload = truck.to_wire()
    payload.pop("container", None)
    if container is not None:
        payload["container"] = container.to_wire()
    return payload


def truck_departing_payload(truck: Truck) -> dict[str, Any]:
    """Build the ``TruckDeparting`` body from the record after the transition."""
    return truck.to_wire()
