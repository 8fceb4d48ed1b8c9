"""Data models for truck records and bus events."""

from truckgate.models._base import GateBaseModel, GateEnum
from truckgate.models.events import (
    InboundEvent,
    MessageType,
    ShipContainerLoaded,
    ShipContainerUnloaded,
    TruckCleared,
)
from truckgate.models.truck import Container, ContainerType, Product, ProductType, Truck, TruckStatus

__all__ = [
    "Container",
    "ContainerType",
    "GateBaseModel",
    "GateEnum",
    "InboundEvent",
    "MessageType",
    "Product",
    "ProductType",
    "ShipContainerLoaded",
    "ShipContainerUnloaded",
    "Truck",
    "TruckCleared",
    "TruckStatus",
]
