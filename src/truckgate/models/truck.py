"""Truck, container and product models."""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import Field, field_validator

from truckgate.models._base import GateBaseModel, GateEnum


class TruckStatus(enum.StrEnum):
    """Lifecycle status of a truck record.

    There is no member for "not seen yet": a truck without a record is
    simply absent from the store.
    """

    ARRIVING = "ARRIVING"
    ARRIVED = "ARRIVED"
    DEPARTING = "DEPARTING"
    DEPARTED = "DEPARTED"


class ContainerType(GateEnum):
    NORMAL = "NORMAL"
    REFRIGERATED = "REFRIGERATED"
    OTHER = "OTHER"


class ProductType(GateEnum):
    NORMAL = "NORMAL"
    REFRIGERATED = "REFRIGERATED"
    OTHER = "OTHER"


def _require_text(value: str, field_name: str) -> str:
    text = value.strip()
    if not text:
        raise ValueError(f"{field_name} must be non-empty")
    return text


class Product(GateBaseModel):
    """A line item inside a container."""

    name: str
    product_type: ProductType = ProductType.NORMAL

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        return _require_text(value, "name")


class Container(GateBaseModel):
    """A shipping container and the products it holds."""

    serial_shipping_container_code: str
    """Serial code, unique across the system at any instant."""
    container_type: ContainerType = ContainerType.NORMAL
    products: tuple[Product, ...] = ()
    """Products in loading order."""

    @field_validator("serial_shipping_container_code")
    @classmethod
    def _normalize_code(cls, value: str) -> str:
        return _require_text(value, "serialShippingContainerCode")


class Truck(GateBaseModel):
    """A truck record, keyed by license plate."""

    license_plate: str
    status: TruckStatus = TruckStatus.ARRIVING
    container: Container | None = None
    """Container currently on the truck, owned by it until unloaded."""
    cleared_at: datetime | None = Field(default=None)
    """When the truck was cleared during its current visit."""

    @field_validator("license_plate")
    @classmethod
    def _normalize_plate(cls, value: str) -> str:
        return _require_text(value, "licensePlate")

    @property
    def is_cleared(self) -> bool:
        return self.cleared_at is not None
