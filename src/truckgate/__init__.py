"""truckgate - Truck lifecycle coordination for a logistics gate."""

from importlib.metadata import PackageNotFoundError, version

from truckgate.config import TruckGateConfig
from truckgate.coordinator import EventPublisher, LifecycleCoordinator
from truckgate.exceptions import (
    TruckAlreadyExistsError,
    TruckConfigError,
    TruckDecodeError,
    TruckGateError,
    TruckNotFoundError,
    TruckPreconditionError,
    TruckPublishError,
    TruckStoreError,
    TruckStoreTimeoutError,
    TruckValidationError,
)
from truckgate.ingestion.dispatcher import DispatchOutcome, InboundEventDispatcher
from truckgate.models import (
    Container,
    ContainerType,
    MessageType,
    Product,
    ProductType,
    Truck,
    TruckStatus,
)
from truckgate.state.store import InMemoryTruckStore, TruckStore

try:
    __version__ = version("truckgate")
except PackageNotFoundError:
    __version__ = "0+local"

__all__ = [
    "__version__",
    "Container",
    "ContainerType",
    "DispatchOutcome",
    "EventPublisher",
    "InMemoryTruckStore",
    "InboundEventDispatcher",
    "LifecycleCoordinator",
    "MessageType",
    "Product",
    "ProductType",
    "Truck",
    "TruckAlreadyExistsError",
    "TruckConfigError",
    "TruckDecodeError",
    "TruckGateConfig",
    "TruckGateError",
    "TruckNotFoundError",
    "TruckPreconditionError",
    "TruckPublishError",
    "TruckStatus",
    "TruckStore",
    "TruckStoreError",
    "TruckStoreTimeoutError",
    "TruckValidationError",
]
