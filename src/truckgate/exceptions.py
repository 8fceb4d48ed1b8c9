"""Custom exception hierarchy for truckgate."""

from __future__ import annotations


class TruckGateError(Exception):
    """Base exception for all truckgate errors."""


class TruckConfigError(TruckGateError):
    """Invalid or missing configuration."""


class TruckValidationError(TruckGateError):
    """A required field is missing or malformed (e.g. no license plate)."""


class TruckDecodeError(TruckValidationError):
    """An inbound bus message could not be decoded into a domain event."""

    def __init__(self, message: str, *, kind: str = "") -> None:
        self.kind = kind
        super().__init__(message)


class TruckPreconditionError(TruckGateError):
    """The requested transition is not legal for the truck's current status.

    ``status`` is ``None`` when the truck has no record yet.
    """

    def __init__(
        self,
        message: str,
        *,
        plate: str = "",
        action: str = "",
        status: str | None = None,
    ) -> None:
        self.plate = plate
        self.action = action
        self.status = status
        super().__init__(message)


class TruckNotFoundError(TruckGateError):
    """No truck record exists for the license plate."""

    def __init__(self, message: str, *, plate: str = "") -> None:
        self.plate = plate
        super().__init__(message)


class TruckAlreadyExistsError(TruckGateError):
    """A truck record already exists for the license plate."""

    def __init__(self, message: str, *, plate: str = "") -> None:
        self.plate = plate
        super().__init__(message)


class TruckPublishError(TruckGateError):
    """An outbound event could not be handed to the bus."""

    def __init__(self, message: str, *, kind: str = "") -> None:
        self.kind = kind
        super().__init__(message)


class TruckStoreError(TruckGateError):
    """The truck store is unreachable or failed unexpectedly."""


class TruckStoreTimeoutError(TruckStoreError):
    """A store operation did not complete within its timeout.

    The per-plate read-modify-write is abandoned before anything is
    written, so no partial state is left behind.
    """

    def __init__(self, message: str, *, plate: str = "", timeout: float | None = None) -> None:
        self.plate = plate
        self.timeout = timeout
        super().__init__(message)
