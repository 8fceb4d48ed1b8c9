"""Truck lifecycle transition rules.

This module contains *no* I/O. The coordinator reads the current record,
asks these rules what the next record looks like, and writes the result.
A ``None`` status means the plate has no record yet.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime

from truckgate.exceptions import TruckPreconditionError
from truckgate.models.truck import Container, Truck, TruckStatus

_logger = logging.getLogger(__name__)


class LifecycleAction(enum.StrEnum):
    REQUEST_ARRIVAL = "request_arrival"
    REQUEST_DEPARTURE = "request_departure"
    CONFIRM_ARRIVAL = "confirm_arrival"
    CONFIRM_DEPARTURE = "confirm_departure"


@dataclass(frozen=True, slots=True)
class Transition:
    allowed_from: frozenset[TruckStatus | None]
    target: TruckStatus


TRANSITIONS: dict[LifecycleAction, Transition] = {
    # DEPARTED ends a visit; the same plate may come back for a new one.
    LifecycleAction.REQUEST_ARRIVAL: Transition(
        allowed_from=frozenset({None, TruckStatus.DEPARTED}),
        target=TruckStatus.ARRIVING,
    ),
    LifecycleAction.REQUEST_DEPARTURE: Transition(
        allowed_from=frozenset({TruckStatus.ARRIVED}),
        target=TruckStatus.DEPARTING,
    ),
    LifecycleAction.CONFIRM_ARRIVAL: Transition(
        allowed_from=frozenset({TruckStatus.ARRIVING}),
        target=TruckStatus.ARRIVED,
    ),
    LifecycleAction.CONFIRM_DEPARTURE: Transition(
        allowed_from=frozenset({TruckStatus.DEPARTING}),
        target=TruckStatus.DEPARTED,
    ),
}


def is_allowed(action: LifecycleAction, current: TruckStatus | None) -> bool:
    return current in TRANSITIONS[action].allowed_from


def allowed_actions(current: TruckStatus | None) -> frozenset[LifecycleAction]:
    """Actions that are legal from *current*."""
    return frozenset(action for action, rule in TRANSITIONS.items() if current in rule.allowed_from)


def next_status(action: LifecycleAction, plate: str, current: TruckStatus | None) -> TruckStatus:
    """Return the status *action* leads to, or raise if it is not legal.

    Raises
    ------
    TruckPreconditionError
        If *current* is not a legal starting point for *action*.
    """
    rule = TRANSITIONS[action]
    if current not in rule.allowed_from:
        shown = current.value if current is not None else "absent"
        raise TruckPreconditionError(
            f"Cannot {action.value.replace('_', ' ')} for truck {plate!r} while it is {shown}",
            plate=plate,
            action=action.value,
            status=current.value if current is not None else None,
        )
    return rule.target


def begin_visit(plate: str, current: Truck | None) -> Truck:
    """Apply an arrival request to the record for *plate*.

    A fresh plate gets a new ``ARRIVING`` record. A returning truck keeps
    its container untouched but starts the visit uncleared.
    """
    target = next_status(LifecycleAction.REQUEST_ARRIVAL, plate, current.status if current else None)
    if current is None:
        return Truck(license_plate=plate, status=target)
    return current.model_copy(update={"status": target, "cleared_at": None})


def advance(action: LifecycleAction, truck: Truck, *, require_clearance: bool = False) -> Truck:
    """Apply a departure request or a gate confirmation to *truck*.

    ``require_clearance`` makes a departure request additionally wait for
    clearance. Confirming a departure needs the truck to be empty, since a
    departed truck never holds a container.
    """
    target = next_status(action, truck.license_plate, truck.status)
    if action == LifecycleAction.REQUEST_DEPARTURE and require_clearance and not truck.is_cleared:
        raise TruckPreconditionError(
            f"Truck {truck.license_plate!r} has not been cleared for departure",
            plate=truck.license_plate,
            action=action.value,
            status=truck.status.value,
        )
    if action == LifecycleAction.CONFIRM_DEPARTURE and truck.container is not None:
        raise TruckPreconditionError(
            f"Truck {truck.license_plate!r} still carries container "
            f"{truck.container.serial_shipping_container_code!r}",
            plate=truck.license_plate,
            action=action.value,
            status=truck.status.value,
        )
    return truck.model_copy(update={"status": target})


def attach_container(truck: Truck, container: Container) -> Truck | None:
    """Put *container* on *truck*, replacing whatever it carried.

    Returns ``None`` when nothing changes: the same container is already
    on the truck (a replayed delivery), or the truck has departed.
    """
    if truck.status == TruckStatus.DEPARTED:
        _logger.warning(
            "Ignoring container %s for departed truck %s",
            container.serial_shipping_container_code,
            truck.license_plate,
        )
        return None
    if truck.container == container:
        return None
    return truck.model_copy(update={"container": container})


def detach_container(truck: Truck) -> Truck | None:
    """Take the container off *truck*; ``None`` if it carried nothing."""
    if truck.container is None:
        return None
    return truck.model_copy(update={"container": None})


def mark_cleared(truck: Truck, at: datetime) -> Truck | None:
    """Record clearance; a repeated clearance keeps the first timestamp."""
    if truck.cleared_at is not None:
        return None
    return truck.model_copy(update={"cleared_at": at})
