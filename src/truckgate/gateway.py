"""HTTP command gateway.

Translates requests into coordinator calls and coordinator errors into
status codes. Truck records are returned in their camelCase wire form.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web
from pydantic import ValidationError

from truckgate.coordinator import LifecycleCoordinator
from truckgate.exceptions import (
    TruckAlreadyExistsError,
    TruckGateError,
    TruckNotFoundError,
    TruckPreconditionError,
    TruckStoreError,
    TruckStoreTimeoutError,
    TruckValidationError,
)
from truckgate.models._base import GateBaseModel
from truckgate.models.truck import Container, Truck

_logger = logging.getLogger(__name__)

COORDINATOR_KEY = web.AppKey("coordinator", LifecycleCoordinator)

# First match wins, so subclasses come before their bases.
_ERROR_STATUS: tuple[tuple[type[TruckGateError], str, int], ...] = (
    (TruckValidationError, "validation", 400),
    (TruckPreconditionError, "precondition", 400),
    (TruckNotFoundError, "not_found", 404),
    (TruckAlreadyExistsError, "conflict", 409),
    (TruckStoreTimeoutError, "timeout", 504),
    (TruckStoreError, "storage", 503),
)


class ArrivalRequest(GateBaseModel):
    license_plate: str
    container: Container | None = None


class DepartureRequest(GateBaseModel):
    """Departure body; any container sent along is ignored."""

    license_plate: str


def _error_for(exc: TruckGateError) -> tuple[str, int]:
    for exc_type, kind, status in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            return kind, status
    return "internal", 500


@web.middleware
async def error_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    try:
        return await handler(request)
    except TruckGateError as exc:
        kind, status = _error_for(exc)
        if status >= 500:
            _logger.error("%s %s failed: %s", request.method, request.path, exc)
        else:
            _logger.debug("%s %s rejected (%s): %s", request.method, request.path, status, exc)
        return web.json_response({"error": kind, "message": str(exc)}, status=status)


async def _read_body(request: web.Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise TruckValidationError("Request body must be a JSON object") from exc
    if not isinstance(body, dict):
        raise TruckValidationError("Request body must be a JSON object")
    return body


def _parse(model: type[GateBaseModel], body: dict[str, Any]) -> Any:
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in exc.errors())
        raise TruckValidationError(f"Invalid request body: {fields}") from exc


def _truck_response(truck: Truck, *, status: int = 200) -> web.Response:
    return web.json_response(truck.to_wire(), status=status)


async def arrive(request: web.Request) -> web.Response:
    payload: ArrivalRequest = _parse(ArrivalRequest, await _read_body(request))
    truck = await request.app[COORDINATOR_KEY].request_arrival(payload.license_plate, payload.container)
    return _truck_response(truck, status=201)


async def depart(request: web.Request) -> web.Response:
    payload: DepartureRequest = _parse(DepartureRequest, await _read_body(request))
    truck = await request.app[COORDINATOR_KEY].request_departure(payload.license_plate)
    return _truck_response(truck)


async def confirm_arrival(request: web.Request) -> web.Response:
    truck = await request.app[COORDINATOR_KEY].confirm_arrival(request.match_info["plate"])
    return _truck_response(truck)


async def confirm_departure(request: web.Request) -> web.Response:
    truck = await request.app[COORDINATOR_KEY].confirm_departure(request.match_info["plate"])
    return _truck_response(truck)


async def list_trucks(request: web.Request) -> web.Response:
    trucks = await request.app[COORDINATOR_KEY].list_all()
    return web.json_response([truck.to_wire() for truck in trucks])


async def get_truck(request: web.Request) -> web.Response:
    truck = await request.app[COORDINATOR_KEY].find_by_plate(request.match_info["plate"])
    return _truck_response(truck)


async def remove_truck(request: web.Request) -> web.Response:
    truck = await request.app[COORDINATOR_KEY].remove(request.match_info["plate"])
    return _truck_response(truck)


async def health(_request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


def create_app(coordinator: LifecycleCoordinator, *, api_prefix: str = "/api") -> web.Application:
    """Build the gateway application around *coordinator*."""
    app = web.Application(middlewares=[error_middleware])
    app[COORDINATOR_KEY] = coordinator

    prefix = api_prefix.rstrip("/")
    app.router.add_get(f"{prefix}/health", health)
    app.router.add_post(f"{prefix}/truck/arrive", arrive)
    app.router.add_post(f"{prefix}/truck/depart", depart)
    app.router.add_get(f"{prefix}/truck", list_trucks)
    app.router.add_get(f"{prefix}/truck/{{plate}}", get_truck)
    app.router.add_delete(f"{prefix}/truck/{{plate}}", remove_truck)
    app.router.add_post(f"{prefix}/truck/{{plate}}/arrived", confirm_arrival)
    app.router.add_post(f"{prefix}/truck/{{plate}}/departed", confirm_departure)
    return app
