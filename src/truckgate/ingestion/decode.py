"""Bus message decoding.

Turns raw envelope bytes into a :class:`BusMessage` and a message payload
into one of the typed inbound events. Everything here raises
:class:`TruckDecodeError`; nothing reaches the coordinator half-decoded.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import TypeAdapter, ValidationError

from truckgate.exceptions import TruckDecodeError
from truckgate.models.events import InboundEvent, MessageType

_INBOUND_EVENT_ADAPTER: TypeAdapter[InboundEvent] = TypeAdapter(InboundEvent)


@dataclass(frozen=True)
class BusMessage:
    """Decoded bus envelope: event kind tag plus optional payload."""

    kind: str
    payload: dict[str, Any] | None
    topic: str = ""


def decode_envelope(raw: bytes | str, *, topic: str = "") -> BusMessage:
    """Parse a JSON envelope ``{"type": <kind>, "body": <payload>}``."""
    try:
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
        parsed = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise TruckDecodeError(f"Bus message on {topic!r} is not valid JSON") from exc

    if not isinstance(parsed, dict):
        raise TruckDecodeError(f"Bus message on {topic!r} is not a JSON object")

    kind = parsed.get("type")
    if not isinstance(kind, str) or not kind.strip():
        raise TruckDecodeError(f"Bus message on {topic!r} has no event type")

    body = parsed.get("body")
    if body is not None and not isinstance(body, dict):
        raise TruckDecodeError(f"Body of {kind} is not a JSON object", kind=kind)
    return BusMessage(kind=kind.strip(), payload=body, topic=topic)


def encode_envelope(kind: MessageType, payload: Mapping[str, Any]) -> bytes:
    return json.dumps({"type": kind.value, "body": dict(payload)}, separators=(",", ":")).encode("utf-8")


def decode_inbound_event(kind: MessageType, payload: Mapping[str, Any]) -> InboundEvent:
    """Validate *payload* as the inbound event for *kind*."""
    try:
        return _INBOUND_EVENT_ADAPTER.validate_python({**payload, "kind": kind.value})
    except ValidationError as exc:
        raise TruckDecodeError(f"Malformed {kind} payload: {exc.error_count()} error(s)", kind=kind.value) from exc
