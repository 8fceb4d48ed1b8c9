"""Base model and enum for truckgate wire payloads.

Every domain model inherits from :class:`GateBaseModel` which provides:

* ``alias_generator=to_camel`` so the camelCase keys used on the bus and
  the HTTP API map automatically to snake_case fields.
* A ``model_validator(mode="before")`` that drops blank values
  (``None``, ``""``, whitespace) so the field default is used.
* :meth:`GateBaseModel.to_wire` for the camelCase JSON representation.

Type tags inherit from :class:`GateEnum` which matches values
case-insensitively and falls back to an ``OTHER`` member for tags
without a mapped member.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


class GateEnum(enum.StrEnum):
    """Base for inbound type tags.

    Every subclass **must** define ``OTHER``. Tags arriving in a different
    case resolve to the matching member; anything else resolves to
    ``OTHER`` instead of raising ``ValueError``.
    """

    @classmethod
    def _missing_(cls, value: object) -> GateEnum:
        if isinstance(value, str):
            wanted = value.strip().upper()
            for member in cls:
                if member.value == wanted or member.name == wanted:
                    return member
        # pylint: disable=no-member
        other: GateEnum = cls.OTHER  # type: ignore[attr-defined]
        return other


class GateBaseModel(BaseModel):
    """Base for truckgate domain models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_values(cls, values: Any) -> Any:
        """Drop blank values so optional fields fall back to their default."""
        if not isinstance(values, dict):
            return values
        return {key: value for key, value in values.items() if not _is_blank(value)}

    def to_wire(self) -> dict[str, Any]:
        """Return the camelCase JSON-compatible representation."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
