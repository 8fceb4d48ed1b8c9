"""Service configuration for truckgate."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from truckgate.exceptions import TruckConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: type[int] | type[float]) -> int | float:
    try:
        return cast(value.strip())
    except ValueError as exc:
        raise TruckConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class TruckGateConfig:
    """Service configuration.

    Parameters
    ----------
    http_host : str
        Interface the command gateway binds to.
    http_port : int
        Port the command gateway listens on.
    api_prefix : str
        Path prefix for all gateway routes.
    mqtt_enabled : bool
        Connect to the message bus. When disabled, outbound events are
        only logged and no inbound events are consumed.
    mqtt_host : str
        Broker host name.
    mqtt_port : int
        Broker port.
    mqtt_client_id : str
        MQTT client identifier.
    mqtt_username : str or None
        Broker user name, if the broker requires authentication.
    mqtt_password : str or None
        Broker password.
    mqtt_tls : bool
        Use TLS towards the broker.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    inbound_topic : str
        Topic carrying shipping-side events (container moves, clearance).
    outbound_topic : str
        Topic truck lifecycle events are published to.
    store_timeout : float
        Default seconds a per-plate store read-modify-write may take.
    publish_timeout : float
        Default seconds an outbound publish may take before it is given up.
    reject_unknown_events : bool
        Treat inbound events of an unrecognised kind as decode errors
        instead of ignoring them.
    require_clearance_for_departure : bool
        Only allow a departure request once the truck has been cleared.
    """

    http_host: str = "0.0.0.0"
    http_port: int = 8080
    api_prefix: str = "/api"
    mqtt_enabled: bool = True
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_client_id: str = "truckgate"
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_tls: bool = False
    mqtt_keepalive: int = 60
    inbound_topic: str = "logistics/shipping/events"
    outbound_topic: str = "logistics/truck/events"
    store_timeout: float = 5.0
    publish_timeout: float = 5.0
    reject_unknown_events: bool = False
    require_clearance_for_departure: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> TruckGateConfig:
        """Create configuration from environment variables.

        Reads ``TRUCKGATE_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TruckGateConfig
            Populated configuration.

        Raises
        ------
        TruckConfigError
            If a numeric variable cannot be parsed.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "TRUCKGATE_HTTP_HOST": "http_host",
            "TRUCKGATE_API_PREFIX": "api_prefix",
            "TRUCKGATE_MQTT_HOST": "mqtt_host",
            "TRUCKGATE_MQTT_CLIENT_ID": "mqtt_client_id",
            "TRUCKGATE_MQTT_USERNAME": "mqtt_username",
            "TRUCKGATE_MQTT_PASSWORD": "mqtt_password",
            "TRUCKGATE_INBOUND_TOPIC": "inbound_topic",
            "TRUCKGATE_OUTBOUND_TOPIC": "outbound_topic",
        }
        _ENV_NUMBER_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "TRUCKGATE_HTTP_PORT": ("http_port", int),
            "TRUCKGATE_MQTT_PORT": ("mqtt_port", int),
            "TRUCKGATE_MQTT_KEEPALIVE": ("mqtt_keepalive", int),
            "TRUCKGATE_STORE_TIMEOUT": ("store_timeout", float),
            "TRUCKGATE_PUBLISH_TIMEOUT": ("publish_timeout", float),
        }
        _ENV_BOOL_MAP = {
            "TRUCKGATE_MQTT_ENABLED": "mqtt_enabled",
            "TRUCKGATE_MQTT_TLS": "mqtt_tls",
            "TRUCKGATE_REJECT_UNKNOWN_EVENTS": "reject_unknown_events",
            "TRUCKGATE_REQUIRE_CLEARANCE_FOR_DEPARTURE": "require_clearance_for_departure",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = val

        for env_key, (field_name, cast) in _ENV_NUMBER_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, cast)

        defaults = cls()
        for env_key, field_name in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), getattr(defaults, field_name))

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
