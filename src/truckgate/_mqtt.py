"""Internal MQTT bus runtime and event publishers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any, cast

import paho.mqtt.client as mqtt

from truckgate._redact import redact_for_log
from truckgate.config import TruckGateConfig
from truckgate.exceptions import TruckDecodeError, TruckPublishError
from truckgate.ingestion.decode import BusMessage, decode_envelope, encode_envelope
from truckgate.models.events import MessageType

_logger = logging.getLogger(__name__)

#: At-least-once delivery in both directions.
_QOS = 1


class MqttBusRuntime:
    """Threaded paho-mqtt runtime that emits decoded messages onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        config: TruckGateConfig,
        on_message: Callable[[BusMessage], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._config = config
        self._on_message = on_message
        self._logger = logger or _logger
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def _build_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._config.mqtt_client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if self._config.mqtt_username:
            client.username_pw_set(self._config.mqtt_username, self._config.mqtt_password)
        if self._config.mqtt_tls:
            client.tls_set()
        return client

    def start(self) -> None:
        """Connect, subscribe to the inbound topic and start the network loop."""
        self.stop()
        inbound_topic = self._config.inbound_topic
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s topic=%s client_id=%s",
            self._config.mqtt_host,
            self._config.mqtt_port,
            inbound_topic,
            self._config.mqtt_client_id,
        )

        client = self._build_client()

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected, subscribing topic=%s", inbound_topic)
            c.subscribe(inbound_topic, qos=_QOS)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                message = decode_envelope(msg.payload, topic=msg.topic)
            except TruckDecodeError as exc:
                self._logger.warning("Rejected bus message on %s: %s", msg.topic, exc)
                return
            self._logger.debug(
                "Received %s on %s body=%s",
                message.kind,
                msg.topic,
                redact_for_log(message.payload),
            )
            self._loop.call_soon_threadsafe(self._on_message, message)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.warning("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect(self._config.mqtt_host, self._config.mqtt_port, keepalive=self._config.mqtt_keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def publish_raw(self, topic: str, payload: bytes) -> None:
        """Hand *payload* to the paho client (blocking; run in an executor)."""
        client = self._client
        if client is None or not self._running:
            raise TruckPublishError("MQTT runtime is not running")
        info = client.publish(topic, payload, qos=_QOS)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TruckPublishError(f"MQTT publish to {topic} failed: {mqtt.error_string(info.rc)}")


class MqttEventPublisher:
    """Publish outbound lifecycle events as JSON envelopes on the bus."""

    def __init__(self, runtime: MqttBusRuntime, *, topic: str) -> None:
        self._runtime = runtime
        self._topic = topic

    async def publish(self, kind: MessageType, payload: Mapping[str, Any]) -> None:
        data = encode_envelope(kind, payload)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._runtime.publish_raw, self._topic, data)
        except TruckPublishError as exc:
            exc.kind = kind.value
            raise
        except (ValueError, RuntimeError, OSError) as exc:
            # paho rejects bad topics and oversized payloads with ValueError;
            # a shut-down executor raises RuntimeError.
            raise TruckPublishError(
                f"MQTT publish of {kind} to {self._topic} failed: {exc}",
                kind=kind.value,
            ) from exc
        _logger.debug("Published %s to %s", kind, self._topic)


class LoggingEventPublisher:
    """Publisher used when the bus is disabled: events are only logged."""

    async def publish(self, kind: MessageType, payload: Mapping[str, Any]) -> None:
        _logger.info("Event %s body=%s", kind, redact_for_log(dict(payload)))
