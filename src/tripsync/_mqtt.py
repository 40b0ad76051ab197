"""Internal MQTT runtime for the centralized store."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from tripsync._redact import redact_for_log
from tripsync.config import TripSyncConfig
from tripsync.exceptions import BackendUnavailableError

Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class MqttMessage:
    """Decoded retained message.

    ``payload`` is ``None`` for an empty (cleared) retained message.
    """

    topic: str
    payload: Any
    retain: bool = False


MessageHandler = Callable[[MqttMessage], None]


class RetainedBus(Protocol):
    """Structural interface the MQTT stores depend on.

    Lets tests substitute an in-memory broker for the paho runtime.
    """

    def add_handler(self, topic_filter: str, handler: MessageHandler) -> Unsubscribe: ...

    async def publish(self, topic: str, payload: Any) -> None: ...


def decode_payload(payload: bytes) -> Any:
    """Parse a message body; an empty body decodes to ``None``."""
    if not payload:
        return None
    return json.loads(payload.decode("utf-8"))


def encode_payload(payload: Any) -> bytes:
    if payload is None:
        return b""
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


class MqttRuntime:
    """Threaded paho-mqtt runtime that emits decoded messages onto an asyncio loop.

    Handlers registered with :meth:`add_handler` run on the loop.  Every
    publish is retained with QoS 1 and awaits the broker acknowledgement.
    """

    def __init__(
        self,
        config: TripSyncConfig,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        publish_timeout: float = 10.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._loop = loop
        self._publish_timeout = publish_timeout
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._connected = asyncio.Event()
        self._handlers: dict[int, tuple[str, MessageHandler]] = {}
        self._next_token = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    def _filters(self) -> list[str]:
        return sorted({topic_filter for topic_filter, _ in self._handlers.values()})

    def add_handler(self, topic_filter: str, handler: MessageHandler) -> Unsubscribe:
        """Route messages matching *topic_filter* to *handler*."""
        token = self._next_token
        self._next_token += 1
        self._handlers[token] = (topic_filter, handler)
        client = self._client
        if client is not None and self.is_connected:
            client.subscribe(topic_filter, qos=1)

        def _remove() -> None:
            self._handlers.pop(token, None)

        return _remove

    def _dispatch(self, message: MqttMessage) -> None:
        for topic_filter, handler in list(self._handlers.values()):
            if not mqtt.topic_matches_sub(topic_filter, message.topic):
                continue
            try:
                handler(message)
            except Exception:
                self._logger.debug("MQTT handler for %s failed", topic_filter, exc_info=True)

    def _set_connected(self, connected: bool) -> None:
        if connected:
            self._connected.set()
        else:
            self._connected.clear()

    def start(self) -> None:
        """Connect in the background and subscribe every registered filter."""
        self.stop()
        config = self._config
        if not config.mqtt_host:
            raise BackendUnavailableError("No MQTT host configured")
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        client_id = config.mqtt_client_id or f"tripsync-{secrets.token_hex(6)}"
        self._logger.debug(
            "MQTT runtime start requested %s",
            redact_for_log(
                {
                    "host": config.mqtt_host,
                    "port": config.mqtt_port,
                    "tls": config.mqtt_tls,
                    "client_id": client_id,
                    "username": config.mqtt_username,
                    "password": config.mqtt_password,
                }
            ),
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if config.mqtt_username:
            client.username_pw_set(config.mqtt_username, config.mqtt_password)
        if config.mqtt_tls:
            client.tls_set()

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.is_failure:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected successfully reason=%s", reason_code)
            for topic_filter in self._filters():
                self._logger.debug("MQTT subscribing topic=%s", topic_filter)
                c.subscribe(topic_filter, qos=1)
            loop.call_soon_threadsafe(self._set_connected, True)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                payload = decode_payload(msg.payload)
            except (UnicodeDecodeError, json.JSONDecodeError):
                self._logger.debug("MQTT payload parse failure topic=%s", msg.topic, exc_info=True)
                return
            self._logger.debug("Received PUBLISH topic=%s retain=%s", msg.topic, msg.retain)
            message = MqttMessage(topic=msg.topic, payload=payload, retain=bool(msg.retain))
            loop.call_soon_threadsafe(self._dispatch, message)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.warning("MQTT disconnected: %s", reason_code)
            loop.call_soon_threadsafe(self._set_connected, False)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect_async(config.mqtt_host, config.mqtt_port, keepalive=config.mqtt_keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    async def wait_connected(self, timeout: float) -> None:
        """Wait until the broker accepted the connection.

        Raises
        ------
        BackendUnavailableError
            If no connection is established within *timeout* seconds.
        """
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
        except TimeoutError as exc:
            raise BackendUnavailableError(
                f"MQTT broker {self._config.mqtt_host}:{self._config.mqtt_port} not reachable",
                endpoint=f"{self._config.mqtt_host}:{self._config.mqtt_port}",
            ) from exc

    async def publish(self, topic: str, payload: Any) -> None:
        """Publish a retained document and wait for the broker to acknowledge it."""
        client = self._client
        if client is None or not self.is_connected:
            raise BackendUnavailableError("MQTT broker not connected", endpoint=topic)

        info = client.publish(topic, encode_payload(payload), qos=1, retain=True)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise BackendUnavailableError(
                f"MQTT publish failed: {mqtt.error_string(info.rc)}",
                endpoint=topic,
            )
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, info.wait_for_publish, self._publish_timeout)
        except (RuntimeError, ValueError) as exc:
            raise BackendUnavailableError(f"MQTT publish failed: {exc}", endpoint=topic) from exc
        if not info.is_published():
            raise BackendUnavailableError("MQTT publish not acknowledged", endpoint=topic)
        self._logger.debug("Published topic=%s payload=%s", topic, redact_for_log(payload))

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._connected.clear()

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
