"""Room bus bridge over MQTT.

paho-mqtt runs its network loop (including reconnects) on its own thread.
Everything that touches puzzle state is marshalled onto the asyncio loop
with ``call_soon_threadsafe`` so handlers never interleave.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, cast

import paho.mqtt.client as mqtt

from propbridge.config import PropConfig
from propbridge.exceptions import ProtocolError
from propbridge.models.messages import EventMessage, StatusMessage, now_ms, parse_command
from propbridge.models.state import PropCommand, StateChange
from propbridge.state.store import StateStore

STATUS_QOS = 1
EVENT_QOS = 0


class BusBridge:
    """Publishes prop status/events and forwards GM commands.

    Status is retained and republished on every (re)connect.  An offline
    status is registered as the last will so the broker announces us if
    the connection drops without a clean disconnect.
    """

    def __init__(
        self,
        config: PropConfig,
        store: StateStore,
        *,
        on_command: Callable[[PropCommand], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._topics = config.topics
        self._store = store
        self._on_command = on_command
        self._logger = logger or logging.getLogger(__name__)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._client: mqtt.Client | None = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """Whether the broker session is currently up."""
        return self._connected

    def _create_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=f"{self._config.prop_id}-{now_ms()}",
        )
        client.enable_logger(self._logger)
        client.will_set(
            self._topics.status,
            StatusMessage.offline(self._config.prop_id, self._config.prop_name).to_json(),
            qos=STATUS_QOS,
            retain=True,
        )
        delay = self._config.mqtt_reconnect_seconds
        client.reconnect_delay_set(min_delay=delay, max_delay=delay)
        return client

    def start(self) -> None:
        """Start the background connection; must be called from the event loop."""
        self.stop()
        self._loop = asyncio.get_running_loop()
        host, port = self._config.broker_address
        client = self._create_client()

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
            self._connected = True
            self._logger.info("MQTT connected to %s:%s", host, port)
            c.subscribe([(self._topics.cmd, 1), (self._topics.broadcast_cmd, 1)])
            self._call_in_loop(self.publish_status)

        def on_subscribe(
            _c: mqtt.Client,
            _userdata: Any,
            _mid: int,
            reason_codes: Any,
            _properties: Any,
        ) -> None:
            failed = [rc for rc in reason_codes if rc.is_failure]
            if failed:
                self._logger.error("MQTT subscribe error: %s", failed)
            else:
                self._logger.info("MQTT subscribed to commands")

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._call_in_loop(self.handle_message, msg.topic, bytes(msg.payload))

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            was_connected = self._connected
            self._connected = False
            if was_connected:
                self._logger.warning("MQTT disconnected: %s; reconnecting", reason_code)

        client.on_connect = on_connect
        client.on_subscribe = on_subscribe
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        self._logger.info("MQTT connecting to %s:%s", host, port)
        client.connect_async(host, port, keepalive=self._config.mqtt_keepalive)
        client.loop_start()
        self._client = client

    def stop(self) -> None:
        """Disconnect cleanly (no last will) and stop the network loop."""
        client = self._client
        self._client = None
        self._connected = False
        if client is None:
            return
        try:
            client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def _call_in_loop(self, callback: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(callback, *args)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def handle_message(self, topic: str, payload: bytes) -> None:
        """Filter and dispatch one inbound command payload."""
        try:
            command = parse_command(payload)
        except ProtocolError:
            self._logger.debug("Dropping malformed payload on %s", topic, exc_info=True)
            return

        if not command.is_addressed_to(self._config.prop_id):
            self._logger.debug("Ignoring command for prop %s", command.prop_id)
            return

        self._logger.info("MQTT command: %s %s", command.command, command.params or "")
        try:
            name = PropCommand(command.command)
        except ValueError:
            self._logger.info("Unknown command: %s", command.command)
            return
        self._on_command(name)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def publish_status(self) -> None:
        """Publish the retained status record for the current state."""
        message = StatusMessage.online_from(
            self._config.prop_id,
            self._config.prop_name,
            self._store.state,
        )
        self._publish(self._topics.status, message.to_json(), qos=STATUS_QOS, retain=True)

    def publish_event(self, change: StateChange) -> None:
        """Publish the non-retained event record for *change*."""
        message = EventMessage(
            prop_id=self._config.prop_id,
            action=change.action,
            source=change.source,
        )
        self._publish(self._topics.event, message.to_json(), qos=EVENT_QOS, retain=False)

    def _publish(self, topic: str, payload: str, *, qos: int, retain: bool) -> None:
        client = self._client
        if client is None:
            self._logger.debug("MQTT not started; dropping publish to %s", topic)
            return
        info = client.publish(topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._logger.debug("MQTT publish to %s deferred: %s", topic, mqtt.error_string(info.rc))
