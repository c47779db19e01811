"""
MQTT publisher for Barkwatch.

Publishes notifications to an MQTT broker (typically the Home Assistant
Mosquitto add-on) using paho-mqtt. The paho network loop runs on its own
background thread and takes care of reconnecting.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import paho.mqtt.client as mqtt

from barkwatch.core.config import MqttConfig
from barkwatch.publishers.base import BasePublisher, PublishError

logger = logging.getLogger(__name__)


class MqttPublisher(BasePublisher):
    """
    Publisher backed by a paho-mqtt client.

    The paho client is thread-safe for publish calls, so the debounce
    and watchdog workers can share one instance.
    """

    def __init__(self, config: MqttConfig | None = None, client: mqtt.Client | None = None):
        """
        Initialize MQTT publisher.

        Args:
            config: Broker connection settings, or None for defaults
            client: Pre-built paho client (mainly for tests)
        """
        self._config = config or MqttConfig()
        self._client = client
        self._connected = False
        self._started = False

    @property
    def name(self) -> str:
        return "mqtt"

    @property
    def connected(self) -> bool:
        return self._connected

    def _create_client(self) -> mqtt.Client:
        """Build a paho client from configuration."""
        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=self._config.client_id,
            protocol=mqtt.MQTTv311,
        )

        if self._config.username:
            client.username_pw_set(self._config.username, self._config.password or None)

        if self._config.tls:
            client.tls_set()

        return client

    async def start(self) -> None:
        """Connect to the broker and start the network loop."""
        if self._started:
            return

        if self._client is None:
            self._client = self._create_client()

        client = self._client
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_publish = self._on_publish
        client.on_connect_fail = self._on_connect_fail
        client.reconnect_delay_set(
            min_delay=self._config.reconnect_min_delay,
            max_delay=self._config.reconnect_max_delay,
        )

        logger.info(
            f"Connecting to MQTT broker {self._config.host}:{self._config.port} "
            f"as {self._config.client_id}"
        )

        # Non-blocking connect: an unreachable broker must not stop startup
        client.connect_async(
            self._config.host,
            self._config.port,
            keepalive=self._config.keepalive_seconds,
        )
        client.loop_start()
        self._started = True

    async def stop(self) -> None:
        """Disconnect from the broker and stop the network loop."""
        if not self._started or self._client is None:
            return

        self._client.disconnect()
        self._client.loop_stop()
        self._started = False
        self._connected = False
        logger.info("MQTT publisher stopped")

    async def publish(
        self,
        topic: str,
        payload: str | bytes,
        qos: int = 1,
        retain: bool = False,
    ) -> None:
        """
        Publish to the broker, waiting for the acknowledgement when qos > 0.

        A publish that fails is lost: nothing is left in paho's outgoing
        queue to be sent after a reconnect.
        """
        if self._client is None or not self._started:
            raise PublishError("MQTT publisher not started")

        if not self._client.is_connected():
            raise PublishError(f"Publish to {topic} failed: not connected to broker")

        try:
            info = self._client.publish(topic, payload, qos=qos, retain=retain)
        except ValueError as e:
            raise PublishError(f"Invalid publish to {topic}: {e}") from e

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            if info.rc == mqtt.MQTT_ERR_NO_CONN:
                self._discard_queued(info.mid)
            raise PublishError(f"Publish to {topic} failed: {mqtt.error_string(info.rc)}")

        timeout = self._config.publish_timeout_seconds
        if qos == 0 or timeout <= 0:
            return

        try:
            await asyncio.to_thread(info.wait_for_publish, timeout)
        except (RuntimeError, ValueError) as e:
            raise PublishError(f"Publish to {topic} failed: {e}") from e

        if not info.is_published():
            raise PublishError(f"Publish to {topic} not acknowledged within {timeout}s")

    def _discard_queued(self, mid: int) -> None:
        """Remove a message paho kept for sending after the next reconnect."""
        # paho has no public call for this; NO_CONN messages sit in _out_messages
        with self._client._out_message_mutex:
            self._client._out_messages.pop(mid, None)

    # ========================================================================
    # paho callbacks (run on the network loop thread)
    # ========================================================================

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            self._connected = False
            logger.error(f"MQTT connect failed: {reason_code}")
            return

        self._connected = True
        logger.info(f"Connected to MQTT broker {self._config.host}:{self._config.port}")

    def _on_connect_fail(self, client, userdata) -> None:
        self._connected = False
        logger.warning(
            f"Cannot reach MQTT broker {self._config.host}:{self._config.port}, will retry"
        )

    def _on_disconnect(self, client, userdata, flags, reason_code, properties) -> None:
        self._connected = False
        if reason_code.is_failure:
            logger.warning(f"MQTT disconnected unexpectedly: {reason_code}, will reconnect")
        else:
            logger.info("MQTT disconnected")

    def _on_publish(self, client, userdata, mid, reason_code, properties) -> None:
        logger.debug(f"Broker acknowledged message {mid}: {reason_code}")


@dataclass
class PublishedMessage:
    """A message recorded by MockPublisher."""

    topic: str
    payload: str | bytes
    qos: int
    retain: bool


class MockPublisher(BasePublisher):
    """
    Mock publisher for testing and development.

    Records every publish instead of talking to a broker. Set `fail` to
    make every publish raise PublishError.
    """

    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.fail = fail
        self.delay = delay
        self.messages: list[PublishedMessage] = []
        self.attempts = 0
        self._connected = False

    @property
    def name(self) -> str:
        return "mock"

    @property
    def connected(self) -> bool:
        return self._connected

    async def start(self) -> None:
        self._connected = True
        logger.info("Mock publisher started")

    async def stop(self) -> None:
        self._connected = False

    async def publish(
        self,
        topic: str,
        payload: str | bytes,
        qos: int = 1,
        retain: bool = False,
    ) -> None:
        """Record the message, or fail if configured to."""
        self.attempts += 1

        if self.delay:
            await asyncio.sleep(self.delay)

        if self.fail:
            raise PublishError(f"Mock publish to {topic} failed")

        self.messages.append(PublishedMessage(topic, payload, qos, retain))
        logger.info(f"[mock] {topic} <- {payload!r}")

    def payloads(self, topic: str | None = None) -> list[str | bytes]:
        """Payloads published so far, optionally for one topic."""
        return [m.payload for m in self.messages if topic is None or m.topic == topic]
