"""
Tests for publishers.

Covers:
- MqttPublisher lifecycle against a mocked paho client
- Publish success, broker errors and acknowledgement timeouts
- MockPublisher recording and failure modes
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import paho.mqtt.client as mqtt
import pytest

from barkwatch.core.config import MqttConfig, TopicsConfig
from barkwatch.core.events import Notification
from barkwatch.publishers import MockPublisher, MqttPublisher, PublishError


def make_info(rc=mqtt.MQTT_ERR_SUCCESS, published=True):
    info = MagicMock()
    info.rc = rc
    info.is_published.return_value = published
    return info


# =============================================================================
# MqttPublisher Tests
# =============================================================================


class TestMqttPublisher:
    """Tests for MqttPublisher with a mocked paho client."""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.is_connected.return_value = True
        client.publish.return_value = make_info()
        return client

    @pytest.fixture
    def config(self):
        return MqttConfig(host="broker.test", port=1884, keepalive_seconds=20, publish_timeout_seconds=2.0)

    @pytest.fixture
    def publisher(self, config, client):
        return MqttPublisher(config, client=client)

    def test_name_property(self, publisher):
        assert publisher.name == "mqtt"

    def test_not_connected_initially(self, publisher):
        assert publisher.connected is False

    @pytest.mark.asyncio
    async def test_start_connects_async(self, publisher, client):
        """Start schedules a connect and runs the network loop in the background."""
        await publisher.start()

        client.connect_async.assert_called_once_with("broker.test", 1884, keepalive=20)
        client.loop_start.assert_called_once()
        client.reconnect_delay_set.assert_called_once_with(min_delay=1, max_delay=60)

    @pytest.mark.asyncio
    async def test_start_twice_connects_once(self, publisher, client):
        await publisher.start()
        await publisher.start()
        client.connect_async.assert_called_once()

    @pytest.mark.asyncio
    async def test_stop_disconnects(self, publisher, client):
        await publisher.start()
        await publisher.stop()

        client.disconnect.assert_called_once()
        client.loop_stop.assert_called_once()
        assert publisher.connected is False

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self, publisher, client):
        await publisher.stop()
        client.disconnect.assert_not_called()

    @pytest.mark.asyncio
    async def test_publish_before_start_raises(self, publisher):
        with pytest.raises(PublishError):
            await publisher.publish("casa/bark", "1")

    @pytest.mark.asyncio
    async def test_publish_waits_for_ack(self, publisher, client):
        """QoS 1 publish waits for the broker acknowledgement."""
        info = make_info()
        client.publish.return_value = info
        await publisher.start()

        await publisher.publish("casa/bark", "1", qos=1, retain=False)

        client.publish.assert_called_once_with("casa/bark", "1", qos=1, retain=False)
        info.wait_for_publish.assert_called_once_with(2.0)

    @pytest.mark.asyncio
    async def test_qos0_does_not_wait(self, publisher, client):
        info = make_info()
        client.publish.return_value = info
        await publisher.start()

        await publisher.publish("casa/bark", "1", qos=0)

        info.wait_for_publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_broker_error_raises(self, publisher, client):
        """A non-success return code becomes PublishError."""
        client.publish.return_value = make_info(rc=mqtt.MQTT_ERR_QUEUE_SIZE)
        await publisher.start()

        with pytest.raises(PublishError):
            await publisher.publish("casa/bark", "1")

        client._out_messages.pop.assert_not_called()

    @pytest.mark.asyncio
    async def test_disconnected_publish_not_attempted(self, publisher, client):
        """While the broker is unreachable nothing is handed to paho."""
        client.is_connected.return_value = False
        await publisher.start()

        with pytest.raises(PublishError, match="not connected"):
            await publisher.publish("casa/bark", "1")

        client.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_connection_lost_during_publish_discards_message(self, publisher, client):
        """A message paho queued with NO_CONN is removed so it is never resent."""
        info = make_info(rc=mqtt.MQTT_ERR_NO_CONN)
        info.mid = 7
        client.publish.return_value = info
        await publisher.start()

        with pytest.raises(PublishError):
            await publisher.publish("casa/bark", "1")

        client._out_messages.pop.assert_called_once_with(7, None)
        info.wait_for_publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_ack_raises(self, publisher, client):
        client.publish.return_value = make_info(published=False)
        await publisher.start()

        with pytest.raises(PublishError, match="not acknowledged"):
            await publisher.publish("casa/bark", "1")

    @pytest.mark.asyncio
    async def test_wait_error_raises(self, publisher, client):
        info = make_info()
        info.wait_for_publish.side_effect = RuntimeError("message not queued")
        client.publish.return_value = info
        await publisher.start()

        with pytest.raises(PublishError):
            await publisher.publish("casa/bark", "1")

    @pytest.mark.asyncio
    async def test_invalid_topic_raises(self, publisher, client):
        client.publish.side_effect = ValueError("Invalid topic.")
        await publisher.start()

        with pytest.raises(PublishError):
            await publisher.publish("casa/#", "1")

    @pytest.mark.asyncio
    async def test_send_notification(self, publisher, client):
        """send() uses the notification's topic, payload and delivery settings."""
        await publisher.start()
        topics = TopicsConfig(absence_topic="casa/quiet", qos=2, retain=True)

        await publisher.send(Notification.absence(topics))

        client.publish.assert_called_once_with("casa/quiet", "0", qos=2, retain=True)

    def test_connect_callback_tracks_state(self, publisher):
        publisher._on_connect(None, None, None, MagicMock(is_failure=False), None)
        assert publisher.connected is True

        publisher._on_disconnect(None, None, None, MagicMock(is_failure=True), None)
        assert publisher.connected is False

    def test_failed_connect_not_connected(self, publisher):
        publisher._on_connect(None, None, None, MagicMock(is_failure=True), None)
        assert publisher.connected is False

    def test_unreachable_broker_logged(self, publisher, caplog):
        publisher._on_connect(None, None, None, MagicMock(is_failure=False), None)

        with caplog.at_level("WARNING", logger="barkwatch.publishers.mqtt"):
            publisher._on_connect_fail(None, None)

        assert publisher.connected is False
        assert "Cannot reach MQTT broker broker.test:1884" in caplog.text

    @pytest.mark.asyncio
    async def test_start_registers_callbacks(self, publisher, client):
        await publisher.start()

        assert client.on_connect == publisher._on_connect
        assert client.on_connect_fail == publisher._on_connect_fail
        assert client.on_disconnect == publisher._on_disconnect
        assert client.on_publish == publisher._on_publish

    def test_create_client_sets_credentials(self):
        """Username and password from config are applied to the real client."""
        publisher = MqttPublisher(MqttConfig(username="dog", password="woof"))
        client = publisher._create_client()

        assert isinstance(client, mqtt.Client)
        assert client.username == "dog"
        assert client.password == "woof"


class TestMqttPublisherOffline:
    """Failed publishes against a real paho client that never connects."""

    @pytest.fixture
    def publisher(self):
        publisher = MqttPublisher(MqttConfig(host="127.0.0.1", port=1, publish_timeout_seconds=0.1))
        publisher._client = publisher._create_client()
        return publisher

    async def start_offline(self, publisher):
        client = publisher._client
        with patch.object(client, "connect_async"), patch.object(client, "loop_start"):
            await publisher.start()

    @pytest.mark.asyncio
    async def test_failed_publishes_leave_nothing_queued(self, publisher):
        """Messages that failed while offline are not sent after a reconnect."""
        await self.start_offline(publisher)

        for _ in range(5):
            with pytest.raises(PublishError):
                await publisher.publish("casa/bark", "0", qos=1)

        assert len(publisher._client._out_messages) == 0
        await publisher.stop()

    @pytest.mark.asyncio
    async def test_connection_drop_race_leaves_nothing_queued(self, publisher):
        """Even if the client looked connected, a NO_CONN publish is not kept."""
        await self.start_offline(publisher)
        client = publisher._client

        with patch.object(client, "is_connected", return_value=True):
            with pytest.raises(PublishError):
                await publisher.publish("casa/bark", "1", qos=1)

        assert len(client._out_messages) == 0
        await publisher.stop()


# =============================================================================
# MockPublisher Tests
# =============================================================================


class TestMockPublisher:
    """Tests for MockPublisher."""

    @pytest.mark.asyncio
    async def test_records_messages(self):
        publisher = MockPublisher()
        await publisher.start()

        await publisher.publish("casa/bark", "1")
        await publisher.publish("casa/bark", "0", qos=0, retain=True)

        assert publisher.connected is True
        assert publisher.payloads() == ["1", "0"]
        assert publisher.messages[1].qos == 0
        assert publisher.messages[1].retain is True

    @pytest.mark.asyncio
    async def test_payloads_by_topic(self):
        publisher = MockPublisher()
        await publisher.publish("a", "1")
        await publisher.publish("b", "2")

        assert publisher.payloads("b") == ["2"]

    @pytest.mark.asyncio
    async def test_fail_mode(self):
        publisher = MockPublisher(fail=True)

        with pytest.raises(PublishError):
            await publisher.publish("casa/bark", "1")

        assert publisher.attempts == 1
        assert publisher.messages == []
