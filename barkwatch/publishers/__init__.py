"""Publisher modules for Barkwatch."""

from barkwatch.publishers.base import BasePublisher, PublishError
from barkwatch.publishers.mqtt import MqttPublisher, MockPublisher, PublishedMessage

__all__ = [
    "BasePublisher",
    "PublishError",
    "MqttPublisher",
    "MockPublisher",
    "PublishedMessage",
]
