"""
Base publisher interface for Barkwatch.

All publishers implement this interface so the pipeline workers do not
care which messaging transport sits behind them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from barkwatch.core.events import Notification


class PublishError(Exception):
    """A publish request did not reach the broker."""


class BasePublisher(ABC):
    """
    Abstract base class for all publishers.

    Publishers own the connection lifecycle to a messaging bus and accept
    publish requests from any number of concurrent callers. A failed
    publish raises PublishError; publishers never retry internally.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique publisher identifier."""
        pass

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether the publisher currently has a live connection."""
        pass

    @abstractmethod
    async def publish(
        self,
        topic: str,
        payload: str | bytes,
        qos: int = 1,
        retain: bool = False,
    ) -> None:
        """
        Publish a payload to a topic.

        Args:
            topic: Destination topic
            payload: Message body
            qos: Delivery guarantee (0, 1 or 2)
            retain: Whether the broker should retain the message

        Raises:
            PublishError: If the message could not be delivered
        """
        pass

    async def send(self, notification: Notification) -> None:
        """Publish a notification using its own topic and delivery settings."""
        await self.publish(
            notification.topic,
            notification.payload,
            qos=notification.qos,
            retain=notification.retain,
        )

    async def start(self) -> None:
        """Start the publisher (optional setup)."""
        pass

    async def stop(self) -> None:
        """Stop the publisher (optional cleanup)."""
        pass
