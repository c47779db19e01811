"""
Notification types for Barkwatch.

A notification is one immutable message handed to a publisher: either
"loud event observed now" or "nothing heard in the last window".
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum

from barkwatch.core.config import TopicsConfig


class NotificationKind(str, Enum):
    """What a notification reports."""

    EVENT = "event"
    ABSENCE = "absence"


@dataclass(frozen=True)
class Notification:
    """A single message destined for the messaging bus."""

    kind: NotificationKind
    topic: str
    payload: str
    qos: int = 1
    retain: bool = False
    amplitude: float | None = None
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def event(cls, topics: TopicsConfig, amplitude: float) -> Notification:
        """Build an event notification for a triggering sample."""
        if topics.event_payload == "amplitude":
            payload = f"{amplitude:.4f}"
        else:
            payload = topics.event_marker

        return cls(
            kind=NotificationKind.EVENT,
            topic=topics.event_topic,
            payload=payload,
            qos=topics.qos,
            retain=topics.retain,
            amplitude=amplitude,
        )

    @classmethod
    def absence(cls, topics: TopicsConfig) -> Notification:
        """Build an absence notification."""
        return cls(
            kind=NotificationKind.ABSENCE,
            topic=topics.absence_topic,
            payload=topics.absence_marker,
            qos=topics.qos,
            retain=topics.retain,
        )
