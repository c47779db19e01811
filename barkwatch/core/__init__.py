"""Core modules for Barkwatch."""

from barkwatch.core.events import Notification, NotificationKind
from barkwatch.core.channels import (
    SlotChannel,
    EventCoalescer,
    EventSignal,
    ChannelClosed,
    SlotEmpty,
)

__all__ = [
    "Notification",
    "NotificationKind",
    "SlotChannel",
    "EventCoalescer",
    "EventSignal",
    "ChannelClosed",
    "SlotEmpty",
]
