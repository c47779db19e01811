"""
Absence watchdog for Barkwatch.

Every absence window, checks whether the debounce worker signalled an
event since the last check and publishes an absence notification if not.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

from barkwatch.core.channels import ChannelClosed, EventSignal, SlotEmpty
from barkwatch.core.config import PipelineConfig, TopicsConfig
from barkwatch.core.events import Notification
from barkwatch.core.workers.base import BaseWorker, WorkerStoppedError
from barkwatch.publishers.base import BasePublisher

logger = logging.getLogger(__name__)


class CheckResult(str, Enum):
    """Outcome of one watchdog tick."""

    EVENT_SEEN = "event_seen"
    ABSENCE_PUBLISHED = "absence_published"
    ABSENCE_FAILED = "absence_failed"


class WatchdogWorker(BaseWorker):
    """Publish an absence notification for every window with no events."""

    def __init__(
        self,
        signal: EventSignal,
        publisher: BasePublisher,
        topics: TopicsConfig | None = None,
        pipeline: PipelineConfig | None = None,
    ):
        super().__init__("watchdog", publisher)

        self._signal = signal
        self._topics = topics or TopicsConfig()
        self._pipeline = pipeline or PipelineConfig()

        self._ticks = 0
        self._windows_with_events = 0
        self._last_event_time: float | None = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._pipeline.absence_window_seconds)
            await self.check()

    async def check(self) -> CheckResult:
        """
        Evaluate the window that just ended.

        Raises:
            WorkerStoppedError: If the debounce worker has closed the signal
        """
        self._ticks += 1

        try:
            event_time = self._signal.try_take()
        except SlotEmpty:
            published = await self._publish(Notification.absence(self._topics))
            return CheckResult.ABSENCE_PUBLISHED if published else CheckResult.ABSENCE_FAILED
        except ChannelClosed as e:
            logger.critical("Event signal closed: the debounce worker is no longer running")
            raise WorkerStoppedError(
                "debounce worker stopped, absence can no longer be tracked"
            ) from e

        self._windows_with_events += 1
        self._last_event_time = event_time
        logger.info("Event heard this window, absence timer reset")
        return CheckResult.EVENT_SEEN

    def _get_worker_specific_state(self) -> dict[str, Any]:
        return {
            "ticks": self._ticks,
            "windows_with_events": self._windows_with_events,
            "last_event_time": self._last_event_time,
            "absence_window_seconds": self._pipeline.absence_window_seconds,
        }
