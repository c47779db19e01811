"""
Debounce worker for Barkwatch.

Turns coalesced loud samples into event notifications, at most one per
refractory period, and tells the watchdog that something was heard.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any

from barkwatch.core.channels import ChannelClosed, EventCoalescer, EventSignal
from barkwatch.core.config import PipelineConfig, TopicsConfig
from barkwatch.core.events import Notification
from barkwatch.core.workers.base import BaseWorker
from barkwatch.publishers.base import BasePublisher

logger = logging.getLogger(__name__)


class DebouncePhase(str, Enum):
    """Where the debounce loop currently is."""

    AWAITING_SAMPLE = "awaiting_sample"
    PUBLISHING = "publishing"
    REFRACTORY = "refractory"
    DRAINING = "draining"


class DebounceWorker(BaseWorker):
    """
    Publish one event per accepted sample, then go deaf for a while.

    Cycle: take a sample, publish, signal the watchdog (on success only),
    sleep the refractory period, then drain one sample according to the
    drain policy:

    - "blocking": wait for one more sample and discard it. The next cycle
      does not start until that sample arrives.
    - "timed": as "blocking", but give up after drain_timeout_seconds.
    - "none": skip the drain.

    When the sample channel closes, the worker stops and closes the event
    signal so the watchdog can tell it is gone.
    """

    def __init__(
        self,
        coalescer: EventCoalescer,
        signal: EventSignal,
        publisher: BasePublisher,
        topics: TopicsConfig | None = None,
        pipeline: PipelineConfig | None = None,
    ):
        super().__init__("debounce", publisher)

        self._coalescer = coalescer
        self._signal = signal
        self._topics = topics or TopicsConfig()
        self._pipeline = pipeline or PipelineConfig()

        self._phase = DebouncePhase.AWAITING_SAMPLE
        self._accepted = 0
        self._drained = 0
        self._drain_timeouts = 0

    @property
    def phase(self) -> DebouncePhase:
        return self._phase

    async def _run(self) -> None:
        try:
            while True:
                await self.cycle()
        except ChannelClosed:
            logger.warning("Sample channel closed, debounce worker exiting")
        finally:
            self._signal.close()

    async def cycle(self) -> bool:
        """
        Run one debounce iteration.

        Returns:
            True if an event notification was published

        Raises:
            ChannelClosed: If the sample channel closes while waiting
        """
        self._phase = DebouncePhase.AWAITING_SAMPLE
        amplitude = await self._coalescer.take()
        self._accepted += 1
        logger.debug(f"Loud sample accepted: {amplitude:.4f}")

        self._phase = DebouncePhase.PUBLISHING
        published = await self._publish(Notification.event(self._topics, amplitude))
        if published:
            self._signal.offer(time.time())

        self._phase = DebouncePhase.REFRACTORY
        await asyncio.sleep(self._pipeline.refractory_period_seconds)

        self._phase = DebouncePhase.DRAINING
        await self._drain()

        return published

    async def _drain(self) -> None:
        """Discard one sample queued during the refractory period."""
        policy = self._pipeline.drain_policy
        if policy == "none":
            return

        if policy == "timed":
            try:
                amplitude = await asyncio.wait_for(
                    self._coalescer.take(),
                    timeout=self._pipeline.drain_timeout_seconds,
                )
            except asyncio.TimeoutError:
                self._drain_timeouts += 1
                return
        else:
            amplitude = await self._coalescer.take()

        self._drained += 1
        logger.debug(f"Drained sample after refractory period: {amplitude:.4f}")

    def _get_worker_specific_state(self) -> dict[str, Any]:
        return {
            "phase": self._phase.value,
            "samples_accepted": self._accepted,
            "samples_drained": self._drained,
            "drain_timeouts": self._drain_timeouts,
            "samples_dropped": self._coalescer.dropped,
            "drain_policy": self._pipeline.drain_policy,
            "refractory_period_seconds": self._pipeline.refractory_period_seconds,
        }
