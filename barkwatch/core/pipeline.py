"""
Pipeline wiring for Barkwatch.

Builds the two single-slot channels and the two workers around a shared
publisher:

    sample source -> EventCoalescer -> DebounceWorker -> publisher
                                            |
                                       EventSignal -> WatchdogWorker -> publisher
"""

from __future__ import annotations

import asyncio
import logging

from barkwatch.core.channels import EventCoalescer, EventSignal
from barkwatch.core.config import PipelineConfig, TopicsConfig
from barkwatch.core.workers.base import BaseWorker, WorkerState
from barkwatch.core.workers.debounce import DebounceWorker
from barkwatch.core.workers.watchdog import WatchdogWorker
from barkwatch.publishers.base import BasePublisher

logger = logging.getLogger(__name__)


class BarkPipeline:
    """
    Debounce and absence watchdog pipeline.

    Usage:
        pipeline = BarkPipeline(publisher, config.topics, config.pipeline)
        detector.set_coalescer(pipeline.coalescer)
        await pipeline.start()
        stopped = await pipeline.wait()  # returns only if a worker dies
    """

    def __init__(
        self,
        publisher: BasePublisher,
        topics: TopicsConfig | None = None,
        pipeline: PipelineConfig | None = None,
    ):
        self._publisher = publisher
        self._topics = topics or TopicsConfig()
        self._pipeline = pipeline or PipelineConfig()

        self.coalescer = EventCoalescer()
        self.signal = EventSignal()

        self.debounce = DebounceWorker(
            coalescer=self.coalescer,
            signal=self.signal,
            publisher=publisher,
            topics=self._topics,
            pipeline=self._pipeline,
        )
        self.watchdog = WatchdogWorker(
            signal=self.signal,
            publisher=publisher,
            topics=self._topics,
            pipeline=self._pipeline,
        )

    @property
    def workers(self) -> list[BaseWorker]:
        return [self.debounce, self.watchdog]

    async def start(self) -> None:
        """Start both workers."""
        logger.info(
            f"Starting pipeline: refractory {self._pipeline.refractory_period_seconds}s, "
            f"absence window {self._pipeline.absence_window_seconds}s, "
            f"drain policy {self._pipeline.drain_policy}"
        )
        await self.debounce.start()
        await self.watchdog.start()

    async def stop(self) -> None:
        """Stop both workers."""
        # Watchdog first, so it never sees the signal close during shutdown
        await self.watchdog.stop()
        await self.debounce.stop()
        self.coalescer.close()
        logger.info("Pipeline stopped")

    async def wait(self) -> list[BaseWorker]:
        """
        Wait until at least one worker loop ends.

        Returns:
            The workers whose loops have finished
        """
        tasks = {w.task: w for w in self.workers if w.task is not None}
        if not tasks:
            return []

        done, _ = await asyncio.wait(list(tasks), return_when=asyncio.FIRST_COMPLETED)
        return [tasks[t] for t in done]

    def get_state(self) -> dict[str, WorkerState]:
        """Get state of every worker, keyed by worker name."""
        return {w.name: w.get_state() for w in self.workers}
