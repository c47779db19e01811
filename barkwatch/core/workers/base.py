"""
Base worker interface for Barkwatch.

Both pipeline workers (debounce and watchdog) inherit from BaseWorker,
which owns the asyncio task, status tracking, and publish bookkeeping.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from barkwatch.core.events import Notification
from barkwatch.publishers.base import BasePublisher

logger = logging.getLogger(__name__)


class WorkerStatus(str, Enum):
    """Operational status of a worker."""

    STOPPED = "stopped"
    RUNNING = "running"
    ERROR = "error"


class WorkerStoppedError(Exception):
    """A worker can no longer do its job because a collaborator went away."""


@dataclass
class WorkerState:
    """Current state of a worker."""

    status: WorkerStatus
    published: int = 0
    publish_failures: int = 0
    last_publish_time: float | None = None
    error_message: str | None = None
    uptime_seconds: float = 0.0
    extra: dict[str, Any] = field(default_factory=dict)


class BaseWorker(ABC):
    """
    Abstract base class for pipeline workers.

    A worker runs one loop for the lifetime of the process. Publish
    failures inside the loop are reported and counted but never end it;
    only structural failures stop a worker, leaving it in ERROR status
    with its task finished.
    """

    def __init__(self, name: str, publisher: BasePublisher):
        """
        Initialize worker.

        Args:
            name: Worker identifier ("debounce", "watchdog")
            publisher: Shared publisher for notifications
        """
        self._name = name
        self._publisher = publisher
        self._status = WorkerStatus.STOPPED
        self._task: asyncio.Task | None = None
        self._start_time: float | None = None
        self._error_message: str | None = None

        # Publish statistics
        self._published = 0
        self._publish_failures = 0
        self._last_publish_time: float | None = None

        self._on_error: Callable[[str, Exception], Awaitable[None]] | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def status(self) -> WorkerStatus:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._status == WorkerStatus.RUNNING

    @property
    def task(self) -> asyncio.Task | None:
        """The asyncio task running the loop, once started."""
        return self._task

    def set_on_error(self, callback: Callable[[str, Exception], Awaitable[None]]) -> None:
        """Set callback for when the worker stops on an error."""
        self._on_error = callback

    # ========================================================================
    # Abstract Methods
    # ========================================================================

    @abstractmethod
    async def _run(self) -> None:
        """Main loop. Runs until cancelled or a structural failure."""
        pass

    @abstractmethod
    def _get_worker_specific_state(self) -> dict[str, Any]:
        pass

    # ========================================================================
    # Public Methods
    # ========================================================================

    async def start(self) -> None:
        """Start the worker loop as a background task."""
        if self._task is not None and not self._task.done():
            return

        self._status = WorkerStatus.RUNNING
        self._error_message = None
        self._start_time = time.time()
        self._task = asyncio.create_task(self._run_loop(), name=f"barkwatch-{self._name}")

    async def stop(self) -> None:
        """Cancel the worker loop and wait for it to finish."""
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._status != WorkerStatus.ERROR:
            self._status = WorkerStatus.STOPPED

    def get_state(self) -> WorkerState:
        """Get current worker state."""
        uptime = 0.0
        if self._start_time and self._status == WorkerStatus.RUNNING:
            uptime = time.time() - self._start_time

        return WorkerState(
            status=self._status,
            published=self._published,
            publish_failures=self._publish_failures,
            last_publish_time=self._last_publish_time,
            error_message=self._error_message,
            uptime_seconds=uptime,
            extra=self._get_worker_specific_state(),
        )

    # ========================================================================
    # Protected Methods
    # ========================================================================

    async def _publish(self, notification: Notification) -> bool:
        """
        Publish a notification, reporting the outcome.

        Returns:
            True if the publisher accepted the notification
        """
        try:
            await self._publisher.send(notification)
        except Exception as e:
            self._publish_failures += 1
            logger.error(
                f"{self._name}: failed to publish {notification.kind.value} "
                f"to {notification.topic}: {e}"
            )
            return False

        self._published += 1
        self._last_publish_time = time.time()
        logger.info(
            f"{self._name}: sent {notification.kind.value} "
            f"({notification.topic} <- {notification.payload})"
        )
        return True

    async def _handle_error(self, error: Exception) -> None:
        """Record a fatal error and notify the owner."""
        self._status = WorkerStatus.ERROR
        self._error_message = str(error)
        logger.error(f"{self._name} worker stopped: {error}")

        if self._on_error:
            await self._on_error(self._name, error)

    async def _run_loop(self) -> None:
        """Wrapper around the loop with error handling."""
        try:
            await self._run()
        except Exception as e:
            await self._handle_error(e)
        else:
            self._status = WorkerStatus.STOPPED
