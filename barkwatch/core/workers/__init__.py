"""Pipeline workers for Barkwatch."""

from barkwatch.core.workers.base import (
    BaseWorker,
    WorkerState,
    WorkerStatus,
    WorkerStoppedError,
)
from barkwatch.core.workers.debounce import DebounceWorker, DebouncePhase
from barkwatch.core.workers.watchdog import WatchdogWorker, CheckResult

__all__ = [
    "BaseWorker",
    "WorkerState",
    "WorkerStatus",
    "WorkerStoppedError",
    "DebounceWorker",
    "DebouncePhase",
    "WatchdogWorker",
    "CheckResult",
]
