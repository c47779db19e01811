"""
Base detector interface for Barkwatch.

A detector is the sample source of the pipeline: it watches a raw signal
and offers every sample whose magnitude exceeds the threshold to the
event coalescer. Threshold filtering happens here, before the coalescer.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

from barkwatch.core.channels import EventCoalescer

logger = logging.getLogger(__name__)


class DetectorStatus(str, Enum):
    """Operational status of a detector."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    ERROR = "error"


@dataclass
class DetectorState:
    """Current state of a detector."""

    status: DetectorStatus
    connected: bool = False
    threshold: float = 0.0
    samples_offered: int = 0
    samples_accepted: int = 0
    last_loud_time: float | None = None
    error_message: str | None = None
    uptime_seconds: float = 0.0
    extra: dict[str, Any] = field(default_factory=dict)


class BaseDetector(ABC):
    """
    Abstract base class for all Barkwatch detectors.

    Detectors are responsible for:
    1. Connecting to hardware (or a simulation)
    2. Applying the amplitude threshold
    3. Offering loud samples to the coalescer without ever blocking
    """

    def __init__(
        self,
        name: str,
        threshold: float,
        coalescer: EventCoalescer | None = None,
    ):
        """
        Initialize detector.

        Args:
            name: Unique detector identifier
            threshold: Magnitude a sample must exceed to be offered
            coalescer: Destination for loud samples
        """
        self._name = name
        self._threshold = threshold
        self._coalescer = coalescer
        self._status = DetectorStatus.STOPPED
        self._connected = False
        self._running = False
        self._start_time: float | None = None
        self._error_message: str | None = None

        # Statistics (updated from the capture thread)
        self._samples_offered = 0
        self._samples_accepted = 0
        self._last_loud_time: float | None = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def status(self) -> DetectorStatus:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._running and self._status == DetectorStatus.RUNNING

    def set_coalescer(self, coalescer: EventCoalescer) -> None:
        """Set the coalescer that receives loud samples."""
        self._coalescer = coalescer

    # ========================================================================
    # Abstract Methods
    # ========================================================================

    @abstractmethod
    async def _connect(self) -> None:
        """
        Connect to hardware and begin capturing.

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    async def _disconnect(self) -> None:
        """Stop capturing and release hardware."""
        pass

    @abstractmethod
    def _get_detector_specific_state(self) -> dict[str, Any]:
        pass

    # ========================================================================
    # Public Methods
    # ========================================================================

    async def start(self) -> None:
        """Start the detector."""
        if self._running:
            return

        if self._coalescer is None:
            raise RuntimeError(f"Detector '{self._name}' has no coalescer")

        self._status = DetectorStatus.STARTING
        self._error_message = None

        try:
            self._running = True
            await self._connect()
            self._connected = True
            self._start_time = time.time()
            self._status = DetectorStatus.RUNNING
            logger.info(f"Detector '{self._name}' running, threshold {self._threshold}")

        except Exception as e:
            self._running = False
            self._status = DetectorStatus.ERROR
            self._error_message = str(e)
            self._connected = False
            raise

    async def stop(self) -> None:
        """Stop the detector."""
        self._running = False

        try:
            await self._disconnect()
        except Exception as e:
            logger.warning(f"Detector '{self._name}' did not disconnect cleanly: {e}")

        self._connected = False
        self._status = DetectorStatus.STOPPED

    def get_state(self) -> DetectorState:
        """Get current detector state."""
        uptime = 0.0
        if self._start_time and self._running:
            uptime = time.time() - self._start_time

        return DetectorState(
            status=self._status,
            connected=self._connected,
            threshold=self._threshold,
            samples_offered=self._samples_offered,
            samples_accepted=self._samples_accepted,
            last_loud_time=self._last_loud_time,
            error_message=self._error_message,
            uptime_seconds=uptime,
            extra=self._get_detector_specific_state(),
        )

    # ========================================================================
    # Protected Methods
    # ========================================================================

    def _offer_block(self, block: np.ndarray) -> int:
        """
        Offer every above-threshold sample in a block of raw audio.

        Safe to call from the audio capture thread: never blocks.

        Returns:
            Number of samples the coalescer accepted
        """
        if self._coalescer is None:
            return 0

        magnitudes = np.abs(np.asarray(block, dtype=np.float32).ravel())
        loud = magnitudes[magnitudes > self._threshold]
        if loud.size == 0:
            return 0

        self._last_loud_time = time.time()
        accepted = 0
        for amplitude in loud:
            self._samples_offered += 1
            if self._coalescer.offer(float(amplitude)):
                accepted += 1

        self._samples_accepted += accepted
        return accepted
