"""
Audio detector for Barkwatch.

Captures a microphone at a very low sample rate and offers every sample
louder than the threshold to the pipeline. Only loudness matters here,
not the audio content.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any

import numpy as np

from barkwatch.core.channels import EventCoalescer
from barkwatch.core.config import AudioConfig
from barkwatch.detectors.base import BaseDetector

logger = logging.getLogger(__name__)


def list_input_devices() -> list[dict[str, Any]]:
    """
    List audio devices that can capture.

    Raises:
        ConnectionError: If sounddevice (PortAudio) is not available
    """
    try:
        import sounddevice as sd
    except (ImportError, OSError) as e:
        raise ConnectionError(f"sounddevice not available: {e}")

    devices = []
    for i, d in enumerate(sd.query_devices()):
        if d["max_input_channels"] > 0:
            devices.append({
                "index": i,
                "name": d["name"],
                "channels": d["max_input_channels"],
                "default_samplerate": d["default_samplerate"],
            })
    return devices


class AudioDetector(BaseDetector):
    """
    Detect loud sounds via a microphone.

    Uses sounddevice for cross-platform capture. The PortAudio callback
    runs on its own real-time thread and only ever calls the coalescer's
    non-blocking offer.
    """

    def __init__(
        self,
        config: AudioConfig | None = None,
        coalescer: EventCoalescer | None = None,
    ):
        """
        Initialize audio detector.

        Args:
            config: Audio configuration, or None for defaults
            coalescer: Destination for loud samples
        """
        self._config = config or AudioConfig()
        super().__init__("audio", self._config.threshold, coalescer)

        self._stream = None
        self._device_name: str | None = None
        self._status_flags = 0

    async def _connect(self) -> None:
        """Open the input stream on the configured device."""
        try:
            import sounddevice as sd
        except (ImportError, OSError) as e:
            raise ConnectionError(
                f"sounddevice not available ({e}). Run: pip install sounddevice"
            )

        device_id = None
        device_name = self._config.device

        if device_name and device_name != "default":
            for info in list_input_devices():
                if device_name.lower() in info["name"].lower():
                    device_id = info["index"]
                    self._device_name = info["name"]
                    break

            if device_id is None:
                raise ConnectionError(f"Audio input device not found: {device_name}")
        else:
            try:
                default = sd.query_devices(kind="input")
                self._device_name = default["name"]
            except Exception as e:
                raise ConnectionError(f"No audio input device available: {e}")

        logger.info(f"Using input device: \"{self._device_name}\"")

        def audio_callback(indata, frames, time_info, status):
            if status:
                self._status_flags += 1
                logger.warning(f"Audio stream status: {status}")
            self._offer_block(indata)

        try:
            self._stream = sd.InputStream(
                device=device_id,
                channels=self._config.channels,
                samplerate=self._config.sample_rate,
                dtype=np.float32,
                callback=audio_callback,
            )
            self._stream.start()
        except Exception as e:
            self._stream = None
            raise ConnectionError(f"Failed to open audio stream: {e}")

        logger.info(f"Audio stream started at {self._config.sample_rate} Hz")

    async def _disconnect(self) -> None:
        """Close audio stream."""
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            finally:
                self._stream = None

    def _get_detector_specific_state(self) -> dict[str, Any]:
        return {
            "device": self._device_name,
            "sample_rate": self._config.sample_rate,
            "stream_status_flags": self._status_flags,
        }


class MockAudioDetector(BaseDetector):
    """
    Mock audio detector for testing and development.

    Emits background noise blocks below the threshold and, every so
    often, a burst of loud samples that looks like a bark.
    """

    def __init__(
        self,
        coalescer: EventCoalescer | None = None,
        threshold: float = 0.2,
        block_interval: float = 0.05,
        block_size: int = 50,
        bark_probability: float = 0.01,
        noise_level: float = 0.02,
    ):
        """
        Initialize mock audio detector.

        Args:
            coalescer: Destination for loud samples
            threshold: Magnitude a sample must exceed to be offered
            block_interval: Seconds between synthetic audio blocks
            block_size: Samples per block
            bark_probability: Chance that a block contains a bark
            noise_level: Standard deviation of background noise
        """
        super().__init__("audio", threshold, coalescer)

        self._block_interval = block_interval
        self._block_size = block_size
        self._bark_probability = bark_probability
        self._noise_level = noise_level

        self._task: asyncio.Task | None = None
        self._pending_barks = 0
        self._barks_generated = 0

    async def _connect(self) -> None:
        """Start generating synthetic audio."""
        self._task = asyncio.create_task(self._generate_loop())

    async def _disconnect(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _generate_loop(self) -> None:
        """Produce one synthetic block per interval."""
        while self._running:
            block = np.random.normal(0.0, self._noise_level, self._block_size).astype(np.float32)

            if self._pending_barks or random.random() < self._bark_probability:
                self._pending_barks = max(0, self._pending_barks - 1)
                block = block + self._bark_shape()
                self._barks_generated += 1

            self._offer_block(block)
            await asyncio.sleep(self._block_interval)

    def _bark_shape(self) -> np.ndarray:
        """A short decaying loud burst in the middle of a block."""
        envelope = np.zeros(self._block_size, dtype=np.float32)
        start = self._block_size // 4
        length = max(1, self._block_size // 2)
        peak = min(1.0, self._threshold * 3 + 0.1)
        envelope[start:start + length] = peak * np.exp(-np.linspace(0, 3, length))
        return envelope

    def inject_bark(self, count: int = 1) -> None:
        """Make the next `count` synthetic blocks contain a bark."""
        self._pending_barks += count

    def _get_detector_specific_state(self) -> dict[str, Any]:
        return {
            "mock": True,
            "barks_generated": self._barks_generated,
            "bark_probability": self._bark_probability,
        }
