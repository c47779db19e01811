"""
Sample sources for Barkwatch.

Detectors apply the amplitude threshold and feed loud samples into the
pipeline's event coalescer.
"""

from barkwatch.detectors.base import BaseDetector, DetectorState, DetectorStatus
from barkwatch.detectors.audio import AudioDetector, MockAudioDetector, list_input_devices

__all__ = [
    "BaseDetector",
    "DetectorState",
    "DetectorStatus",
    "AudioDetector",
    "MockAudioDetector",
    "list_input_devices",
]
