"""Pytest configuration and fixtures."""

import pytest

from barkwatch.core.channels import EventCoalescer, EventSignal
from barkwatch.core.config import Config, PipelineConfig, TopicsConfig
from barkwatch.publishers.mqtt import MockPublisher


@pytest.fixture
def default_config():
    """Default configuration for testing."""
    return Config.default()


@pytest.fixture
def topics():
    """Separate topics so event and absence messages are easy to tell apart."""
    return TopicsConfig(event_topic="test/bark", absence_topic="test/no_bark")


@pytest.fixture
def fast_pipeline():
    """Pipeline timing scaled down for tests (1s -> 0.1s, 300s -> 0.3s)."""
    return PipelineConfig(
        refractory_period_seconds=0.1,
        absence_window_seconds=0.3,
        drain_policy="blocking",
        drain_timeout_seconds=0.05,
    )


@pytest.fixture
def publisher():
    """Recording publisher."""
    return MockPublisher()


@pytest.fixture
def failing_publisher():
    """Publisher whose every publish fails."""
    return MockPublisher(fail=True)


@pytest.fixture
def coalescer():
    return EventCoalescer()


@pytest.fixture
def signal():
    return EventSignal()
