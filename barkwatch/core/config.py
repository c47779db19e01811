"""
Configuration system for Barkwatch.

Provides YAML-based configuration with:
- Dot-notation access
- Environment variable substitution and overrides
- Pydantic validation

Configuration is read once at startup and stays fixed for the lifetime
of the process.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

T = TypeVar("T")


# ============================================================================
# Typed Configuration Models
# ============================================================================


class SystemConfig(BaseModel):
    """Top-level system configuration."""

    name: str = "barkwatch"
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if level not in valid:
            raise ValueError(f"Log level must be one of {valid}, got '{v}'")
        return level


class AudioConfig(BaseModel):
    """Configuration for the microphone sample source."""

    device: str = "default"  # "default" or a substring of the device name
    threshold: float = Field(default=0.2, ge=0.0, le=1.0)
    # Only loud events matter, not the audio itself, so a very low rate is enough
    sample_rate: int = Field(default=1000, ge=100, le=48000)
    channels: int = Field(default=1, ge=1, le=2)


class MqttConfig(BaseModel):
    """Configuration for the MQTT broker connection."""

    host: str = "homeassistant.local"
    port: int = Field(default=1883, ge=1, le=65535)
    username: str = ""
    password: str = ""
    client_id: str = "barkwatch"
    keepalive_seconds: int = Field(default=20, ge=5, le=3600)
    tls: bool = False
    publish_timeout_seconds: float = Field(default=10.0, ge=0.0)
    reconnect_min_delay: int = Field(default=1, ge=1)
    reconnect_max_delay: int = Field(default=60, ge=1)

    @model_validator(mode="after")
    def validate_reconnect_delays(self) -> MqttConfig:
        if self.reconnect_max_delay < self.reconnect_min_delay:
            raise ValueError(
                "reconnect_max_delay must be >= reconnect_min_delay, "
                f"got {self.reconnect_max_delay} < {self.reconnect_min_delay}"
            )
        return self


class TopicsConfig(BaseModel):
    """Topics and payloads for published notifications."""

    event_topic: str = "casa/bark"
    absence_topic: str = "casa/bark"
    event_payload: str = "marker"  # marker | amplitude
    event_marker: str = "1"
    absence_marker: str = "0"
    qos: int = Field(default=1, ge=0, le=2)
    retain: bool = False

    @field_validator("event_payload")
    @classmethod
    def validate_event_payload(cls, v: str) -> str:
        if v not in ("marker", "amplitude"):
            raise ValueError(f"Event payload must be 'marker' or 'amplitude', got '{v}'")
        return v

    @field_validator("event_topic", "absence_topic")
    @classmethod
    def validate_topic(cls, v: str) -> str:
        if not v or "+" in v or "#" in v:
            raise ValueError(f"Invalid publish topic: '{v}'")
        return v


class PipelineConfig(BaseModel):
    """Timing policy for the debounce and absence watchdog workers."""

    refractory_period_seconds: float = Field(default=1.0, gt=0.0)
    absence_window_seconds: float = Field(default=300.0, gt=0.0)
    drain_policy: str = "blocking"  # blocking | timed | none
    drain_timeout_seconds: float = Field(default=1.0, gt=0.0)

    @field_validator("drain_policy")
    @classmethod
    def validate_drain_policy(cls, v: str) -> str:
        valid = {"blocking", "timed", "none"}
        if v not in valid:
            raise ValueError(f"Drain policy must be one of {valid}, got '{v}'")
        return v


class BarkwatchConfig(BaseModel):
    """Complete Barkwatch configuration."""

    system: SystemConfig = Field(default_factory=SystemConfig)
    audio: AudioConfig = Field(default_factory=AudioConfig)
    mqtt: MqttConfig = Field(default_factory=MqttConfig)
    topics: TopicsConfig = Field(default_factory=TopicsConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)


# ============================================================================
# Configuration Loader
# ============================================================================


class ConfigLoader:
    """Loads and merges configuration from YAML files."""

    # Pattern for environment variable references: ${VAR} or ${VAR:-default}
    ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

    ENV_PREFIX = "BARKWATCH_"
    ENV_SEPARATOR = "__"

    def load_yaml(self, path: Path) -> dict[str, Any]:
        """Load single YAML file with env var substitution."""
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        content = path.read_text()
        content = self._substitute_env_vars(content)

        return yaml.safe_load(content) or {}

    def load_directory(self, dir_path: Path) -> dict[str, Any]:
        """Load and merge all YAML files in directory."""
        if not dir_path.is_dir():
            raise NotADirectoryError(f"Config directory not found: {dir_path}")

        config: dict[str, Any] = {}

        # Sorted for deterministic merging
        for yaml_file in sorted(dir_path.glob("*.yaml")):
            file_config = self.load_yaml(yaml_file)
            config = self.merge(config, file_config)

        return config

    def merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge override into base."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self.merge(result[key], value)
            else:
                result[key] = value

        return result

    def _substitute_env_vars(self, content: str) -> str:
        """Replace ${VAR} and ${VAR:-default} with environment values."""

        def replacer(match: re.Match) -> str:
            var_name = match.group(1)
            default = match.group(2)
            value = os.environ.get(var_name)

            if value is not None:
                return value
            elif default is not None:
                return default
            else:
                return match.group(0)  # Keep original if no value and no default

        return self.ENV_PATTERN.sub(replacer, content)

    def apply_env_overrides(self, config: dict[str, Any]) -> dict[str, Any]:
        """
        Apply environment variable overrides.

        BARKWATCH_AUDIO__THRESHOLD=0.3 -> audio.threshold = 0.3
        BARKWATCH_PIPELINE__ABSENCE_WINDOW_SECONDS=60 -> pipeline.absence_window_seconds = 60

        Variables without a section separator (e.g. BARKWATCH_MOCK) are
        runtime flags, not config keys, and are ignored here.

        Values stay strings; the pydantic models coerce them to each
        field's type, so BARKWATCH_MQTT__PASSWORD=123456 remains a string.
        """
        for key, value in os.environ.items():
            if not key.startswith(self.ENV_PREFIX):
                continue

            remainder = key[len(self.ENV_PREFIX):]
            if self.ENV_SEPARATOR not in remainder:
                continue

            path_parts = remainder.lower().split(self.ENV_SEPARATOR)
            self._set_nested(config, path_parts, value)

        return config

    def _set_nested(self, obj: dict[str, Any], path: list[str], value: Any) -> None:
        """Set a nested value using a list of keys."""
        for key in path[:-1]:
            if not isinstance(obj.get(key), dict):
                obj[key] = {}
            obj = obj[key]
        obj[path[-1]] = value


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Main configuration container.

    Usage:
        config = Config.load(Path("/etc/barkwatch/config.yaml"))
        threshold = config.get("audio.threshold", 0.2)

        # Or with typed access:
        window = config.pipeline.absence_window_seconds
    """

    def __init__(self, data: dict[str, Any], source_path: Path | None = None):
        self._data = data
        self._source_path = source_path

        # Parse into typed config
        self._typed = BarkwatchConfig.model_validate(data)

    @classmethod
    def load(cls, path: Path) -> Config:
        """Load configuration from YAML file."""
        loader = ConfigLoader()
        data = loader.load_yaml(path)
        data = loader.apply_env_overrides(data)
        return cls(data, source_path=path)

    @classmethod
    def load_directory(cls, dir_path: Path) -> Config:
        """Load and merge all YAML files in directory."""
        loader = ConfigLoader()
        data = loader.load_directory(dir_path)
        data = loader.apply_env_overrides(data)
        return cls(data, source_path=dir_path)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Create configuration from dictionary."""
        return cls(data)

    @classmethod
    def default(cls) -> Config:
        """Create configuration with all defaults."""
        return cls({})

    @property
    def source_path(self) -> Path | None:
        return self._source_path

    def get(self, path: str, default: T = None) -> T:
        """
        Get config value by dot-notation path.

        Falls back to the validated model so defaults are visible too.
        Example: config.get("pipeline.refractory_period_seconds", 1.0)
        """
        value: Any = self._typed.model_dump()

        for key in path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default  # type: ignore

        return value  # type: ignore

    def override(self, path: str, value: Any) -> None:
        """Override a value in memory (e.g. from a CLI flag) and re-validate."""
        keys = path.split(".")
        obj = self._data

        for key in keys[:-1]:
            if not isinstance(obj.get(key), dict):
                obj[key] = {}
            obj = obj[key]

        obj[keys[-1]] = value
        self._typed = BarkwatchConfig.model_validate(self._data)

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors: list[str] = []

        try:
            BarkwatchConfig.model_validate(self._data)
        except ValueError as e:
            errors.append(str(e))

        return errors

    def to_dict(self) -> dict[str, Any]:
        """Get configuration as dictionary, with defaults filled in."""
        return self._typed.model_dump()

    # ========================================================================
    # Typed Accessors
    # ========================================================================

    @property
    def system(self) -> SystemConfig:
        return self._typed.system

    @property
    def audio(self) -> AudioConfig:
        return self._typed.audio

    @property
    def mqtt(self) -> MqttConfig:
        return self._typed.mqtt

    @property
    def topics(self) -> TopicsConfig:
        return self._typed.topics

    @property
    def pipeline(self) -> PipelineConfig:
        return self._typed.pipeline
