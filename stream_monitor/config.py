"""
Runtime configuration, read from STREAM_MONITOR_* environment variables.

Values are validated on load: an unparseable or out-of-range variable raises
pydantic.ValidationError instead of being replaced by its default. Empty
variables count as unset. CLI flags in main.py override these values.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .engine.events import (
    DEFAULT_CHAT_SPIKE_MIN_MESSAGES,
    DEFAULT_CHAT_SPIKE_RATIO,
    DEFAULT_VIEWER_SPIKE_MIN_DELTA,
    DEFAULT_VIEWER_SPIKE_RATIO,
    SpikeThresholds,
)
from .engine.timeline import DEFAULT_CAPACITY

ENV_PREFIX = "STREAM_MONITOR_"

DEFAULT_BACKEND_URL = "http://127.0.0.1:8787"
DEFAULT_TIMEOUT_SEC = 10.0
DEFAULT_POLL_INTERVAL_SEC = 5.0


class MonitorConfig(BaseSettings):
    backend_url: str = DEFAULT_BACKEND_URL
    timeout_sec: float = Field(DEFAULT_TIMEOUT_SEC, gt=0)
    poll_interval_sec: float = Field(DEFAULT_POLL_INTERVAL_SEC, gt=0)
    timeline_size: int = Field(DEFAULT_CAPACITY, ge=1)
    viewer_spike_ratio: float = Field(DEFAULT_VIEWER_SPIKE_RATIO, gt=0)
    viewer_spike_min_delta: int = Field(DEFAULT_VIEWER_SPIKE_MIN_DELTA, ge=0)
    chat_spike_ratio: float = Field(DEFAULT_CHAT_SPIKE_RATIO, gt=0)
    chat_spike_min_messages: int = Field(DEFAULT_CHAT_SPIKE_MIN_MESSAGES, ge=0)
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    @field_validator("backend_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.strip().upper()

    @classmethod
    def from_env(cls) -> MonitorConfig:
        """Load from the current process environment."""
        return cls()

    def with_overrides(self, **overrides: Any) -> MonitorConfig:
        """Validated copy with every non-None override applied."""
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        # Every field is passed explicitly, so the environment is not consulted
        return type(self)(**values)

    @property
    def spike_thresholds(self) -> SpikeThresholds:
        return SpikeThresholds(
            viewer_ratio=self.viewer_spike_ratio,
            viewer_min_delta=self.viewer_spike_min_delta,
            chat_ratio=self.chat_spike_ratio,
            chat_min_messages=self.chat_spike_min_messages,
        )
