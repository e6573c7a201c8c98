"""Detection and intervention configuration."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any

# Defaults
HR_Z_THRESHOLD = 2.0  # standard deviations above the rolling mean
HRV_DROP_FRACTION = 0.3  # 30% drop from the rolling mean
MOTION_SPIKE_THRESHOLD = 0.8  # magnitude above the rolling mean
SLIDING_WINDOW = timedelta(minutes=10)
COOLDOWN = timedelta(minutes=15)
RECOVERY_WINDOW = timedelta(minutes=5)
MIN_BASELINE_SAMPLES = 10
SOURCE_RETRY_DELAY = timedelta(seconds=1)
MAX_SOURCE_ERRORS = 10  # consecutive, before the source is abandoned


@dataclass(frozen=True)
class ProtocolConfig:
    """Immutable settings for one protocol instance.

    Attributes:
        hr_z_threshold: HR z-score that counts as a spike.
        hrv_drop_fraction: Fractional HRV drop that counts as distress.
        motion_spike_threshold: Motion increase over the baseline mean that
            counts as a spike.
        sliding_window: Age limit of samples kept for the baseline.
        cooldown: Minimum time between two cues.
        recovery_window: Uninterrupted calm time needed to declare recovery.
        min_baseline_samples: Baseline size (excluding the newest sample)
            required before detection runs.
        source_retry_delay: Pause after a source error before reading again.
        max_source_errors: Consecutive source errors that end monitoring.
    """

    hr_z_threshold: float = HR_Z_THRESHOLD
    hrv_drop_fraction: float = HRV_DROP_FRACTION
    motion_spike_threshold: float = MOTION_SPIKE_THRESHOLD
    sliding_window: timedelta = SLIDING_WINDOW
    cooldown: timedelta = COOLDOWN
    recovery_window: timedelta = RECOVERY_WINDOW
    min_baseline_samples: int = MIN_BASELINE_SAMPLES
    source_retry_delay: timedelta = SOURCE_RETRY_DELAY
    max_source_errors: int = MAX_SOURCE_ERRORS

    def __post_init__(self) -> None:
        for name in ("hr_z_threshold", "hrv_drop_fraction", "motion_spike_threshold"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.sliding_window <= timedelta(0):
            raise ValueError("sliding_window must be positive")
        for name in ("cooldown", "recovery_window", "source_retry_delay"):
            if getattr(self, name) < timedelta(0):
                raise ValueError(f"{name} must not be negative")
        if self.min_baseline_samples < 1:
            raise ValueError("min_baseline_samples must be at least 1")
        if self.max_source_errors < 1:
            raise ValueError("max_source_errors must be at least 1")

    @classmethod
    def from_minutes(
        cls,
        window_min: float = SLIDING_WINDOW.total_seconds() / 60,
        cooldown_min: float = COOLDOWN.total_seconds() / 60,
        recovery_min: float = RECOVERY_WINDOW.total_seconds() / 60,
        **kwargs: Any,
    ) -> ProtocolConfig:
        """Build a config from minute-valued durations (CLI helper)."""
        return cls(
            sliding_window=timedelta(minutes=window_min),
            cooldown=timedelta(minutes=cooldown_min),
            recovery_window=timedelta(minutes=recovery_min),
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain dict with durations in seconds."""
        out = asdict(self)
        for key, value in out.items():
            if isinstance(value, timedelta):
                out[key] = value.total_seconds()
        return out

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
