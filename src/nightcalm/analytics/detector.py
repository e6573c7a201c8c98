"""Distress detection: compare the newest sample against the baseline.

Three checks run in fixed priority and the first match wins:

  1. Heart-rate spike (z-score, or a relative check on a flat baseline)
  2. HRV drop (fractional drop from the baseline mean)
  3. Motion spike (absolute increase over the baseline mean)

Severity is always clamped to [0, 1] so downstream consumers (e.g. cue
volume scaling) never see runaway values.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from nightcalm.analytics.baseline import BaselineStats
from nightcalm.config import ProtocolConfig
from nightcalm.samples import BioSample

# A flat baseline has no z-score; treat HR above 1.5x the mean as a spike.
FLAT_BASELINE_HR_FACTOR = 1.5


class TriggerKind(str, Enum):
    """Which signal triggered a detection."""

    HR_SPIKE = "hr_spike"
    HRV_DROP = "hrv_drop"
    MOTION_SPIKE = "motion_spike"


@dataclass(frozen=True)
class Detection:
    """A single triggering signal with its normalized severity."""

    trigger: TriggerKind
    severity: float  # 0.0-1.0


def clamp_severity(raw: float) -> float:
    """Clamp a raw severity ratio to [0.0, 1.0]."""
    return max(0.0, min(1.0, raw))


def _hr_spike(sample: BioSample, baseline: BaselineStats, threshold: float) -> Detection | None:
    if baseline.hr_std > 0:
        z = (sample.heart_rate - baseline.hr_mean) / baseline.hr_std
        if z >= threshold:
            return Detection(TriggerKind.HR_SPIKE, clamp_severity(z / threshold))
        return None

    if sample.heart_rate > baseline.hr_mean * FLAT_BASELINE_HR_FACTOR:
        if baseline.hr_mean > 0:
            raw = (sample.heart_rate - baseline.hr_mean) / baseline.hr_mean
        else:
            raw = 1.0  # all-zero baseline (no sensor contact)
        return Detection(TriggerKind.HR_SPIKE, clamp_severity(raw))
    return None


def _hrv_drop(sample: BioSample, baseline: BaselineStats, fraction: float) -> Detection | None:
    # No fallback here: a zero HRV baseline skips the check entirely.
    if baseline.hrv_mean <= 0:
        return None
    drop = (baseline.hrv_mean - sample.heart_rate_variability) / baseline.hrv_mean
    if drop >= fraction:
        return Detection(TriggerKind.HRV_DROP, clamp_severity(drop / fraction))
    return None


def _motion_spike(sample: BioSample, baseline: BaselineStats, threshold: float) -> Detection | None:
    delta = sample.motion_magnitude - baseline.motion_mean
    if delta >= threshold:
        return Detection(TriggerKind.MOTION_SPIKE, clamp_severity(delta / threshold))
    return None


def detect_anomaly(
    sample: BioSample,
    baseline: BaselineStats,
    config: ProtocolConfig,
) -> Detection | None:
    """Return the first triggering signal for *sample*, or None.

    Args:
        sample: The newest sample.
        baseline: Statistics over the preceding window.
        config: Detection thresholds.
    """
    return (
        _hr_spike(sample, baseline, config.hr_z_threshold)
        or _hrv_drop(sample, baseline, config.hrv_drop_fraction)
        or _motion_spike(sample, baseline, config.motion_spike_threshold)
    )
