"""Baseline statistics over the sliding window."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from nightcalm.samples import BioSample


@dataclass
class BaselineStats:
    """Rolling reference values the newest sample is compared against."""

    hr_mean: float
    hr_std: float  # population std, may be 0.0 for a flat baseline
    hrv_mean: float
    motion_mean: float
    count: int

    def __repr__(self) -> str:
        return (
            f"BaselineStats(hr={self.hr_mean:.1f}±{self.hr_std:.1f}bpm, "
            f"hrv={self.hrv_mean:.1f}ms, motion={self.motion_mean:.3f}, "
            f"n={self.count})"
        )


def compute_baseline(
    samples: Sequence[BioSample],
    min_samples: int,
) -> BaselineStats | None:
    """Compute baseline statistics for *samples*.

    Args:
        samples: The baseline set (the window minus its newest sample).
        min_samples: Minimum size of the baseline set.

    Returns:
        BaselineStats, or None if there are fewer than *min_samples*
        samples, in which case detection should be skipped.
    """
    if len(samples) == 0 or len(samples) < min_samples:
        return None

    hr = np.asarray([s.heart_rate for s in samples], dtype=np.float64)
    hrv = np.asarray([s.heart_rate_variability for s in samples], dtype=np.float64)
    motion = np.asarray([s.motion_magnitude for s in samples], dtype=np.float64)

    return BaselineStats(
        hr_mean=float(np.mean(hr)),
        hr_std=float(np.std(hr, ddof=0)),
        hrv_mean=float(np.mean(hrv)),
        motion_mean=float(np.mean(motion)),
        count=len(samples),
    )
