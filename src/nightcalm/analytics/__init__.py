"""Streaming analytics for distress detection.

Modules:
    window    -- Age-bounded sliding window of recent samples
    baseline  -- Rolling HR / HRV / motion baseline statistics
    detector  -- Prioritized HR-spike, HRV-drop and motion-spike checks
"""

from nightcalm.analytics.window import SlidingWindow
from nightcalm.analytics.baseline import BaselineStats, compute_baseline
from nightcalm.analytics.detector import (
    Detection,
    TriggerKind,
    clamp_severity,
    detect_anomaly,
)

__all__ = [
    # window
    "SlidingWindow",
    # baseline
    "BaselineStats",
    "compute_baseline",
    # detector
    "Detection",
    "TriggerKind",
    "clamp_severity",
    "detect_anomaly",
]
