"""Time-bounded sliding window of recent samples."""

from __future__ import annotations

from collections import deque
from datetime import datetime, timedelta
from typing import Iterator

from nightcalm.samples import BioSample


def _is_sorted(samples: deque[BioSample]) -> bool:
    previous = None
    for s in samples:
        if previous is not None and s.timestamp < previous:
            return False
        previous = s.timestamp
    return True


class SlidingWindow:
    """Keep samples no older than *duration* relative to the newest one.

    The window is bounded by age, not count.  Samples are assumed to arrive
    with non-decreasing timestamps; nothing is re-sorted.  A late sample
    that is already older than the window is appended and then pruned
    straight away.
    """

    def __init__(self, duration: timedelta) -> None:
        self.duration = duration
        self._samples: deque[BioSample] = deque()
        self._newest: datetime | None = None
        self._sorted = True  # timestamps non-decreasing front to back

    def push(self, sample: BioSample) -> list[BioSample]:
        """Append *sample*, prune stale entries and return the contents."""
        if self._samples and sample.timestamp < self._samples[-1].timestamp:
            self._sorted = False
        self._samples.append(sample)
        if self._newest is None or sample.timestamp > self._newest:
            self._newest = sample.timestamp

        cutoff = self._newest - self.duration
        if self._sorted:
            while self._samples[0].timestamp < cutoff:
                self._samples.popleft()
        else:
            self._samples = deque(s for s in self._samples if s.timestamp >= cutoff)
            self._sorted = _is_sorted(self._samples)
        return list(self._samples)

    def baseline(self) -> list[BioSample]:
        """Every sample except the most recent arrival."""
        return list(self._samples)[:-1]

    @property
    def latest(self) -> BioSample | None:
        return self._samples[-1] if self._samples else None

    def clear(self) -> None:
        self._samples.clear()
        self._newest = None
        self._sorted = True

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[BioSample]:
        return iter(self._samples)

    def __repr__(self) -> str:
        return f"SlidingWindow({len(self._samples)} samples, {self.duration})"
