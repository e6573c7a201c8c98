"""Biometric samples and the sources that deliver them.

A sample source is anything with a ``samples()`` method returning an async
iterator of :class:`BioSample`.  The concrete wearable integration lives
outside this package; the two sources here cover scripted input
(:class:`IterableSampleSource`) and push-style feeds
(:class:`QueueSampleSource`), e.g. from a BLE notification handler.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Iterable, Protocol


class SleepStage(str, Enum):
    """Sleep stage reported alongside each sample."""

    WAKE = "wake"
    NREM = "nrem"  # where night terrors occur
    REM = "rem"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class BioSample:
    """One timestamped reading from a wearable or actigraphy sensor."""

    timestamp: datetime
    heart_rate: int  # bpm
    heart_rate_variability: float  # ms
    motion_magnitude: float  # g
    sleep_stage: SleepStage

    @property
    def is_nrem(self) -> bool:
        return self.sleep_stage == SleepStage.NREM

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON record used in sample recordings."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "hr": self.heart_rate,
            "hrv": self.heart_rate_variability,
            "motion": self.motion_magnitude,
            "stage": self.sleep_stage.value,
        }

    @classmethod
    def from_dict(cls, entry: dict[str, Any]) -> BioSample:
        """Build a sample from a recording entry.

        Raises:
            KeyError: a required field is missing.
            ValueError: a field cannot be converted.
        """
        stage = entry.get("stage", SleepStage.UNKNOWN.value)
        return cls(
            timestamp=datetime.fromisoformat(entry["timestamp"]),
            heart_rate=int(entry["hr"]),
            heart_rate_variability=float(entry["hrv"]),
            motion_magnitude=float(entry["motion"]),
            sleep_stage=SleepStage(str(stage).lower()),
        )

    def __repr__(self) -> str:
        return (
            f"BioSample({self.timestamp.isoformat()}, hr={self.heart_rate}bpm, "
            f"hrv={self.heart_rate_variability:.1f}ms, "
            f"motion={self.motion_magnitude:.2f}, {self.sleep_stage.value})"
        )


class SampleSource(Protocol):
    """Ordered, terminatable stream of samples. May raise transport errors."""

    def samples(self) -> AsyncIterator[BioSample]: ...


# ---------------------------------------------------------------------------
# Scripted source
# ---------------------------------------------------------------------------


class IterableSampleSource:
    """Replay a finite sequence of samples.

    Args:
        samples: Samples in arrival order.
        delay: Seconds to sleep between samples.  Zero still yields to the
            event loop so cue tasks get a chance to run.
    """

    def __init__(self, samples: Iterable[BioSample], delay: float = 0.0) -> None:
        self._samples = list(samples)
        self.delay = delay

    def __len__(self) -> int:
        return len(self._samples)

    async def samples(self) -> AsyncIterator[BioSample]:
        for sample in self._samples:
            yield sample
            await asyncio.sleep(self.delay)


# ---------------------------------------------------------------------------
# Push source
# ---------------------------------------------------------------------------

_CLOSED = object()


class QueueSampleSource:
    """Push-fed source backed by an :class:`asyncio.Queue`.

    Producers call :meth:`push` for each sample, :meth:`fail` to surface a
    transport error to the consumer, and :meth:`close` to end the stream.
    An error raised by the iterator does not end it; the next call keeps
    reading from the queue.
    """

    def __init__(self, max_queue: int = 0) -> None:
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, sample: BioSample) -> None:
        if self._closed:
            raise RuntimeError("source is closed")
        self._queue.put_nowait(sample)

    def fail(self, error: BaseException) -> None:
        if self._closed:
            raise RuntimeError("source is closed")
        self._queue.put_nowait(error)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def samples(self) -> AsyncIterator[BioSample]:
        return _QueueIterator(self._queue)


class _QueueIterator:
    def __init__(self, queue: asyncio.Queue) -> None:
        self._queue = queue
        self._done = False

    def __aiter__(self) -> _QueueIterator:
        return self

    async def __anext__(self) -> BioSample:
        if self._done:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._done = True
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item
