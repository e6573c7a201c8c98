"""Shared fixtures and helpers for the nightcalm test suite."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from nightcalm.config import ProtocolConfig
from nightcalm.diagnostics import MemorySink
from nightcalm.events import ProtocolEvent
from nightcalm.protocol import NightTerrorProtocol
from nightcalm.samples import BioSample, IterableSampleSource, SleepStage

T0 = datetime(2026, 2, 13, 2, 0, 0, tzinfo=timezone.utc)
STEP = timedelta(seconds=30)


# ---------------------------------------------------------------------------
# Sample-building helpers
# ---------------------------------------------------------------------------


def make_sample(
    at: datetime | float = 0.0,
    hr: int = 70,
    hrv: float = 50.0,
    motion: float = 0.1,
    stage: SleepStage = SleepStage.NREM,
) -> BioSample:
    """Build a BioSample; a numeric *at* is seconds after T0."""
    if not isinstance(at, datetime):
        at = T0 + timedelta(seconds=at)
    return BioSample(
        timestamp=at,
        heart_rate=hr,
        heart_rate_variability=hrv,
        motion_magnitude=motion,
        sleep_stage=stage,
    )


def make_series(
    count: int,
    start: float = 0.0,
    step: timedelta = STEP,
    hr: int | list[int] = 70,
    hrv: float = 50.0,
    motion: float = 0.1,
    stage: SleepStage = SleepStage.NREM,
) -> list[BioSample]:
    """Build *count* evenly spaced samples starting *start* seconds after T0.

    *hr* may be a list, which is cycled through.
    """
    hrs = hr if isinstance(hr, list) else [hr]
    return [
        make_sample(
            at=start + i * step.total_seconds(),
            hr=hrs[i % len(hrs)],
            hrv=hrv,
            motion=motion,
            stage=stage,
        )
        for i in range(count)
    ]


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeAudio:
    """Calming audio that records calls and can fail or lag on demand."""

    def __init__(self, fail_next: bool = False, delay: float = 0.0) -> None:
        self.calls: list[str] = []
        self.fail_next = fail_next
        self.delay = delay

    async def play_low_volume_cue(self) -> None:
        self.calls.append("play")
        if self.fail_next:
            self.fail_next = False
            raise RuntimeError("Audio playback failed")
        if self.delay:
            await asyncio.sleep(self.delay)

    async def stop(self) -> None:
        self.calls.append("stop")

    @property
    def play_count(self) -> int:
        return self.calls.count("play")


def run_script(
    protocol: NightTerrorProtocol,
    samples: list[BioSample],
    audio: FakeAudio | None = None,
) -> list[ProtocolEvent]:
    """Run *samples* through *protocol* to completion and return its events."""

    async def _run() -> list[ProtocolEvent]:
        events: list[ProtocolEvent] = []
        protocol.events.add_listener(events.append)
        await protocol.start(IterableSampleSource(samples), audio or FakeAudio())
        await protocol.join()
        return events

    return asyncio.run(_run())


def write_jsonl(path: Path, entries: list[dict]) -> Path:
    """Write a list of dicts as JSONL to the given path."""
    with open(path, "w") as f:
        for entry in entries:
            f.write(json.dumps(entry) + "\n")
    return path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_config() -> ProtocolConfig:
    """Short windows so scripted nights stay small."""
    return ProtocolConfig(
        sliding_window=timedelta(minutes=5),
        cooldown=timedelta(minutes=10),
        recovery_window=timedelta(minutes=2),
        min_baseline_samples=3,
        source_retry_delay=timedelta(0),
    )


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def audio() -> FakeAudio:
    return FakeAudio()


@pytest.fixture
def protocol(test_config, sink) -> NightTerrorProtocol:
    return NightTerrorProtocol(config=test_config, sink=sink)
