"""Night-terror detection and intervention state machine.

State diagram::

    [Monitoring] --> [Distress Detected] --> [Cue Requested] --> [Cooldown]
         ^                   |                                      |
         |                   v                                      |
         +-- [Recovered] <-- [Recovery Check] <---------------------+

One asyncio task consumes the sample source and runs every sample through
:meth:`NightTerrorProtocol._process_sample`, so buffer updates, baseline
statistics, detection and the transition form one atomic step per sample.
Cue playback runs in separate fire-and-forget tasks that never touch the
transition state; an epoch counter bumped by :meth:`stop` turns late
completions into no-ops.

Nothing raised by the source, the audio port or the sink escapes to the
caller.  Failures surface as diagnostic records.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from nightcalm.analytics.baseline import compute_baseline
from nightcalm.analytics.detector import Detection, detect_anomaly
from nightcalm.analytics.window import SlidingWindow
from nightcalm.audio import CalmingAudio
from nightcalm.config import ProtocolConfig
from nightcalm.diagnostics import DiagnosticRecord, DiagnosticSink, null_sink
from nightcalm.events import CuePlayed, DetectedDistress, EventEmitter, Recovered
from nightcalm.samples import BioSample, SampleSource

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    """Externally visible protocol phase."""

    MONITORING = "monitoring"
    COOLDOWN = "cooldown"  # monitoring, but a cue was issued recently
    IN_DISTRESS = "in_distress"
    RECOVERING = "recovering"  # in distress, recovery timer running


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NightTerrorProtocol:
    """Detect distress during NREM sleep, request a calming cue, track recovery.

    Args:
        config: Detection and timing settings (defaults if None).
        sink: Receives a :class:`DiagnosticRecord` for every transition.
        clock: Wall clock used to stamp diagnostic records.
    """

    def __init__(
        self,
        config: ProtocolConfig | None = None,
        sink: DiagnosticSink | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config or ProtocolConfig()
        self._sink = sink or null_sink
        self._clock = clock or _utcnow
        self._events = EventEmitter()

        self._task: asyncio.Task | None = None
        self._audio: CalmingAudio | None = None
        self._cue_tasks: set[asyncio.Task] = set()
        self._epoch = 0

        # Detection state
        self._window = SlidingWindow(self.config.sliding_window)
        self._last_cue_time: datetime | None = None
        self._recovery_start_time: datetime | None = None
        self._in_distress = False
        self._last_sample_time: datetime | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, source: SampleSource, audio: CalmingAudio) -> None:
        """Attach to *source* and *audio* and begin monitoring.

        A second call while attached is a no-op.
        """
        if self._task is not None:
            return

        self._audio = audio
        self._task = asyncio.create_task(self._consume(source, self._epoch))
        logger.info("Night terror protocol started (window=%s, cooldown=%s)",
                    self.config.sliding_window, self.config.cooldown)
        self._log("started", {})

    async def stop(self) -> None:
        """Detach, silence the audio and reset all transient state.

        Safe to call repeatedly or before :meth:`start`.  When this returns
        no further sample will be processed.
        """
        was_attached = self._task is not None
        self._epoch += 1

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        audio, self._audio = self._audio, None
        if audio is not None:
            try:
                await audio.stop()
            except Exception as e:
                logger.warning("Audio stop failed: %s", e)
                self._log("cue_stop_failed", {"error": str(e)})

        self._reset()

        if was_attached:
            logger.info("Night terror protocol stopped")
            self._log("stopped", {})

    async def join(self) -> None:
        """Wait for the source to end and in-flight cues to settle."""
        task = self._task
        if task is not None:
            await asyncio.wait({task})
        while self._cue_tasks:
            await asyncio.wait(set(self._cue_tasks))

    def _reset(self) -> None:
        self._window.clear()
        self._last_cue_time = None
        self._recovery_start_time = None
        self._in_distress = False
        self._last_sample_time = None

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def events(self) -> EventEmitter:
        """Stream of DetectedDistress, CuePlayed and Recovered events."""
        return self._events

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_distress(self) -> bool:
        return self._in_distress

    @property
    def last_cue_time(self) -> datetime | None:
        return self._last_cue_time

    @property
    def recovery_start_time(self) -> datetime | None:
        return self._recovery_start_time

    @property
    def buffer_size(self) -> int:
        return len(self._window)

    @property
    def phase(self) -> Phase:
        if self._in_distress:
            if self._recovery_start_time is not None:
                return Phase.RECOVERING
            return Phase.IN_DISTRESS
        if self._last_sample_time is not None and not self._cooldown_elapsed(self._last_sample_time):
            return Phase.COOLDOWN
        return Phase.MONITORING

    # ------------------------------------------------------------------
    # Sample processing
    # ------------------------------------------------------------------

    async def _consume(self, source: SampleSource, epoch: int) -> None:
        try:
            iterator = source.samples().__aiter__()
        except Exception as e:
            logger.error("Could not open sample source: %s", e)
            self._log("error", {"message": str(e)})
            return

        failures = 0
        while epoch == self._epoch:
            try:
                sample = await iterator.__anext__()
            except StopAsyncIteration:
                break
            except Exception as e:
                failures += 1
                logger.warning("Sample source error (%d in a row): %s", failures, e)
                self._log("error", {"message": str(e)})
                if failures >= self.config.max_source_errors:
                    logger.error("Giving up on sample source after %d consecutive errors", failures)
                    self._log("source_failed", {"errors": failures, "message": str(e)})
                    return
                # Yields even when the delay is zero
                await asyncio.sleep(self.config.source_retry_delay.total_seconds())
                continue

            failures = 0
            try:
                self._process_sample(sample)
            except Exception as e:
                logger.exception("Dropped sample after processing error")
                self._log("error", {"message": str(e)})

        if epoch == self._epoch:
            logger.info("Sample source ended")
            self._log("source_ended", {})

    def _process_sample(self, sample: BioSample) -> None:
        # Only monitor during NREM sleep
        if not sample.is_nrem:
            return

        self._window.push(sample)
        if self._window.latest is not sample:
            logger.debug("Dropped stale sample %r", sample)
            return
        now = sample.timestamp
        self._last_sample_time = now

        baseline = compute_baseline(self._window.baseline(), self.config.min_baseline_samples)
        if baseline is None:
            return

        detection = detect_anomaly(sample, baseline, self.config)

        if detection is not None and not self._in_distress and self._cooldown_elapsed(now):
            self._enter_distress(detection, now)
        elif self._in_distress:
            self._track_recovery(detection, now)
        elif detection is not None:
            logger.debug("Cooldown active, ignoring %s (severity %.2f)",
                         detection.trigger.value, detection.severity)

    def _cooldown_elapsed(self, now: datetime) -> bool:
        if self._last_cue_time is None:
            return True
        return now - self._last_cue_time >= self.config.cooldown

    def _enter_distress(self, detection: Detection, now: datetime) -> None:
        self._events.publish(DetectedDistress(
            at=now,
            trigger=detection.trigger,
            severity=detection.severity,
        ))

        self._request_cue(detection, now)

        self._last_cue_time = now
        self._in_distress = True
        self._recovery_start_time = None

        logger.info("Distress detected: %s (severity %.2f)",
                    detection.trigger.value, detection.severity)
        self._log("distress_detected", {
            "trigger": detection.trigger.value,
            "severity": detection.severity,
        })

    def _track_recovery(self, detection: Detection | None, now: datetime) -> None:
        if detection is not None:
            # Recovery must be one uninterrupted stable interval
            if self._recovery_start_time is not None:
                self._recovery_start_time = None
                self._log("recovery_reset", {"trigger": detection.trigger.value})
            return

        if self._recovery_start_time is None:
            self._recovery_start_time = now
            self._log("recovery_started", {})

        stable_for = now - self._recovery_start_time
        if stable_for >= self.config.recovery_window:
            self._events.publish(Recovered(at=now, stabilized_for=stable_for))
            self._in_distress = False
            self._recovery_start_time = None

            logger.info("Recovered after %.0fs of stable metrics", stable_for.total_seconds())
            self._log("recovered", {"stabilized_for_seconds": stable_for.total_seconds()})

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------

    def _request_cue(self, detection: Detection, at: datetime) -> None:
        if self._audio is None:
            return
        task = asyncio.create_task(self._play_cue(self._audio, detection, at, self._epoch))
        self._cue_tasks.add(task)
        task.add_done_callback(self._cue_tasks.discard)

    async def _play_cue(
        self,
        audio: CalmingAudio,
        detection: Detection,
        at: datetime,
        epoch: int,
    ) -> None:
        try:
            await audio.play_low_volume_cue()
        except Exception as e:
            if epoch != self._epoch:
                return
            logger.warning("Calming cue failed: %s", e)
            self._log("cue_failed", {"error": str(e)})
            return

        if epoch != self._epoch:
            logger.debug("Ignoring cue completion from a stopped session")
            return

        self._events.publish(CuePlayed(at=at))
        self._log("cue_played", {
            "trigger": detection.trigger.value,
            "severity": detection.severity,
        })

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def _log(self, event_type: str, metadata: dict[str, Any]) -> None:
        record = DiagnosticRecord(at=self._clock(), event_type=event_type, metadata=metadata)
        try:
            self._sink(record)
        except Exception:
            logger.exception("Diagnostic sink failed on %s", event_type)
