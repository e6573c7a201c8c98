"""Detect night-terror distress in sleep biometrics and respond with a calming cue."""

from nightcalm.samples import (
    BioSample,
    SleepStage,
    SampleSource,
    IterableSampleSource,
    QueueSampleSource,
)
from nightcalm.config import ProtocolConfig
from nightcalm.events import (
    CuePlayed,
    DetectedDistress,
    EventEmitter,
    ProtocolEvent,
    Recovered,
)
from nightcalm.diagnostics import (
    DiagnosticRecord,
    DiagnosticSink,
    JsonlSink,
    LoggingSink,
    MemorySink,
    null_sink,
)
from nightcalm.audio import CalmingAudio, SilentAudio
from nightcalm.protocol import NightTerrorProtocol, Phase

__all__ = [
    "BioSample",
    "SleepStage",
    "SampleSource",
    "IterableSampleSource",
    "QueueSampleSource",
    "ProtocolConfig",
    "CuePlayed",
    "DetectedDistress",
    "EventEmitter",
    "ProtocolEvent",
    "Recovered",
    "DiagnosticRecord",
    "DiagnosticSink",
    "JsonlSink",
    "LoggingSink",
    "MemorySink",
    "null_sink",
    "CalmingAudio",
    "SilentAudio",
    "NightTerrorProtocol",
    "Phase",
]
