"""Diagnostic records and the sinks that receive them.

Every internal transition of the protocol produces one flat
:class:`DiagnosticRecord`.  A sink is any single-argument callable; it must
not block or raise.  Persistence and export belong to the sink.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import IO, Any, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiagnosticRecord:
    """One logged transition: ``{at, event_type, metadata}``."""

    at: datetime
    event_type: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "at": self.at.isoformat(),
            "event_type": self.event_type,
            "metadata": {k: _plain(v) for k, v in self.metadata.items()},
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


DiagnosticSink = Callable[[DiagnosticRecord], None]


def null_sink(record: DiagnosticRecord) -> None:
    """Discard the record."""


class MemorySink:
    """Collect records in a list."""

    def __init__(self) -> None:
        self.records: list[DiagnosticRecord] = []

    def __call__(self, record: DiagnosticRecord) -> None:
        self.records.append(record)

    def of_type(self, event_type: str) -> list[DiagnosticRecord]:
        return [r for r in self.records if r.event_type == event_type]

    def __len__(self) -> int:
        return len(self.records)


class LoggingSink:
    """Forward records to a :mod:`logging` logger at INFO level."""

    def __init__(self, log: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self.log = log or logger
        self.level = level

    def __call__(self, record: DiagnosticRecord) -> None:
        self.log.log(self.level, "%s %s", record.event_type, json.dumps(record.to_dict()["metadata"]))


class JsonlSink:
    """Append records to a JSONL file, one flushed line per record.

    Use as a context manager, or call :meth:`close` when done.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file: IO[str] | None = open(self.path, "a", encoding="utf-8")
        self.count = 0

    def __call__(self, record: DiagnosticRecord) -> None:
        if self._file is None:
            logger.warning("JsonlSink for %s is closed; dropping %s", self.path, record.event_type)
            return
        try:
            self._file.write(record.to_json() + "\n")
            self._file.flush()
            self.count += 1
        except (OSError, TypeError, ValueError) as e:
            logger.error("Could not write diagnostic record to %s: %s", self.path, e)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> JsonlSink:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
