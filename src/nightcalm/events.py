"""Protocol events and the broadcast emitter that delivers them.

``ProtocolEvent`` is a closed union of three frozen dataclasses; match on
the concrete type (or the ``kind`` tag) rather than subclassing.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Union

from nightcalm.analytics.detector import TriggerKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectedDistress:
    """Distress detected in sleep biometrics."""

    at: datetime
    trigger: TriggerKind
    severity: float
    kind: str = field(default="detected_distress", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "at": self.at.isoformat(),
            "trigger": self.trigger.value,
            "severity": round(self.severity, 3),
        }


@dataclass(frozen=True)
class CuePlayed:
    """A calming cue was played for the detection at *at*."""

    at: datetime
    kind: str = field(default="cue_played", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "at": self.at.isoformat()}


@dataclass(frozen=True)
class Recovered:
    """Metrics have been stable for *stabilized_for*."""

    at: datetime
    stabilized_for: timedelta
    kind: str = field(default="recovered", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "at": self.at.isoformat(),
            "stabilized_for_seconds": self.stabilized_for.total_seconds(),
        }


ProtocolEvent = Union[DetectedDistress, CuePlayed, Recovered]

EventListener = Callable[[ProtocolEvent], None]


class EventEmitter:
    """In-process broadcast of protocol events.

    Subscribers only see events published after they subscribed; nothing is
    buffered for latecomers.  Delivery is synchronous and in publish order.
    """

    def __init__(self) -> None:
        self._queues: set[asyncio.Queue] = set()
        self._listeners: list[EventListener] = []

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._queues.discard(queue)

    def add_listener(self, listener: EventListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, event: ProtocolEvent) -> None:
        for queue in list(self._queues):
            queue.put_nowait(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener %r failed on %s", listener, event.kind)

    @property
    def subscriber_count(self) -> int:
        return len(self._queues) + len(self._listeners)
