"""Replay recorded sample logs through the protocol for offline analysis.

A recording is a ``.jsonl`` file with one sample per line::

    {"timestamp": "2026-02-13T02:14:00+00:00", "hr": 62, "hrv": 48.5,
     "motion": 0.05, "stage": "nrem"}
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

from nightcalm.audio import CalmingAudio, SilentAudio
from nightcalm.config import ProtocolConfig
from nightcalm.diagnostics import DiagnosticSink, JsonlSink, MemorySink
from nightcalm.events import DetectedDistress, ProtocolEvent, Recovered
from nightcalm.protocol import NightTerrorProtocol
from nightcalm.samples import BioSample, IterableSampleSource

logger = logging.getLogger(__name__)


def load_samples(capture_path: str | Path) -> list[BioSample]:
    """Read a JSONL recording, skipping blank, invalid or incomplete lines."""
    samples: list[BioSample] = []
    with open(capture_path, encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("[line %d] Invalid JSON, skipping", line_num)
                continue
            try:
                samples.append(BioSample.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("[line %d] Bad sample (%s), skipping", line_num, e)
    return samples


async def run_protocol(
    samples: list[BioSample],
    config: ProtocolConfig | None = None,
    sink: DiagnosticSink | None = None,
    audio: CalmingAudio | None = None,
) -> list[ProtocolEvent]:
    """Feed *samples* through a fresh protocol and collect its events."""
    protocol = NightTerrorProtocol(config, sink)
    events: list[ProtocolEvent] = []
    protocol.events.add_listener(events.append)

    await protocol.start(IterableSampleSource(samples), audio or SilentAudio())
    await protocol.join()
    await protocol.stop()
    return events


def replay_file(
    capture_path: str,
    config: ProtocolConfig | None = None,
    output_path: str | None = None,
    verbose: bool = False,
) -> list[ProtocolEvent]:
    """Replay a .jsonl sample recording through the protocol.

    Args:
        capture_path: Path to the .jsonl recording.
        config: Protocol configuration (defaults if None).
        output_path: Optional path to append diagnostic records as JSONL.
        verbose: If True, also print every diagnostic record.

    Returns:
        The protocol events in emission order.
    """
    path = Path(capture_path)
    if not path.exists():
        print(f"File not found: {capture_path}")
        return []

    print(f"Replaying {path.name}...\n")
    samples = load_samples(path)
    nrem = sum(1 for s in samples if s.is_nrem)

    memory = MemorySink()
    jsonl = JsonlSink(output_path) if output_path else None

    def sink(record):
        memory(record)
        if jsonl is not None:
            jsonl(record)

    try:
        events = asyncio.run(run_protocol(samples, config, sink))
    finally:
        if jsonl is not None:
            jsonl.close()

    for event in events:
        print(f"  {json.dumps(event.to_dict())}")
    if verbose:
        for record in memory.records:
            print(f"  [{record.event_type}] {json.dumps(record.to_dict()['metadata'])}")

    distress = sum(1 for e in events if isinstance(e, DetectedDistress))
    recovered = sum(1 for e in events if isinstance(e, Recovered))
    print(f"\nSummary: {len(samples)} samples, {nrem} NREM, "
          f"{distress} distress episodes, {recovered} recovered")

    if output_path:
        print(f"Diagnostics written to {output_path}")

    return events


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python -m nightcalm.replay <samples.jsonl> [diagnostics.jsonl]")
        sys.exit(1)

    capture_path = sys.argv[1]
    output_path = sys.argv[2] if len(sys.argv) > 2 and not sys.argv[2].startswith("-") else None
    verbose = "--verbose" in sys.argv or "-v" in sys.argv

    replay_file(capture_path, output_path=output_path, verbose=verbose)


if __name__ == "__main__":
    main()
