"""Calming audio port.

The real playback implementation lives outside this package.  The
protocol only needs something that can play a low-volume cue and stop.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class CalmingAudio(Protocol):
    """Asynchronous capability to play and stop a calming cue."""

    async def play_low_volume_cue(self) -> None:
        """Play the cue; raise on failure."""
        ...

    async def stop(self) -> None: ...


class SilentAudio:
    """Audio port that plays nothing and logs each request."""

    def __init__(self) -> None:
        self.play_count = 0

    async def play_low_volume_cue(self) -> None:
        self.play_count += 1
        logger.info("Calming cue requested (#%d)", self.play_count)

    async def stop(self) -> None:
        logger.debug("Calming audio stopped")
