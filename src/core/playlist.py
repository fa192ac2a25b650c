# core/playlist.py
from __future__ import annotations

import logging
import random
from typing import Iterable, Optional

from .errors import NoPlayableTracks
from .models import Track

logger = logging.getLogger(__name__)


class PlaylistSource:
    """
    Random draw order over a fixed candidate set.

    Tracks are popped from the end of `remaining`; when it runs dry it is
    refilled with a fresh shuffle of every candidate, so no track repeats
    within one pass. requeue() pushes onto the same end, so a requeued
    track is the next one drawn.
    """

    def __init__(self, tracks: Iterable[Track], rng: Optional[random.Random] = None):
        # dict keeps first-seen order and drops duplicate paths
        self._all: dict[str, Track] = {}
        for t in tracks:
            self._all.setdefault(t.path, t)
        self._rng = rng or random.Random()
        self.remaining: list[Track] = []
        self.passes = 0

    def __len__(self) -> int:
        return len(self._all)

    @property
    def all_tracks(self) -> frozenset[Track]:
        return frozenset(self._all.values())

    def _reshuffle(self) -> None:
        order = list(self._all.values())
        self._rng.shuffle(order)
        self.remaining = order
        self.passes += 1
        logger.debug("Reshuffled %d tracks (pass %d)", len(order), self.passes)

    def fetch(self) -> Track:
        if not self.remaining:
            if not self._all:
                raise NoPlayableTracks()
            self._reshuffle()
        return self.remaining.pop()

    def requeue(self, track: Track) -> None:
        self.remaining.append(track)

    def forget(self, track: Track) -> None:
        """Drop an unplayable track from the candidate set and the draw order."""
        self._all.pop(track.path, None)
        self.remaining = [t for t in self.remaining if t.path != track.path]
        logger.info("Dropped unplayable track %s (%d left)", track.path, len(self._all))
