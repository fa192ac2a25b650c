# core/models.py
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Track:
    path: str                  # file path (or URI) of the audio file
    artist: str | None = None
    title: str | None = None
    album: str | None = None
    duration: float | None = None

    @property
    def file_name(self) -> str:
        return os.path.basename(self.path)

    def has_metadata(self) -> bool:
        return bool(self.title)

    def with_metadata(self, *, artist=None, title=None, album=None, duration=None) -> "Track":
        return replace(self, artist=artist, title=title, album=album, duration=duration)

    def display_name(self) -> str:
        if self.title:
            return f"{self.artist or 'Unknown Artist'} - {self.title}"
        return self.file_name


class PlaybackStatus(Enum):
    IDLE = auto()
    PLAYING = auto()
    PAUSED = auto()
    ENDED = auto()      # track finished on its own (shorter than the round)
    FAILED = auto()     # backend could not decode/play the loaded file


@runtime_checkable
class AudioPlayer(Protocol):
    """
    Audio output used by the scheduler. Only the scheduling thread calls it.

    load() may raise TrackLoadFailed, start() may raise PlaybackStartFailed.
    """

    def load(self, track: Track) -> None: ...
    def start(self) -> None: ...
    def pause(self) -> None: ...
    def resume(self) -> None: ...
    def stop(self) -> None: ...
    def status(self) -> PlaybackStatus: ...
    def position_s(self) -> float: ...
    def close(self) -> None: ...
