from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .models import Track


class Phase(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"
    TERMINATED = "terminated"
    FAILED = "failed"

    @property
    def finished(self) -> bool:
        return self in (Phase.COMPLETED, Phase.TERMINATED, Phase.FAILED)


@dataclass(frozen=True)
class SessionProgress:
    current_round_index: int = 0
    round_elapsed: float = 0.0
    round_duration: float = 0.0

    @property
    def session_elapsed(self) -> float:
        # paused time is already excluded from round_elapsed
        return self.current_round_index * self.round_duration + self.round_elapsed


@dataclass(frozen=True)
class SessionState:
    """Snapshot handed to display adapters. Never mutated once published."""
    phase: Phase = Phase.IDLE
    track: Track | None = None
    progress: SessionProgress = field(default_factory=SessionProgress)
    round_count: int = 0
    played_elapsed: float = 0.0     # session stopwatch: pauses and skipped partials excluded
    base_path: str | None = None
    message: str | None = None      # last error/info line for the UI

    @property
    def round_duration(self) -> float:
        return self.progress.round_duration

    @property
    def session_duration(self) -> float:
        return self.round_count * self.progress.round_duration

    @property
    def round_number(self) -> int:
        """1-based round shown to the user, capped at round_count."""
        return min(self.progress.current_round_index + 1, self.round_count)
