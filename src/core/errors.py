"""
Errors raised by the power hour session.

Everything derives from PowerHourError so main() can report any of them
uniformly; the scheduler only swallows the recoverable playback errors.
"""
from __future__ import annotations


class PowerHourError(Exception):
    """Base class for all session errors."""
    pass


# ---- fatal ----

class NoPlayableTracks(PowerHourError):
    """The candidate set is empty; nothing can be drawn."""
    def __init__(self, message: str = "No playable tracks"):
        super().__init__(message)


class MissingExternalPlayer(PowerHourError):
    """The audio backend binary/command cannot be found."""
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Required external player not found: {name}")


class InvalidConfig(PowerHourError):
    pass


class SessionCrashed(PowerHourError):
    """An unexpected exception ended the scheduling thread."""
    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Session crashed: {type(cause).__name__}: {cause}")


# ---- recoverable ----

class PlaybackError(PowerHourError):
    """A single round attempt failed; the round is retried with another track."""
    def __init__(self, track, reason: str):
        self.track = track
        self.reason = reason
        super().__init__(f"{track.path}: {reason}")


class TrackLoadFailed(PlaybackError):
    pass


class PlaybackStartFailed(PlaybackError):
    pass
