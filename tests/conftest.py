"""Shared fixtures: a scripted AudioPlayer, a manual time source, track factories."""

import threading

import pytest

from core.errors import PlaybackStartFailed, TrackLoadFailed
from core.models import PlaybackStatus, Track
from core.settings import SessionConfig


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "slow: runs a real scheduler session against the wall clock"
    )


class FakePlayer:
    """
    Records every call. Paths in load_failures raise on load(), paths in
    start_failures raise on start(), paths in broken report FAILED once playing.
    """

    def __init__(self, load_failures=(), start_failures=(), broken=()):
        self.load_failures = set(load_failures)
        self.start_failures = set(start_failures)
        self.broken = set(broken)
        self.calls: list[tuple[str, str | None]] = []
        self.track: Track | None = None
        self._status = PlaybackStatus.IDLE
        self._lock = threading.Lock()

    def _record(self, name):
        with self._lock:
            self.calls.append((name, self.track.path if self.track else None))

    def load(self, track):
        self.track = track
        self._record("load")
        if track.path in self.load_failures:
            raise TrackLoadFailed(track, "unsupported format")
        self._status = PlaybackStatus.PAUSED

    def start(self):
        self._record("start")
        if self.track.path in self.start_failures:
            raise PlaybackStartFailed(self.track, "device busy")
        self._status = PlaybackStatus.PLAYING

    def pause(self):
        self._record("pause")
        self._status = PlaybackStatus.PAUSED

    def resume(self):
        self._record("resume")
        self._status = PlaybackStatus.PLAYING

    def stop(self):
        self._record("stop")
        self._status = PlaybackStatus.IDLE

    def status(self):
        if self._status is PlaybackStatus.PLAYING and self.track.path in self.broken:
            return PlaybackStatus.FAILED
        return self._status

    def position_s(self):
        return 0.0

    def close(self):
        self._record("close")

    def backend_name(self):
        return "fake"

    # ---- helpers for assertions ----

    def names(self):
        with self._lock:
            return [name for name, _ in self.calls]

    def loaded_paths(self):
        with self._lock:
            return [path for name, path in self.calls if name == "load"]


class ManualClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_tracks(*names):
    return [Track(path=f"/music/{name}.mp3") for name in names]


@pytest.fixture
def tracks():
    return make_tracks("a", "b", "c", "d")


@pytest.fixture
def player():
    return FakePlayer()


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest.fixture
def fast_config():
    def _make(round_count=3, round_duration=0.2, **kwargs):
        kwargs.setdefault("poll_interval", 0.01)
        kwargs.setdefault("source_path", "/music")
        return SessionConfig(round_count=round_count, round_duration=round_duration, **kwargs)
    return _make
