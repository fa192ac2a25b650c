# core/game.py
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from enum import Enum, auto
from typing import Callable, Optional

from .clock import SessionClock
from .errors import NoPlayableTracks, PlaybackError, PowerHourError, SessionCrashed
from .events import ControlFlags, ControlTask, EventChannel
from .models import AudioPlayer, PlaybackStatus, Track
from .playlist import PlaylistSource
from .settings import SessionConfig, SkipPolicy
from .state import Phase, SessionProgress, SessionState

logger = logging.getLogger(__name__)

ATTEMPT_HISTORY = 256


class RoundOutcome(Enum):
    COMPLETED = auto()    # round duration reached
    SKIPPED = auto()      # user skipped; track is not requeued
    PAUSED = auto()       # user paused; track requeued for resume
    TERMINATED = auto()   # user quit
    FAILED = auto()       # player could not load/play the track; retry the slot


class Game:
    """
    Round scheduler for one power hour session.

    Two threads run once run() is called: the control thread drains the
    EventChannel into ControlFlags, and the scheduling thread plays rounds,
    owning the player, the playlist source and the clock. Display code only
    reads `state` and `active()`, and talks back through `channel`.
    """

    def __init__(
        self,
        config: SessionConfig,
        source: PlaylistSource,
        player: AudioPlayer,
        channel: Optional[EventChannel] = None,
        *,
        metadata: Optional[Callable[[Track], Track]] = None,
        now: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.source = source
        self.player = player
        self.channel = channel or EventChannel()
        self.flags = ControlFlags()
        self.clock = SessionClock(now)

        self._control = ControlTask(self.channel, self.flags)
        self._metadata = metadata
        self._sleep = sleep
        self._thread: Optional[threading.Thread] = None

        self.round_index = 0
        self.error: Optional[PowerHourError] = None
        # most recent attempts, newest last
        self.attempts: deque[tuple[str, RoundOutcome]] = deque(maxlen=ATTEMPT_HISTORY)

        self._track: Optional[Track] = None
        self._paused_track: Optional[Track] = None

        self._state_lock = threading.Lock()
        self._state = SessionState(
            phase=Phase.IDLE,
            progress=SessionProgress(0, 0.0, float(config.round_duration)),
            round_count=config.round_count,
            base_path=config.source_path or None,
        )

    # ----------------------------
    # Public API
    # ----------------------------

    def run(self) -> None:
        """Start the control and scheduling threads (non-blocking)."""
        if self._thread is not None:
            return
        self._control.start()
        self._thread = threading.Thread(target=self._run, name="pwrhr-scheduler", daemon=True)
        self._thread.start()

    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self._state

    def active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the scheduling thread; returns True once it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    # ----------------------------
    # Scheduling thread
    # ----------------------------

    def _run(self) -> None:
        try:
            self._play_session()
        except PowerHourError as e:
            self.error = e
            logger.exception("Session aborted: %s", e)
            self._publish(Phase.FAILED, message=str(e))
        except Exception as e:
            self.error = SessionCrashed(e)
            logger.exception("Session crashed in round %d", self.round_index + 1)
            self._publish(Phase.FAILED, message=str(self.error))
        finally:
            self.player.stop()
            if self._control.is_alive():
                # let the control thread exit; terminate no longer matters
                self.channel.quit()

    def _play_session(self) -> None:
        cfg = self.config
        if not len(self.source):
            raise NoPlayableTracks()
        logger.info(
            "Starting session: %d rounds x %gs, %d tracks",
            cfg.round_count, cfg.round_duration, len(self.source),
        )
        self.clock.start_session()

        while self.round_index < cfg.round_count:
            if not self._wait_until_playing():
                self._finish_terminated()
                return

            outcome = self._play_round()

            if outcome is RoundOutcome.TERMINATED:
                self._finish_terminated()
                return
            if outcome is RoundOutcome.COMPLETED:
                self.round_index += 1
            elif outcome is RoundOutcome.SKIPPED and cfg.skip_policy is SkipPolicy.ADVANCE:
                self.round_index += 1

        self._track = None
        self._publish(Phase.COMPLETED)
        logger.info("Session completed after %d rounds", self.round_index)

    def _finish_terminated(self) -> None:
        logger.info("Session terminated in round %d", self.round_index + 1)
        self._publish(Phase.TERMINATED)

    def _wait_until_playing(self) -> bool:
        """Block while paused. False means terminate was requested."""
        if self.flags.playing:
            return not self.flags.terminate

        self.clock.session.pause()
        self._publish(Phase.PAUSED)
        while not self.flags.playing:
            if self.flags.terminate:
                return False
            self._sleep(self.config.poll_interval)
        self.clock.session.resume()
        return not self.flags.terminate

    def _play_round(self) -> RoundOutcome:
        """Attempt the current round slot until an attempt does not fail."""
        while True:
            if self.flags.terminate:
                return RoundOutcome.TERMINATED

            outcome = self._attempt()
            self.attempts.append((self._track.path if self._track else "", outcome))
            if outcome is RoundOutcome.FAILED:
                # skip flag survives a failed attempt
                continue

            self.flags.consume_skip()
            return outcome

    def _attempt(self) -> RoundOutcome:
        paused_track, self._paused_track = self._paused_track, None
        track = self.source.fetch()

        if paused_track is not None and track.path == paused_track.path:
            self._track = track
            self.clock.resume()
            self.player.resume()
            logger.info("Round %d: resuming %s", self.round_index + 1, track.path)
        else:
            if self._metadata is not None:
                track = self._metadata(track)
            self._track = track
            self.clock.start_round()
            logger.info("Round %d: playing %s", self.round_index + 1, track.path)
            try:
                self.player.load(track)
                self.player.start()
            except PlaybackError as e:
                logger.warning("Round %d: %s; drawing another track", self.round_index + 1, e)
                self.player.stop()
                self.source.forget(track)
                self.clock.round.reset()
                return RoundOutcome.FAILED

        outcome = self._poll_round()

        if outcome is RoundOutcome.PAUSED:
            self.clock.pause()
            self.player.pause()
            self.source.requeue(track)
            self._paused_track = track
            logger.info("Round %d: paused at %.1fs", self.round_index + 1, self.clock.round.elapsed())
        else:
            self.player.stop()
            if outcome is RoundOutcome.SKIPPED:
                dropped = self.clock.discard_round()
                logger.info("Round %d: skipped %s after %.1fs", self.round_index + 1, track.path, dropped)
            elif outcome is RoundOutcome.FAILED:
                logger.warning("Round %d: playback failed for %s", self.round_index + 1, track.path)
                self.clock.discard_round()
                self.source.forget(track)
            self.clock.round.reset()
        return outcome

    def _poll_round(self) -> RoundOutcome:
        duration = float(self.config.round_duration)
        poll = self.config.poll_interval
        while True:
            elapsed = self.clock.round.elapsed()
            self._publish(Phase.PLAYING)

            if self.flags.terminate:
                return RoundOutcome.TERMINATED
            if self.flags.skip_requested:
                return RoundOutcome.SKIPPED
            if not self.flags.playing:
                return RoundOutcome.PAUSED
            if elapsed >= duration:
                return RoundOutcome.COMPLETED
            if self.player.status() is PlaybackStatus.FAILED:
                return RoundOutcome.FAILED

            # a track shorter than the round just ends; the round keeps running
            self._sleep(min(poll, duration - elapsed))

    # ----------------------------
    # Snapshots
    # ----------------------------

    def _publish(self, phase: Phase, message: Optional[str] = None) -> None:
        duration = float(self.config.round_duration)
        if phase is Phase.COMPLETED:
            round_elapsed = 0.0
        else:
            round_elapsed = min(self.clock.round.elapsed(), duration)
        state = SessionState(
            phase=phase,
            track=self._track,
            progress=SessionProgress(self.round_index, round_elapsed, duration),
            round_count=self.config.round_count,
            played_elapsed=self.clock.session.elapsed(),
            base_path=self.config.source_path or None,
            message=message,
        )
        with self._state_lock:
            self._state = state
