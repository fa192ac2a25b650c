# src/player/command_player.py
from __future__ import annotations

import logging
import math
import os
import shlex
import shutil
import subprocess
import time
from typing import Optional

from core.errors import MissingExternalPlayer, PlaybackStartFailed, TrackLoadFailed
from core.models import PlaybackStatus, Track
from core.settings import DURATION_PLACEHOLDER, FILE_PLACEHOLDER, validate_command_template

logger = logging.getLogger(__name__)


def build_command(template: str, path: str, duration_s: float) -> list[str]:
    """
    Expand a template such as "afplay -t <duration> <file>" into argv.
    Placeholders are substituted per token, so paths with spaces stay one argument.
    """
    seconds = str(max(1, math.ceil(duration_s)))
    return [
        tok.replace(FILE_PLACEHOLDER, path).replace(DURATION_PLACEHOLDER, seconds)
        for tok in shlex.split(template)
    ]


class CommandPlayer:
    """
    AudioPlayer that runs one external command per track.

    A command that exits 0 has simply ended the track; a non-zero exit is a
    failed attempt. External commands cannot seek, so pause() kills the
    process and resume() starts the track again for the remaining time.
    """

    def __init__(self, template: str, round_duration: float):
        self.template = validate_command_template(template)
        self.round_duration = float(round_duration)

        argv = shlex.split(template)
        if not argv or shutil.which(argv[0]) is None:
            raise MissingExternalPlayer(argv[0] if argv else template)

        self.track: Track | None = None
        self._proc: Optional[subprocess.Popen] = None
        self._status = PlaybackStatus.IDLE
        self._played_s = 0.0
        self._started_at: Optional[float] = None

    def _spawn(self, duration_s: float) -> None:
        args = build_command(self.template, self.track.path, duration_s)
        logger.debug("Running %s", args)
        try:
            self._proc = subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise PlaybackStartFailed(self.track, str(e)) from e
        self._started_at = time.monotonic()
        self._status = PlaybackStatus.PLAYING

    def _kill(self) -> None:
        if self._proc is None:
            return
        if self._proc.poll() is None:
            self._proc.terminate()
            try:
                self._proc.wait(timeout=1.0)
            except subprocess.TimeoutExpired:
                self._proc.kill()
                self._proc.wait()
        self._proc = None
        if self._started_at is not None:
            self._played_s += time.monotonic() - self._started_at
            self._started_at = None

    # ----------------------------
    # AudioPlayer
    # ----------------------------

    def load(self, track: Track) -> None:
        self._kill()
        if not os.path.isfile(track.path):
            raise TrackLoadFailed(track, "file not found")
        self.track = track
        self._played_s = 0.0
        self._status = PlaybackStatus.PAUSED

    def start(self) -> None:
        if self.track is None:
            raise PlaybackStartFailed(Track(path=""), "no track loaded")
        self._spawn(self.round_duration)

    def pause(self) -> None:
        if self._status is not PlaybackStatus.PLAYING:
            return
        self._kill()
        self._status = PlaybackStatus.PAUSED

    def resume(self) -> None:
        if self._status is not PlaybackStatus.PAUSED or self.track is None:
            return
        remaining = max(0.0, self.round_duration - self._played_s)
        try:
            self._spawn(remaining)
        except PlaybackStartFailed as e:
            logger.warning("Could not restart %s: %s", self.track.path, e.reason)
            self._status = PlaybackStatus.FAILED

    def stop(self) -> None:
        self._kill()
        self._status = PlaybackStatus.IDLE

    def status(self) -> PlaybackStatus:
        if self._status is PlaybackStatus.PLAYING and self._proc is not None:
            rc = self._proc.poll()
            if rc is not None:
                self._status = PlaybackStatus.ENDED if rc == 0 else PlaybackStatus.FAILED
                if rc != 0:
                    logger.warning("Player command exited with %d for %s", rc, self.track.path)
        return self._status

    def position_s(self) -> float:
        if self._started_at is None:
            return self._played_s
        return self._played_s + (time.monotonic() - self._started_at)

    def close(self) -> None:
        self.stop()

    def backend_name(self) -> str:
        return f"command ({shlex.split(self.template)[0]})"
