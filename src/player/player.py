# src/player/player.py
from __future__ import annotations

import logging
import os
from typing import Any, Optional

from core.errors import MissingExternalPlayer, PlaybackStartFailed, TrackLoadFailed
from core.models import PlaybackStatus, Track

from .mpv_ipc import MpvBackendConfig, MpvIpcBackend

logger = logging.getLogger(__name__)


class Player:
    """
    AudioPlayer backed by an mpv process.

    Owned by the scheduling thread: every call, including status(), pumps
    the IPC queue on that thread, so no locking is needed here.
    """

    def __init__(self, config: Optional[MpvBackendConfig] = None):
        self._config = config or MpvBackendConfig()
        # raises MissingExternalPlayer before anything else is set up
        self._mpv = MpvIpcBackend(self._config)
        try:
            self._mpv.start()
        except OSError as e:
            raise MissingExternalPlayer(f"mpv (IPC unavailable: {e})") from e
        self._mpv.on_event("end-file", self._on_end_file)

        self.track: Track | None = None
        self._status = PlaybackStatus.IDLE
        self._error: str | None = None

    # ----------------------------
    # mpv handlers
    # ----------------------------

    def _on_end_file(self, msg: dict[str, Any]) -> None:
        reason = msg.get("reason")
        if reason == "error":
            self._error = str(msg.get("file_error") or "decode error")
            self._status = PlaybackStatus.FAILED
            logger.warning("mpv could not play %s: %s", self.track.path if self.track else "?", self._error)
        elif reason == "eof" and self._status is PlaybackStatus.PLAYING:
            self._status = PlaybackStatus.ENDED
        # "stop"/"quit"/"redirect" follow our own commands

    def _pump(self) -> None:
        if self._mpv.is_running():
            self._mpv.process_messages(max_messages=500)
        elif self._status in (PlaybackStatus.PLAYING, PlaybackStatus.PAUSED):
            self._error = "mpv exited"
            self._status = PlaybackStatus.FAILED

    def _ensure_running(self) -> None:
        if self._mpv.is_running():
            return
        logger.warning("mpv is not running; restarting it")
        self._mpv.shutdown()
        self._mpv = MpvIpcBackend(self._config)
        self._mpv.start()
        self._mpv.on_event("end-file", self._on_end_file)

    # ----------------------------
    # AudioPlayer
    # ----------------------------

    def load(self, track: Track) -> None:
        if not os.path.isfile(track.path):
            raise TrackLoadFailed(track, "file not found")
        self._pump()
        self.track = track
        self._error = None
        try:
            self._ensure_running()
            self._mpv.load(track.path)
        except OSError as e:
            raise TrackLoadFailed(track, f"mpv rejected file: {e}") from e
        self._status = PlaybackStatus.PAUSED

    def start(self) -> None:
        try:
            self._mpv.set_paused(False)
        except OSError as e:
            raise PlaybackStartFailed(self.track, str(e)) from e
        self._status = PlaybackStatus.PLAYING

    def pause(self) -> None:
        if self._status is not PlaybackStatus.PLAYING:
            return
        self._command(self._mpv.set_paused, True)
        self._status = PlaybackStatus.PAUSED

    def resume(self) -> None:
        if self._status is not PlaybackStatus.PAUSED:
            return
        self._command(self._mpv.set_paused, False)
        self._status = PlaybackStatus.PLAYING

    def stop(self) -> None:
        if self._status is PlaybackStatus.IDLE:
            return
        self._command(self._mpv.stop_playback)
        self._status = PlaybackStatus.IDLE

    def status(self) -> PlaybackStatus:
        self._pump()
        return self._status

    def position_s(self) -> float:
        return self._mpv.position_s()

    def close(self) -> None:
        self._mpv.shutdown()

    # ----------------------------
    # helpers
    # ----------------------------

    def _command(self, fn, *args) -> None:
        try:
            fn(*args)
        except OSError as e:
            # a dead mpv is reported as FAILED by the next status() call
            logger.warning("mpv command failed: %s", e)

    def backend_name(self) -> str:
        return "mpv-ipc"
