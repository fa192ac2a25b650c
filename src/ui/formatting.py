from __future__ import annotations

import os

from core.state import Phase, SessionState

BANNER = "Welcome to pwrhr, serving all of your power hour needs"
HELP_LINE = "Enter q to quit, s to skip song, p to toggle play/pause"

BEER = [
    " [=] ",
    " | | ",
    " }@{ ",
    "/   \\",
    ":___;",
    "|&&&|",
    "|&&&|",
    "|---|",
    "'---'",
]


def format_time(seconds: float) -> str:
    """65 -> "01m 05s", 3723 -> "01h 02m 03s"."""
    total = max(0, int(seconds))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h:02d}h {m:02d}m {s:02d}s"
    return f"{m:02d}m {s:02d}s"


def progress_bar(elapsed: float, duration: float, width: int) -> str:
    suffix = f"[{format_time(elapsed)} elapsed / {format_time(duration)}]"
    bar_width = max(0, width - len(suffix) - 2)
    fraction = 0.0 if duration <= 0 else min(1.0, max(0.0, elapsed / duration))
    filled = int(fraction * bar_width)
    return "|" + "=" * filled + " " * (bar_width - filled) + "|" + suffix


def relative_track_path(path: str, base_path: str | None) -> str:
    if base_path:
        for base in (base_path, os.path.abspath(os.path.expanduser(base_path))):
            base = base.rstrip(os.sep)
            if base and path.startswith(base + os.sep):
                return path[len(base) + 1:]
    return path


def now_playing_lines(state: SessionState) -> list[str]:
    """
    Tag metadata when the file has it, otherwise the path below the music
    folder, one component per line.
    """
    track = state.track
    if track is None:
        return []
    if track.has_metadata():
        lines = [f"  {track.title}", f"  {track.artist or 'Unknown Artist'}"]
        if track.album:
            lines.append(f"  {track.album}")
        return lines
    rel = relative_track_path(track.path, state.base_path)
    return [f"  {part}" for part in rel.split(os.sep) if part]


def round_counter(state: SessionState) -> str:
    if state.phase is Phase.COMPLETED:
        return f"Finished all {state.round_count} songs"
    return f"Song {state.round_number} of {state.round_count}"


def status_line(state: SessionState) -> str:
    if state.phase is Phase.PAUSED:
        return "Paused - press p to resume"
    if state.phase is Phase.TERMINATED:
        return "Stopped"
    if state.phase is Phase.FAILED:
        return f"Error: {state.message or 'session failed'}"
    if state.phase is Phase.IDLE:
        return "Starting..."
    return ""


def played_line(state: SessionState) -> str:
    # wall-clock music time; skipped and failed partial rounds are not counted
    return f"Played {format_time(state.played_elapsed)}"
