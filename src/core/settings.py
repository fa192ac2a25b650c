# core/settings.py
from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from PySide6.QtCore import QStandardPaths

from .errors import InvalidConfig

APP_NAME = "pwrhr"

DEFAULT_ROUND_COUNT = 60
DEFAULT_ROUND_DURATION = 60.0
DEFAULT_POLL_INTERVAL = 0.1

FILE_PLACEHOLDER = "<file>"
DURATION_PLACEHOLDER = "<duration>"


class SkipPolicy(Enum):
    ADVANCE = "advance"   # a skipped round still counts
    RETRY = "retry"       # the round slot is replayed with a new track


def default_music_dir() -> str:
    loc = QStandardPaths.writableLocation(QStandardPaths.MusicLocation)
    return loc or os.path.join(os.path.expanduser("~"), "Music")


def get_app_data_dir() -> str:
    base = QStandardPaths.writableLocation(QStandardPaths.AppDataLocation)
    if not base:
        base = os.path.join(os.path.expanduser("~"), f".{APP_NAME}")
    os.makedirs(base, exist_ok=True)
    return base


def validate_command_template(command: str) -> str:
    if FILE_PLACEHOLDER not in command or DURATION_PLACEHOLDER not in command:
        raise InvalidConfig(
            f'Player command requires "{DURATION_PLACEHOLDER}" and "{FILE_PLACEHOLDER}" placeholders'
        )
    return command


@dataclass(frozen=True)
class SessionConfig:
    round_count: int = DEFAULT_ROUND_COUNT
    round_duration: float = DEFAULT_ROUND_DURATION
    source_path: str = ""
    itunes_xml: Optional[str] = None
    player_command: Optional[str] = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    skip_policy: SkipPolicy = SkipPolicy.ADVANCE
    gui: bool = False
    log_file: Optional[str] = None
    verbose: bool = False

    def __post_init__(self):
        if int(self.round_count) <= 0:
            raise InvalidConfig(f"Round count must be positive, got {self.round_count}")
        if float(self.round_duration) <= 0:
            raise InvalidConfig(f"Round duration must be positive, got {self.round_duration}")
        if float(self.poll_interval) <= 0:
            raise InvalidConfig(f"Poll interval must be positive, got {self.poll_interval}")
        if self.player_command is not None:
            validate_command_template(self.player_command)

    @property
    def session_duration(self) -> float:
        return self.round_count * self.round_duration


def build_arg_parser() -> argparse.ArgumentParser:
    music_dir = default_music_dir()
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Play a timed power hour: fixed-length rounds over a shuffled music collection.",
        epilog="Keys: s / Right = skip song, p / Space = toggle play/pause, q = quit.",
    )
    parser.add_argument("-n", "--count", type=int, default=DEFAULT_ROUND_COUNT,
                        help=f"Number of rounds (default {DEFAULT_ROUND_COUNT})")
    parser.add_argument("-d", "--duration", type=float, default=DEFAULT_ROUND_DURATION,
                        help=f"Duration of each round in seconds (default {DEFAULT_ROUND_DURATION:g})")
    parser.add_argument("-D", "--source", default=music_dir,
                        help=f"Directory of music files (default {music_dir})")
    parser.add_argument("-x", "--itunes-xml", default=None,
                        help="Read tracks from an iTunes 'Music Library.xml' export instead of --source")
    parser.add_argument("-c", "--command", default=None,
                        help=f'Play files with COMMAND instead of mpv, e.g. "afplay -t {DURATION_PLACEHOLDER} {FILE_PLACEHOLDER}"')
    parser.add_argument("--skip-retries-round", action="store_true",
                        help="A skipped song does not use up its round; the round is replayed with another song")
    parser.add_argument("--gui", action="store_true", help="Show a window instead of the terminal UI")
    parser.add_argument("--log-file", default=None, help="Write the log to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> SessionConfig:
    args = build_arg_parser().parse_args(argv)
    return SessionConfig(
        round_count=args.count,
        round_duration=args.duration,
        source_path=os.path.expanduser(args.source),
        itunes_xml=os.path.expanduser(args.itunes_xml) if args.itunes_xml else None,
        player_command=args.command,
        skip_policy=SkipPolicy.RETRY if args.skip_retries_round else SkipPolicy.ADVANCE,
        gui=args.gui,
        log_file=args.log_file,
        verbose=args.verbose,
    )
