# src/library/scan_library.py
from __future__ import annotations

import logging
import os
from typing import Iterable
from xml.parsers.expat import ExpatError

from mutagen import File as MutagenFile
from mutagen._util import MutagenError

from core.errors import NoPlayableTracks
from core.models import Track
from core.settings import SessionConfig

from .itunes_xml import iter_itunes_locations

logger = logging.getLogger(__name__)

AUDIO_EXTS = {".aac", ".m4a", ".mp3", ".mp4", ".flac", ".ogg", ".opus", ".wav"}


def is_audio_path(path: str) -> bool:
    return os.path.splitext(path)[1].lower() in AUDIO_EXTS


def iter_audio_paths(directories: Iterable[str]) -> list[str]:
    """
    Recursively collect audio files below each directory.
    Hidden directories (".git", ".Trash", ...) are not descended into.
    """
    paths: list[str] = []
    for root in directories:
        if not root or not os.path.isdir(root):
            continue
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            for fn in filenames:
                if fn.startswith("."):
                    continue
                if is_audio_path(fn):
                    paths.append(os.path.join(dirpath, fn))
    paths.sort()
    return paths


def _first(easy, key: str) -> str | None:
    v = easy.get(key)
    if not v:
        return None
    if isinstance(v, list):
        return (str(v[0]).strip() if v else None) or None
    s = str(v).strip()
    return s or None


def read_track_metadata(track: Track) -> Track:
    """
    Fill artist/title/album/duration from the file's tags.
    Files mutagen cannot parse keep their bare path; metadata is optional.
    """
    try:
        audio = MutagenFile(track.path, easy=True)
    except (MutagenError, OSError, ValueError) as e:
        logger.debug("No tags for %s: %s", track.path, e)
        return track
    if audio is None:
        return track

    duration = None
    info = getattr(audio, "info", None)
    if info is not None and getattr(info, "length", None):
        duration = float(info.length)

    return track.with_metadata(
        artist=_first(audio, "artist") or _first(audio, "albumartist"),
        title=_first(audio, "title"),
        album=_first(audio, "album"),
        duration=duration,
    )


def load_tracks(config: SessionConfig) -> list[Track]:
    """
    Build the candidate set for a session: the iTunes export when one is
    configured, otherwise every audio file below source_path.
    """
    if config.itunes_xml:
        if not os.path.isfile(config.itunes_xml):
            raise NoPlayableTracks(f"{config.itunes_xml} is not a file")
        try:
            paths = [p for p in iter_itunes_locations(config.itunes_xml) if is_audio_path(p)]
        except (ValueError, ExpatError) as e:
            raise NoPlayableTracks(f"Cannot read iTunes library {config.itunes_xml}: {e}") from e
        origin = config.itunes_xml
    else:
        if not os.path.isdir(config.source_path):
            raise NoPlayableTracks(f"{config.source_path} is not a directory")
        paths = iter_audio_paths([config.source_path])
        origin = config.source_path

    logger.info("Found %d playable files in %s", len(paths), origin)
    if not paths:
        raise NoPlayableTracks(f"No playable tracks in {origin}")
    return [Track(path=p) for p in paths]
