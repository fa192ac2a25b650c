# src/library/itunes_xml.py
from __future__ import annotations

import logging
import os
import plistlib
from typing import Iterator
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)


def location_to_path(location: str) -> str | None:
    """
    iTunes stores file locations as URLs, e.g.
        file://localhost/Users/me/Music/iTunes/Song%20Name.mp3
    Returns the decoded local path, or None for non-file URLs (streams).
    """
    parsed = urlparse(location)
    if parsed.scheme != "file":
        return None
    path = unquote(parsed.path)
    # file://localhost/C:/Music/x.mp3 on Windows
    if os.name == "nt" and path.startswith("/") and len(path) > 2 and path[2] == ":":
        path = path[1:]
    return path or None


def iter_itunes_locations(xml_path: str, *, only_existing: bool = True) -> Iterator[str]:
    """Yield local file paths of every track in an iTunes 'Music Library.xml'."""
    with open(xml_path, "rb") as f:
        library = plistlib.load(f)

    tracks = library.get("Tracks") or {}
    skipped = 0
    for entry in tracks.values():
        location = entry.get("Location") if isinstance(entry, dict) else None
        if not location:
            continue
        path = location_to_path(location)
        if path is None:
            continue
        if only_existing and not os.path.isfile(path):
            skipped += 1
            continue
        yield path

    if skipped:
        logger.info("Skipped %d missing files listed in %s", skipped, xml_path)
