"""
Canonical sheet filenames.

Every sheet in Music_Sheets is named so the song can be recovered from the
name alone:

    "<title> (<chord>) (<id>).jpg"     e.g. "Amazing Grace (C) (abc123).jpg"
    "<title> (<id>).jpg"               when the song has no chord

Title preprocessing:
    A trailing page fraction keeps only its numerator: "Song 2/2" -> "Song 2".

Sanitization:
    Each of  < > : " / \\ | ? *  becomes '-', then surrounding whitespace
    is stripped and the result is cut to 200 characters. Internal
    whitespace is left alone.

Older naming schemes (underscore-joined, bare ids, ...) are never generated;
see worshipnote.sheets.legacy for parsing them.

Usage:
    from worshipnote.sheets.filename import canonical_file_name, parse_file_name

    name = canonical_file_name(song).unwrap()
    info = parse_file_name(name)
    info.id  # song.id
"""

import re
from dataclasses import dataclass
from pathlib import PurePath

from worshipnote.core.result import Err, ErrorKind, Ok, Result


# Characters that are invalid in filenames on Windows (and '/' everywhere)
_INVALID_CHARS_PATTERN = re.compile(r'[<>:"/\\|?*]')

# Maximum title length (conservative for cross-platform compatibility)
_MAX_FILENAME_LENGTH = 200

# "Song 2/2" -> "Song 2"
_PAGE_FRACTION_PATTERN = re.compile(r"\s+(\d+)/\d+$")

# "<title> (<chord>) (<id>)" with chord = A-G, optional b/#, optional m
_CANONICAL_PATTERN = re.compile(r"^(.+)\s+\(([A-G][b#]?m?)\)\s+\(([^)]+)\)$")

# Final extension only: "a.b.jpg" -> "a.b"
_EXTENSION_PATTERN = re.compile(r"\.[^/.]+$")

SHEET_EXTENSION = ".jpg"


@dataclass(frozen=True)
class SongFileInfo:
    """
    Fields recovered from a sheet filename.

    Attributes:
        title: Title part, or the whole stem when the name isn't canonical.
        chord: Chord part, None when not canonical.
        id: Song id, None when not canonical.
        is_canonical: True if the name follows the current canonical rule.
    """
    title: str
    chord: str | None
    id: str | None
    is_canonical: bool


def strip_extension(name: str) -> str:
    """Remove the last extension: "Song (C) (1).jpg" -> "Song (C) (1)"."""
    return _EXTENSION_PATTERN.sub("", name)


def normalize_title(title: str) -> str:
    """Replace a trailing page fraction with its numerator ("Song 2/2" -> "Song 2")."""
    return _PAGE_FRACTION_PATTERN.sub(r" \1", title)


def sanitize_component(value: str) -> str:
    """
    Make a title or chord safe for use in a filename.

    Returns:
        value with invalid characters replaced by '-', stripped and
        truncated to 200 characters. The cut never leaves trailing spaces.
    """
    result = _INVALID_CHARS_PATTERN.sub("-", value)
    result = result.strip()
    return result[:_MAX_FILENAME_LENGTH].rstrip()


def canonical_file_name(song) -> Result[str]:
    """
    Derive the canonical sheet filename for a song.

    Args:
        song: Any object with id, title and chord attributes (usually Song).

    Returns:
        Ok(filename), deterministic for the same id/title/chord.
        Err(INVALID_INPUT) when id or title is empty.
    """
    song_id = str(getattr(song, "id", "") or "").strip()
    title = str(getattr(song, "title", "") or "")
    chord = str(getattr(song, "chord", "") or "")

    if not song_id or not title.strip():
        return Err(
            ErrorKind.INVALID_INPUT,
            "Song id and title are required to build a sheet filename",
            {"song_id": song_id, "title": title}
        )

    safe_title = sanitize_component(normalize_title(title))
    safe_chord = sanitize_component(chord)

    if safe_chord:
        return Ok(f"{safe_title} ({safe_chord}) ({song_id}){SHEET_EXTENSION}")
    return Ok(f"{safe_title} ({song_id}){SHEET_EXTENSION}")


def is_canonical_file_name(name: str) -> bool:
    """
    Check a filename against the current canonical rule.

    Only "<title> (<chord>) (<id>).<ext>" qualifies. Older schemes return
    False even if an earlier version of the app produced them.
    """
    if not name:
        return False
    return _CANONICAL_PATTERN.match(strip_extension(PurePath(name).name)) is not None


def parse_file_name(name: str) -> SongFileInfo:
    """
    Split a filename into title, chord and id.

    Never fails: a non-canonical name comes back as
    SongFileInfo(title=<stem>, chord=None, id=None, is_canonical=False).
    """
    stem = strip_extension(PurePath(name).name) if name else ""
    match = _CANONICAL_PATTERN.match(stem)
    if match:
        return SongFileInfo(
            title=match.group(1).strip(),
            chord=match.group(2),
            id=match.group(3),
            is_canonical=True
        )
    return SongFileInfo(title=stem, chord=None, id=None, is_canonical=False)
