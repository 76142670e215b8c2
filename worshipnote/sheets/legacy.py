"""
Legacy sheet filename matcher.

Libraries built by earlier versions of the app (and by hand) use several
naming schemes. They are parsed here for one-time recovery only and are
never generated.

Patterns, tried in this exact order on the extension-less name (first
match wins; several patterns can match the same string, so the order is
part of the contract):

    1. title_chord_(id)       "Amazing_Grace_C_(abc123)"
    2. title_chord_id         "Amazing_Grace_C_abc123"
    3. id                     "abc123"
    4. title chord            "Amazing Grace C"
    5. title (chord)          "Amazing Grace (C)"
    6. title chord page       "Amazing Grace C 2"
    7. title (chord) page     "Amazing Grace (C) 2"

In patterns 1-2 underscores in the title stand for spaces.
"""

import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Callable

from worshipnote.sheets.filename import strip_extension


@dataclass(frozen=True)
class LegacyFileInfo:
    """
    Fields recovered by the legacy matcher.

    Attributes:
        pattern: Name of the pattern that matched (see LEGACY_PATTERNS).
        title: Recovered title, None for a bare id.
        chord: Recovered chord, None when the pattern has none.
        id: Recovered id, None when the pattern has none.
        page: Trailing page number for patterns 6-7.
    """
    pattern: str
    title: str | None = None
    chord: str | None = None
    id: str | None = None
    page: int | None = None


def _underscored_title(value: str) -> str:
    return value.replace("_", " ").strip()


def _title_chord_paren_id(match: re.Match) -> LegacyFileInfo:
    return LegacyFileInfo(
        pattern="title_chord_(id)",
        title=_underscored_title(match.group(1)),
        chord=match.group(2),
        id=match.group(3)
    )


def _title_chord_id(match: re.Match) -> LegacyFileInfo:
    return LegacyFileInfo(
        pattern="title_chord_id",
        title=_underscored_title(match.group(1)),
        chord=match.group(2),
        id=match.group(3)
    )


def _bare_id(match: re.Match) -> LegacyFileInfo:
    return LegacyFileInfo(pattern="id", id=match.group(0))


def _title_chord(name: str) -> Callable[[re.Match], LegacyFileInfo]:
    def build(match: re.Match) -> LegacyFileInfo:
        page = int(match.group(3)) if match.re.groups >= 3 else None
        return LegacyFileInfo(
            pattern=name,
            title=match.group(1).strip(),
            chord=match.group(2),
            page=page
        )
    return build


# Order matters: see module docstring
LEGACY_PATTERNS: list[tuple[re.Pattern, Callable[[re.Match], LegacyFileInfo]]] = [
    (re.compile(r"^(.+)_([^_]+)_\(([^)]+)\)$"), _title_chord_paren_id),
    (re.compile(r"^(.+)_([^_]+)_(.+)$"), _title_chord_id),
    (re.compile(r"^[a-zA-Z0-9]+$"), _bare_id),
    (re.compile(r"^(.+)\s+([A-G][b#]?)\s*$"), _title_chord("title chord")),
    (re.compile(r"^(.+)\s+\(([A-G][b#]?)\)\s*$"), _title_chord("title (chord)")),
    (re.compile(r"^(.+)\s+([A-G][b#]?)\s+(\d+)\s*$"), _title_chord("title chord page")),
    (re.compile(r"^(.+)\s+\(([A-G][b#]?)\)\s+(\d+)\s*$"), _title_chord("title (chord) page")),
]


def match_legacy_file_name(name: str) -> LegacyFileInfo | None:
    """
    Recover song fields from a legacy filename.

    Args:
        name: File name, with or without extension.

    Returns:
        LegacyFileInfo from the first matching pattern, or None.
    """
    if not name:
        return None

    stem = strip_extension(PurePath(name).name)
    for pattern, build in LEGACY_PATTERNS:
        match = pattern.match(stem)
        if match:
            return build(match)
    return None
