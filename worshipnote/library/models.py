"""
Data models for the song library.

This module defines the Song record and the WorshipLists collection.
Both convert to and from the camelCase JSON documents stored in
songs.json / worship_lists.json and in backups.

Design Decisions:
    - Song is frozen (immutable); edits produce a new Song via dataclasses.replace
    - Legacy 'key' / 'code' fields are merged into 'chord' when reading
    - Unknown JSON fields are kept in `extra` and written back unchanged
    - WorshipLists keeps 'lastUpdated' out of the date mapping

Usage:
    from worshipnote.library.models import Song, WorshipLists

    song = Song.from_dict({"id": "1", "title": "Amazing Grace", "key": "C"})
    song.chord  # "C"

    lists = WorshipLists.from_dict(raw["worshipLists"])
    for date, entries in lists.items():
        ...
"""

import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Iterator

from worshipnote.core.exceptions import InvalidInputError


# JSON key -> Song attribute
_FIELD_MAP = {
    "id": "id",
    "title": "title",
    "chord": "chord",
    "tempo": "tempo",
    "firstLyrics": "first_lyrics",
    "fileName": "file_name",
    "filePath": "file_path",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

# Historical spellings of the chord field
_LEGACY_CHORD_KEYS = ("code", "key")

LAST_UPDATED_KEY = "lastUpdated"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


@dataclass(frozen=True)
class Song:
    """
    Immutable representation of one worship song and its sheet file.

    Attributes:
        id: Opaque unique identifier, stable across renames.
            Always a string in Python. Example: "1717171717171"

        title: Display title. May end in a page fraction ("Song 1/2").

        chord: Musical key, e.g. "C", "Bb", "F#m". Empty if unknown.

        tempo: Descriptive tag such as "Fast", "Medium", "Slow".

        first_lyrics: Opening lyrics; used only for matching suggestions.

        file_name: Leaf name of the sheet file in Music_Sheets, or "".
                   Only trusted after the file is confirmed to exist.

        file_path: Advisory path, possibly stale or from another platform.

        created_at / updated_at: ISO-8601 timestamps, "" if unknown.

        extra: Any other JSON fields, preserved on round-trip.

        numeric_id: The id was a JSON number (the desktop app mints ids
                    with Date.now()); to_dict writes it back as a number.
    """

    id: str
    title: str
    chord: str = ""
    tempo: str = ""
    first_lyrics: str = ""
    file_name: str = ""
    file_path: str = ""
    created_at: str = ""
    updated_at: str = ""
    extra: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    numeric_id: bool = field(default=False, compare=False, hash=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Song":
        """
        Create a Song from its JSON representation.

        Args:
            data: One element of the "songs" array (or a worship-list entry).

        Returns:
            Song with 'chord' taken from 'chord', then 'code', then 'key'.

        Raises:
            InvalidInputError: If data is not a mapping.
        """
        if not isinstance(data, dict):
            raise InvalidInputError(
                "Song entry must be a JSON object",
                details={"value": repr(data)[:100]}
            )

        values = {attr: _text(data.get(key)) for key, attr in _FIELD_MAP.items()}

        if not values["chord"]:
            for legacy_key in _LEGACY_CHORD_KEYS:
                if data.get(legacy_key):
                    values["chord"] = _text(data[legacy_key])
                    break

        extra = {
            key: value
            for key, value in data.items()
            if key not in _FIELD_MAP and key not in _LEGACY_CHORD_KEYS
        }

        raw_id = data.get("id")
        numeric_id = isinstance(raw_id, int) and not isinstance(raw_id, bool)

        return cls(extra=extra, numeric_id=numeric_id, **values)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to the JSON representation.

        Returns:
            Dict with camelCase keys. Extra fields come first, known
            fields override them. Legacy 'key'/'code' are never written.
            The id keeps the JSON type it was read with.
        """
        data = dict(self.extra)
        for key, attr in _FIELD_MAP.items():
            data[key] = getattr(self, attr)
        if self.numeric_id and self.id.lstrip("-").isdigit():
            data["id"] = int(self.id)
        return data

    def with_changes(self, **changes: Any) -> "Song":
        """Return a copy with the given attributes replaced."""
        return replace(self, **changes)

    def describe(self) -> str:
        """Short human-readable form used in reports: 'Title (C) [id 1]'."""
        chord = f" ({self.chord})" if self.chord else ""
        return f"{self.title}{chord} [id {self.id}]"


class WorshipLists:
    """
    Ordered mapping from a service date ("YYYY-MM-DD") to song snapshots.

    Entries are denormalized copies of Song records, not references.
    The same song may appear several times on one date; order is kept.
    The collection's own timestamp lives in `last_updated`, never in the
    date mapping.

    Attributes:
        last_updated: ISO timestamp of the stored document, or None.
    """

    def __init__(
        self,
        lists: dict[str, list[Song]] | None = None,
        last_updated: str | None = None
    ) -> None:
        self._lists: dict[str, list[Song]] = {
            date: list(entries) for date, entries in (lists or {}).items()
        }
        self.last_updated = last_updated

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, last_updated: str | None = None) -> "WorshipLists":
        """
        Create WorshipLists from the stored "worshipLists" mapping.

        The legacy documents keep a "lastUpdated" string inside the same
        mapping; it is lifted into `last_updated` (unless one is given)
        and never treated as a date. Any other non-list value is skipped.

        Raises:
            InvalidInputError: If data is not a mapping, or an entry is not an object.
        """
        if data is None:
            return cls(last_updated=last_updated)

        if not isinstance(data, dict):
            raise InvalidInputError(
                "worshipLists must be a JSON object",
                details={"type": type(data).__name__}
            )

        inner_timestamp = data.get(LAST_UPDATED_KEY)
        if last_updated is None and isinstance(inner_timestamp, str):
            last_updated = inner_timestamp

        lists: dict[str, list[Song]] = {}
        for date, entries in data.items():
            if date == LAST_UPDATED_KEY or not isinstance(entries, list):
                continue
            lists[date] = [Song.from_dict(entry) for entry in entries]

        return cls(lists, last_updated=last_updated)

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        """Date mapping as JSON-ready dicts, without 'lastUpdated'."""
        return {
            date: [song.to_dict() for song in entries]
            for date, entries in self._lists.items()
        }

    def dates(self) -> list[str]:
        return list(self._lists)

    def items(self) -> Iterator[tuple[str, list[Song]]]:
        for date, entries in self._lists.items():
            yield date, list(entries)

    def get(self, date: str) -> list[Song]:
        return list(self._lists.get(date, []))

    def add_song(self, date: str, song: Song) -> None:
        """Append a snapshot of `song` to the list for `date`."""
        self._lists.setdefault(date, []).append(replace(song))

    def total_songs(self) -> int:
        """Number of entries across all dates (duplicates counted)."""
        return sum(len(entries) for entries in self._lists.values())

    def occurrences(self, song_id: str) -> list[tuple[str, int]]:
        """(date, index) of every entry whose id equals song_id."""
        return [
            (date, index)
            for date, entries in self._lists.items()
            for index, entry in enumerate(entries)
            if entry.id == song_id
        ]

    def file_names(self) -> set[str]:
        """Non-empty file names referenced by any entry."""
        return {
            entry.file_name
            for entries in self._lists.values()
            for entry in entries
            if entry.file_name.strip()
        }

    def replace_entries(
        self,
        predicate: Callable[[Song], bool],
        updater: Callable[[Song], Song]
    ) -> tuple["WorshipLists", int]:
        """
        Return a new WorshipLists with matching entries replaced.

        Args:
            predicate: Selects the entries to update.
            updater: Builds the replacement for a selected entry.

        Returns:
            (new WorshipLists, number of entries replaced). The original
            object is left untouched.
        """
        count = 0
        new_lists: dict[str, list[Song]] = {}
        for date, entries in self._lists.items():
            new_entries = []
            for entry in entries:
                if predicate(entry):
                    entry = updater(entry)
                    count += 1
                new_entries.append(entry)
            new_lists[date] = new_entries
        return WorshipLists(new_lists, last_updated=self.last_updated), count

    def __len__(self) -> int:
        return len(self._lists)

    def __contains__(self, date: object) -> bool:
        return date in self._lists

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WorshipLists):
            return NotImplemented
        return self._lists == other._lists

    def __repr__(self) -> str:
        return f"WorshipLists(dates={len(self)}, songs={self.total_songs()})"


def songs_from_list(data: Any) -> list[Song]:
    """
    Parse a "songs" array.

    Raises:
        InvalidInputError: If data is not a list or contains a non-object.
    """
    if not isinstance(data, list):
        raise InvalidInputError(
            "songs must be a JSON array",
            details={"type": type(data).__name__}
        )
    return [Song.from_dict(entry) for entry in data]


def songs_to_list(songs: list[Song]) -> list[dict[str, Any]]:
    return [song.to_dict() for song in songs]


def mint_song_id(existing_ids: Iterable[str], now_ms: int | None = None) -> str:
    """
    Id for a new song: milliseconds since the epoch, as the desktop app
    does, moved forward until no existing song uses it.
    """
    taken = set(existing_ids)
    candidate = now_ms if now_ms is not None else int(time.time() * 1000)
    while str(candidate) in taken:
        candidate += 1
    return str(candidate)
