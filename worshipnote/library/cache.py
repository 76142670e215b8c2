"""
Local cache of the song library.

The cache is the per-machine copy of both collections and the durability
floor for a session: a save is only successful once the cache is written.
It also remembers when each collection was last saved or adopted from
the remote store, which is what the sync comparator compares against.

Cache document:
    {
        "songs": [...],
        "worshipLists": {"2024-01-07": [...], ...},
        "lastSaved": {"songs": "<iso>", "worshipLists": "<iso>"}
    }

Usage:
    cache = JsonFileCache(Path("~/.worshipnote/cache.json").expanduser())
    snapshot = cache.read()
    cache.write_songs(songs, saved_at=now_iso())
"""

import json
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from worshipnote.core.exceptions import CacheError, InvalidInputError
from worshipnote.core.logger import get_logger
from worshipnote.library.models import Song, WorshipLists, songs_from_list, songs_to_list


logger = get_logger(__name__)


@dataclass
class CacheSnapshot:
    """
    Contents of the local cache.

    Attributes:
        songs: Cached master songs.
        worship_lists: Cached worship lists.
        songs_saved_at: When songs were last saved/adopted, or None.
        lists_saved_at: When worship lists were last saved/adopted, or None.
    """
    songs: list[Song] = field(default_factory=list)
    worship_lists: WorshipLists = field(default_factory=WorshipLists)
    songs_saved_at: str | None = None
    lists_saved_at: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.songs and len(self.worship_lists) == 0


class Cache(ABC):
    """Storage for the local copy of both collections."""

    @abstractmethod
    def read(self) -> CacheSnapshot:
        """
        Return the cached data (an empty snapshot if nothing is cached).

        Raises:
            CacheError: If the cache exists but cannot be read or parsed.
        """

    @abstractmethod
    def write_songs(self, songs: list[Song], saved_at: str) -> None:
        """Replace cached songs. Raises CacheError on failure."""

    @abstractmethod
    def write_worship_lists(self, worship_lists: WorshipLists, saved_at: str) -> None:
        """Replace cached worship lists. Raises CacheError on failure."""

    @abstractmethod
    def write_all(
        self,
        songs: list[Song],
        worship_lists: WorshipLists,
        songs_saved_at: str,
        lists_saved_at: str
    ) -> None:
        """Replace both collections in one write. Raises CacheError on failure."""


class JsonFileCache(Cache):
    """
    Cache stored as one JSON file.

    Read-modify-write cycles are serialized with a lock, and each write
    goes to a temporary file first and is then moved into place.

    Attributes:
        path: Location of the cache file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def read(self) -> CacheSnapshot:
        with self._lock:
            return self._snapshot_from(self._read_document())

    def write_songs(self, songs: list[Song], saved_at: str) -> None:
        with self._lock:
            document = self._read_document_for_update()
            document["songs"] = songs_to_list(songs)
            document.setdefault("lastSaved", {})["songs"] = saved_at
            self._write_document(document)
        logger.debug(f"Cached {len(songs)} songs")

    def write_worship_lists(self, worship_lists: WorshipLists, saved_at: str) -> None:
        with self._lock:
            document = self._read_document_for_update()
            document["worshipLists"] = worship_lists.to_dict()
            document.setdefault("lastSaved", {})["worshipLists"] = saved_at
            self._write_document(document)
        logger.debug(f"Cached worship lists for {len(worship_lists)} dates")

    def write_all(
        self,
        songs: list[Song],
        worship_lists: WorshipLists,
        songs_saved_at: str,
        lists_saved_at: str
    ) -> None:
        document = {
            "songs": songs_to_list(songs),
            "worshipLists": worship_lists.to_dict(),
            "lastSaved": {"songs": songs_saved_at, "worshipLists": lists_saved_at},
        }
        with self._lock:
            self._write_document(document)
        logger.debug(f"Cached {len(songs)} songs and {len(worship_lists)} worship lists")

    def _read_document(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CacheError(
                f"Cannot read local cache: {e}",
                details={"path": str(self.path), "original_error": str(e)}
            ) from e

        if not isinstance(document, dict):
            raise CacheError(
                "Local cache is not a JSON object",
                details={"path": str(self.path)}
            )
        return document

    def _read_document_for_update(self) -> dict[str, Any]:
        """Like _read_document, but a corrupt cache is replaced instead of failing the save."""
        try:
            return self._read_document()
        except CacheError as e:
            logger.warning(f"Discarding unreadable local cache: {e.message}")
            return {}

    def _write_document(self, document: dict[str, Any]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise CacheError(
                f"Cannot write local cache: {e}",
                details={"path": str(self.path), "original_error": str(e)}
            ) from e

    def _snapshot_from(self, document: dict[str, Any]) -> CacheSnapshot:
        if not document:
            return CacheSnapshot()

        last_saved = document.get("lastSaved")
        if not isinstance(last_saved, dict):
            last_saved = {}

        try:
            songs = songs_from_list(document.get("songs", []))
            worship_lists = WorshipLists.from_dict(document.get("worshipLists", {}))
        except InvalidInputError as e:
            raise CacheError(
                f"Local cache has an invalid structure: {e.message}",
                details={"path": str(self.path)}
            ) from e

        return CacheSnapshot(
            songs=songs,
            worship_lists=worship_lists,
            songs_saved_at=last_saved.get("songs") or None,
            lists_saved_at=last_saved.get("worshipLists") or None,
        )
