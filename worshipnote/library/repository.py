"""
Repository for the song library.

The Repository is the single entry point for loading and saving the two
top-level collections (songs, worship lists) and for full-database
backup/restore. It writes every change to two places:

    - the local cache (must succeed; CacheError otherwise)
    - the OneDrive database files (best effort; failures are reported
      in SaveResult and retried by retry_remote())

Remote documents (WorshipNote_Data/Database):
    songs.json           {"songs": [...], "lastUpdated": "<iso>"}
    worship_lists.json   {"worshipLists": {...}, "lastUpdated": "<iso>"}

Collection lifecycle (per collection):
    UNLOADED -> LOADING -> LOADED | LOADED_EMPTY -> DIRTY -> SAVING
             -> SAVED | SAVE_FAILED_REMOTE
    SAVE_FAILED_REMOTE is not terminal: the next save or retry_remote()
    writes the remote copy again.

Concurrency:
    Each logical file has its own lock. A save holds the lock of its
    collection for the cache write and the remote write, so a second save
    of the same collection waits for the first. Concurrent edits from
    several machines are not merged; the last write wins per file.

Usage:
    repository = Repository.from_config(config, LocalFileSystem())
    loaded = repository.load()
    result = repository.save_songs(loaded.songs)
    if result.state is CollectionState.SAVE_FAILED_REMOTE:
        logger.warning(result.remote_error.message)
"""

import json
import re
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from worshipnote.core.config import Config
from worshipnote.core.exceptions import CacheError, InvalidInputError
from worshipnote.core.filesystem import FileCapabilityProvider
from worshipnote.core.logger import get_logger
from worshipnote.core.onedrive import DataLayout, resolve_layout
from worshipnote.core.result import Err, ErrorKind, Ok, Result
from worshipnote.library.cache import Cache, CacheSnapshot, JsonFileCache
from worshipnote.library.models import Song, WorshipLists, songs_from_list, songs_to_list
from worshipnote.sync.comparator import SyncDecision, compare_versions
from worshipnote.utils import filename_timestamp, now_iso


logger = get_logger(__name__)


SONGS = "songs"
WORSHIP_LISTS = "worshipLists"

BACKUP_VERSION = "2.0"
BACKUP_TYPE = "worshipnote_database"
LEGACY_BACKUP_TYPE = "database"
BACKUP_PREFIX = "worshipnote_database_"
BACKUP_DESCRIPTION = "WorshipNote database backup (songs + worship lists)"

# worshipnote_database_<timestamp>[_<counter>].json
_BACKUP_NAME_PATTERN = re.compile(r"^worshipnote_database_(.+?)(?:_(\d+))?\.json$")


class CollectionState(Enum):
    """Lifecycle state of one collection."""
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    LOADED_EMPTY = "loaded_empty"
    DIRTY = "dirty"
    SAVING = "saving"
    SAVED = "saved"
    SAVE_FAILED_REMOTE = "save_failed_remote"


class LoadSource(Enum):
    """Where load() took its data from."""
    CACHE = "cache"
    REMOTE = "remote"
    SEED = "seed"
    EMPTY = "empty"


@dataclass
class LoadResult:
    """
    Attributes:
        songs: Loaded master songs.
        worship_lists: Loaded worship lists.
        source: Where the data came from.
        decision: Sync decision, when the remote store could be read.
        remote_error: Why the remote store could not be used, if it couldn't.
    """
    songs: list[Song]
    worship_lists: WorshipLists
    source: LoadSource
    decision: SyncDecision | None = None
    remote_error: Err | None = None


@dataclass
class SaveResult:
    """
    Attributes:
        collection: SONGS or WORSHIP_LISTS.
        state: SAVED or SAVE_FAILED_REMOTE (the cache write succeeded either way).
        saved_at: Timestamp written to the cache and remote document.
        remote_error: Err(REMOTE_UNAVAILABLE) when the remote write failed.
    """
    collection: str
    state: CollectionState
    saved_at: str
    remote_error: Err | None = None

    @property
    def remote_saved(self) -> bool:
        return self.remote_error is None


@dataclass
class BackupInfo:
    path: Path
    stats: dict[str, int]

    @property
    def file_name(self) -> str:
        return self.path.name


@dataclass
class RestoreResult:
    """
    Attributes:
        songs / worship_lists: The restored collections, for the caller's live state.
        backup_date: backupDate of the snapshot, if it had one.
        remote_error: Set when the cache was restored but OneDrive was not.
    """
    songs: list[Song]
    worship_lists: WorshipLists
    backup_date: str | None
    remote_error: Err | None = None


@dataclass
class _RemoteSongs:
    songs: list[Song]
    last_updated: str | None


def compute_stats(songs: list[Song], worship_lists: WorshipLists) -> dict[str, int]:
    return {
        "totalSongs": len(songs),
        "totalWorshipLists": len(worship_lists),
        "totalWorshipListSongs": worship_lists.total_songs(),
    }


def _encode(document: dict[str, Any]) -> bytes:
    return json.dumps(document, ensure_ascii=False, indent=2).encode("utf-8")


def validate_backup(snapshot: Any) -> Err | None:
    """
    Check a restore snapshot before anything is written.

    Returns:
        None if acceptable, otherwise Err(INVALID_BACKUP_FORMAT).
    """
    if not isinstance(snapshot, dict):
        return Err(ErrorKind.INVALID_BACKUP_FORMAT, "Backup is not a JSON object")

    backup_type = snapshot.get("type")
    if backup_type not in (BACKUP_TYPE, LEGACY_BACKUP_TYPE):
        return Err(
            ErrorKind.INVALID_BACKUP_FORMAT,
            "Not a WorshipNote database backup",
            {"type": backup_type}
        )

    missing = [key for key in (SONGS, WORSHIP_LISTS) if key not in snapshot]
    if missing:
        return Err(
            ErrorKind.INVALID_BACKUP_FORMAT,
            f"Backup is missing required data: {', '.join(missing)}",
            {"missing": missing}
        )

    if not isinstance(snapshot[SONGS], list) or not isinstance(snapshot[WORSHIP_LISTS], dict):
        return Err(
            ErrorKind.INVALID_BACKUP_FORMAT,
            "Backup 'songs' must be an array and 'worshipLists' an object"
        )
    return None


def _backup_sort_key(name: str) -> tuple[str, int]:
    """(timestamp, collision counter) so "_10" sorts after "_2"."""
    match = _BACKUP_NAME_PATTERN.match(name)
    if match is None:
        return name, 0
    return match.group(1), int(match.group(2) or 0)


class Repository:
    """
    Loads and persists the song library.

    Attributes:
        files: File capability provider used for all remote/backup I/O.
        cache: Local cache provider.
        layout: WorshipNote_Data layout, or None when OneDrive is unavailable.
        seed_file: Optional {songs, worshipLists} document used on first start.
        fallback_backup_dir: Backup target when layout is None.
    """

    def __init__(
        self,
        files: FileCapabilityProvider,
        cache: Cache,
        layout: DataLayout | None,
        seed_file: Path | None = None,
        fallback_backup_dir: Path | None = None
    ) -> None:
        self.files = files
        self.cache = cache
        self.layout = layout
        self.seed_file = seed_file
        self.fallback_backup_dir = fallback_backup_dir
        self._states = {SONGS: CollectionState.UNLOADED, WORSHIP_LISTS: CollectionState.UNLOADED}
        self._locks = {SONGS: threading.Lock(), WORSHIP_LISTS: threading.Lock()}
        self._backup_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Config, files: FileCapabilityProvider) -> "Repository":
        """Build a Repository from configuration, resolving the OneDrive layout."""
        layout = resolve_layout(config)
        if layout is None:
            logger.warning("OneDrive folder not found; working from the local cache only")
        return cls(
            files=files,
            cache=JsonFileCache(config.storage.cache_file),
            layout=layout,
            seed_file=config.storage.seed_file,
            fallback_backup_dir=config.storage.backup_directory,
        )

    # =========================================================================
    # State
    # =========================================================================

    def state(self, collection: str) -> CollectionState:
        return self._states[collection]

    def mark_dirty(self, collection: str) -> None:
        """Record that the caller holds unsaved edits of a collection."""
        self._states[collection] = CollectionState.DIRTY

    def _set_loaded(self, songs: list[Song], worship_lists: WorshipLists) -> None:
        self._states[SONGS] = CollectionState.LOADED if songs else CollectionState.LOADED_EMPTY
        self._states[WORSHIP_LISTS] = (
            CollectionState.LOADED if len(worship_lists) else CollectionState.LOADED_EMPTY
        )

    # =========================================================================
    # Remote documents
    # =========================================================================

    def _remote_unavailable(self) -> Err:
        return Err(ErrorKind.REMOTE_UNAVAILABLE, "OneDrive WorshipNote_Data folder not found")

    def _read_remote_json(self, path: Path) -> Result[Any]:
        """Ok(document), Ok(None) if the file doesn't exist, or Err(REMOTE_UNAVAILABLE)."""
        result = self.files.read_file(path)
        if result.is_err:
            if result.kind is ErrorKind.NOT_FOUND:
                return Ok(None)
            return Err(
                ErrorKind.REMOTE_UNAVAILABLE,
                f"Cannot read {path.name}: {result.message}",
                {"path": str(path), "cause": result.kind.value}
            )

        try:
            return Ok(json.loads(result.value.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            return Err(
                ErrorKind.REMOTE_UNAVAILABLE,
                f"{path.name} is not valid JSON: {e}",
                {"path": str(path)}
            )

    def _read_remote_songs(self) -> Result[_RemoteSongs | None]:
        if self.layout is None:
            return self._remote_unavailable()

        result = self._read_remote_json(self.layout.songs_file)
        if result.is_err or result.value is None:
            return result

        document = result.value
        try:
            # Very old files are a bare array of songs
            if isinstance(document, list):
                return Ok(_RemoteSongs(songs_from_list(document), None))
            if isinstance(document, dict):
                return Ok(_RemoteSongs(
                    songs_from_list(document.get(SONGS, [])),
                    document.get("lastUpdated") or None
                ))
        except InvalidInputError as e:
            return Err(ErrorKind.REMOTE_UNAVAILABLE, f"songs.json has an invalid structure: {e.message}")

        return Err(ErrorKind.REMOTE_UNAVAILABLE, "songs.json has an invalid structure")

    def _read_remote_lists(self) -> Result[WorshipLists | None]:
        if self.layout is None:
            return self._remote_unavailable()

        result = self._read_remote_json(self.layout.worship_lists_file)
        if result.is_err or result.value is None:
            return result

        document = result.value
        if not isinstance(document, dict):
            return Err(ErrorKind.REMOTE_UNAVAILABLE, "worship_lists.json has an invalid structure")

        try:
            if WORSHIP_LISTS in document:
                return Ok(WorshipLists.from_dict(
                    document[WORSHIP_LISTS],
                    last_updated=document.get("lastUpdated") or None
                ))
            # Very old files are the bare date mapping
            return Ok(WorshipLists.from_dict(document))
        except InvalidInputError as e:
            return Err(
                ErrorKind.REMOTE_UNAVAILABLE,
                f"worship_lists.json has an invalid structure: {e.message}"
            )

    def _write_remote(self, path: Path | None, document: dict[str, Any]) -> Err | None:
        if path is None:
            return self._remote_unavailable()

        result = self.files.write_file(path, _encode(document))
        if result.is_err:
            return Err(
                ErrorKind.REMOTE_UNAVAILABLE,
                f"Cannot write {path.name}: {result.message}",
                {"path": str(path), "cause": result.kind.value}
            )
        return None

    def _push_songs(self, songs: list[Song], saved_at: str) -> Err | None:
        path = self.layout.songs_file if self.layout else None
        return self._write_remote(path, {SONGS: songs_to_list(songs), "lastUpdated": saved_at})

    def _push_lists(self, worship_lists: WorshipLists, saved_at: str) -> Err | None:
        path = self.layout.worship_lists_file if self.layout else None
        return self._write_remote(path, {WORSHIP_LISTS: worship_lists.to_dict(), "lastUpdated": saved_at})

    # =========================================================================
    # Load
    # =========================================================================

    def load(self) -> LoadResult:
        """
        Load both collections. Never raises.

        Behavior:
            1. Local cache non-empty: compare its timestamps with the remote
               documents and adopt each remote collection that is newer.
               Any remote failure leaves the cached data as-is.
            2. Local cache empty: remote store, then the seed file, then
               empty collections.
        """
        self._states[SONGS] = CollectionState.LOADING
        self._states[WORSHIP_LISTS] = CollectionState.LOADING

        try:
            cached = self.cache.read()
        except CacheError as e:
            logger.warning(f"Local cache unusable, ignoring it: {e.message}")
            cached = CacheSnapshot()

        if not cached.is_empty:
            result = self._refresh_from_remote(cached)
        else:
            result = self._load_without_cache()

        self._set_loaded(result.songs, result.worship_lists)
        logger.info(
            f"Loaded {len(result.songs)} songs and {len(result.worship_lists)} worship lists "
            f"(source: {result.source.value})"
        )
        return result

    def _read_remote_both(self) -> tuple[_RemoteSongs | None, WorshipLists | None, Err | None]:
        with self._locks[SONGS]:
            songs_result = self._read_remote_songs()
        with self._locks[WORSHIP_LISTS]:
            lists_result = self._read_remote_lists()

        for result in (songs_result, lists_result):
            if result.is_err:
                return None, None, result
        return songs_result.value, lists_result.value, None

    def _cache_adopted(self, collection: str, write) -> None:
        try:
            write()
        except CacheError as e:
            logger.warning(f"Could not cache adopted {collection}: {e.message}")

    def _refresh_from_remote(self, cached: CacheSnapshot) -> LoadResult:
        remote_songs, remote_lists, error = self._read_remote_both()
        if error is not None:
            logger.warning(f"Remote store unavailable, using local cache: {error.message}")
            return LoadResult(cached.songs, cached.worship_lists, LoadSource.CACHE, remote_error=error)

        decision = compare_versions(
            cached.songs_saved_at,
            cached.lists_saved_at,
            remote_songs.last_updated if remote_songs else None,
            remote_lists.last_updated if remote_lists else None,
        )
        logger.debug(f"Sync decision: {decision.reason.value}")

        songs = cached.songs
        worship_lists = cached.worship_lists

        if decision.songs_need_sync and remote_songs is not None:
            songs = remote_songs.songs
            self._cache_adopted(SONGS, lambda: self.cache.write_songs(songs, remote_songs.last_updated or ""))
            logger.info(f"Adopted newer remote songs ({remote_songs.last_updated})")

        if decision.lists_need_sync and remote_lists is not None:
            worship_lists = remote_lists
            self._cache_adopted(
                WORSHIP_LISTS,
                lambda: self.cache.write_worship_lists(worship_lists, remote_lists.last_updated or "")
            )
            logger.info(f"Adopted newer remote worship lists ({remote_lists.last_updated})")

        source = LoadSource.REMOTE if decision.needs_sync else LoadSource.CACHE
        return LoadResult(songs, worship_lists, source, decision=decision)

    def _load_without_cache(self) -> LoadResult:
        remote_songs, remote_lists, error = self._read_remote_both()
        if error is None:
            songs = remote_songs.songs if remote_songs else []
            worship_lists = remote_lists if remote_lists is not None else WorshipLists()
            if songs or len(worship_lists):
                decision = compare_versions(
                    None, None,
                    remote_songs.last_updated if remote_songs else None,
                    worship_lists.last_updated,
                )
                self._cache_adopted(
                    "remote data",
                    lambda: self.cache.write_all(
                        songs,
                        worship_lists,
                        songs_saved_at=remote_songs.last_updated if remote_songs else "",
                        lists_saved_at=worship_lists.last_updated or "",
                    )
                )
                return LoadResult(songs, worship_lists, LoadSource.REMOTE, decision=decision)
        else:
            logger.warning(f"Remote store unavailable: {error.message}")

        seeded = self._load_seed()
        if seeded is not None:
            songs, worship_lists = seeded
            self._cache_adopted(
                "seed data",
                lambda: self.cache.write_all(songs, worship_lists, songs_saved_at="", lists_saved_at="")
            )
            return LoadResult(songs, worship_lists, LoadSource.SEED, remote_error=error)

        return LoadResult([], WorshipLists(), LoadSource.EMPTY, remote_error=error)

    def _load_seed(self) -> tuple[list[Song], WorshipLists] | None:
        if self.seed_file is None:
            return None

        result = self.files.read_file(self.seed_file)
        if result.is_err:
            logger.warning(f"Seed file unavailable: {result.message}")
            return None

        try:
            document = json.loads(result.value.decode("utf-8"))
            if not isinstance(document, dict):
                raise InvalidInputError("Seed file must be a JSON object")
            songs = songs_from_list(document.get(SONGS, []))
            worship_lists = WorshipLists.from_dict(document.get(WORSHIP_LISTS, {}))
        except (UnicodeDecodeError, json.JSONDecodeError, InvalidInputError) as e:
            logger.warning(f"Ignoring invalid seed file {self.seed_file}: {e}")
            return None

        if not songs and not len(worship_lists):
            return None
        logger.info(f"Seeded library with {len(songs)} songs from {self.seed_file}")
        return songs, worship_lists

    def check_sync(self) -> Result[SyncDecision]:
        """Compare cache and remote timestamps without adopting anything."""
        try:
            cached = self.cache.read()
        except CacheError as e:
            cached = CacheSnapshot()
            logger.warning(f"Local cache unusable: {e.message}")

        remote_songs, remote_lists, error = self._read_remote_both()
        if error is not None:
            return error
        return Ok(compare_versions(
            cached.songs_saved_at,
            cached.lists_saved_at,
            remote_songs.last_updated if remote_songs else None,
            remote_lists.last_updated if remote_lists else None,
        ))

    # =========================================================================
    # Save
    # =========================================================================

    def _finish_save(self, collection: str, saved_at: str, remote_error: Err | None) -> SaveResult:
        if remote_error is None:
            state = CollectionState.SAVED
        else:
            state = CollectionState.SAVE_FAILED_REMOTE
            logger.warning(f"Saved {collection} locally only: {remote_error.message}")
        self._states[collection] = state
        return SaveResult(collection, state, saved_at, remote_error)

    def save_songs(self, songs: list[Song]) -> SaveResult:
        """
        Persist the master song collection.

        Raises:
            CacheError: If the local cache could not be written (nothing is
                        written remotely in that case).
        """
        with self._locks[SONGS]:
            self._states[SONGS] = CollectionState.SAVING
            saved_at = now_iso()
            try:
                self.cache.write_songs(songs, saved_at)
            except CacheError:
                self._states[SONGS] = CollectionState.DIRTY
                raise
            return self._finish_save(SONGS, saved_at, self._push_songs(songs, saved_at))

    def save_worship_lists(self, worship_lists: WorshipLists) -> SaveResult:
        """
        Persist the worship lists.

        Raises:
            CacheError: If the local cache could not be written.
        """
        with self._locks[WORSHIP_LISTS]:
            self._states[WORSHIP_LISTS] = CollectionState.SAVING
            saved_at = now_iso()
            try:
                self.cache.write_worship_lists(worship_lists, saved_at)
            except CacheError:
                self._states[WORSHIP_LISTS] = CollectionState.DIRTY
                raise
            return self._finish_save(WORSHIP_LISTS, saved_at, self._push_lists(worship_lists, saved_at))

    def retry_remote(self) -> dict[str, SaveResult]:
        """
        Write cached collections whose last remote save failed.

        The cached timestamps are reused so the remote documents end up
        with the same lastUpdated as the cache.

        Raises:
            CacheError: If the cache cannot be read.
        """
        pending = [
            collection for collection, state in self._states.items()
            if state is CollectionState.SAVE_FAILED_REMOTE
        ]
        if not pending:
            return {}

        cached = self.cache.read()
        results: dict[str, SaveResult] = {}

        if SONGS in pending:
            with self._locks[SONGS]:
                saved_at = cached.songs_saved_at or now_iso()
                results[SONGS] = self._finish_save(SONGS, saved_at, self._push_songs(cached.songs, saved_at))

        if WORSHIP_LISTS in pending:
            with self._locks[WORSHIP_LISTS]:
                saved_at = cached.lists_saved_at or now_iso()
                results[WORSHIP_LISTS] = self._finish_save(
                    WORSHIP_LISTS, saved_at, self._push_lists(cached.worship_lists, saved_at)
                )

        return results

    # =========================================================================
    # Backup / restore
    # =========================================================================

    def backup_directory(self) -> Path | None:
        if self.layout is not None:
            return self.layout.backups_dir
        return self.fallback_backup_dir

    def _unique_backup_path(self, backup_dir: Path, timestamp: str) -> Path:
        candidate = backup_dir / f"{BACKUP_PREFIX}{timestamp}.json"
        counter = 1
        while self.files.exists(candidate):
            candidate = backup_dir / f"{BACKUP_PREFIX}{timestamp}_{counter}.json"
            counter += 1
        return candidate

    def backup(
        self,
        songs: list[Song] | None = None,
        worship_lists: WorshipLists | None = None
    ) -> Result[BackupInfo]:
        """
        Write a full-database snapshot to the Backups folder.

        Args:
            songs / worship_lists: Collections to back up. Missing ones are
                                   taken from the local cache.

        Returns:
            Ok(BackupInfo) or Err. Existing backups are never modified.
        """
        backup_dir = self.backup_directory()
        if backup_dir is None:
            return self._remote_unavailable()

        if songs is None or worship_lists is None:
            try:
                cached = self.cache.read()
            except CacheError as e:
                return Err(ErrorKind.IO_ERROR, f"Cannot read local cache for backup: {e.message}")
            songs = cached.songs if songs is None else songs
            worship_lists = cached.worship_lists if worship_lists is None else worship_lists

        backup_date = now_iso()
        stats = compute_stats(songs, worship_lists)
        stats["backupSize"] = 0
        document = {
            "version": BACKUP_VERSION,
            "type": BACKUP_TYPE,
            "backupDate": backup_date,
            "description": BACKUP_DESCRIPTION,
            SONGS: songs_to_list(songs),
            WORSHIP_LISTS: worship_lists.to_dict(),
            "stats": stats,
        }
        stats["backupSize"] = len(_encode(document))
        data = _encode(document)

        with self._backup_lock:
            path = self._unique_backup_path(backup_dir, filename_timestamp(backup_date))
            result = self.files.write_file(path, data)

        if result.is_err:
            return result

        logger.info(
            f"Backup created: {path.name} ({stats['totalSongs']} songs, "
            f"{stats['totalWorshipLists']} worship lists, {stats['backupSize']} bytes)"
        )
        return Ok(BackupInfo(path=path, stats=stats))

    def list_backups(self) -> list[Path]:
        """Backup files, newest first."""
        backup_dir = self.backup_directory()
        if backup_dir is None:
            return []
        names = [
            name for name in self.files.list_directory(backup_dir)
            if name.startswith(BACKUP_PREFIX) and name.endswith(".json")
        ]
        return [backup_dir / name for name in sorted(names, key=_backup_sort_key, reverse=True)]

    def read_backup(self, path: Path) -> Result[dict[str, Any]]:
        """Read a backup file. Err(INVALID_BACKUP_FORMAT) if it isn't JSON."""
        result = self.files.read_file(path)
        if result.is_err:
            return result
        try:
            return Ok(json.loads(result.value.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            return Err(
                ErrorKind.INVALID_BACKUP_FORMAT,
                f"Backup file is not valid JSON: {e}",
                {"path": str(path)}
            )

    def restore(self, snapshot: Any) -> Result[RestoreResult]:
        """
        Replace both collections with a backup snapshot.

        The snapshot is validated and parsed completely before anything is
        written, so a corrupt snapshot changes nothing.

        Returns:
            Ok(RestoreResult) with the restored collections, or
            Err(INVALID_BACKUP_FORMAT) / Err(IO_ERROR) (cache write failed).
        """
        error = validate_backup(snapshot)
        if error is not None:
            logger.error(f"Restore rejected: {error.message}")
            return error

        try:
            songs = songs_from_list(snapshot[SONGS])
            worship_lists = WorshipLists.from_dict(snapshot[WORSHIP_LISTS])
        except InvalidInputError as e:
            logger.error(f"Restore rejected: {e.message}")
            return Err(ErrorKind.INVALID_BACKUP_FORMAT, f"Backup contains invalid data: {e.message}")

        with self._locks[SONGS], self._locks[WORSHIP_LISTS]:
            saved_at = now_iso()
            try:
                self.cache.write_all(songs, worship_lists, songs_saved_at=saved_at, lists_saved_at=saved_at)
            except CacheError as e:
                return Err(ErrorKind.IO_ERROR, e.message, e.details)

            songs_result = self._finish_save(SONGS, saved_at, self._push_songs(songs, saved_at))
            lists_result = self._finish_save(
                WORSHIP_LISTS, saved_at, self._push_lists(worship_lists, saved_at)
            )

        backup_date = snapshot.get("backupDate")
        logger.info(
            f"Restored {len(songs)} songs and {len(worship_lists)} worship lists "
            f"from backup dated {backup_date or 'unknown'}"
        )
        return Ok(RestoreResult(
            songs=songs,
            worship_lists=worship_lists,
            backup_date=backup_date,
            remote_error=songs_result.remote_error or lists_result.remote_error,
        ))
