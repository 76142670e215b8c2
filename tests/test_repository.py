# tests/test_repository.py
"""Test loading, saving, backup and restore of the library"""

import json
import threading
import time
from unittest.mock import patch

import pytest

from conftest import read_json, write_json
from worshipnote.core.exceptions import CacheError
from worshipnote.core.filesystem import LocalFileSystem
from worshipnote.core.result import Err, ErrorKind
from worshipnote.library.models import Song, WorshipLists
from worshipnote.library.repository import (
    BACKUP_TYPE,
    BACKUP_VERSION,
    CollectionState,
    LoadSource,
    Repository,
    SONGS,
    WORSHIP_LISTS,
    validate_backup,
)
from worshipnote.sync.comparator import SyncReason


class SlowWriteFileSystem(LocalFileSystem):
    """Local provider whose writes take a while and count overlaps"""

    def __init__(self, delay: float = 0.2) -> None:
        super().__init__(read_timeout=2.0)
        self.delay = delay
        self.write_started = threading.Event()
        self.active = 0
        self.max_active = 0
        self._counter_lock = threading.Lock()

    def write_file(self, path, data):
        with self._counter_lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.write_started.set()
        try:
            time.sleep(self.delay)
            return super().write_file(path, data)
        finally:
            with self._counter_lock:
                self.active -= 1


class TestLoad:
    """Test where load() takes its data from"""

    def test_everything_empty(self, repository):
        result = repository.load()

        assert result.source is LoadSource.EMPTY
        assert result.songs == []
        assert len(result.worship_lists) == 0
        assert repository.state(SONGS) is CollectionState.LOADED_EMPTY
        assert repository.state(WORSHIP_LISTS) is CollectionState.LOADED_EMPTY

    def test_first_start_reads_remote(self, repository, cache, write_remote, sample_songs, sample_worship_lists):
        write_remote(
            songs=sample_songs, songs_updated="2024-01-02T00:00:00.000Z",
            lists=sample_worship_lists, lists_updated="2024-01-03T00:00:00.000Z",
        )

        result = repository.load()

        assert result.source is LoadSource.REMOTE
        assert result.songs == sample_songs
        assert result.worship_lists == sample_worship_lists
        assert repository.state(SONGS) is CollectionState.LOADED

        cached = cache.read()
        assert cached.songs == sample_songs
        assert cached.songs_saved_at == "2024-01-02T00:00:00.000Z"
        assert cached.lists_saved_at == "2024-01-03T00:00:00.000Z"

    def test_legacy_remote_documents(self, repository, layout, sample_songs):
        """Bare song array and worshipLists with an inner lastUpdated"""
        write_json(layout.songs_file, [song.to_dict() for song in sample_songs])
        write_json(layout.worship_lists_file, {
            "2024-01-07": [sample_songs[0].to_dict()],
            "lastUpdated": "2024-01-01T00:00:00.000Z",
        })

        result = repository.load()

        assert result.songs == sample_songs
        assert result.worship_lists.dates() == ["2024-01-07"]
        assert result.worship_lists.last_updated == "2024-01-01T00:00:00.000Z"

    def test_seed_when_remote_empty(self, files, cache, layout, temp_dir, sample_songs):
        seed = temp_dir / "seed.json"
        write_json(seed, {"songs": [song.to_dict() for song in sample_songs], "worshipLists": {}})
        repository = Repository(files, cache, layout, seed_file=seed)

        result = repository.load()

        assert result.source is LoadSource.SEED
        assert result.songs == sample_songs
        assert cache.read().songs_saved_at is None

    def test_seed_loses_to_remote_later(self, files, cache, layout, temp_dir, write_remote, sample_songs):
        """Seeded data carries no timestamp, so any remote save is newer"""
        seed = temp_dir / "seed.json"
        write_json(seed, {"songs": [sample_songs[0].to_dict()], "worshipLists": {}})
        Repository(files, cache, layout, seed_file=seed).load()

        write_remote(songs=sample_songs, songs_updated="2024-01-01T00:00:00.000Z")
        result = Repository(files, cache, layout, seed_file=seed).load()

        assert result.source is LoadSource.REMOTE
        assert result.songs == sample_songs

    def test_invalid_seed_ignored(self, files, cache, layout, temp_dir):
        seed = temp_dir / "seed.json"
        seed.write_text("not json", encoding="utf-8")

        result = Repository(files, cache, layout, seed_file=seed).load()

        assert result.source is LoadSource.EMPTY

    def test_cache_used_when_not_older(self, repository, cache, write_remote, sample_songs, sample_worship_lists):
        cache.write_all(sample_songs, sample_worship_lists, "2024-01-05T00:00:00.000Z", "2024-01-05T00:00:00.000Z")
        write_remote(songs=sample_songs[:1], songs_updated="2024-01-01T00:00:00.000Z")

        result = repository.load()

        assert result.source is LoadSource.CACHE
        assert result.songs == sample_songs
        assert result.decision.reason is SyncReason.NO_SYNC_NEEDED

    def test_newer_remote_songs_adopted(self, repository, cache, write_remote, sample_songs, sample_worship_lists):
        """Cache saved 2024-01-01, remote songs 2024-01-02: only songs are replaced"""
        local_lists = WorshipLists({"2024-02-04": [sample_songs[2]]})
        cache.write_all(sample_songs[:1], local_lists, "2024-01-01T00:00:00.000Z", "2024-01-01T00:00:00.000Z")
        write_remote(
            songs=sample_songs, songs_updated="2024-01-02T00:00:00.000Z",
            lists=sample_worship_lists, lists_updated="2023-12-31T00:00:00.000Z",
        )

        result = repository.load()

        assert result.source is LoadSource.REMOTE
        assert result.decision.reason is SyncReason.REMOTE_SONGS_NEWER
        assert result.songs == sample_songs
        assert result.worship_lists == local_lists

        cached = cache.read()
        assert cached.songs == sample_songs
        assert cached.songs_saved_at == "2024-01-02T00:00:00.000Z"
        assert cached.worship_lists == local_lists

    def test_remote_unavailable_uses_cache(self, files, cache, sample_songs, sample_worship_lists):
        cache.write_all(sample_songs, sample_worship_lists, "2024-01-01T00:00:00.000Z", "")
        repository = Repository(files, cache, layout=None)

        result = repository.load()

        assert result.source is LoadSource.CACHE
        assert result.songs == sample_songs
        assert result.remote_error.kind is ErrorKind.REMOTE_UNAVAILABLE

    def test_corrupt_remote_uses_whole_cache(self, repository, cache, layout, write_remote,
                                             sample_songs, sample_worship_lists):
        cache.write_all(sample_songs[:1], sample_worship_lists, "2024-01-01T00:00:00.000Z", "2024-01-01T00:00:00.000Z")
        write_remote(songs=sample_songs, songs_updated="2024-06-01T00:00:00.000Z")
        layout.worship_lists_file.write_text("{broken", encoding="utf-8")

        result = repository.load()

        assert result.source is LoadSource.CACHE
        assert result.songs == sample_songs[:1]
        assert result.remote_error.kind is ErrorKind.REMOTE_UNAVAILABLE

    def test_unreadable_cache_ignored(self, repository, cache, write_remote, sample_songs):
        cache.path.parent.mkdir(parents=True)
        cache.path.write_text("[1, 2", encoding="utf-8")
        write_remote(songs=sample_songs, songs_updated="2024-01-01T00:00:00.000Z")

        result = repository.load()

        assert result.source is LoadSource.REMOTE
        assert result.songs == sample_songs


class TestCheckSync:
    """Test comparing timestamps without loading"""

    def test_reports_decision(self, repository, cache, write_remote, sample_songs, sample_worship_lists):
        cache.write_all(sample_songs, sample_worship_lists, "2024-01-01T00:00:00.000Z", "2024-01-01T00:00:00.000Z")
        write_remote(
            songs=sample_songs, songs_updated="2024-01-02T00:00:00.000Z",
            lists=sample_worship_lists, lists_updated="2024-01-02T00:00:00.000Z",
        )

        decision = repository.check_sync().unwrap()

        assert decision.reason is SyncReason.REMOTE_NEWER
        assert cache.read().songs_saved_at == "2024-01-01T00:00:00.000Z"

    def test_without_layout(self, files, cache):
        result = Repository(files, cache, layout=None).check_sync()
        assert result.kind is ErrorKind.REMOTE_UNAVAILABLE


class TestSave:
    """Test writing collections to the cache and the remote store"""

    def test_mark_dirty_then_save(self, repository, sample_songs):
        repository.load()
        repository.mark_dirty(SONGS)

        assert repository.state(SONGS) is CollectionState.DIRTY
        assert repository.state(WORSHIP_LISTS) is CollectionState.LOADED_EMPTY

        repository.save_songs(sample_songs)
        assert repository.state(SONGS) is CollectionState.SAVED

    def test_save_songs(self, repository, cache, layout, sample_songs):
        result = repository.save_songs(sample_songs)

        assert result.state is CollectionState.SAVED
        assert result.remote_saved
        assert repository.state(SONGS) is CollectionState.SAVED

        document = read_json(layout.songs_file)
        assert document["lastUpdated"] == result.saved_at
        assert [song["id"] for song in document["songs"]] == ["1", "2", "3", "4"]
        assert cache.read().songs_saved_at == result.saved_at

    def test_save_worship_lists(self, repository, layout, sample_worship_lists):
        result = repository.save_worship_lists(sample_worship_lists)

        document = read_json(layout.worship_lists_file)
        assert document["lastUpdated"] == result.saved_at
        assert list(document["worshipLists"]) == ["2024-01-07", "2024-01-14"]
        assert "lastUpdated" not in document["worshipLists"]

    def test_saved_timestamps_are_newer(self, repository, sample_songs):
        first = repository.save_songs(sample_songs)
        second = repository.save_songs(sample_songs)
        assert second.saved_at >= first.saved_at

    def test_remote_failure_keeps_cache(self, repository, files, cache, layout, sample_songs):
        with patch.object(files, "write_file", return_value=Err(ErrorKind.IO_ERROR, "offline")):
            result = repository.save_songs(sample_songs)

        assert result.state is CollectionState.SAVE_FAILED_REMOTE
        assert result.remote_error.kind is ErrorKind.REMOTE_UNAVAILABLE
        assert cache.read().songs == sample_songs
        assert not layout.songs_file.exists()

    def test_retry_remote(self, repository, files, layout, sample_songs):
        with patch.object(files, "write_file", return_value=Err(ErrorKind.IO_ERROR, "offline")):
            failed = repository.save_songs(sample_songs)

        results = repository.retry_remote()

        assert results[SONGS].state is CollectionState.SAVED
        assert read_json(layout.songs_file)["lastUpdated"] == failed.saved_at
        assert WORSHIP_LISTS not in results
        assert repository.retry_remote() == {}

    def test_no_layout_is_local_only(self, files, cache, sample_songs):
        repository = Repository(files, cache, layout=None)

        result = repository.save_songs(sample_songs)

        assert result.state is CollectionState.SAVE_FAILED_REMOTE
        assert cache.read().songs == sample_songs

    def test_cache_failure_raises(self, repository, cache, layout, sample_songs):
        """Nothing reaches the remote store when the cache can't be written"""
        with patch.object(cache, "write_songs", side_effect=CacheError("disk full")):
            with pytest.raises(CacheError):
                repository.save_songs(sample_songs)

        assert repository.state(SONGS) is CollectionState.DIRTY
        assert not layout.songs_file.exists()

    def test_saves_of_one_collection_are_serialized(self, cache, layout, sample_songs):
        """A second save waits for the one in flight and is the one left on disk"""
        files = SlowWriteFileSystem()
        repository = Repository(files, cache, layout)
        first_songs = sample_songs[:1]
        second_songs = sample_songs[1:]

        first = threading.Thread(target=repository.save_songs, args=(first_songs,))
        first.start()
        assert files.write_started.wait(5)
        second = threading.Thread(target=repository.save_songs, args=(second_songs,))
        second.start()
        first.join(5)
        second.join(5)

        assert files.max_active == 1
        assert [song["id"] for song in read_json(layout.songs_file)["songs"]] == ["2", "3", "4"]
        assert cache.read().songs == second_songs
        assert repository.state(SONGS) is CollectionState.SAVED


class TestBackup:
    """Test full-database snapshots"""

    def test_backup_document(self, repository, layout, sample_songs, sample_worship_lists):
        with patch("worshipnote.library.repository.now_iso", return_value="2024-01-02T09:30:00.000Z"):
            info = repository.backup(sample_songs, sample_worship_lists).unwrap()

        assert info.file_name == "worshipnote_database_2024-01-02T09-30-00-000Z.json"
        assert info.path.parent == layout.backups_dir

        document = read_json(info.path)
        assert document["version"] == BACKUP_VERSION
        assert document["type"] == BACKUP_TYPE
        assert document["backupDate"] == "2024-01-02T09:30:00.000Z"
        assert len(document["songs"]) == 4
        assert document["stats"]["totalSongs"] == 4
        assert document["stats"]["totalWorshipLists"] == 2
        assert document["stats"]["totalWorshipListSongs"] == 3

    def test_backup_size(self, repository, sample_songs, sample_worship_lists):
        """backupSize is the encoded size with backupSize itself at 0"""
        info = repository.backup(sample_songs, sample_worship_lists).unwrap()

        document = read_json(info.path)
        size = document["stats"]["backupSize"]
        document["stats"]["backupSize"] = 0
        encoded = json.dumps(document, ensure_ascii=False, indent=2).encode("utf-8")
        assert size == len(encoded)

    def test_same_timestamp_never_overwrites(self, repository, sample_songs, sample_worship_lists):
        with patch("worshipnote.library.repository.now_iso", return_value="2024-01-02T09:30:00.000Z"):
            first = repository.backup(sample_songs, sample_worship_lists).unwrap()
            second = repository.backup([], WorshipLists()).unwrap()

        assert second.file_name == "worshipnote_database_2024-01-02T09-30-00-000Z_1.json"
        assert len(read_json(first.path)["songs"]) == 4

    def test_backup_from_cache(self, repository, cache, sample_songs, sample_worship_lists):
        cache.write_all(sample_songs, sample_worship_lists, "", "")
        info = repository.backup().unwrap()
        assert info.stats["totalSongs"] == 4

    def test_fallback_directory(self, files, cache, temp_dir):
        repository = Repository(files, cache, layout=None, fallback_backup_dir=temp_dir / "backups")
        info = repository.backup([], WorshipLists()).unwrap()
        assert info.path.parent == temp_dir / "backups"

    def test_no_backup_directory(self, files, cache):
        result = Repository(files, cache, layout=None).backup([], WorshipLists())
        assert result.kind is ErrorKind.REMOTE_UNAVAILABLE

    def test_list_backups_newest_first(self, repository, layout):
        for name in (
            "worshipnote_database_2024-01-01T00-00-00-000Z.json",
            "worshipnote_database_2024-03-01T00-00-00-000Z.json",
            "notes.txt",
        ):
            (layout.backups_dir / name).write_text("{}", encoding="utf-8")

        assert [path.name for path in repository.list_backups()] == [
            "worshipnote_database_2024-03-01T00-00-00-000Z.json",
            "worshipnote_database_2024-01-01T00-00-00-000Z.json",
        ]

    def test_collision_counters_sort_numerically(self, repository, layout):
        """Backups written in the same millisecond list in write order, newest first"""
        stamp = "2024-03-01T00-00-00-000Z"
        for suffix in ("", "_1", "_2", "_10"):
            (layout.backups_dir / f"worshipnote_database_{stamp}{suffix}.json").write_text("{}", encoding="utf-8")

        assert [path.name for path in repository.list_backups()] == [
            f"worshipnote_database_{stamp}_10.json",
            f"worshipnote_database_{stamp}_2.json",
            f"worshipnote_database_{stamp}_1.json",
            f"worshipnote_database_{stamp}.json",
        ]

    def test_read_backup_invalid_json(self, repository, layout):
        path = layout.backups_dir / "worshipnote_database_x.json"
        path.write_text("{oops", encoding="utf-8")
        assert repository.read_backup(path).kind is ErrorKind.INVALID_BACKUP_FORMAT


class TestRestore:
    """Test replacing the library from a snapshot"""

    def test_corrupt_backup_changes_nothing(self, repository, cache, layout, sample_songs, sample_worship_lists):
        """A snapshot without worshipLists is rejected before any write"""
        repository.save_songs(sample_songs)
        repository.save_worship_lists(sample_worship_lists)
        cache_before = cache.path.read_bytes()
        remote_before = layout.songs_file.read_bytes()

        result = repository.restore({"type": BACKUP_TYPE, "songs": []})

        assert result.kind is ErrorKind.INVALID_BACKUP_FORMAT
        assert cache.path.read_bytes() == cache_before
        assert layout.songs_file.read_bytes() == remote_before

    def test_restore_replaces_everything(self, repository, cache, layout, sample_songs, sample_worship_lists):
        repository.save_songs(sample_songs)
        repository.save_worship_lists(sample_worship_lists)
        snapshot = {
            "type": BACKUP_TYPE,
            "backupDate": "2024-01-01T00:00:00.000Z",
            "songs": [sample_songs[2].to_dict()],
            "worshipLists": {"2024-02-04": [sample_songs[2].to_dict()]},
        }

        restored = repository.restore(snapshot).unwrap()

        assert restored.songs == [sample_songs[2]]
        assert restored.backup_date == "2024-01-01T00:00:00.000Z"
        assert restored.remote_error is None
        assert cache.read().songs == [sample_songs[2]]
        assert [song["id"] for song in read_json(layout.songs_file)["songs"]] == ["3"]
        assert list(read_json(layout.worship_lists_file)["worshipLists"]) == ["2024-02-04"]

    def test_restore_from_backup_file(self, repository, sample_songs, sample_worship_lists):
        info = repository.backup(sample_songs, sample_worship_lists).unwrap()
        repository.save_songs([])

        snapshot = repository.read_backup(info.path).unwrap()
        restored = repository.restore(snapshot).unwrap()

        assert restored.songs == sample_songs
        assert restored.worship_lists == sample_worship_lists

    def test_legacy_backup_type_accepted(self, repository):
        snapshot = {"type": "database", "songs": [], "worshipLists": {}}
        assert repository.restore(snapshot).is_ok

    def test_invalid_entry_rejected(self, repository, cache):
        snapshot = {"type": BACKUP_TYPE, "songs": ["not a song"], "worshipLists": {}}

        result = repository.restore(snapshot)

        assert result.kind is ErrorKind.INVALID_BACKUP_FORMAT
        assert not cache.path.exists()


class TestValidateBackup:
    """Test snapshot validation"""

    @pytest.mark.parametrize("snapshot", [
        [],
        {"songs": [], "worshipLists": {}},
        {"type": "playlist", "songs": [], "worshipLists": {}},
        {"type": BACKUP_TYPE, "worshipLists": {}},
        {"type": BACKUP_TYPE, "songs": {}, "worshipLists": {}},
        {"type": BACKUP_TYPE, "songs": [], "worshipLists": []},
    ])
    def test_rejected(self, snapshot):
        assert validate_backup(snapshot).kind is ErrorKind.INVALID_BACKUP_FORMAT

    def test_accepted(self):
        assert validate_backup({"type": BACKUP_TYPE, "songs": [], "worshipLists": {}}) is None
