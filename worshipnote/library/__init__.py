"""
Song library: data models, local cache and the repository.

Usage:
    from worshipnote.library import Repository, Song, WorshipLists
"""

from worshipnote.library.cache import Cache, CacheSnapshot, JsonFileCache
from worshipnote.library.models import Song, WorshipLists, mint_song_id, songs_from_list, songs_to_list
from worshipnote.library.repository import (
    SONGS,
    WORSHIP_LISTS,
    BackupInfo,
    CollectionState,
    LoadResult,
    LoadSource,
    Repository,
    RestoreResult,
    SaveResult,
)

__all__ = [
    "Song",
    "WorshipLists",
    "songs_from_list",
    "songs_to_list",
    "mint_song_id",
    "Cache",
    "CacheSnapshot",
    "JsonFileCache",
    "Repository",
    "CollectionState",
    "LoadResult",
    "LoadSource",
    "SaveResult",
    "BackupInfo",
    "RestoreResult",
    "SONGS",
    "WORSHIP_LISTS",
]
