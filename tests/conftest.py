"""Test configuration and fixtures"""

import json
import os
import tempfile
from pathlib import Path

import pytest

from worshipnote.core.filesystem import LocalFileSystem
from worshipnote.core.onedrive import DataLayout
from worshipnote.library.cache import JsonFileCache
from worshipnote.library.models import Song, WorshipLists
from worshipnote.library.repository import Repository


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep the developer's OneDrive settings out of the tests"""
    monkeypatch.delenv("WORSHIPNOTE_DATA_DIR", raising=False)
    monkeypatch.delenv("ONEDRIVE", raising=False)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def sample_songs():
    """A small library: two songs share a title, one has no file"""
    return [
        Song(id="1", title="Amazing Grace", chord="C", tempo="Slow",
             first_lyrics="Amazing grace how sweet the sound",
             file_name="Amazing Grace (C) (1).jpg"),
        Song(id="2", title="How Great Thou Art", chord="G", tempo="Medium",
             first_lyrics="O Lord my God when I in awesome wonder",
             file_name="How_Great_Thou_Art_G_(2).jpg"),
        Song(id="3", title="Holy Holy Holy", chord="D", tempo="Medium",
             first_lyrics="Holy holy holy Lord God Almighty",
             file_name=""),
        Song(id="4", title="Amazing Grace", chord="G", tempo="Fast",
             first_lyrics="Amazing grace my chains are gone",
             file_name="Amazing Grace (G) (4).jpg"),
    ]


@pytest.fixture
def sample_worship_lists(sample_songs):
    """Song 1 on two dates, song 2 on one"""
    return WorshipLists({
        "2024-01-07": [sample_songs[0], sample_songs[1]],
        "2024-01-14": [sample_songs[0]],
    })


@pytest.fixture
def files():
    """Local file provider with a short read timeout"""
    return LocalFileSystem(read_timeout=2.0)


@pytest.fixture
def layout(temp_dir):
    """WorshipNote_Data folder with empty Database, Music_Sheets and Backups"""
    data_layout = DataLayout(temp_dir / "OneDrive" / "WorshipNote_Data")
    data_layout.database_dir.mkdir(parents=True)
    data_layout.sheets_dir.mkdir()
    data_layout.backups_dir.mkdir()
    return data_layout


@pytest.fixture
def cache(temp_dir):
    return JsonFileCache(temp_dir / "local" / "cache.json")


@pytest.fixture
def repository(files, cache, layout):
    return Repository(files=files, cache=cache, layout=layout)


def write_json(path: Path, document) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document, ensure_ascii=False), encoding="utf-8")


def read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def write_remote(layout):
    """Write songs.json / worship_lists.json documents"""
    def write(songs=None, songs_updated=None, lists=None, lists_updated=None):
        if songs is not None:
            write_json(layout.songs_file, {
                "songs": [song.to_dict() for song in songs],
                "lastUpdated": songs_updated,
            })
        if lists is not None:
            write_json(layout.worship_lists_file, {
                "worshipLists": lists.to_dict(),
                "lastUpdated": lists_updated,
            })
    return write


def release_pipe_readers(pipes) -> None:
    """Open each named pipe for writing so blocked reader threads see end of file"""
    for pipe in pipes:
        try:
            os.close(os.open(pipe, os.O_WRONLY | os.O_NONBLOCK))
        except OSError:
            pass
