"""
worshipnote: song library engine for the WorshipNote app.

This package keeps a worship team's song library consistent across the
three places it lives: the OneDrive-synced database files, the sheet
images in Music_Sheets, and a local per-machine cache.

Architecture:
    sheets/     Canonical sheet filenames "<title> (<chord>) (<id>).jpg",
                parse-only support for older naming schemes, and
                PNG/JPEG -> JPEG conversion.

    reconcile/  Keeps file names, Song records and worship-list entries
                in step: renames on edit, fans changes out to every
                worship-list entry, recovers links for stray files.

    sync/       Decides per collection whether the remote copy is newer
                than the local cache; detects online-only sheet files.

    library/    Song / WorshipLists models, the local cache and the
                Repository (load, save, backup, restore).

    core/       Configuration, logging, exceptions, Result type, the file
                capability provider and OneDrive discovery.

Usage:
    Command Line:
        worshipnote info
        worshipnote backup
        worshipnote audit --apply

    Python API:
        from worshipnote.core import LocalFileSystem, load_config, setup_logging
        from worshipnote.library import Repository
        from worshipnote.reconcile import Reconciler

        config = load_config()
        setup_logging(config.logging.directory)
        files = LocalFileSystem(read_timeout=config.files.read_timeout)
        repository = Repository.from_config(config, files)

        loaded = repository.load()
        reconciler = Reconciler(files, repository.layout.sheets_dir)
        edit = reconciler.apply_song_edit(old, new, loaded.songs, loaded.worship_lists).unwrap()
        repository.save_songs(edit.songs)
        repository.save_worship_lists(edit.worship_lists)

Dependencies:
    - click / rich-click: CLI framework and colors
    - pyyaml: Configuration file parsing
    - python-dotenv: .env support for WORSHIPNOTE_DATA_DIR / ONEDRIVE
    - tqdm: Progress bars and tqdm-safe console logging
    - colorama: Colored console log levels
    - Pillow: Sheet image conversion
    - pypdfium2: Rendering PDF sheets to images
"""

__version__ = "1.0.0"
__author__ = "worshipnote"
__license__ = "MIT"

# Convenience imports for common usage
from worshipnote.core import (
    CacheError,
    Config,
    ConfigError,
    Err,
    ErrorKind,
    LocalFileSystem,
    Ok,
    RemoteUnavailableError,
    WorshipNoteError,
    get_logger,
    load_config,
    setup_logging,
)
from worshipnote.library import Repository, Song, WorshipLists

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
    "LocalFileSystem",
    # Result
    "Ok",
    "Err",
    "ErrorKind",
    # Exceptions
    "WorshipNoteError",
    "ConfigError",
    "CacheError",
    "RemoteUnavailableError",
    # Library
    "Repository",
    "Song",
    "WorshipLists",
]
