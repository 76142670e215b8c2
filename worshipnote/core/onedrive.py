"""
OneDrive discovery and the WorshipNote_Data folder layout.

Layout:
    <OneDrive>/WorshipNote_Data/
    ├── Database/
    │   ├── songs.json            {songs: [...], lastUpdated}
    │   └── worship_lists.json    {worshipLists: {...}, lastUpdated}
    ├── Music_Sheets/             "<title> (<chord>) (<id>).jpg"
    └── Backups/                  worshipnote_database_<timestamp>.json

Discovery order:
    1. storage.data_directory / WORSHIPNOTE_DATA_DIR (handled in config)
    2. Windows: registry HKCU\\Software\\Microsoft\\OneDrive\\UserFolder,
       then the ONEDRIVE environment variable
    3. Platform-specific candidate folders, first existing one wins
"""

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from worshipnote.core.config import Config
from worshipnote.core.logger import get_logger


logger = get_logger(__name__)


DATA_FOLDER_NAME = "WorshipNote_Data"
DATABASE_FOLDER_NAME = "Database"
SHEETS_FOLDER_NAME = "Music_Sheets"
BACKUPS_FOLDER_NAME = "Backups"
SONGS_FILENAME = "songs.json"
WORSHIP_LISTS_FILENAME = "worship_lists.json"

ONEDRIVE_ENV = "ONEDRIVE"


@dataclass(frozen=True)
class DataLayout:
    """
    Paths inside one WorshipNote_Data folder.

    Attributes:
        data_dir: The WorshipNote_Data folder itself.
    """
    data_dir: Path

    @property
    def database_dir(self) -> Path:
        return self.data_dir / DATABASE_FOLDER_NAME

    @property
    def songs_file(self) -> Path:
        return self.database_dir / SONGS_FILENAME

    @property
    def worship_lists_file(self) -> Path:
        return self.database_dir / WORSHIP_LISTS_FILENAME

    @property
    def sheets_dir(self) -> Path:
        return self.data_dir / SHEETS_FOLDER_NAME

    @property
    def backups_dir(self) -> Path:
        return self.data_dir / BACKUPS_FOLDER_NAME


def _candidate_paths(platform: str, home: Path) -> list[Path]:
    if platform == "win32":
        return [
            home / "OneDrive",
            home / "OneDrive - Personal",
            home / "Documents" / "OneDrive",
        ]
    if platform == "darwin":
        return [
            home / "Library" / "CloudStorage" / "OneDrive-Personal",
            home / "OneDrive",
            home / "Documents" / "OneDrive",
        ]
    if platform.startswith("linux"):
        return [
            home / "OneDrive",
            home / "Documents" / "OneDrive",
            home / ".local" / "share" / "OneDrive",
        ]
    return []


def _registry_onedrive_path() -> Path | None:
    """Read the OneDrive user folder from the Windows registry."""
    try:
        import winreg
    except ImportError:
        return None

    try:
        with winreg.OpenKey(winreg.HKEY_CURRENT_USER, r"Software\Microsoft\OneDrive") as key:
            value, _ = winreg.QueryValueEx(key, "UserFolder")
    except OSError as e:
        logger.debug(f"OneDrive registry key not available: {e}")
        return None

    return Path(value) if value else None


def find_onedrive_path(platform: str | None = None, home: Path | None = None) -> Path | None:
    """
    Locate the OneDrive root folder for the current user.

    Args:
        platform: sys.platform value to use (for tests). Defaults to sys.platform.
        home: Home directory to search (for tests). Defaults to Path.home().

    Returns:
        The OneDrive root, or None if no candidate exists.
    """
    platform = platform or sys.platform
    home = home or Path.home()

    if platform == "win32":
        registry_path = _registry_onedrive_path()
        if registry_path is not None and registry_path.exists():
            return registry_path

        env_path = os.environ.get(ONEDRIVE_ENV, "").strip()
        if env_path and Path(env_path).exists():
            return Path(env_path)

    candidates = _candidate_paths(platform, home)
    if not candidates:
        logger.warning(f"Unsupported platform for OneDrive discovery: {platform}")
        return None

    for candidate in candidates:
        if candidate.exists():
            return candidate

    logger.debug("No OneDrive folder found")
    return None


def resolve_layout(config: Config, platform: str | None = None, home: Path | None = None) -> DataLayout | None:
    """
    Resolve the WorshipNote_Data layout for this machine.

    An explicitly configured data directory is used as-is (it need not
    exist yet; the first save creates it). Otherwise the folder is looked
    up under the OneDrive root.

    Returns:
        DataLayout, or None when no OneDrive folder could be found.
        None is how the repository learns the remote store is unavailable.
    """
    if config.storage.data_directory is not None:
        return DataLayout(config.storage.data_directory)

    onedrive = find_onedrive_path(platform=platform, home=home)
    if onedrive is None:
        return None

    return DataLayout(onedrive / DATA_FOLDER_NAME)
