"""
OneDrive placeholder detection for sheet files.

Files that OneDrive keeps "online-only" appear in the folder but either
block on read or read back as 0 bytes until the client downloads them.
check_sheets_synced checks each sheet with a timed read and reports the
ones that are not available locally.

Usage:
    report = check_sheets_synced(files, layout.sheets_dir, num_threads=4)
    for name in report.unsynced:
        print(name)
"""

from dataclasses import dataclass, field
from pathlib import Path, PurePath

from worshipnote.core.filesystem import FileCapabilityProvider
from worshipnote.core.logger import get_logger
from worshipnote.core.result import ErrorKind
from worshipnote.utils import run_in_parallel


logger = get_logger(__name__)


IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp")


@dataclass
class SyncStatusReport:
    """
    Attributes:
        synced: Files that read back with content.
        unsynced: Files that are missing, empty or timed out.
        timed_out: Subset of unsynced whose read timed out.
    """
    synced: list[str] = field(default_factory=list)
    unsynced: list[str] = field(default_factory=list)
    timed_out: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.synced) + len(self.unsynced)

    @property
    def all_synced(self) -> bool:
        return not self.unsynced


def is_file_synced(files: FileCapabilityProvider, path: Path) -> tuple[bool, bool]:
    """
    Check one file.

    Returns:
        (synced, timed_out)
    """
    result = files.read_file(path)
    if result.is_err:
        return False, result.kind is ErrorKind.TIMEOUT
    return len(result.value) > 0, False


def check_sheets_synced(
    files: FileCapabilityProvider,
    sheets_dir: Path,
    num_threads: int = 4,
    show_progress: bool = True
) -> SyncStatusReport:
    """
    Check every image in sheets_dir.

    Args:
        files: File provider; its read timeout bounds each check.
        sheets_dir: The Music_Sheets folder.
        num_threads: Parallel checks.
        show_progress: Show a tqdm progress bar.

    Returns:
        SyncStatusReport with names sorted alphabetically.
    """
    names = [
        name for name in files.list_directory(sheets_dir)
        if PurePath(name).suffix.lower() in IMAGE_EXTENSIONS
    ]
    report = SyncStatusReport()

    results = run_in_parallel(
        lambda name: is_file_synced(files, sheets_dir / name),
        names,
        num_threads=num_threads,
        description="Checking sheets",
        show_progress=show_progress
    )

    for name, outcome in results:
        if isinstance(outcome, Exception):
            logger.error(f"Could not check {name}: {outcome}")
            report.unsynced.append(name)
            continue
        synced, timed_out = outcome
        if synced:
            report.synced.append(name)
        else:
            report.unsynced.append(name)
            if timed_out:
                report.timed_out.append(name)

    report.synced.sort()
    report.unsynced.sort()
    report.timed_out.sort()

    logger.info(f"Sync check: {len(report.synced)} synced, {len(report.unsynced)} not synced")
    return report
