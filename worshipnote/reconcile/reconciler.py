"""
Keeps sheet files, Song records and worship-list entries consistent.

When a song's title or chord changes, its sheet file must be renamed to
the new canonical name and every worship-list entry for that song must
pick up the new fileName. On-disk name and record are never allowed to
diverge: either the rename succeeds and the records are updated, or
neither changes.

Rename flow (update_file_name_for_song):
    1. Title and chord unchanged        -> NO_CHANGE
    2. Song has no file                  -> NOTHING_TO_RENAME
    3. Canonical name already in use     -> ALREADY_CANONICAL
    4. Old file missing                  -> Err(SOURCE_FILE_MISSING)
    5. Rename via the file provider      -> RENAMED, or the provider's Err

Usage:
    reconciler = Reconciler(files, layout.sheets_dir)
    result = reconciler.apply_song_edit(old, new, songs, worship_lists)
    if result.is_ok:
        repository.save_songs(result.value.songs)
        repository.save_worship_lists(result.value.worship_lists)
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from worshipnote.core.filesystem import FileCapabilityProvider
from worshipnote.core.logger import get_logger, log_rename_failure
from worshipnote.core.result import Err, ErrorKind, Ok, Result
from worshipnote.library.models import Song, WorshipLists
from worshipnote.sheets.converter import convert_to_jpeg
from worshipnote.sheets.filename import canonical_file_name
from worshipnote.utils import now_iso


logger = get_logger(__name__)


# Song attributes copied from the master into worship-list entries
FAN_OUT_FIELDS = ("file_name", "title", "chord", "tempo", "first_lyrics")


class RenameStatus(Enum):
    NO_CHANGE = "no_change"
    NOTHING_TO_RENAME = "nothing_to_rename"
    ALREADY_CANONICAL = "already_canonical"
    RENAMED = "renamed"


@dataclass(frozen=True)
class RenameOutcome:
    """
    Attributes:
        status: What the rename step did.
        file_name: New file name when RENAMED, None otherwise.
    """
    status: RenameStatus
    file_name: str | None = None

    @property
    def renamed(self) -> bool:
        return self.status is RenameStatus.RENAMED


@dataclass
class SongEdit:
    """
    Result of a successful apply_song_edit.

    Attributes:
        song: The stored master song after the edit.
        songs: Master collection with the song replaced.
        worship_lists: Worship lists with the song fanned out.
        rename: What happened to the sheet file.
        entries_updated: Number of worship-list entries refreshed.
    """
    song: Song
    songs: list[Song]
    worship_lists: WorshipLists
    rename: RenameOutcome
    entries_updated: int


def fan_out(
    song: Song,
    worship_lists: WorshipLists,
    fields: tuple[str, ...] = FAN_OUT_FIELDS
) -> tuple[WorshipLists, int]:
    """
    Copy fields of a master song into every worship-list entry with its id.

    Args:
        song: The master song.
        worship_lists: Lists to update (not modified).
        fields: Song attributes to copy.

    Returns:
        (new WorshipLists, number of entries updated)
    """
    changes = {name: getattr(song, name) for name in fields}
    return worship_lists.replace_entries(
        lambda entry: entry.id == song.id,
        lambda entry: entry.with_changes(**changes)
    )


def fan_out_all(songs: list[Song], worship_lists: WorshipLists) -> tuple[WorshipLists, int]:
    """Fan out every master song. Returns (new WorshipLists, entries that changed)."""
    by_id = {song.id: song for song in songs}

    def refreshed(entry: Song) -> Song:
        master = by_id[entry.id]
        return entry.with_changes(**{name: getattr(master, name) for name in FAN_OUT_FIELDS})

    return worship_lists.replace_entries(
        lambda entry: entry.id in by_id and refreshed(entry) != entry,
        refreshed
    )


class Reconciler:
    """
    Rename and attach operations on the Music_Sheets folder.

    Attributes:
        files: File capability provider.
        sheets_dir: The Music_Sheets directory.
    """

    def __init__(self, files: FileCapabilityProvider, sheets_dir: Path) -> None:
        self.files = files
        self.sheets_dir = sheets_dir

    def sheet_path(self, file_name: str) -> Path:
        return self.sheets_dir / file_name

    def _rename(self, old_name: str, new_name: str) -> Result[RenameOutcome]:
        old_path = self.sheet_path(old_name)
        if not self.files.exists(old_path):
            error = Err(
                ErrorKind.SOURCE_FILE_MISSING,
                f"Sheet file not found: {old_name}",
                {"file_name": old_name, "path": str(old_path)}
            )
            log_rename_failure(logger, old_name, new_name, error.message)
            return error

        result = self.files.rename_file(old_path, self.sheet_path(new_name))
        if result.is_err:
            log_rename_failure(logger, old_name, new_name, result.message)
            return result

        logger.info(f"Renamed sheet: {old_name} -> {new_name}")
        return Ok(RenameOutcome(RenameStatus.RENAMED, new_name))

    def update_file_name_for_song(self, old: Song, new: Song) -> Result[RenameOutcome]:
        """
        Rename the sheet file of a song whose title or chord changed.

        Args:
            old: The song as currently stored (its file_name is on disk).
            new: The edited song.

        Returns:
            Ok(RenameOutcome). On Err nothing was renamed; the caller must
            keep old.file_name.
        """
        if old.title == new.title and old.chord == new.chord:
            return Ok(RenameOutcome(RenameStatus.NO_CHANGE))

        if not old.file_name:
            return Ok(RenameOutcome(RenameStatus.NOTHING_TO_RENAME))

        name_result = canonical_file_name(new)
        if name_result.is_err:
            return name_result

        new_name = name_result.value
        if new_name == old.file_name:
            return Ok(RenameOutcome(RenameStatus.ALREADY_CANONICAL))

        return self._rename(old.file_name, new_name)

    def rename_to_canonical(self, song: Song) -> Result[RenameOutcome]:
        """Rename a song's current file to its canonical name."""
        if not song.file_name:
            return Ok(RenameOutcome(RenameStatus.NOTHING_TO_RENAME))

        name_result = canonical_file_name(song)
        if name_result.is_err:
            return name_result

        if name_result.value == song.file_name:
            return Ok(RenameOutcome(RenameStatus.ALREADY_CANONICAL))

        return self._rename(song.file_name, name_result.value)

    def with_file(self, song: Song, file_name: str) -> Song:
        """Song pointing at file_name in the sheets directory."""
        return song.with_changes(file_name=file_name, file_path=str(self.sheet_path(file_name)))

    def apply_song_edit(
        self,
        old: Song,
        new: Song,
        songs: list[Song],
        worship_lists: WorshipLists
    ) -> Result[SongEdit]:
        """
        Run the full edit flow: rename, replace the master, fan out.

        Nothing is modified when an Err is returned.
        """
        if not any(song.id == old.id for song in songs):
            return Err(
                ErrorKind.INVALID_INPUT,
                f"Song is not in the library: {old.describe()}",
                {"song_id": old.id}
            )

        rename_result = self.update_file_name_for_song(old, new)
        if rename_result.is_err:
            return rename_result
        outcome = rename_result.value

        stored = new.with_changes(id=old.id, updated_at=now_iso())
        if outcome.renamed:
            stored = self.with_file(stored, outcome.file_name)

        new_songs = [stored if song.id == old.id else song for song in songs]
        new_lists, updated = fan_out(stored, worship_lists)

        logger.debug(f"Edited {stored.describe()}, refreshed {updated} worship list entries")
        return Ok(SongEdit(stored, new_songs, new_lists, outcome, updated))

    def attach_sheet(self, song: Song, source_path: Path) -> Result[Song]:
        """
        Store an image as the song's sheet under its canonical name.

        The image is converted to JPEG. A previous sheet with a different
        name is deleted afterwards; if it is already gone that is fine.

        Returns:
            Ok(song with file_name/file_path set), or Err from naming,
            reading, conversion or writing.
        """
        name_result = canonical_file_name(song)
        if name_result.is_err:
            return name_result
        file_name = name_result.value

        read_result = self.files.read_file(source_path)
        if read_result.is_err:
            return read_result

        converted = convert_to_jpeg(read_result.value, source_path.name)
        if converted.is_err:
            return converted

        write_result = self.files.write_file(self.sheet_path(file_name), converted.value)
        if write_result.is_err:
            return write_result

        if song.file_name and song.file_name != file_name:
            delete_result = self.files.delete_file(self.sheet_path(song.file_name))
            if delete_result.is_err and delete_result.kind is not ErrorKind.NOT_FOUND:
                logger.warning(f"Could not remove previous sheet {song.file_name}: {delete_result.message}")

        logger.info(f"Attached {source_path.name} to {song.describe()} as {file_name}")
        return Ok(self.with_file(song, file_name).with_changes(updated_at=now_iso()))
