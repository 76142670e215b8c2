"""
Command-line interface for worshipnote.

This module implements the CLI using Click, providing maintenance
commands for a WorshipNote library stored in OneDrive.
rich-click is used for the output colors.

Commands:
    worshipnote info                       Paths, counts and sync state
    worshipnote backup                     Write a full database backup
    worshipnote list-backups               List backups, newest first
    worshipnote restore <file> [--yes]     Restore a backup
    worshipnote audit [--apply]            Sheets not named canonically
    worshipnote recover [--apply]          Link sheet files to songs
    worshipnote unused [--delete]          Sheets no song uses
    worshipnote sync-lists [--yes]         Refresh worship-list entries
    worshipnote check-sync                 Find online-only sheet files
    worshipnote attach <id> <image>        Attach a sheet image or PDF to a song
    worshipnote add --title <title>        Add a song (mints a new id)
    worshipnote edit <id> [--title ...]    Edit a song, rename its sheet, update lists
    worshipnote delete <id> [--yes]        Delete a song and its sheet

Options:
    --config <path>                        Use this config.yaml

Configuration:
    config.yaml in the current directory is optional. Without it the
    OneDrive folder is discovered automatically; WORSHIPNOTE_DATA_DIR
    (environment or .env) points at a WorshipNote_Data folder directly.

Exit codes:
    1  configuration error
    2  local cache could not be written
    3  OneDrive data folder unavailable
    4  other worshipnote error
    130 interrupted
"""

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100

from worshipnote import __version__
from worshipnote.core import (
    CacheError,
    Config,
    ConfigError,
    DataLayout,
    InvalidInputError,
    LocalFileSystem,
    RemoteUnavailableError,
    WorshipNoteError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from worshipnote.core.result import ErrorKind
from worshipnote.library import (
    SONGS,
    WORSHIP_LISTS,
    LoadResult,
    Repository,
    SaveResult,
    Song,
    WorshipLists,
    mint_song_id,
)
from worshipnote.library.repository import validate_backup
from worshipnote.reconcile import (
    Reconciler,
    apply_recovery,
    fan_out,
    fan_out_all,
    find_non_canonical,
    find_unused_files,
    recover_library,
    relink_worship_list_entries,
)
from worshipnote.reconcile.recovery import (
    archive_unused_files,
    categorize_unmatched,
    sheet_files,
    suggest_by_first_lyrics,
)
from worshipnote.sheets import canonical_file_name
from worshipnote.sync import check_sheets_synced
from worshipnote.utils import filename_timestamp, now_iso

logger = get_logger(__name__)


@dataclass
class _Session:
    """Objects shared by one command run."""
    config: Config
    files: LocalFileSystem
    repository: Repository

    def require_layout(self) -> DataLayout:
        if self.repository.layout is None:
            raise RemoteUnavailableError(
                "OneDrive WorshipNote_Data folder not found. "
                "Set WORSHIPNOTE_DATA_DIR or storage.data_directory in config.yaml"
            )
        return self.repository.layout

    def reconciler(self) -> Reconciler:
        return Reconciler(self.files, self.require_layout().sheets_dir)


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml if present)"
)
@click.version_option(__version__, prog_name="worshipnote")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path]) -> None:
    """
    worshipnote: maintain a WorshipNote song library.

    Songs, worship lists and sheet images live in the OneDrive folder
    WorshipNote_Data; a local cache keeps the library usable offline.

    \b
    BASIC USAGE:
        worshipnote info                 # Where is everything, is it in sync?
        worshipnote backup               # Snapshot songs + worship lists

    \b
    SONGS:
        worshipnote add --title "Amazing Grace" --chord G --sheet scan.pdf
        worshipnote edit 1717171717171 --chord A   # Renames the sheet too

    \b
    MAINTENANCE:
        worshipnote audit --apply        # Rename sheets to canonical names
        worshipnote recover --apply      # Link stray sheet files to songs
        worshipnote unused --delete      # Archive sheets nothing uses
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def _run_command(ctx: click.Context, name: str, handler: Callable[[_Session], None]) -> None:
    """
    Set up config, logging and the repository, then run a command.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    try:
        config = load_config(ctx.obj.get("config_path"))

        setup_logging(config.logging.directory)
        logger.debug(f"worshipnote {name} starting")

        files = LocalFileSystem(read_timeout=config.files.read_timeout)
        repository = Repository.from_config(config, files)

        handler(_Session(config, files, repository))
        logger.debug(f"worshipnote {name} completed")

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except CacheError as e:
        click.echo(f"Local cache error: {e.message}", err=True)
        logger.error(f"Local cache error: {e.message}", exc_info=True)
        sys.exit(2)

    except RemoteUnavailableError as e:
        click.echo(f"OneDrive unavailable: {e.message}", err=True)
        logger.error(f"OneDrive unavailable: {e.message}")
        sys.exit(3)

    except WorshipNoteError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


def _confirm(message: str, yes: bool) -> bool:
    if yes:
        return True
    if click.confirm(message, default=False):
        return True
    click.echo("Cancelled.")
    return False


def _report_save(result: SaveResult) -> None:
    if not result.remote_saved:
        click.echo(
            f"Warning: {result.collection} saved locally only ({result.remote_error.message})",
            err=True
        )


def _auto_backup(session: _Session, loaded: LoadResult) -> None:
    """Back up before a bulk change; a failed backup stops the command."""
    info = session.repository.backup(loaded.songs, loaded.worship_lists).unwrap()
    click.echo(f"Backup written: {info.file_name}")


def _find_song(songs: list[Song], song_id: str) -> Song:
    song = next((song for song in songs if song.id == song_id), None)
    if song is None:
        raise InvalidInputError(f"No song with id {song_id}", details={"song_id": song_id})
    return song


def _save_library(session: _Session, songs: list[Song], worship_lists: WorshipLists | None) -> None:
    _report_save(session.repository.save_songs(songs))
    if worship_lists is not None:
        _report_save(session.repository.save_worship_lists(worship_lists))


# =============================================================================
# info / backups
# =============================================================================

@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Show data locations, library size and sync state."""
    def handler(session: _Session) -> None:
        repository = session.repository
        loaded = repository.load()
        layout = repository.layout

        click.echo(f"Data folder:    {layout.data_dir if layout else 'not found'}")
        click.echo(f"Local cache:    {session.config.storage.cache_file}")
        click.echo(f"Backups:        {repository.backup_directory() or 'not available'}")
        click.echo(f"Songs:          {len(loaded.songs)}")
        click.echo(
            f"Worship lists:  {len(loaded.worship_lists)} "
            f"({loaded.worship_lists.total_songs()} entries)"
        )
        click.echo(f"Loaded from:    {loaded.source.value}")
        if loaded.remote_error is not None:
            click.echo(f"Remote:         unavailable ({loaded.remote_error.message})")
        elif loaded.decision is not None:
            click.echo(f"Sync:           {loaded.decision.reason.value}")

    _run_command(ctx, "info", handler)


@cli.command()
@click.pass_context
def backup(ctx: click.Context) -> None:
    """Write a full backup of songs and worship lists."""
    def handler(session: _Session) -> None:
        loaded = session.repository.load()
        backup_info = session.repository.backup(loaded.songs, loaded.worship_lists).unwrap()
        stats = backup_info.stats
        click.echo(f"Backup written: {backup_info.path}")
        click.echo(
            f"  {stats['totalSongs']} songs, {stats['totalWorshipLists']} worship lists, "
            f"{stats['backupSize']} bytes"
        )

    _run_command(ctx, "backup", handler)


@cli.command("list-backups")
@click.pass_context
def list_backups(ctx: click.Context) -> None:
    """List backups, newest first."""
    def handler(session: _Session) -> None:
        backups = session.repository.list_backups()
        if not backups:
            click.echo("No backups found.")
            return
        for path in backups:
            click.echo(path.name)

    _run_command(ctx, "list-backups", handler)


@cli.command()
@click.argument("backup_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def restore(ctx: click.Context, backup_file: Path, yes: bool) -> None:
    """Replace songs and worship lists with a backup."""
    def handler(session: _Session) -> None:
        repository = session.repository
        snapshot = repository.read_backup(backup_file).unwrap()
        error = validate_backup(snapshot)
        if error is not None:
            error.unwrap()

        loaded = repository.load()
        if not _confirm(
            f"Replace {len(loaded.songs)} songs with {len(snapshot['songs'])} songs "
            f"from {backup_file.name}?",
            yes
        ):
            return

        if loaded.songs or len(loaded.worship_lists):
            _auto_backup(session, loaded)

        restored = repository.restore(snapshot).unwrap()
        click.echo(
            f"Restored {len(restored.songs)} songs and {len(restored.worship_lists)} worship lists"
        )
        if restored.remote_error is not None:
            click.echo(
                f"Warning: restored locally only ({restored.remote_error.message})",
                err=True
            )

    _run_command(ctx, "restore", handler)


# =============================================================================
# Sheet maintenance
# =============================================================================

@cli.command()
@click.option("--apply", "apply_changes", is_flag=True, help="Rename the files")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def audit(ctx: click.Context, apply_changes: bool, yes: bool) -> None:
    """Find sheets whose file name is not the song's canonical name."""
    def handler(session: _Session) -> None:
        loaded = session.repository.load()
        pending = find_non_canonical(loaded.songs)

        if not pending:
            click.echo("All sheet file names are canonical.")
            return

        for song in pending:
            click.echo(f"{song.file_name} -> {canonical_file_name(song).value}")
        click.echo(f"{len(pending)} sheet(s) not canonically named")

        if not apply_changes or not _confirm(f"Rename {len(pending)} file(s)?", yes):
            return

        reconciler = session.reconciler()
        _auto_backup(session, loaded)

        updated = {}
        failures = 0
        for song in pending:
            result = reconciler.rename_to_canonical(song)
            if result.is_err:
                failures += 1
                continue
            if result.value.renamed:
                updated[song.id] = reconciler.with_file(song, result.value.file_name)

        if updated:
            songs = [updated.get(song.id, song) for song in loaded.songs]
            worship_lists, entries = fan_out_all(songs, loaded.worship_lists)
            _save_library(session, songs, worship_lists)
            click.echo(f"Renamed {len(updated)} file(s), updated {entries} worship list entries")
        if failures:
            click.echo(f"{failures} rename(s) failed; see rename_failures log", err=True)

    _run_command(ctx, "audit", handler)


@cli.command()
@click.option("--apply", "apply_changes", is_flag=True, help="Link and rename matched files")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def recover(ctx: click.Context, apply_changes: bool, yes: bool) -> None:
    """Match sheet files to songs by file name."""
    def handler(session: _Session) -> None:
        layout = session.require_layout()
        loaded = session.repository.load()
        names = sheet_files(session.files.list_directory(layout.sheets_dir))

        report = recover_library(names, loaded.songs)
        click.echo(
            f"{report.total} files: {len(report.matched)} matched, "
            f"{len(report.ambiguous)} ambiguous, {len(report.unmatched)} unmatched"
        )

        for result in report.ambiguous:
            candidates = ", ".join(song.describe() for song in result.candidates)
            click.echo(f"  ambiguous: {result.file_name} ({candidates})")

        unmatched = [result.file_name for result in report.unmatched]
        for category, file_names in categorize_unmatched(unmatched).items():
            for file_name in file_names:
                suggestions = suggest_by_first_lyrics(file_name, loaded.songs)
                hint = ""
                if suggestions:
                    hint = " maybe: " + ", ".join(song.describe() for song in suggestions[:3])
                click.echo(f"  unmatched [{category}]: {file_name}{hint}")

        if not apply_changes or not report.matched:
            return
        if not _confirm(f"Link {len(report.matched)} matched file(s)?", yes):
            return

        _auto_backup(session, loaded)
        applied = apply_recovery(report, loaded.songs, session.reconciler())

        if applied.linked:
            worship_lists, entries = fan_out_all(applied.songs, loaded.worship_lists)
            _save_library(session, applied.songs, worship_lists)
            click.echo(
                f"Linked {len(applied.linked)} song(s), renamed {len(applied.renamed)} file(s), "
                f"updated {entries} worship list entries"
            )
        else:
            click.echo("Nothing to link.")
        for file_name, reason in applied.failures:
            click.echo(f"  not linked: {file_name} ({reason})", err=True)

    _run_command(ctx, "recover", handler)


@cli.command()
@click.option("--delete", "delete_files", is_flag=True, help="Archive and delete unused files")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def unused(ctx: click.Context, delete_files: bool, yes: bool) -> None:
    """List sheet files that no song or worship list refers to."""
    def handler(session: _Session) -> None:
        layout = session.require_layout()
        loaded = session.repository.load()
        names = sheet_files(session.files.list_directory(layout.sheets_dir))
        unused_names = find_unused_files(names, loaded.songs, loaded.worship_lists)

        if not unused_names:
            click.echo("No unused sheet files.")
            return

        for name in unused_names:
            click.echo(name)
        click.echo(f"{len(unused_names)} unused of {len(names)} sheet files")

        if not delete_files or not _confirm(f"Archive and delete {len(unused_names)} file(s)?", yes):
            return

        archive_dir = layout.backups_dir / f"unused_files_{filename_timestamp()}"
        archived, failures = archive_unused_files(
            session.files, layout.sheets_dir, unused_names, archive_dir
        )
        click.echo(f"Archived {len(archived)} file(s) to {archive_dir}")
        for name, reason in failures:
            click.echo(f"  failed: {name} ({reason})", err=True)

    _run_command(ctx, "unused", handler)


@cli.command("sync-lists")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def sync_lists(ctx: click.Context, yes: bool) -> None:
    """Refresh worship-list entries from their master songs."""
    def handler(session: _Session) -> None:
        loaded = session.repository.load()
        relinked_lists, relinked = relink_worship_list_entries(loaded.songs, loaded.worship_lists)
        worship_lists, refreshed = fan_out_all(loaded.songs, relinked_lists)

        if not relinked and not refreshed:
            click.echo("Worship lists are up to date.")
            return

        if not _confirm(f"Rewrite {relinked + refreshed} worship list entries?", yes):
            return

        _auto_backup(session, loaded)
        _report_save(session.repository.save_worship_lists(worship_lists))
        click.echo(f"Relinked {relinked} entries, refreshed {refreshed} entries")

    _run_command(ctx, "sync-lists", handler)


@cli.command("check-sync")
@click.pass_context
def check_sync(ctx: click.Context) -> None:
    """Find sheet files OneDrive has not downloaded."""
    def handler(session: _Session) -> None:
        layout = session.require_layout()
        report = check_sheets_synced(
            session.files,
            layout.sheets_dir,
            num_threads=session.config.files.max_workers
        )
        click.echo(f"{len(report.synced)} synced, {len(report.unsynced)} not synced")
        for name in report.unsynced:
            suffix = " (timed out)" if name in report.timed_out else ""
            click.echo(f"  {name}{suffix}")
        if report.unsynced:
            click.echo(
                "Mark the Music_Sheets folder 'Always keep on this device' in OneDrive.",
                err=True
            )

    _run_command(ctx, "check-sync", handler)


@cli.command()
@click.argument("song_id")
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def attach(ctx: click.Context, song_id: str, image: Path) -> None:
    """Store IMAGE as the sheet of song SONG_ID."""
    def handler(session: _Session) -> None:
        reconciler = session.reconciler()
        loaded = session.repository.load()

        song = _find_song(loaded.songs, song_id)

        attached = reconciler.attach_sheet(song, image.resolve()).unwrap()
        songs = [attached if item.id == song_id else item for item in loaded.songs]
        worship_lists, entries = fan_out(attached, loaded.worship_lists)
        session.repository.mark_dirty(SONGS)
        session.repository.mark_dirty(WORSHIP_LISTS)
        _save_library(session, songs, worship_lists)
        click.echo(f"Attached {attached.file_name} ({entries} worship list entries updated)")

    _run_command(ctx, "attach", handler)


# =============================================================================
# Song records
# =============================================================================

@cli.command()
@click.option("--title", required=True, help="Song title")
@click.option("--chord", default="C", show_default=True, help="Chord (key)")
@click.option("--tempo", default="Medium", show_default=True, help="Tempo tag (Fast, Medium, Slow)")
@click.option("--first-lyrics", default="", help="Opening lyrics")
@click.option(
    "--sheet",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Sheet image or PDF to attach"
)
@click.pass_context
def add(
    ctx: click.Context,
    title: str,
    chord: str,
    tempo: str,
    first_lyrics: str,
    sheet: Optional[Path]
) -> None:
    """Add a new song, optionally with its sheet."""
    def handler(session: _Session) -> None:
        if not title.strip():
            raise InvalidInputError("Title must not be empty")

        loaded = session.repository.load()
        song = Song(
            id=mint_song_id(item.id for item in loaded.songs),
            title=title.strip(),
            chord=chord.strip(),
            tempo=tempo.strip(),
            first_lyrics=first_lyrics,
            created_at=now_iso(),
            numeric_id=True,
        )
        if sheet is not None:
            song = session.reconciler().attach_sheet(song, sheet.resolve()).unwrap()

        session.repository.mark_dirty(SONGS)
        _save_library(session, [*loaded.songs, song], None)
        click.echo(f"Added {song.describe()}")
        if song.file_name:
            click.echo(f"  sheet: {song.file_name}")

    _run_command(ctx, "add", handler)


@cli.command()
@click.argument("song_id")
@click.option("--title", default=None, help="New title")
@click.option("--chord", default=None, help="New chord (key)")
@click.option("--tempo", default=None, help="New tempo tag")
@click.option("--first-lyrics", default=None, help="New opening lyrics")
@click.pass_context
def edit(
    ctx: click.Context,
    song_id: str,
    title: Optional[str],
    chord: Optional[str],
    tempo: Optional[str],
    first_lyrics: Optional[str]
) -> None:
    """Edit song SONG_ID; its sheet is renamed and worship lists follow."""
    def handler(session: _Session) -> None:
        changes = {
            name: value
            for name, value in (
                ("title", title),
                ("chord", chord),
                ("tempo", tempo),
                ("first_lyrics", first_lyrics),
            )
            if value is not None
        }
        if not changes:
            raise InvalidInputError("Nothing to change: use --title, --chord, --tempo or --first-lyrics")
        if "title" in changes:
            changes["title"] = changes["title"].strip()
            if not changes["title"]:
                raise InvalidInputError("Title must not be empty")

        reconciler = session.reconciler()
        loaded = session.repository.load()
        song = _find_song(loaded.songs, song_id)

        result = reconciler.apply_song_edit(
            song, song.with_changes(**changes), loaded.songs, loaded.worship_lists
        ).unwrap()
        session.repository.mark_dirty(SONGS)
        session.repository.mark_dirty(WORSHIP_LISTS)
        _save_library(session, result.songs, result.worship_lists)

        click.echo(f"Updated {result.song.describe()}")
        if result.rename.renamed:
            click.echo(f"  sheet renamed to {result.rename.file_name}")
        click.echo(f"  {result.entries_updated} worship list entries updated")

    _run_command(ctx, "edit", handler)


@cli.command()
@click.argument("song_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx: click.Context, song_id: str, yes: bool) -> None:
    """Delete song SONG_ID and its sheet file."""
    def handler(session: _Session) -> None:
        loaded = session.repository.load()
        song = _find_song(loaded.songs, song_id)
        layout = session.require_layout() if song.file_name else None

        if not _confirm(f"Delete {song.describe()} and its sheet file?", yes):
            return

        _auto_backup(session, loaded)

        if layout is not None:
            result = session.files.delete_file(layout.sheets_dir / song.file_name)
            if result.is_err and result.kind is not ErrorKind.NOT_FOUND:
                click.echo(f"Warning: sheet not deleted ({result.message})", err=True)

        session.repository.mark_dirty(SONGS)
        _save_library(session, [item for item in loaded.songs if item.id != song.id], None)
        click.echo(f"Deleted {song.describe()}")

        kept = len(loaded.worship_lists.occurrences(song.id))
        if kept:
            click.echo(f"  {kept} worship list entries keep their copy of the song")

    _run_command(ctx, "delete", handler)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `worshipnote` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
