"""
Recovery and audits for the Music_Sheets folder.

Used when a library's sheet files don't reliably point at their songs:
files copied in by hand, names from older app versions, records that
lost their fileName.

Matching a file to a song:
    1. Recover title/chord/id from the name (canonical rule first, then
       the legacy patterns, then "<title> (<id>)").
    2. A recovered id that exists in the library wins outright.
    3. Otherwise songs whose title equals, contains or is contained in
       the recovered title are candidates. One candidate matches; several
       are narrowed by exact chord, and if that doesn't leave exactly one
       the file is AMBIGUOUS. Nothing is ever guessed.

Audits:
    find_non_canonical  songs whose file name isn't their canonical name
    find_unused_files   sheet files no song or worship-list entry uses
    categorize_unmatched / suggest_by_first_lyrics
                        triage help for files that couldn't be matched
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePath

from worshipnote.core.filesystem import FileCapabilityProvider
from worshipnote.core.logger import get_logger, log_unmatched_file
from worshipnote.library.models import Song, WorshipLists
from worshipnote.reconcile.reconciler import Reconciler
from worshipnote.sheets.filename import canonical_file_name, parse_file_name, strip_extension
from worshipnote.sheets.legacy import match_legacy_file_name


logger = get_logger(__name__)


SHEET_EXTENSIONS = (".jpg", ".jpeg", ".png", ".pdf")

# "<title> (<id>)", the canonical form for songs without a chord
_CHORDLESS_PATTERN = re.compile(r"^(.+)\s+\(([^)]+)\)$")

_PAGE_TOKEN_PATTERN = re.compile(r"page\d+", re.IGNORECASE)
_DIGITS_PATTERN = re.compile(r"\d+")
_NON_LETTER_PATTERN = re.compile(r"[^가-힣a-zA-Z\s]")
_SPECIAL_CHAR_PATTERN = re.compile(r"[^가-힣a-zA-Z0-9\s]")
_LATIN_PATTERN = re.compile(r"[a-zA-Z]")
_HANGUL_PATTERN = re.compile(r"[가-힣]")


class MatchStatus(Enum):
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class RecoveredName:
    """
    Fields recovered from a sheet file name.

    Attributes:
        scheme: "canonical", "chordless" or a legacy pattern name.
    """
    scheme: str
    title: str | None = None
    chord: str | None = None
    id: str | None = None


@dataclass(frozen=True)
class MatchResult:
    """
    Attributes:
        file_name: The file that was matched.
        status: MATCHED, UNMATCHED or AMBIGUOUS.
        song: The matched song (MATCHED only).
        candidates: Songs that were equally plausible (AMBIGUOUS only).
        recovered: What the name parser recovered, None if nothing.
        matched_by: "id", "title" or "chord" for MATCHED results.
    """
    file_name: str
    status: MatchStatus
    song: Song | None = None
    candidates: tuple[Song, ...] = ()
    recovered: RecoveredName | None = None
    matched_by: str | None = None

    @property
    def reason(self) -> str:
        if self.status is MatchStatus.AMBIGUOUS:
            return f"ambiguous ({len(self.candidates)} candidates)"
        if self.recovered is None:
            return "unrecognized file name"
        return "no matching song"


@dataclass
class RecoveryReport:
    matched: list[MatchResult] = field(default_factory=list)
    unmatched: list[MatchResult] = field(default_factory=list)
    ambiguous: list[MatchResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.matched) + len(self.unmatched) + len(self.ambiguous)


@dataclass
class RecoveryApplied:
    """
    Attributes:
        songs: Master collection with recovered files linked.
        linked: Songs whose fileName changed.
        renamed: Files renamed to their canonical name (old, new).
        failures: Files left as they were, with the reason.
    """
    songs: list[Song]
    linked: list[Song] = field(default_factory=list)
    renamed: list[tuple[str, str]] = field(default_factory=list)
    failures: list[tuple[str, str]] = field(default_factory=list)


def is_sheet_file(name: str) -> bool:
    return PurePath(name).suffix.lower() in SHEET_EXTENSIONS


def sheet_files(names: list[str]) -> list[str]:
    """Names with a sheet extension (.jpg, .jpeg, .png, .pdf)."""
    return [name for name in names if is_sheet_file(name)]


def recover_name(file_name: str) -> RecoveredName | None:
    """Recover title/chord/id from a sheet file name, or None."""
    info = parse_file_name(file_name)
    if info.is_canonical:
        return RecoveredName("canonical", info.title, info.chord, info.id)

    legacy = match_legacy_file_name(file_name)
    if legacy is not None:
        return RecoveredName(legacy.pattern, legacy.title, legacy.chord, legacy.id)

    match = _CHORDLESS_PATTERN.match(strip_extension(PurePath(file_name).name))
    if match:
        return RecoveredName("chordless", match.group(1).strip(), None, match.group(2))
    return None


def _title_candidates(title: str, songs: list[Song]) -> list[Song]:
    return [
        song for song in songs
        if song.title and (song.title == title or title in song.title or song.title in title)
    ]


def match_file_to_song(file_name: str, songs: list[Song]) -> MatchResult:
    """
    Find the song a sheet file belongs to.

    Returns:
        MatchResult. AMBIGUOUS results carry the candidates and no song.
    """
    recovered = recover_name(file_name)
    if recovered is None:
        return MatchResult(file_name, MatchStatus.UNMATCHED)

    if recovered.id:
        for song in songs:
            if song.id == recovered.id:
                return MatchResult(file_name, MatchStatus.MATCHED, song, recovered=recovered, matched_by="id")

    if not recovered.title:
        return MatchResult(file_name, MatchStatus.UNMATCHED, recovered=recovered)

    candidates = _title_candidates(recovered.title, songs)
    if not candidates:
        return MatchResult(file_name, MatchStatus.UNMATCHED, recovered=recovered)
    if len(candidates) == 1:
        return MatchResult(
            file_name, MatchStatus.MATCHED, candidates[0], recovered=recovered, matched_by="title"
        )

    by_chord = [song for song in candidates if recovered.chord and song.chord == recovered.chord]
    if len(by_chord) == 1:
        return MatchResult(
            file_name, MatchStatus.MATCHED, by_chord[0], recovered=recovered, matched_by="chord"
        )

    return MatchResult(
        file_name, MatchStatus.AMBIGUOUS, candidates=tuple(candidates), recovered=recovered
    )


def recover_library(file_names: list[str], songs: list[Song]) -> RecoveryReport:
    """
    Match every file; unmatched and ambiguous files go to the unmatched-files report.
    """
    report = RecoveryReport()
    for file_name in file_names:
        result = match_file_to_song(file_name, songs)
        if result.status is MatchStatus.MATCHED:
            report.matched.append(result)
            continue

        candidates = [song.describe() for song in result.candidates]
        log_unmatched_file(logger, file_name, result.reason, candidates)
        if result.status is MatchStatus.AMBIGUOUS:
            report.ambiguous.append(result)
        else:
            report.unmatched.append(result)

    logger.info(
        f"Recovery: {len(report.matched)} matched, {len(report.ambiguous)} ambiguous, "
        f"{len(report.unmatched)} unmatched"
    )
    return report


def apply_recovery(report: RecoveryReport, songs: list[Song], reconciler: Reconciler) -> RecoveryApplied:
    """
    Link matched files to their songs, renaming them to canonical names.

    A song gets at most one file per run; further files matched to the
    same song are reported as failures. A file whose rename fails stays
    unlinked.
    """
    current = {song.id: song for song in songs}
    applied = RecoveryApplied(songs=list(songs))
    claimed: set[str] = set()

    for match in report.matched:
        song = current[match.song.id]
        if song.id in claimed:
            reason = f"another file was already linked to {song.describe()}"
            log_unmatched_file(logger, match.file_name, reason, [song.describe()])
            applied.failures.append((match.file_name, reason))
            continue

        rename_result = reconciler.rename_to_canonical(song.with_changes(file_name=match.file_name))
        if rename_result.is_err:
            applied.failures.append((match.file_name, rename_result.message))
            continue

        claimed.add(song.id)
        outcome = rename_result.value
        file_name = outcome.file_name if outcome.renamed else match.file_name
        if outcome.renamed:
            applied.renamed.append((match.file_name, file_name))

        if song.file_name != file_name:
            linked = reconciler.with_file(song, file_name)
            current[song.id] = linked
            applied.linked.append(linked)

    applied.songs = [current[song.id] for song in songs]
    return applied


def find_non_canonical(songs: list[Song]) -> list[Song]:
    """Songs with a file whose name differs from their canonical name."""
    result = []
    for song in songs:
        if not song.file_name:
            continue
        name_result = canonical_file_name(song)
        if name_result.is_ok and name_result.value != song.file_name:
            result.append(song)
    return result


def find_unused_files(file_names: list[str], songs: list[Song], worship_lists: WorshipLists) -> list[str]:
    """Files referenced neither by a song nor by a worship-list entry."""
    used = {song.file_name for song in songs if song.file_name.strip()}
    used |= worship_lists.file_names()
    return [name for name in file_names if name not in used]


def archive_unused_files(
    files: FileCapabilityProvider,
    sheets_dir: Path,
    file_names: list[str],
    archive_dir: Path
) -> tuple[list[str], list[tuple[str, str]]]:
    """
    Copy each file into archive_dir, then delete it from sheets_dir.

    A file is only deleted after its copy was written.

    Returns:
        (archived file names, [(file name, error message)])
    """
    archived: list[str] = []
    failures: list[tuple[str, str]] = []

    for name in file_names:
        read_result = files.read_file(sheets_dir / name)
        if read_result.is_err:
            failures.append((name, read_result.message))
            continue

        write_result = files.write_file(archive_dir / name, read_result.value)
        if write_result.is_err:
            failures.append((name, write_result.message))
            continue

        delete_result = files.delete_file(sheets_dir / name)
        if delete_result.is_err:
            failures.append((name, delete_result.message))
            continue

        archived.append(name)

    logger.info(f"Archived {len(archived)} unused files to {archive_dir}")
    return archived, failures


def categorize_unmatched(file_names: list[str]) -> dict[str, list[str]]:
    """
    Sort unmatched names into the first category that fits.

    Categories (in order): page, digits, special_chars, mixed_script,
    short, other.
    """
    categories: dict[str, list[str]] = {
        "page": [],
        "digits": [],
        "special_chars": [],
        "mixed_script": [],
        "short": [],
        "other": [],
    }
    for name in file_names:
        stem = strip_extension(PurePath(name).name)
        if "page" in stem:
            categories["page"].append(name)
        elif _DIGITS_PATTERN.search(stem):
            categories["digits"].append(name)
        elif _SPECIAL_CHAR_PATTERN.search(stem):
            categories["special_chars"].append(name)
        elif _LATIN_PATTERN.search(stem) and _HANGUL_PATTERN.search(stem):
            categories["mixed_script"].append(name)
        elif len(stem) < 5:
            categories["short"].append(name)
        else:
            categories["other"].append(name)
    return categories


def lyrics_search_text(file_name: str) -> str:
    """File stem without page tokens, digits and punctuation."""
    text = strip_extension(PurePath(file_name).name)
    text = _PAGE_TOKEN_PATTERN.sub("", text)
    text = _DIGITS_PATTERN.sub("", text)
    text = _NON_LETTER_PATTERN.sub("", text)
    return text.strip()


def suggest_by_first_lyrics(file_name: str, songs: list[Song]) -> list[Song]:
    """
    Songs whose first lyrics resemble the file name.

    Suggestions only; they are shown to the user and never applied.
    """
    text = lyrics_search_text(file_name)
    if len(text) < 2:
        return []

    words = [word for word in text.split() if len(word) >= 3]
    suggestions = []
    for song in songs:
        lyrics = song.first_lyrics
        if not lyrics:
            continue
        if text in lyrics or lyrics in text:
            suggestions.append(song)
        elif len(text) >= 3 and any(word in lyrics for word in words):
            suggestions.append(song)
    return suggestions


def relink_worship_list_entries(songs: list[Song], worship_lists: WorshipLists) -> tuple[WorshipLists, int]:
    """
    Point orphaned worship-list entries back at their master song.

    An entry whose id is not in the library, but whose title equals the
    title of exactly one song, is replaced by a snapshot of that song.

    Returns:
        (new WorshipLists, number of entries relinked)
    """
    known_ids = {song.id for song in songs}
    by_title: dict[str, list[Song]] = {}
    for song in songs:
        by_title.setdefault(song.title, []).append(song)

    def orphan_with_unique_title(entry: Song) -> bool:
        return entry.id not in known_ids and len(by_title.get(entry.title, [])) == 1

    new_lists, count = worship_lists.replace_entries(
        orphan_with_unique_title,
        lambda entry: by_title[entry.title][0].with_changes()
    )
    if count:
        logger.info(f"Relinked {count} worship list entries by title")
    return new_lists, count
