# tests/test_recovery.py
"""Test matching sheet files to songs, audits and cleanup"""

import logging

import pytest

from worshipnote.library.models import Song, WorshipLists
from worshipnote.reconcile.reconciler import Reconciler
from worshipnote.reconcile.recovery import (
    MatchStatus,
    apply_recovery,
    archive_unused_files,
    categorize_unmatched,
    find_non_canonical,
    find_unused_files,
    lyrics_search_text,
    match_file_to_song,
    recover_library,
    relink_worship_list_entries,
    sheet_files,
    suggest_by_first_lyrics,
)


class TestMatchFileToSong:
    """Test the matching rules"""

    def test_id_match_is_authoritative(self):
        """'xyz789.jpg' goes straight to the song with that id"""
        songs = [
            Song(id="abc", title="xyz789"),
            Song(id="xyz789", title="Completely Different"),
        ]

        result = match_file_to_song("xyz789.jpg", songs)

        assert result.status is MatchStatus.MATCHED
        assert result.song.id == "xyz789"
        assert result.matched_by == "id"

    def test_canonical_name(self, sample_songs):
        result = match_file_to_song("Renamed Elsewhere (C) (1).jpg", sample_songs)
        assert result.song.id == "1"
        assert result.recovered.scheme == "canonical"

    def test_chordless_canonical_name(self):
        songs = [Song(id="7", title="Doxology")]
        result = match_file_to_song("Doxology (7).jpg", songs)
        assert result.song.id == "7"
        assert result.matched_by == "id"

    def test_unique_title_match(self, sample_songs):
        result = match_file_to_song("Holy Holy Holy D.jpg", sample_songs)
        assert result.status is MatchStatus.MATCHED
        assert result.song.id == "3"
        assert result.matched_by == "title"

    def test_title_containment(self, sample_songs):
        """The recovered title may be part of the song title or the reverse"""
        assert match_file_to_song("How Great (G).jpg", sample_songs).song.id == "2"
        assert match_file_to_song("How Great Thou Art Live G.jpg", sample_songs).song.id == "2"

    def test_chord_breaks_tie(self, sample_songs):
        """Two 'Amazing Grace' songs, chord G picks song 4"""
        result = match_file_to_song("Amazing Grace G.jpg", sample_songs)
        assert result.status is MatchStatus.MATCHED
        assert result.song.id == "4"
        assert result.matched_by == "chord"

    def test_ambiguity_is_never_guessed(self, sample_songs):
        """Same title, chord matching neither: no guess"""
        result = match_file_to_song("Amazing Grace (E).jpg", sample_songs)

        assert result.status is MatchStatus.AMBIGUOUS
        assert result.song is None
        assert {song.id for song in result.candidates} == {"1", "4"}

    def test_duplicate_chords_stay_ambiguous(self):
        songs = [Song(id="1", title="Song", chord="C"), Song(id="2", title="Song", chord="C")]
        assert match_file_to_song("Song C.jpg", songs).status is MatchStatus.AMBIGUOUS

    def test_unknown_id_without_title(self, sample_songs):
        result = match_file_to_song("zzz999.jpg", sample_songs)
        assert result.status is MatchStatus.UNMATCHED
        assert result.recovered.id == "zzz999"

    def test_unrecognized_name(self, sample_songs):
        result = match_file_to_song("random scan.jpg", sample_songs)
        assert result.status is MatchStatus.UNMATCHED
        assert result.recovered is None
        assert result.reason == "unrecognized file name"

    def test_empty_titles_are_never_candidates(self):
        songs = [Song(id="1", title=""), Song(id="2", title="Other")]
        assert match_file_to_song("Anything C.jpg", songs).status is MatchStatus.UNMATCHED


class TestRecoverLibrary:
    """Test batch matching and reporting"""

    def test_report_buckets(self, sample_songs, caplog):
        names = ["Holy Holy Holy D.jpg", "Amazing Grace (E).jpg", "random scan.jpg"]

        with caplog.at_level(logging.WARNING):
            report = recover_library(names, sample_songs)

        assert [r.file_name for r in report.matched] == ["Holy Holy Holy D.jpg"]
        assert [r.file_name for r in report.ambiguous] == ["Amazing Grace (E).jpg"]
        assert [r.file_name for r in report.unmatched] == ["random scan.jpg"]
        assert report.total == 3

        logged = {r.unmatched_file_name for r in caplog.records if hasattr(r, "unmatched_file_name")}
        assert logged == {"Amazing Grace (E).jpg", "random scan.jpg"}

    def test_sheet_files_filter(self):
        names = ["a.jpg", "b.JPEG", "c.png", "d.pdf", "songs.json", "desktop.ini"]
        assert sheet_files(names) == ["a.jpg", "b.JPEG", "c.png", "d.pdf"]


class TestApplyRecovery:
    """Test linking matched files"""

    @pytest.fixture
    def reconciler(self, files, layout):
        return Reconciler(files, layout.sheets_dir)

    def test_links_and_renames(self, reconciler, layout, sample_songs):
        (layout.sheets_dir / "Holy Holy Holy D.jpg").write_bytes(b"x")
        report = recover_library(["Holy Holy Holy D.jpg"], sample_songs)

        applied = apply_recovery(report, sample_songs, reconciler)

        assert applied.renamed == [("Holy Holy Holy D.jpg", "Holy Holy Holy (D) (3).jpg")]
        assert applied.songs[2].file_name == "Holy Holy Holy (D) (3).jpg"
        assert [song.id for song in applied.linked] == ["3"]
        assert applied.songs[0] is sample_songs[0]
        assert (layout.sheets_dir / "Holy Holy Holy (D) (3).jpg").exists()

    def test_already_linked_file_is_a_no_op(self, reconciler, layout, sample_songs):
        (layout.sheets_dir / "Amazing Grace (C) (1).jpg").write_bytes(b"x")
        report = recover_library(["Amazing Grace (C) (1).jpg"], sample_songs)

        applied = apply_recovery(report, sample_songs, reconciler)

        assert applied.linked == []
        assert applied.renamed == []
        assert applied.songs == sample_songs

    def test_second_file_for_same_song_is_reported(self, reconciler, layout, sample_songs):
        for name in ("Holy Holy Holy D.jpg", "Holy Holy Holy D 2.jpg"):
            (layout.sheets_dir / name).write_bytes(b"x")
        report = recover_library(["Holy Holy Holy D.jpg", "Holy Holy Holy D 2.jpg"], sample_songs)

        applied = apply_recovery(report, sample_songs, reconciler)

        assert len(applied.linked) == 1
        assert [name for name, _ in applied.failures] == ["Holy Holy Holy D 2.jpg"]
        assert (layout.sheets_dir / "Holy Holy Holy D 2.jpg").exists()

    def test_failed_rename_leaves_song_unlinked(self, reconciler, sample_songs):
        report = recover_library(["Holy Holy Holy D.jpg"], sample_songs)

        applied = apply_recovery(report, sample_songs, reconciler)

        assert applied.linked == []
        assert applied.songs[2].file_name == ""
        assert len(applied.failures) == 1


class TestAudits:
    """Test non-canonical and unused file detection"""

    def test_find_non_canonical(self, sample_songs):
        assert [song.id for song in find_non_canonical(sample_songs)] == ["2"]

    def test_find_unused_files(self, sample_songs):
        lists = WorshipLists({"2024-01-07": [Song(id="9", title="Gone", file_name="Gone (9).jpg")]})
        names = ["Amazing Grace (C) (1).jpg", "Gone (9).jpg", "orphan.jpg", "Amazing Grace (G) (4).jpg"]

        assert find_unused_files(names, sample_songs, lists) == ["orphan.jpg"]

    def test_last_updated_is_never_a_date(self, sample_songs):
        lists = WorshipLists.from_dict({"lastUpdated": "2024-01-01T00:00:00Z"})
        assert find_unused_files(["orphan.jpg"], sample_songs, lists) == ["orphan.jpg"]

    def test_archive_unused_files(self, files, layout):
        (layout.sheets_dir / "orphan.jpg").write_bytes(b"orphan")
        archive_dir = layout.backups_dir / "unused_files_x"

        archived, failures = archive_unused_files(
            files, layout.sheets_dir, ["orphan.jpg", "missing.jpg"], archive_dir
        )

        assert archived == ["orphan.jpg"]
        assert [name for name, _ in failures] == ["missing.jpg"]
        assert (archive_dir / "orphan.jpg").read_bytes() == b"orphan"
        assert not (layout.sheets_dir / "orphan.jpg").exists()


class TestTriage:
    """Test unmatched-file categories and lyric suggestions"""

    def test_categories_first_fit(self):
        names = [
            "scan page2.jpg",
            "Song 3.jpg",
            "Song-final!.jpg",
            "주님 Lord.jpg",
            "abc.jpg",
            "주님의 은혜.jpg",
        ]

        categories = categorize_unmatched(names)

        assert list(categories) == ["page", "digits", "special_chars", "mixed_script", "short", "other"]
        assert categories["page"] == ["scan page2.jpg"]
        assert categories["digits"] == ["Song 3.jpg"]
        assert categories["special_chars"] == ["Song-final!.jpg"]
        assert categories["mixed_script"] == ["주님 Lord.jpg"]
        assert categories["short"] == ["abc.jpg"]
        assert categories["other"] == ["주님의 은혜.jpg"]

    def test_lyrics_search_text(self):
        assert lyrics_search_text("Amazing grace page2 (1).jpg") == "Amazing grace"

    def test_suggest_by_first_lyrics(self, sample_songs):
        suggestions = suggest_by_first_lyrics("how sweet the sound page1.jpg", sample_songs)
        assert [song.id for song in suggestions] == ["1"]

    def test_suggest_by_word(self, sample_songs):
        suggestions = suggest_by_first_lyrics("chains scan.jpg", sample_songs)
        assert [song.id for song in suggestions] == ["4"]

    def test_too_short_for_suggestions(self, sample_songs):
        assert suggest_by_first_lyrics("1 2.jpg", sample_songs) == []


class TestRelinkWorshipListEntries:
    """Test restoring ids of orphaned worship-list entries"""

    def test_relinks_unique_title(self, sample_songs):
        orphan = Song(id="old-1", title="Holy Holy Holy", chord="E")
        lists = WorshipLists({"2024-01-07": [orphan, sample_songs[1]]})

        new_lists, count = relink_worship_list_entries(sample_songs, lists)

        assert count == 1
        assert new_lists.get("2024-01-07")[0] == sample_songs[2]
        assert new_lists.get("2024-01-07")[1] == sample_songs[1]

    def test_ambiguous_title_left_alone(self, sample_songs):
        orphan = Song(id="old-1", title="Amazing Grace")
        lists = WorshipLists({"2024-01-07": [orphan]})

        new_lists, count = relink_worship_list_entries(sample_songs, lists)

        assert count == 0
        assert new_lists.get("2024-01-07") == [orphan]
