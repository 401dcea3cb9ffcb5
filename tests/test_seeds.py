"""
Tests for seed extraction and row builders.
"""

from __future__ import annotations

import logging
from datetime import date

import pytest

from cadence.core.db.models import AlbumArtistRow, TrackArtistRow
from cadence.core.feed import RawTrackRecord
from cadence.core.normalize import album_key, content_hash, track_natural_key
from cadence.core.rows import build_album_artist_rows, build_track_relations, build_track_rows
from cadence.core.seeds import extract_seeds


def _rec(**kwargs) -> RawTrackRecord:
    return RawTrackRecord(**kwargs)


class TestExtractSeeds:
    def test_dedup_first_seen_wins(self) -> None:
        seeds = extract_seeds(
            [
                _rec(artists="Beyoncé, IU", album="A", release_date="2020-01-01"),
                _rec(artists="BEYONCE", album=" a! ", release_date="2020-01-01"),
                _rec(artists="I.U", album="A", release_date="2021-05-05"),
            ]
        )

        assert [s.display_name for s in seeds.artists] == ["Beyoncé", "IU"]
        assert seeds.artist_keys == ["beyonce", "iu"]
        assert seeds.album_keys == ["a|2020-01-01", "a|2021-05-05"]
        assert seeds.albums[0].name == "A"
        assert seeds.albums[0].release_date == date(2020, 1, 1)

    def test_no_album_seed_without_name(self) -> None:
        seeds = extract_seeds([_rec(artists="IU", album="   "), _rec(artists="IU")])
        assert seeds.albums == ()
        assert len(seeds.artists) == 1

    def test_album_without_date(self) -> None:
        seeds = extract_seeds([_rec(album="A", release_date="not a date")])
        assert seeds.album_keys == ["a|null"]
        assert seeds.albums[0].release_date is None

    def test_symbol_only_artist_is_skipped(self) -> None:
        seeds = extract_seeds([_rec(artists="!!!, IU")])
        assert seeds.artist_keys == ["iu"]

    def test_deterministic(self) -> None:
        records = [_rec(artists=f"Artist {i % 7}", album=f"Album {i % 3}") for i in range(50)]
        assert extract_seeds(records) == extract_seeds(records)


class TestRowBuilders:
    @pytest.fixture
    def records(self) -> list[RawTrackRecord]:
        return [
            _rec(
                artists="IU, BTS",
                song="S1",
                album="A",
                release_date="2020-01-01",
                text="  lyrics one ",
                length="03:47",
                explicit="Yes",
                emotion="joy",
            ),
            _rec(artists="IU", song="S2", album="A", release_date="2020-01-01"),
        ]

    def test_album_artist_rows_dedup(self, records: list[RawTrackRecord]) -> None:
        artist_ids = {"iu": 1, "bts": 2}
        album_ids = {album_key("A", date(2020, 1, 1)): 10}

        rows = build_album_artist_rows(records, artist_ids, album_ids)

        assert rows == [AlbumArtistRow(10, 1), AlbumArtistRow(10, 2)]

    def test_album_artist_rows_warn_on_missing_album(
        self, records: list[RawTrackRecord], caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="cadence.core.rows"):
            rows = build_album_artist_rows(records, {"iu": 1, "bts": 2}, {})
        assert rows == []
        assert "Album id not found" in caplog.text

    def test_track_rows(self, records: list[RawTrackRecord]) -> None:
        album_ids = {album_key("A", date(2020, 1, 1)): 10}

        build = build_track_rows(records, album_ids)

        assert len(build.rows) == 2
        first = build.rows[0]
        assert first.title == "S1"
        assert first.duration_ms == 227000
        assert first.duration_text == "03:47"
        assert first.explicit is True
        assert first.mood == "joy"
        assert first.album_id == 10
        assert first.track_hash == content_hash(
            track_natural_key("S1", "A", date(2020, 1, 1), ["IU", "BTS"])
        )
        assert build.hashes == [r.track_hash for r in build.rows]

    def test_track_rows_missing_title_and_album(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="cadence.core.rows"):
            build = build_track_rows([_rec(artists="IU")], {})
        assert build.rows[0].title == ""
        assert build.rows[0].album_id is None
        # No album name means nothing to resolve, so nothing to warn about.
        assert caplog.records == []

    def test_track_rows_unresolved_album_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="cadence.core.rows"):
            build = build_track_rows([_rec(song="S", album="Ghost")], {})
        assert build.rows[0].album_id is None
        assert "Album id not found" in caplog.text

    def test_track_relations(self, records: list[RawTrackRecord]) -> None:
        build = build_track_rows(records, {})
        track_ids = {build.rows[0].track_hash: 100, build.rows[1].track_hash: 101}

        rel = build_track_relations(records, build.rows, track_ids, {"iu": 1, "bts": 2})

        assert rel.track_artists == (
            TrackArtistRow(100, 1),
            TrackArtistRow(100, 2),
            TrackArtistRow(101, 1),
        )
        # Only the first record carries lyrics; both get audio rows.
        assert [(r.track_id, r.lyrics) for r in rel.lyrics] == [(100, "lyrics one")]
        assert [a.track_id for a in rel.audio_features] == [100, 101]
        assert rel.audio_features[1].tempo is None

    def test_track_relations_skip_unresolved_track(
        self, records: list[RawTrackRecord], caplog: pytest.LogCaptureFixture
    ) -> None:
        build = build_track_rows(records, {})
        track_ids = {build.rows[1].track_hash: 101}

        with caplog.at_level(logging.WARNING, logger="cadence.core.rows"):
            rel = build_track_relations(records, build.rows, track_ids, {"iu": 1})

        assert [a.track_id for a in rel.audio_features] == [101]
        assert rel.lyrics == ()
        assert "Track id not found" in caplog.text

    def test_track_relations_requires_aligned_rows(self, records: list[RawTrackRecord]) -> None:
        build = build_track_rows(records, {})
        with pytest.raises(ValueError):
            build_track_relations(records, build.rows[:1], {}, {})
