"""
Tests for cadence.core.normalize.

These tests verify:
- Parse-or-None helpers (dates, durations, explicit flag)
- Key folding for artists, albums and tracks
- Content hashing
"""

from __future__ import annotations

import hashlib
from datetime import date

import pytest

from cadence.core.normalize import (
    album_key,
    artist_key,
    content_hash,
    normalize,
    parse_date,
    parse_duration_ms,
    parse_explicit_flag,
    simplify_for_key,
    split_artists,
    track_natural_key,
)


class TestTextHelpers:
    def test_normalize_trims_and_nulls_empty(self) -> None:
        assert normalize("  Song  ") == "Song"
        assert normalize("   ") is None
        assert normalize("") is None
        assert normalize(None) is None

    def test_split_artists(self) -> None:
        assert split_artists("IU, BTS") == ["IU", "BTS"]
        assert split_artists(" A ,, B ,") == ["A", "B"]
        assert split_artists("Solo") == ["Solo"]

    @pytest.mark.parametrize("raw", [None, "", "   ", ",", " , , "])
    def test_split_artists_empty(self, raw: str | None) -> None:
        assert split_artists(raw) == []


class TestParsers:
    def test_parse_date_valid(self) -> None:
        assert parse_date("2020-01-01") == date(2020, 1, 1)
        assert parse_date(" 1999-12-31 ") == date(1999, 12, 31)

    @pytest.mark.parametrize(
        "raw", [None, "", "2020-1-1", "2020/01/01", "20200101", "2020-02-30", "2020-13-01", "abc"]
    )
    def test_parse_date_invalid(self, raw: str | None) -> None:
        assert parse_date(raw) is None

    def test_parse_duration(self) -> None:
        assert parse_duration_ms("03:47") == 227000
        assert parse_duration_ms("0:00") == 0
        assert parse_duration_ms("10:05") == 605000

    @pytest.mark.parametrize("raw", ["03:60", "1:2:3", None, "", "3", "a:10", "-1:10", "03:"])
    def test_parse_duration_invalid(self, raw: str | None) -> None:
        assert parse_duration_ms(raw) is None

    def test_parse_duration_rejects_non_ascii_digits(self) -> None:
        # Arabic-Indic digits are \d in Unicode mode but not valid here.
        assert parse_duration_ms("٣:٤٧") is None

    def test_parse_explicit_flag(self) -> None:
        assert parse_explicit_flag("Yes") is True
        assert parse_explicit_flag(" YES ") is True
        assert parse_explicit_flag("No") is False
        assert parse_explicit_flag("true") is False
        assert parse_explicit_flag(None) is False


class TestKeys:
    def test_artist_key_folding(self) -> None:
        assert artist_key("BTS") == artist_key("  b t s!! ")
        assert artist_key("IU") == artist_key(" I.U ")
        assert artist_key("Beyoncé") == artist_key("BEYONCE") == artist_key(" beyonce ")

    def test_artist_key_keeps_hangul(self) -> None:
        assert artist_key("아이유") == "아이유"
        assert artist_key(" 방탄 소년단 ") == "방탄소년단"

    def test_artist_key_symbol_only_has_no_key(self) -> None:
        assert artist_key("!!!") is None
        assert artist_key("   ") is None
        assert artist_key(None) is None

    def test_simplify_for_key_fullwidth(self) -> None:
        # NFKC folds fullwidth latin into ASCII.
        assert simplify_for_key("ＡＢＣ") == "abc"

    def test_album_key(self) -> None:
        d = date(2020, 1, 1)
        assert album_key("Album A", d) == "albuma|2020-01-01"
        assert album_key("A", None) != album_key("A", d)
        assert album_key("A", None).endswith("|null")
        assert album_key(None, d) is None
        assert album_key("   ", d) is None

    def test_track_natural_key_is_order_and_case_insensitive(self) -> None:
        d = date(2020, 1, 1)
        assert track_natural_key("Song", "Album", d, ["IU", "BTS"]) == track_natural_key(
            "song", " album!! ", d, ["BTS", "IU"]
        )

    def test_track_natural_key_missing_parts(self) -> None:
        key = track_natural_key(None, None, None, [])
        assert key == "|||"
        assert "null" not in track_natural_key("Song", None, None, ["IU"])

    def test_content_hash(self) -> None:
        h = content_hash("song|album|2020-01-01|iu")
        assert len(h) == 64
        assert h == h.lower()
        assert h == hashlib.sha256("song|album|2020-01-01|iu".encode("utf-8")).hexdigest()
