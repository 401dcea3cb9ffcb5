"""
Tests for cadence.core.catalog_db and the query modules behind it.

These tests verify:
- Connection lifecycle and schema versioning
- Transaction commit/rollback semantics
- Seed inserts, id lookups, upserts and join inserts
- Aggregate rebuild
"""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import date
from pathlib import Path

import pytest

from cadence.config import ChunkSizes
from cadence.core.catalog_db import CatalogDb
from cadence.core.db.models import (
    AlbumArtistRow,
    AudioFeatureRow,
    TrackArtistRow,
    TrackLyricsRow,
    TrackRow,
)
from cadence.core.db.schema import CATALOG_TABLES, SCHEMA_VERSION, schema_version
from cadence.core.seeds import AlbumSeed, ArtistSeed

HASH_A = "a" * 64
HASH_B = "b" * 64


class TestLifecycle:
    async def test_open_close(self) -> None:
        db = CatalogDb(":memory:")
        assert not db.is_open

        await db.open()
        assert db.is_open

        await db.close()
        assert not db.is_open

    async def test_requires_open(self) -> None:
        db = CatalogDb(":memory:")
        with pytest.raises(RuntimeError):
            await db.count_catalog()

    async def test_schema_is_idempotent(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.sqlite3"
        db = CatalogDb(path)
        await db.open()
        await db.ensure_schema()
        await db.ensure_schema()
        await db.close()

        db = CatalogDb(path)
        await db.open()
        await db.ensure_schema()
        counts = await db.count_catalog()
        await db.close()

        assert set(counts) == set(CATALOG_TABLES)
        assert all(v == 0 for v in counts.values())

    async def test_schema_version(self, db: CatalogDb) -> None:
        assert await schema_version(db._require_conn()) == SCHEMA_VERSION

    async def test_only_catalog_tables_are_created(self, db: CatalogDb) -> None:
        cursor = await db._require_conn().execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%'"
        )
        names = {row[0] for row in await cursor.fetchall()}
        assert names == set(CATALOG_TABLES)

    async def test_newer_schema_is_refused(self, db: CatalogDb) -> None:
        conn = db._require_conn()
        await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1};")
        with pytest.raises(RuntimeError, match="newer"):
            await db.ensure_schema()

    async def test_count_rows_rejects_unknown_table(self, db: CatalogDb) -> None:
        with pytest.raises(ValueError):
            await db.count_rows("sqlite_master")


class TestTransaction:
    async def test_commit(self, db: CatalogDb) -> None:
        async with db.transaction():
            await db.insert_artist_seeds([ArtistSeed("iu", "IU")])
        assert await db.count_rows("artists") == 1
        assert not db.in_transaction

    async def test_rollback_on_error(self, db: CatalogDb) -> None:
        with pytest.raises(RuntimeError, match="boom"):
            async with db.transaction():
                await db.insert_artist_seeds([ArtistSeed("iu", "IU")])
                raise RuntimeError("boom")
        assert await db.count_rows("artists") == 0
        assert not db.in_transaction

    async def test_rollback_on_cancel(self, db: CatalogDb) -> None:
        started = asyncio.Event()

        async def writer() -> None:
            async with db.transaction():
                await db.insert_artist_seeds([ArtistSeed("iu", "IU")])
                started.set()
                await asyncio.sleep(10)

        task = asyncio.create_task(writer())
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert await db.count_rows("artists") == 0

    async def test_failed_commit_rolls_back(
        self, db: CatalogDb, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        conn = db._require_conn()
        real_execute = conn.execute
        commits: list[str] = []

        async def busy_on_first_commit(sql, *args):
            if sql == "COMMIT;" and not commits:
                commits.append(sql)
                raise sqlite3.OperationalError("database is locked")
            return await real_execute(sql, *args)

        monkeypatch.setattr(conn, "execute", busy_on_first_commit)

        with pytest.raises(sqlite3.OperationalError, match="locked"):
            async with db.transaction():
                await db.insert_artist_seeds([ArtistSeed("iu", "IU")])

        assert not db.in_transaction
        assert await db.count_rows("artists") == 0

        # The connection is usable again: no transaction was left open.
        async with db.transaction():
            await db.insert_artist_seeds([ArtistSeed("bts", "BTS")])
        assert await db.count_rows("artists") == 1

    async def test_nested_transaction_rejected(self, db: CatalogDb) -> None:
        async with db.transaction():
            with pytest.raises(RuntimeError):
                async with db.transaction():
                    pass


class TestArtistsAndAlbums:
    async def test_insert_artist_seeds_ignores_existing(self, db: CatalogDb) -> None:
        seeds = [ArtistSeed("iu", "IU"), ArtistSeed("bts", "BTS")]
        assert await db.insert_artist_seeds(seeds) == 2
        assert await db.insert_artist_seeds([ArtistSeed("iu", "I.U")]) == 0

        artist = await db.get_artist_by_key("iu")
        assert artist is not None
        assert artist.name == "IU"

    async def test_fetch_artist_ids(self, db: CatalogDb) -> None:
        await db.insert_artist_seeds([ArtistSeed("iu", "IU"), ArtistSeed("bts", "BTS")])

        ids = await db.fetch_artist_ids_by_key(["iu", "bts", "missing", None, "iu"])

        assert set(ids) == {"iu", "bts"}
        assert ids["iu"] != ids["bts"]
        assert await db.fetch_artist_ids_by_key([]) == {}

    async def test_lookup_chunking(self) -> None:
        db = CatalogDb(":memory:", chunks=ChunkSizes(artists=7, lookups=3))
        await db.open()
        await db.ensure_schema()
        try:
            seeds = [ArtistSeed(f"a{i}", f"A{i}") for i in range(20)]
            assert await db.insert_artist_seeds(seeds) == 20
            ids = await db.fetch_artist_ids_by_key([s.key for s in seeds])
            assert len(ids) == 20
        finally:
            await db.close()

    async def test_albums_store_year(self, db: CatalogDb) -> None:
        await db.insert_album_seeds(
            [
                AlbumSeed("a|2020-01-01", "A", date(2020, 1, 1)),
                AlbumSeed("a|null", "A", None),
            ]
        )

        dated = await db.get_album_by_key("a|2020-01-01")
        undated = await db.get_album_by_key("a|null")

        assert dated is not None and undated is not None
        assert dated.release_date == date(2020, 1, 1)
        assert dated.release_year == 2020
        assert undated.release_date is None
        assert undated.release_year is None
        assert len(await db.list_albums()) == 2


class TestTracksAndDetails:
    async def _album_id(self, db: CatalogDb) -> int:
        await db.insert_album_seeds([AlbumSeed("a|null", "A", None)])
        return (await db.fetch_album_ids_by_key(["a|null"]))["a|null"]

    async def test_upsert_tracks_refreshes_mutable_columns(self, db: CatalogDb) -> None:
        album_id = await self._album_id(db)
        await db.upsert_tracks([TrackRow(track_hash=HASH_A, title="Old", popularity=1)])

        await db.upsert_tracks(
            [
                TrackRow(
                    track_hash=HASH_A,
                    title="New",
                    duration_ms=1000,
                    duration_text="0:01",
                    genre="pop",
                    mood="joy",
                    explicit=True,
                    popularity=99,
                    album_id=album_id,
                )
            ]
        )

        tracks = await db.list_tracks()
        assert len(tracks) == 1
        t = tracks[0]
        assert t.track_hash == HASH_A
        assert t.title == "New"
        assert t.duration_ms == 1000
        assert t.explicit is True
        assert t.popularity == 99
        assert t.album_id == album_id

    async def test_track_hash_must_be_sha256_length(self, db: CatalogDb) -> None:
        with pytest.raises(sqlite3.IntegrityError):
            await db.upsert_tracks([TrackRow(track_hash="short", title="x")])

    async def test_joins_ignore_duplicates(self, db: CatalogDb) -> None:
        album_id = await self._album_id(db)
        await db.insert_artist_seeds([ArtistSeed("iu", "IU")])
        artist_id = (await db.fetch_artist_ids_by_key(["iu"]))["iu"]
        await db.upsert_tracks([TrackRow(track_hash=HASH_A, title="S")])
        track_id = (await db.fetch_track_ids_by_hash([HASH_A]))[HASH_A]

        assert await db.insert_album_artists([AlbumArtistRow(album_id, artist_id)]) == 1
        assert await db.insert_album_artists([AlbumArtistRow(album_id, artist_id)]) == 0
        assert await db.insert_track_artists([TrackArtistRow(track_id, artist_id)]) == 1
        assert await db.insert_track_artists([TrackArtistRow(track_id, artist_id)]) == 0

        assert await db.list_album_artist_ids(album_id) == [artist_id]
        assert await db.list_track_artist_ids(track_id) == [artist_id]

    async def test_lyrics_and_audio_upsert(self, db: CatalogDb) -> None:
        await db.upsert_tracks([TrackRow(track_hash=HASH_A, title="S")])
        track_id = (await db.fetch_track_ids_by_hash([HASH_A]))[HASH_A]

        await db.upsert_track_lyrics([TrackLyricsRow(track_id, "first")])
        await db.upsert_track_lyrics([TrackLyricsRow(track_id, "second")])
        assert await db.get_track_lyrics(track_id) == "second"

        await db.upsert_audio_features([AudioFeatureRow(track_id, tempo=100.0, energy=10)])
        await db.upsert_audio_features([AudioFeatureRow(track_id, tempo=120.0)])
        audio = await db.get_audio_features(track_id)
        assert audio is not None
        assert audio.tempo == 120.0
        assert audio.energy is None

        assert await db.count_rows("track_lyrics") == 1
        assert await db.count_rows("audio_features") == 1

    async def test_missing_details_return_none(self, db: CatalogDb) -> None:
        assert await db.get_track_lyrics(12345) is None
        assert await db.get_audio_features(12345) is None
        assert await db.get_track_by_hash(HASH_B) is None


class TestAggregates:
    async def test_rebuild_counts_per_year(self, db: CatalogDb) -> None:
        await db.insert_artist_seeds([ArtistSeed("iu", "IU"), ArtistSeed("bts", "BTS")])
        await db.insert_album_seeds(
            [
                AlbumSeed("x|2020-01-01", "X", date(2020, 1, 1)),
                AlbumSeed("y|2020-06-01", "Y", date(2020, 6, 1)),
                AlbumSeed("z|null", "Z", None),
            ]
        )
        artists = await db.fetch_artist_ids_by_key(["iu", "bts"])
        albums = await db.fetch_album_ids_by_key(["x|2020-01-01", "y|2020-06-01", "z|null"])
        await db.insert_album_artists(
            [
                AlbumArtistRow(albums["x|2020-01-01"], artists["iu"]),
                AlbumArtistRow(albums["y|2020-06-01"], artists["iu"]),
                AlbumArtistRow(albums["y|2020-06-01"], artists["bts"]),
                AlbumArtistRow(albums["z|null"], artists["bts"]),
            ]
        )

        async with db.transaction():
            inserted = await db.rebuild_artist_album_counts()

        assert inserted == 2
        rows = await db.list_artist_album_counts()
        counts = {(r.release_year, r.artist_id): r.album_count for r in rows}
        assert counts == {(2020, artists["iu"]): 2, (2020, artists["bts"]): 1}

        # Rebuilding again replaces rather than accumulates.
        async with db.transaction():
            assert await db.rebuild_artist_album_counts() == 2
        assert len(await db.list_artist_album_counts(release_year=2020)) == 2
        assert await db.list_artist_album_counts(release_year=1999) == []
