"""
Catalog database access layer.

Goals:
- SQLite + aiosqlite, async/await friendly.
- Explicit transaction scope: the ingest pipeline applies a whole batch
  atomically or not at all.
- Keep schema small, but leave room to evolve (via user_version migrations).

Note:
- Models/DTOs live in `cadence.core.db.models`
- Schema/migrations live in `cadence.core.db.schema`
- Query functions live in `cadence.core.db.queries_*` modules
- `CatalogDb` remains the public facade used by the rest of the codebase
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from cadence.config import ChunkSizes
from cadence.core.db import (
    queries_albums,
    queries_artists,
    queries_details,
    queries_links,
    queries_meta,
    queries_stats,
    queries_tracks,
)
from cadence.core.db.models import (
    AlbumArtistRow,
    AlbumRecord,
    ArtistAlbumCountRow,
    ArtistRecord,
    AudioFeatureRow,
    TrackArtistRow,
    TrackLyricsRow,
    TrackRecord,
    TrackRow,
)
from cadence.core.db.schema import ensure_schema as ensure_schema_sql
from cadence.core.seeds import AlbumSeed, ArtistSeed

logger = logging.getLogger(__name__)


class CatalogDb:
    """
    Async access layer for the catalog DB.

    Usage:
        db = CatalogDb("catalog.sqlite3")
        await db.open()
        await db.ensure_schema()
        async with db.transaction():
            ... writes ...
        await db.close()

    Notes:
    - The connection runs in autocommit mode; `transaction()` issues explicit
      BEGIN/COMMIT/ROLLBACK so a scope is never committed implicitly.
    - Connections are not pooled; batches are applied one at a time anyway.
    """

    def __init__(self, db_path: str | Path, *, chunks: ChunkSizes | None = None) -> None:
        self._db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._in_transaction = False
        self.chunks = chunks or ChunkSizes()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    async def open(self) -> None:
        if self._conn is not None:
            return
        self._conn = await aiosqlite.connect(self._db_path, isolation_level=None)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute("PRAGMA foreign_keys = ON;")
        if self._db_path != ":memory:":
            await self._conn.execute("PRAGMA journal_mode = WAL;")
        await self._conn.execute("PRAGMA synchronous = NORMAL;")
        await self._conn.execute("PRAGMA temp_store = MEMORY;")

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("CatalogDb is not open. Call await db.open() first.")
        return self._conn

    async def ensure_schema(self) -> None:
        """Create or migrate schema to current version."""
        conn = self._require_conn()
        await ensure_schema_sql(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Run the enclosed block in one write transaction.

        Any exception (including task cancellation or a failed COMMIT) rolls
        the whole scope back and propagates. Nested use is rejected.
        """
        conn = self._require_conn()
        if self._in_transaction:
            raise RuntimeError("CatalogDb transaction already in progress.")

        await conn.execute("BEGIN IMMEDIATE;")
        self._in_transaction = True
        try:
            yield
            await conn.execute("COMMIT;")
        except BaseException:
            try:
                await conn.execute("ROLLBACK;")
            except Exception:
                logger.exception("Rollback failed")
            else:
                logger.debug("Transaction rolled back")
            raise
        finally:
            self._in_transaction = False

    # ===========================================================================
    # Artists
    # ===========================================================================

    async def insert_artist_seeds(self, seeds: Sequence[ArtistSeed]) -> int:
        return await queries_artists.insert_artist_seeds(
            self._require_conn(), seeds, chunk_size=self.chunks.artists
        )

    async def fetch_artist_ids_by_key(self, keys: Sequence[str | None]) -> dict[str, int]:
        return await queries_artists.fetch_artist_ids_by_key(
            self._require_conn(), keys, chunk_size=self.chunks.lookups
        )

    async def get_artist_by_key(self, name_key: str) -> ArtistRecord | None:
        return await queries_artists.get_artist_by_key(self._require_conn(), name_key)

    async def list_artists(self) -> list[ArtistRecord]:
        return await queries_artists.list_artists(self._require_conn())

    # ===========================================================================
    # Albums
    # ===========================================================================

    async def insert_album_seeds(self, seeds: Sequence[AlbumSeed]) -> int:
        return await queries_albums.insert_album_seeds(
            self._require_conn(), seeds, chunk_size=self.chunks.albums
        )

    async def fetch_album_ids_by_key(self, keys: Sequence[str | None]) -> dict[str, int]:
        return await queries_albums.fetch_album_ids_by_key(
            self._require_conn(), keys, chunk_size=self.chunks.lookups
        )

    async def get_album_by_key(self, album_key: str) -> AlbumRecord | None:
        return await queries_albums.get_album_by_key(self._require_conn(), album_key)

    async def list_albums(self) -> list[AlbumRecord]:
        return await queries_albums.list_albums(self._require_conn())

    # ===========================================================================
    # Tracks
    # ===========================================================================

    async def upsert_tracks(self, rows: Sequence[TrackRow]) -> int:
        return await queries_tracks.upsert_tracks(
            self._require_conn(), rows, chunk_size=self.chunks.tracks
        )

    async def fetch_track_ids_by_hash(self, hashes: Sequence[str | None]) -> dict[str, int]:
        return await queries_tracks.fetch_track_ids_by_hash(
            self._require_conn(), hashes, chunk_size=self.chunks.lookups
        )

    async def get_track_by_hash(self, track_hash: str) -> TrackRecord | None:
        return await queries_tracks.get_track_by_hash(self._require_conn(), track_hash)

    async def list_tracks(self) -> list[TrackRecord]:
        return await queries_tracks.list_tracks(self._require_conn())

    # ===========================================================================
    # Joins
    # ===========================================================================

    async def insert_album_artists(self, rows: Sequence[AlbumArtistRow]) -> int:
        return await queries_links.insert_album_artists(
            self._require_conn(), rows, chunk_size=self.chunks.album_artists
        )

    async def insert_track_artists(self, rows: Sequence[TrackArtistRow]) -> int:
        return await queries_links.insert_track_artists(
            self._require_conn(), rows, chunk_size=self.chunks.track_artists
        )

    async def list_album_artist_ids(self, album_id: int) -> list[int]:
        return await queries_links.list_album_artist_ids(self._require_conn(), album_id)

    async def list_track_artist_ids(self, track_id: int) -> list[int]:
        return await queries_links.list_track_artist_ids(self._require_conn(), track_id)

    # ===========================================================================
    # Track details
    # ===========================================================================

    async def upsert_track_lyrics(self, rows: Sequence[TrackLyricsRow]) -> int:
        return await queries_details.upsert_track_lyrics(
            self._require_conn(), rows, chunk_size=self.chunks.track_lyrics
        )

    async def upsert_audio_features(self, rows: Sequence[AudioFeatureRow]) -> int:
        return await queries_details.upsert_audio_features(
            self._require_conn(), rows, chunk_size=self.chunks.audio_features
        )

    async def get_track_lyrics(self, track_id: int) -> str | None:
        return await queries_details.get_track_lyrics(self._require_conn(), track_id)

    async def get_audio_features(self, track_id: int) -> AudioFeatureRow | None:
        return await queries_details.get_audio_features(self._require_conn(), track_id)

    # ===========================================================================
    # Aggregates / meta
    # ===========================================================================

    async def rebuild_artist_album_counts(self) -> int:
        return await queries_stats.rebuild_artist_album_counts(self._require_conn())

    async def list_artist_album_counts(
        self, *, release_year: int | None = None
    ) -> list[ArtistAlbumCountRow]:
        return await queries_stats.list_artist_album_counts(
            self._require_conn(), release_year=release_year
        )

    async def count_rows(self, table: str) -> int:
        return await queries_meta.count_rows(self._require_conn(), table)

    async def count_catalog(self) -> dict[str, int]:
        return await queries_meta.count_catalog(self._require_conn())
