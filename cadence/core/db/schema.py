"""
Database schema + migrations for the Cadence catalog.

- Connection management and the public `CatalogDb` facade live in `catalog_db.py`
- Schema creation, schema versioning, and forward-only migrations live here

Design notes:
- We use SQLite `PRAGMA user_version` as the schema version.
- Migrations are forward-only (no downgrade support).
- Natural keys (`name_key`, `album_key`, `track_hash`) carry UNIQUE
  constraints; the ingest pipeline relies on them for idempotent upserts.
"""

from __future__ import annotations

import logging
from typing import Final

import aiosqlite

logger = logging.getLogger(__name__)

# Bump when you change the schema and add a migration in `migrate()`.
SCHEMA_VERSION: Final[int] = 2

# Tables that the ingest pipeline writes, in dependency order.
CATALOG_TABLES: Final[tuple[str, ...]] = (
    "artists",
    "albums",
    "album_artists",
    "tracks",
    "track_artists",
    "track_lyrics",
    "audio_features",
    "artist_album_count_by_year",
)


async def schema_version(conn: aiosqlite.Connection) -> int:
    """Return the `PRAGMA user_version` stored in the database file."""
    cursor = await conn.execute("PRAGMA user_version;")
    row = await cursor.fetchone()
    return int(row[0]) if row is not None else 0


async def ensure_schema(conn: aiosqlite.Connection) -> None:
    """
    Bring the catalog schema up to `SCHEMA_VERSION`.

    The caller owns the connection and has already enabled foreign keys.
    A database written by a newer release is refused rather than touched.
    """
    current = await schema_version(conn)
    if current == SCHEMA_VERSION:
        return
    if current > SCHEMA_VERSION:
        raise RuntimeError(
            f"Catalog schema v{current} is newer than this release supports (v{SCHEMA_VERSION})."
        )

    logger.info("Migrating catalog schema v%d -> v%d", current, SCHEMA_VERSION)
    await migrate(conn, from_version=current, to_version=SCHEMA_VERSION)
    await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")
    await conn.commit()


async def migrate(conn: aiosqlite.Connection, *, from_version: int, to_version: int) -> None:
    """
    Perform forward-only migrations.

    Keep migrations small. If you need a big refactor, create a new DB.
    """
    # v0 -> v1: normalized catalog
    if from_version == 0 and to_version >= 1:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS artists (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                name_key TEXT NOT NULL UNIQUE
            )
            """
        )

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS albums (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                release_date TEXT,
                release_year INTEGER,
                album_key TEXT NOT NULL UNIQUE
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_albums_release_year ON albums(release_year);"
        )

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS album_artists (
                album_id INTEGER NOT NULL REFERENCES albums(id) ON DELETE CASCADE,
                artist_id INTEGER NOT NULL REFERENCES artists(id) ON DELETE CASCADE,
                PRIMARY KEY (album_id, artist_id)
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_album_artists_artist ON album_artists(artist_id);"
        )

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS tracks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                track_hash TEXT NOT NULL UNIQUE CHECK (length(track_hash) = 64),

                title TEXT NOT NULL,
                duration_ms INTEGER,
                duration_text TEXT,
                genre TEXT,
                mood TEXT,
                explicit INTEGER NOT NULL DEFAULT 0,
                popularity INTEGER,

                album_id INTEGER REFERENCES albums(id) ON DELETE SET NULL
            )
            """
        )
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_tracks_album_id ON tracks(album_id);")

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS track_artists (
                track_id INTEGER NOT NULL REFERENCES tracks(id) ON DELETE CASCADE,
                artist_id INTEGER NOT NULL REFERENCES artists(id) ON DELETE CASCADE,
                PRIMARY KEY (track_id, artist_id)
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_track_artists_artist ON track_artists(artist_id);"
        )

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS track_lyrics (
                track_id INTEGER PRIMARY KEY REFERENCES tracks(id) ON DELETE CASCADE,
                lyrics TEXT NOT NULL
            )
            """
        )

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS audio_features (
                track_id INTEGER PRIMARY KEY REFERENCES tracks(id) ON DELETE CASCADE,
                tempo REAL,
                loudness REAL,
                energy INTEGER,
                danceability INTEGER,
                positiveness INTEGER,
                speechiness INTEGER,
                liveness INTEGER,
                acousticness INTEGER,
                instrumentalness INTEGER,
                musical_key TEXT,
                time_signature TEXT
            )
            """
        )

        await conn.commit()
        from_version = 1

    # v1 -> v2: derived per-year album counts
    if from_version == 1 and to_version >= 2:
        # Fully rebuilt from album_artists x albums; never written by batches.
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS artist_album_count_by_year (
                release_year INTEGER NOT NULL,
                artist_id INTEGER NOT NULL REFERENCES artists(id) ON DELETE CASCADE,
                album_count INTEGER NOT NULL,
                PRIMARY KEY (release_year, artist_id)
            )
            """
        )
        # Keyset pagination reads by (year, album_count desc, artist_id).
        await conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_aacby_year_count
            ON artist_album_count_by_year(release_year, album_count DESC, artist_id)
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_aacby_artist ON artist_album_count_by_year(artist_id);"
        )

        await conn.commit()
        from_version = 2

    if from_version != to_version:
        raise RuntimeError(f"No migration path from {from_version} to {to_version}.")
