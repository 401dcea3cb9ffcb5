"""
Many-to-many join queries: album_artists and track_artists.

Join rows are immutable once created. Inserts ignore composite-PK conflicts
(duplicates within a batch or across re-ingests are absorbed silently).
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

import aiosqlite

from cadence.core.db.chunking import chunked_apply
from cadence.core.db.models import AlbumArtistRow, TrackArtistRow
from cadence.core.db.queries_meta import values_placeholders

# Join rows are light and plentiful; use bigger chunks.
ALBUM_ARTIST_CHUNK: Final[int] = 800
TRACK_ARTIST_CHUNK: Final[int] = 800


async def insert_album_artists(
    conn: aiosqlite.Connection,
    rows: Sequence[AlbumArtistRow],
    *,
    chunk_size: int = ALBUM_ARTIST_CHUNK,
) -> int:
    """Insert album/artist links, ignoring existing pairs. Returns inserted count."""

    async def _insert_once(chunk: Sequence[AlbumArtistRow]) -> int:
        params: list[int] = []
        for r in chunk:
            params.extend((int(r.album_id), int(r.artist_id)))
        cursor = await conn.execute(
            f"""
            INSERT INTO album_artists (album_id, artist_id)
            VALUES {values_placeholders(len(chunk), 2)}
            ON CONFLICT(album_id, artist_id) DO NOTHING
            """,
            params,
        )
        return max(cursor.rowcount, 0)

    return await chunked_apply(rows, chunk_size, _insert_once)


async def insert_track_artists(
    conn: aiosqlite.Connection,
    rows: Sequence[TrackArtistRow],
    *,
    chunk_size: int = TRACK_ARTIST_CHUNK,
) -> int:
    """Insert track/artist links, ignoring existing pairs. Returns inserted count."""

    async def _insert_once(chunk: Sequence[TrackArtistRow]) -> int:
        params: list[int] = []
        for r in chunk:
            params.extend((int(r.track_id), int(r.artist_id)))
        cursor = await conn.execute(
            f"""
            INSERT INTO track_artists (track_id, artist_id)
            VALUES {values_placeholders(len(chunk), 2)}
            ON CONFLICT(track_id, artist_id) DO NOTHING
            """,
            params,
        )
        return max(cursor.rowcount, 0)

    return await chunked_apply(rows, chunk_size, _insert_once)


async def list_album_artist_ids(conn: aiosqlite.Connection, album_id: int) -> list[int]:
    cursor = await conn.execute(
        "SELECT artist_id FROM album_artists WHERE album_id = ? ORDER BY artist_id;",
        (int(album_id),),
    )
    return [int(r["artist_id"]) for r in await cursor.fetchall()]


async def list_track_artist_ids(conn: aiosqlite.Connection, track_id: int) -> list[int]:
    cursor = await conn.execute(
        "SELECT artist_id FROM track_artists WHERE track_id = ? ORDER BY artist_id;",
        (int(track_id),),
    )
    return [int(r["artist_id"]) for r in await cursor.fetchall()]
