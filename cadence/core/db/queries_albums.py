"""
Album-related DB queries.

Design:
- Functions are *pure DB helpers*: they take an open `aiosqlite.Connection`
  and return rowcounts or materialized records.
- These functions assume `conn.row_factory = aiosqlite.Row`.
- Writes never commit; the caller owns the transaction.

Dates are stored as ISO `YYYY-MM-DD` text; `release_year` is denormalized at
insert time so aggregate and pagination queries never parse dates.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any, Final

import aiosqlite

from cadence.core.db.chunking import chunked_apply
from cadence.core.db.models import AlbumRecord
from cadence.core.db.queries_meta import LOOKUP_CHUNK, fetch_id_map, values_placeholders
from cadence.core.seeds import AlbumSeed

ALBUM_CHUNK: Final[int] = 400


async def insert_album_seeds(
    conn: aiosqlite.Connection,
    seeds: Sequence[AlbumSeed],
    *,
    chunk_size: int = ALBUM_CHUNK,
) -> int:
    """
    Insert albums by `album_key`; existing keys are left untouched.

    Returns the number of newly inserted rows.
    """

    async def _insert_once(chunk: Sequence[AlbumSeed]) -> int:
        params: list[Any] = []
        for s in chunk:
            params.extend(
                (
                    s.key,
                    s.name,
                    s.release_date.isoformat() if s.release_date else None,
                    s.release_date.year if s.release_date else None,
                )
            )
        cursor = await conn.execute(
            f"""
            INSERT INTO albums (album_key, name, release_date, release_year)
            VALUES {values_placeholders(len(chunk), 4)}
            ON CONFLICT(album_key) DO NOTHING
            """,
            params,
        )
        return max(cursor.rowcount, 0)

    return await chunked_apply(seeds, chunk_size, _insert_once)


async def fetch_album_ids_by_key(
    conn: aiosqlite.Connection,
    keys: Sequence[str | None],
    *,
    chunk_size: int = LOOKUP_CHUNK,
) -> dict[str, int]:
    """Return {album_key: album_id} for the keys that exist."""
    return await fetch_id_map(conn, "albums", "album_key", keys, chunk_size=chunk_size)


def _row_to_album(row: aiosqlite.Row) -> AlbumRecord:
    release_date = row["release_date"]
    return AlbumRecord(
        id=int(row["id"]),
        name=row["name"],
        release_date=date.fromisoformat(release_date) if release_date else None,
        release_year=int(row["release_year"]) if row["release_year"] is not None else None,
        album_key=row["album_key"],
    )


async def get_album_by_key(conn: aiosqlite.Connection, album_key: str) -> AlbumRecord | None:
    cursor = await conn.execute(
        """
        SELECT id, name, release_date, release_year, album_key
        FROM albums
        WHERE album_key = ?
        """,
        (album_key,),
    )
    row = await cursor.fetchone()
    return _row_to_album(row) if row is not None else None


async def list_albums(conn: aiosqlite.Connection) -> list[AlbumRecord]:
    cursor = await conn.execute(
        """
        SELECT id, name, release_date, release_year, album_key
        FROM albums
        ORDER BY id ASC
        """
    )
    rows = await cursor.fetchall()
    return [_row_to_album(r) for r in rows]
