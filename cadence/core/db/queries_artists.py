"""
Artist-related DB queries.

Design:
- Functions are *pure DB helpers*: they take an open `aiosqlite.Connection`
  and return rowcounts or materialized records.
- These functions assume `conn.row_factory = aiosqlite.Row`.
- Writes never commit; the caller owns the transaction.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

import aiosqlite

from cadence.core.db.chunking import chunked_apply
from cadence.core.db.models import ArtistRecord
from cadence.core.db.queries_meta import LOOKUP_CHUNK, fetch_id_map, values_placeholders
from cadence.core.seeds import ArtistSeed

ARTIST_CHUNK: Final[int] = 500


async def insert_artist_seeds(
    conn: aiosqlite.Connection,
    seeds: Sequence[ArtistSeed],
    *,
    chunk_size: int = ARTIST_CHUNK,
) -> int:
    """
    Insert artists by `name_key`; existing keys are left untouched.

    Returns the number of newly inserted rows.
    """

    async def _insert_once(chunk: Sequence[ArtistSeed]) -> int:
        params: list[str] = []
        for s in chunk:
            params.extend((s.key, s.display_name))
        cursor = await conn.execute(
            f"""
            INSERT INTO artists (name_key, name)
            VALUES {values_placeholders(len(chunk), 2)}
            ON CONFLICT(name_key) DO NOTHING
            """,
            params,
        )
        return max(cursor.rowcount, 0)

    return await chunked_apply(seeds, chunk_size, _insert_once)


async def fetch_artist_ids_by_key(
    conn: aiosqlite.Connection,
    keys: Sequence[str | None],
    *,
    chunk_size: int = LOOKUP_CHUNK,
) -> dict[str, int]:
    """Return {name_key: artist_id} for the keys that exist."""
    return await fetch_id_map(conn, "artists", "name_key", keys, chunk_size=chunk_size)


async def get_artist_by_key(conn: aiosqlite.Connection, name_key: str) -> ArtistRecord | None:
    cursor = await conn.execute(
        "SELECT id, name, name_key FROM artists WHERE name_key = ?;",
        (name_key,),
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    return ArtistRecord(id=int(row["id"]), name=row["name"], name_key=row["name_key"])


async def list_artists(conn: aiosqlite.Connection) -> list[ArtistRecord]:
    cursor = await conn.execute("SELECT id, name, name_key FROM artists ORDER BY id ASC;")
    rows = await cursor.fetchall()
    return [ArtistRecord(id=int(r["id"]), name=r["name"], name_key=r["name_key"]) for r in rows]
