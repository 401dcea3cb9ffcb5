"""
Track-related DB queries.

Design:
- Functions are *pure DB helpers*: they take an open `aiosqlite.Connection`
  and return rowcounts or materialized records.
- These functions assume `conn.row_factory = aiosqlite.Row`.
- Writes never commit; the caller owns the transaction.

Identity:
- `track_hash` is the only identity column. Upserts refresh every mutable
  attribute but never touch the hash.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Final

import aiosqlite

from cadence.core.db.chunking import chunked_apply
from cadence.core.db.models import TrackRecord, TrackRow
from cadence.core.db.queries_meta import LOOKUP_CHUNK, fetch_id_map, values_placeholders

TRACK_CHUNK: Final[int] = 300

_TRACK_COLUMNS: Final[tuple[str, ...]] = (
    "track_hash",
    "title",
    "duration_ms",
    "duration_text",
    "genre",
    "mood",
    "explicit",
    "popularity",
    "album_id",
)


async def upsert_tracks(
    conn: aiosqlite.Connection,
    rows: Sequence[TrackRow],
    *,
    chunk_size: int = TRACK_CHUNK,
) -> int:
    """
    Insert or update tracks by `track_hash`.

    Returns the number of inserted + updated rows.
    """

    async def _upsert_once(chunk: Sequence[TrackRow]) -> int:
        params: list[Any] = []
        for r in chunk:
            params.extend(
                (
                    r.track_hash,
                    r.title,
                    r.duration_ms,
                    r.duration_text,
                    r.genre,
                    r.mood,
                    1 if r.explicit else 0,
                    r.popularity,
                    r.album_id,
                )
            )
        cursor = await conn.execute(
            f"""
            INSERT INTO tracks ({", ".join(_TRACK_COLUMNS)})
            VALUES {values_placeholders(len(chunk), len(_TRACK_COLUMNS))}
            ON CONFLICT(track_hash) DO UPDATE SET
                title         = excluded.title,
                duration_ms   = excluded.duration_ms,
                duration_text = excluded.duration_text,
                genre         = excluded.genre,
                mood          = excluded.mood,
                explicit      = excluded.explicit,
                popularity    = excluded.popularity,
                album_id      = excluded.album_id
            """,
            params,
        )
        return max(cursor.rowcount, 0)

    return await chunked_apply(rows, chunk_size, _upsert_once)


async def fetch_track_ids_by_hash(
    conn: aiosqlite.Connection,
    hashes: Sequence[str | None],
    *,
    chunk_size: int = LOOKUP_CHUNK,
) -> dict[str, int]:
    """Return {track_hash: track_id} for the hashes that exist."""
    return await fetch_id_map(conn, "tracks", "track_hash", hashes, chunk_size=chunk_size)


def _row_to_track(row: aiosqlite.Row) -> TrackRecord:
    return TrackRecord(
        id=int(row["id"]),
        track_hash=row["track_hash"],
        title=row["title"],
        duration_ms=row["duration_ms"],
        duration_text=row["duration_text"],
        genre=row["genre"],
        mood=row["mood"],
        explicit=bool(row["explicit"]),
        popularity=row["popularity"],
        album_id=row["album_id"],
    )


async def get_track_by_hash(conn: aiosqlite.Connection, track_hash: str) -> TrackRecord | None:
    cursor = await conn.execute(
        f"SELECT id, {', '.join(_TRACK_COLUMNS)} FROM tracks WHERE track_hash = ?;",
        (track_hash,),
    )
    row = await cursor.fetchone()
    return _row_to_track(row) if row is not None else None


async def list_tracks(conn: aiosqlite.Connection) -> list[TrackRecord]:
    cursor = await conn.execute(
        f"SELECT id, {', '.join(_TRACK_COLUMNS)} FROM tracks ORDER BY id ASC;"
    )
    rows = await cursor.fetchall()
    return [_row_to_track(r) for r in rows]
