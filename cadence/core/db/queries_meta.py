"""
Shared DB helpers used by the per-table query modules.

This module contains:
- Multi-row VALUES placeholder construction
- Natural-key -> id lookups (chunked IN lists)
- Row counting for catalog tables

Design:
- Functions are *pure DB helpers*: they take an open `aiosqlite.Connection`.
- These functions assume `conn.row_factory = aiosqlite.Row`.

Important:
- Do NOT interpolate user input into SQL. Table and column names used in
  dynamic SQL here are validated against static whitelists.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

import aiosqlite

from cadence.core.db.chunking import iter_chunks
from cadence.core.db.schema import CATALOG_TABLES

# Max keys bound into one `IN (...)` lookup.
LOOKUP_CHUNK: Final[int] = 500

# (table, key column) pairs that may be resolved to ids.
_ID_LOOKUPS: Final[frozenset[tuple[str, str]]] = frozenset(
    {
        ("artists", "name_key"),
        ("albums", "album_key"),
        ("tracks", "track_hash"),
    }
)


def values_placeholders(row_count: int, column_count: int) -> str:
    """Return "(?, ?), (?, ?)"-style placeholders for a multi-row INSERT."""
    row = "(" + ", ".join("?" * column_count) + ")"
    return ", ".join([row] * row_count)


async def fetch_id_map(
    conn: aiosqlite.Connection,
    table: str,
    key_column: str,
    keys: Sequence[str | None],
    *,
    chunk_size: int = LOOKUP_CHUNK,
) -> dict[str, int]:
    """
    Resolve natural keys to surrogate ids.

    None and duplicate keys are dropped before querying. Keys with no row are
    simply absent from the result; callers decide whether that matters.
    """
    if (table, key_column) not in _ID_LOOKUPS:
        raise ValueError(f"Unsupported id lookup: {table}.{key_column}")

    uniq = list(dict.fromkeys(k for k in keys if k is not None))
    if not uniq:
        return {}

    out: dict[str, int] = {}
    for chunk in iter_chunks(uniq, chunk_size):
        cursor = await conn.execute(
            f"SELECT id, {key_column} AS k FROM {table} "
            f"WHERE {key_column} IN ({', '.join('?' * len(chunk))})",
            tuple(chunk),
        )
        for r in await cursor.fetchall():
            out[r["k"]] = int(r["id"])
    return out


async def count_rows(conn: aiosqlite.Connection, table: str) -> int:
    if table not in CATALOG_TABLES:
        raise ValueError(f"Unknown catalog table: {table}")
    cursor = await conn.execute(f"SELECT COUNT(*) AS c FROM {table};")
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0


async def count_catalog(conn: aiosqlite.Connection) -> dict[str, int]:
    """Row counts for every catalog table, keyed by table name."""
    return {table: await count_rows(conn, table) for table in CATALOG_TABLES}
