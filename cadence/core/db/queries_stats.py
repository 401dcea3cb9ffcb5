"""
Derived statistics: per-year album counts by artist.

`artist_album_count_by_year` is never written incrementally. It is cleared and
recomputed from `album_artists` joined to `albums` after ingest runs.
"""

from __future__ import annotations

import aiosqlite

from cadence.core.db.models import ArtistAlbumCountRow


async def rebuild_artist_album_counts(conn: aiosqlite.Connection) -> int:
    """
    Clear and repopulate the per-year album-count table.

    Albums without a release year contribute nothing (there is no null-year
    bucket). The caller must run this inside a transaction so readers never
    observe the table empty. Returns the number of rows inserted.
    """
    await conn.execute("DELETE FROM artist_album_count_by_year;")
    cursor = await conn.execute(
        """
        INSERT INTO artist_album_count_by_year (release_year, artist_id, album_count)
        SELECT
            al.release_year,
            aa.artist_id,
            COUNT(*) AS album_count
        FROM album_artists aa
        JOIN albums al ON al.id = aa.album_id
        WHERE al.release_year IS NOT NULL
        GROUP BY al.release_year, aa.artist_id
        """
    )
    return max(cursor.rowcount, 0)


async def list_artist_album_counts(
    conn: aiosqlite.Connection, *, release_year: int | None = None
) -> list[ArtistAlbumCountRow]:
    """List aggregate rows ordered by year, album count (desc), artist id."""
    if release_year is None:
        cursor = await conn.execute(
            """
            SELECT release_year, artist_id, album_count
            FROM artist_album_count_by_year
            ORDER BY release_year ASC, album_count DESC, artist_id ASC
            """
        )
    else:
        cursor = await conn.execute(
            """
            SELECT release_year, artist_id, album_count
            FROM artist_album_count_by_year
            WHERE release_year = ?
            ORDER BY album_count DESC, artist_id ASC
            """,
            (int(release_year),),
        )
    rows = await cursor.fetchall()
    return [
        ArtistAlbumCountRow(
            release_year=int(r["release_year"]),
            artist_id=int(r["artist_id"]),
            album_count=int(r["album_count"]),
        )
        for r in rows
    ]
