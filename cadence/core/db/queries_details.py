"""
One-to-one track detail queries: track_lyrics and audio_features.

Both tables are keyed by `track_id` and upserted: re-ingesting a track
refreshes its lyric text and every audio-feature column.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Final

import aiosqlite

from cadence.core.db.chunking import chunked_apply
from cadence.core.db.models import AudioFeatureRow, TrackLyricsRow
from cadence.core.db.queries_meta import values_placeholders

# Lyrics can be large; keep statements small.
LYRICS_CHUNK: Final[int] = 200
AUDIO_FEATURE_CHUNK: Final[int] = 400

_AUDIO_COLUMNS: Final[tuple[str, ...]] = (
    "track_id",
    "tempo",
    "loudness",
    "energy",
    "danceability",
    "positiveness",
    "speechiness",
    "liveness",
    "acousticness",
    "instrumentalness",
    "musical_key",
    "time_signature",
)


async def upsert_track_lyrics(
    conn: aiosqlite.Connection,
    rows: Sequence[TrackLyricsRow],
    *,
    chunk_size: int = LYRICS_CHUNK,
) -> int:
    async def _upsert_once(chunk: Sequence[TrackLyricsRow]) -> int:
        params: list[Any] = []
        for r in chunk:
            params.extend((int(r.track_id), r.lyrics))
        cursor = await conn.execute(
            f"""
            INSERT INTO track_lyrics (track_id, lyrics)
            VALUES {values_placeholders(len(chunk), 2)}
            ON CONFLICT(track_id) DO UPDATE SET
                lyrics = excluded.lyrics
            """,
            params,
        )
        return max(cursor.rowcount, 0)

    return await chunked_apply(rows, chunk_size, _upsert_once)


async def upsert_audio_features(
    conn: aiosqlite.Connection,
    rows: Sequence[AudioFeatureRow],
    *,
    chunk_size: int = AUDIO_FEATURE_CHUNK,
) -> int:
    async def _upsert_once(chunk: Sequence[AudioFeatureRow]) -> int:
        params: list[Any] = []
        for r in chunk:
            params.extend(
                (
                    int(r.track_id),
                    r.tempo,
                    r.loudness,
                    r.energy,
                    r.danceability,
                    r.positiveness,
                    r.speechiness,
                    r.liveness,
                    r.acousticness,
                    r.instrumentalness,
                    r.musical_key,
                    r.time_signature,
                )
            )
        updates = ",\n                ".join(f"{c} = excluded.{c}" for c in _AUDIO_COLUMNS[1:])
        cursor = await conn.execute(
            f"""
            INSERT INTO audio_features ({", ".join(_AUDIO_COLUMNS)})
            VALUES {values_placeholders(len(chunk), len(_AUDIO_COLUMNS))}
            ON CONFLICT(track_id) DO UPDATE SET
                {updates}
            """,
            params,
        )
        return max(cursor.rowcount, 0)

    return await chunked_apply(rows, chunk_size, _upsert_once)


async def get_track_lyrics(conn: aiosqlite.Connection, track_id: int) -> str | None:
    cursor = await conn.execute(
        "SELECT lyrics FROM track_lyrics WHERE track_id = ?;",
        (int(track_id),),
    )
    row = await cursor.fetchone()
    return row["lyrics"] if row is not None else None


async def get_audio_features(
    conn: aiosqlite.Connection, track_id: int
) -> AudioFeatureRow | None:
    cursor = await conn.execute(
        f"SELECT {', '.join(_AUDIO_COLUMNS)} FROM audio_features WHERE track_id = ?;",
        (int(track_id),),
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    return AudioFeatureRow(
        track_id=int(row["track_id"]),
        tempo=row["tempo"],
        loudness=row["loudness"],
        energy=row["energy"],
        danceability=row["danceability"],
        positiveness=row["positiveness"],
        speechiness=row["speechiness"],
        liveness=row["liveness"],
        acousticness=row["acousticness"],
        instrumentalness=row["instrumentalness"],
        musical_key=row["musical_key"],
        time_signature=row["time_signature"],
    )
