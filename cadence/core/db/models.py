"""
DB models (DTOs) for the catalog tables.

This module is intentionally lightweight:
- No DB connection knowledge
- No SQL
- Pure dataclasses

Write-side rows are built field by field by `cadence.core.rows`; read-side
rows are returned by the `queries_*` modules.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

# ---------------------------------------------------------------------------
# Write-side rows (ingest)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AlbumArtistRow:
    album_id: int
    artist_id: int


@dataclass(frozen=True, slots=True)
class TrackRow:
    """
    Track as written by the ingest pipeline.

    Notes:
    - `track_hash` is the stable identity (SHA-256 of the natural key).
    - Everything else is mutable and refreshed on re-ingest.
    - `title` is never None; missing titles are stored as "".
    """

    track_hash: str
    title: str
    duration_ms: int | None = None
    duration_text: str | None = None
    genre: str | None = None
    mood: str | None = None
    explicit: bool = False
    popularity: int | None = None
    album_id: int | None = None


@dataclass(frozen=True, slots=True)
class TrackArtistRow:
    track_id: int
    artist_id: int


@dataclass(frozen=True, slots=True)
class TrackLyricsRow:
    track_id: int
    lyrics: str


@dataclass(frozen=True, slots=True)
class AudioFeatureRow:
    """
    Numeric audio descriptors for a track.

    One row is written per ingested record even when every value is None;
    readers must tolerate null feature columns.
    """

    track_id: int
    tempo: float | None = None
    loudness: float | None = None
    energy: int | None = None
    danceability: int | None = None
    positiveness: int | None = None
    speechiness: int | None = None
    liveness: int | None = None
    acousticness: int | None = None
    instrumentalness: int | None = None
    musical_key: str | None = None
    time_signature: str | None = None


# ---------------------------------------------------------------------------
# Read-side rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ArtistRecord:
    """Artist record as stored in SQLite."""

    id: int
    name: str
    name_key: str


@dataclass(frozen=True, slots=True)
class AlbumRecord:
    """Album record as stored in SQLite."""

    id: int
    name: str
    release_date: date | None
    release_year: int | None
    album_key: str


@dataclass(frozen=True, slots=True)
class TrackRecord:
    """Canonical track record as stored in SQLite."""

    id: int
    track_hash: str
    title: str
    duration_ms: int | None
    duration_text: str | None
    genre: str | None
    mood: str | None
    explicit: bool
    popularity: int | None
    album_id: int | None


@dataclass(frozen=True, slots=True)
class ArtistAlbumCountRow:
    """One bucket of the derived per-year album-count table."""

    release_year: int
    artist_id: int
    album_count: int
