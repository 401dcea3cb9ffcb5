"""
Row builders for the dependent phases of a batch.

Builders are pure: they take raw records plus the id maps resolved earlier in
the same batch and return frozen row objects, field by field. A reference that
cannot be resolved is logged and the row is skipped; it never aborts the batch.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from cadence.core.db.models import (
    AlbumArtistRow,
    AudioFeatureRow,
    TrackArtistRow,
    TrackLyricsRow,
    TrackRow,
)
from cadence.core.feed import RawTrackRecord
from cadence.core.normalize import (
    album_key,
    artist_key,
    content_hash,
    normalize,
    parse_date,
    parse_duration_ms,
    parse_explicit_flag,
    split_artists,
    track_natural_key,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrackBuild:
    """Track rows in input order (one per record)."""

    rows: tuple[TrackRow, ...]

    @property
    def hashes(self) -> list[str]:
        return [r.track_hash for r in self.rows]


@dataclass(frozen=True, slots=True)
class TrackRelations:
    track_artists: tuple[TrackArtistRow, ...]
    lyrics: tuple[TrackLyricsRow, ...]
    audio_features: tuple[AudioFeatureRow, ...]


def _record_album_key(record: RawTrackRecord) -> str | None:
    return album_key(normalize(record.album), parse_date(record.release_date))


def _record_artist_keys(record: RawTrackRecord) -> list[str]:
    keys: list[str] = []
    for name in split_artists(record.artists):
        key = artist_key(name)
        if key is not None:
            keys.append(key)
    return keys


def build_album_artist_rows(
    records: Sequence[RawTrackRecord],
    artist_ids: Mapping[str, int],
    album_ids: Mapping[str, int],
) -> list[AlbumArtistRow]:
    """One row per distinct (album, artist) pair the batch mentions."""
    seen: dict[tuple[int, int], AlbumArtistRow] = {}

    for r in records:
        ak = _record_album_key(r)
        if ak is None:
            continue
        album_id = album_ids.get(ak)
        if album_id is None:
            logger.warning("Album id not found for key=%s; skipping album_artists rows", ak)
            continue

        for key in _record_artist_keys(r):
            artist_id = artist_ids.get(key)
            if artist_id is None:
                logger.warning("Artist id not found for key=%s (album=%s)", key, ak)
                continue
            pair = (album_id, artist_id)
            if pair not in seen:
                seen[pair] = AlbumArtistRow(album_id=album_id, artist_id=artist_id)

    return list(seen.values())


def build_track_rows(
    records: Sequence[RawTrackRecord],
    album_ids: Mapping[str, int],
) -> TrackBuild:
    """
    Build one `TrackRow` per record, index-aligned with `records`.

    The track hash is derived from title, album, release date and the raw
    artist names. A record that names an album whose id is missing still
    yields a track, with `album_id=None`.
    """
    rows: list[TrackRow] = []

    for r in records:
        release_date = parse_date(r.release_date)
        track_hash = content_hash(
            track_natural_key(r.song, r.album, release_date, split_artists(r.artists))
        )

        album_id: int | None = None
        ak = _record_album_key(r)
        if ak is not None:
            album_id = album_ids.get(ak)
            if album_id is None:
                logger.warning("Album id not found for key=%s (track=%s)", ak, track_hash)

        rows.append(
            TrackRow(
                track_hash=track_hash,
                title=normalize(r.song) or "",
                duration_ms=parse_duration_ms(r.length),
                duration_text=normalize(r.length),
                genre=normalize(r.genre),
                mood=normalize(r.emotion),
                explicit=parse_explicit_flag(r.explicit),
                popularity=r.popularity,
                album_id=album_id,
            )
        )

    return TrackBuild(rows=tuple(rows))


def _audio_row(track_id: int, r: RawTrackRecord) -> AudioFeatureRow:
    return AudioFeatureRow(
        track_id=track_id,
        tempo=r.tempo,
        loudness=r.loudness_db,
        energy=r.energy,
        danceability=r.danceability,
        positiveness=r.positiveness,
        speechiness=r.speechiness,
        liveness=r.liveness,
        acousticness=r.acousticness,
        instrumentalness=r.instrumentalness,
        musical_key=normalize(r.key),
        time_signature=normalize(r.time_signature),
    )


def build_track_relations(
    records: Sequence[RawTrackRecord],
    track_rows: Sequence[TrackRow],
    track_ids: Mapping[str, int],
    artist_ids: Mapping[str, int],
) -> TrackRelations:
    """
    Build track_artists, track_lyrics and audio_features rows.

    `track_rows` must be index-aligned with `records` (as returned by
    `build_track_rows`). Records whose track id cannot be resolved produce no
    dependent rows at all.
    """
    if len(records) != len(track_rows):
        raise ValueError(
            f"records/track_rows length mismatch: {len(records)} != {len(track_rows)}"
        )

    track_artists: dict[tuple[int, int], TrackArtistRow] = {}
    lyrics: list[TrackLyricsRow] = []
    audio: list[AudioFeatureRow] = []

    for r, row in zip(records, track_rows):
        track_id = track_ids.get(row.track_hash)
        if track_id is None:
            logger.warning("Track id not found for hash=%s; skipping dependents", row.track_hash)
            continue

        for key in _record_artist_keys(r):
            artist_id = artist_ids.get(key)
            if artist_id is None:
                logger.warning("Artist id not found for key=%s (track=%s)", key, row.track_hash)
                continue
            pair = (track_id, artist_id)
            if pair not in track_artists:
                track_artists[pair] = TrackArtistRow(track_id=track_id, artist_id=artist_id)

        text = normalize(r.text)
        if text is not None:
            lyrics.append(TrackLyricsRow(track_id=track_id, lyrics=text))

        audio.append(_audio_row(track_id, r))

    return TrackRelations(
        track_artists=tuple(track_artists.values()),
        lyrics=tuple(lyrics),
        audio_features=tuple(audio),
    )
