"""
Seed extraction: the deduplicated artists/albums a raw batch refers to.

Seeds are pre-persistence candidates. They exist only for the duration of a
batch: the pipeline upserts them, resolves their ids, and throws them away.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from cadence.core.feed import RawTrackRecord
from cadence.core.normalize import album_key, artist_key, normalize, parse_date, split_artists


@dataclass(frozen=True, slots=True)
class ArtistSeed:
    key: str
    display_name: str


@dataclass(frozen=True, slots=True)
class AlbumSeed:
    key: str
    name: str
    release_date: date | None


@dataclass(frozen=True, slots=True)
class SeedExtract:
    """Artist and album seeds in first-seen order, unique by key."""

    artists: tuple[ArtistSeed, ...]
    albums: tuple[AlbumSeed, ...]

    @property
    def artist_keys(self) -> list[str]:
        return [s.key for s in self.artists]

    @property
    def album_keys(self) -> list[str]:
        return [s.key for s in self.albums]


def extract_seeds(records: Sequence[RawTrackRecord]) -> SeedExtract:
    """
    Scan a batch once and collect key-deduplicated seeds.

    - The first display name seen for an artist key wins.
    - Records whose album name is blank contribute no album seed.
    - Output order is the order of first occurrence (dicts preserve insertion
      order), so extraction is deterministic for a given batch.
    """
    artists_by_key: dict[str, ArtistSeed] = {}
    albums_by_key: dict[str, AlbumSeed] = {}

    for r in records:
        for raw in split_artists(r.artists):
            display = normalize(raw)
            key = artist_key(display)
            if key is not None and display is not None and key not in artists_by_key:
                artists_by_key[key] = ArtistSeed(key=key, display_name=display)

        release_date = parse_date(r.release_date)
        album_name = normalize(r.album)
        ak = album_key(album_name, release_date)
        if ak is not None and album_name is not None and ak not in albums_by_key:
            albums_by_key[ak] = AlbumSeed(key=ak, name=album_name, release_date=release_date)

    return SeedExtract(
        artists=tuple(artists_by_key.values()),
        albums=tuple(albums_by_key.values()),
    )
