"""
Batch ingest pipeline for the catalog.

A batch is applied in a fixed sequence of phases: artists and albums first
(their ids are only known once they exist), then album/artist joins, tracks,
and finally the rows that hang off a track id. All phases of one batch run in
one transaction owned by `CatalogIngestor.ingest_batch`.

Phase flow:
    PENDING -> EXTRACTED -> ARTISTS_PERSISTED -> ARTISTS_RESOLVED
    -> ALBUMS_PERSISTED -> ALBUMS_RESOLVED -> JOINS_PERSISTED
    -> TRACKS_BUILT -> TRACKS_PERSISTED -> TRACKS_RESOLVED
    -> DEPENDENTS_BUILT -> DEPENDENTS_PERSISTED -> COMMITTED

Any error moves the pipeline to ABORTED; there are no backward transitions.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from enum import Enum

from cadence.core import IngestStateError
from cadence.core.catalog_db import CatalogDb
from cadence.core.feed import RawTrackRecord
from cadence.core.rows import (
    TrackBuild,
    TrackRelations,
    build_album_artist_rows,
    build_track_relations,
    build_track_rows,
)
from cadence.core.seeds import SeedExtract, extract_seeds

logger = logging.getLogger(__name__)


class IngestPhase(Enum):
    """Phases of a single batch, in execution order."""

    PENDING = "pending"
    EXTRACTED = "extracted"
    ARTISTS_PERSISTED = "artists_persisted"
    ARTISTS_RESOLVED = "artists_resolved"
    ALBUMS_PERSISTED = "albums_persisted"
    ALBUMS_RESOLVED = "albums_resolved"
    JOINS_PERSISTED = "joins_persisted"
    TRACKS_BUILT = "tracks_built"
    TRACKS_PERSISTED = "tracks_persisted"
    TRACKS_RESOLVED = "tracks_resolved"
    DEPENDENTS_BUILT = "dependents_built"
    DEPENDENTS_PERSISTED = "dependents_persisted"
    COMMITTED = "committed"
    ABORTED = "aborted"


class BatchIngest:
    """
    One batch moving through the ingest phases.

    The id maps are batch-local; nothing here outlives the batch. Transitions
    must be awaited in order, otherwise `IngestStateError` is raised. The
    caller owns the transaction (see `CatalogIngestor.ingest_batch`).
    """

    def __init__(self, db: CatalogDb, records: Sequence[RawTrackRecord]) -> None:
        self._db = db
        self.records: list[RawTrackRecord] = list(records)
        self.phase = IngestPhase.PENDING
        self.affected_rows = 0

        self.seeds: SeedExtract | None = None
        self.artist_ids: dict[str, int] = {}
        self.album_ids: dict[str, int] = {}
        self.tracks: TrackBuild | None = None
        self.track_ids: dict[str, int] = {}
        self.relations: TrackRelations | None = None

    @asynccontextmanager
    async def _transition(
        self, expected: IngestPhase, target: IngestPhase
    ) -> AsyncIterator[None]:
        if self.phase is not expected:
            actual = self.phase
            self.phase = IngestPhase.ABORTED
            raise IngestStateError(
                f"cannot enter {target.name} from {actual.name} (expected {expected.name})"
            )
        try:
            yield
        except BaseException:
            self.phase = IngestPhase.ABORTED
            raise
        self.phase = target

    def _count(self, label: str, n: int) -> None:
        self.affected_rows += n
        logger.debug("%s: %d rows affected", label, n)

    # ------------------------------------------------------------------
    # Seeds
    # ------------------------------------------------------------------

    async def extract(self) -> None:
        async with self._transition(IngestPhase.PENDING, IngestPhase.EXTRACTED):
            self.seeds = extract_seeds(self.records)
            logger.debug(
                "Extracted %d artist seeds, %d album seeds from %d records",
                len(self.seeds.artists),
                len(self.seeds.albums),
                len(self.records),
            )

    async def persist_artists(self) -> None:
        async with self._transition(IngestPhase.EXTRACTED, IngestPhase.ARTISTS_PERSISTED):
            assert self.seeds is not None
            self._count("artists", await self._db.insert_artist_seeds(self.seeds.artists))

    async def resolve_artists(self) -> None:
        async with self._transition(
            IngestPhase.ARTISTS_PERSISTED, IngestPhase.ARTISTS_RESOLVED
        ):
            assert self.seeds is not None
            self.artist_ids = await self._db.fetch_artist_ids_by_key(self.seeds.artist_keys)

    async def persist_albums(self) -> None:
        async with self._transition(IngestPhase.ARTISTS_RESOLVED, IngestPhase.ALBUMS_PERSISTED):
            assert self.seeds is not None
            self._count("albums", await self._db.insert_album_seeds(self.seeds.albums))

    async def resolve_albums(self) -> None:
        async with self._transition(IngestPhase.ALBUMS_PERSISTED, IngestPhase.ALBUMS_RESOLVED):
            assert self.seeds is not None
            self.album_ids = await self._db.fetch_album_ids_by_key(self.seeds.album_keys)

    async def persist_album_artists(self) -> None:
        async with self._transition(IngestPhase.ALBUMS_RESOLVED, IngestPhase.JOINS_PERSISTED):
            rows = build_album_artist_rows(self.records, self.artist_ids, self.album_ids)
            self._count("album_artists", await self._db.insert_album_artists(rows))

    # ------------------------------------------------------------------
    # Tracks
    # ------------------------------------------------------------------

    async def build_tracks(self) -> None:
        async with self._transition(IngestPhase.JOINS_PERSISTED, IngestPhase.TRACKS_BUILT):
            self.tracks = build_track_rows(self.records, self.album_ids)

    async def persist_tracks(self) -> None:
        async with self._transition(IngestPhase.TRACKS_BUILT, IngestPhase.TRACKS_PERSISTED):
            assert self.tracks is not None
            self._count("tracks", await self._db.upsert_tracks(self.tracks.rows))

    async def resolve_tracks(self) -> None:
        async with self._transition(IngestPhase.TRACKS_PERSISTED, IngestPhase.TRACKS_RESOLVED):
            assert self.tracks is not None
            self.track_ids = await self._db.fetch_track_ids_by_hash(self.tracks.hashes)

    async def build_dependents(self) -> None:
        async with self._transition(IngestPhase.TRACKS_RESOLVED, IngestPhase.DEPENDENTS_BUILT):
            assert self.tracks is not None
            self.relations = build_track_relations(
                self.records, self.tracks.rows, self.track_ids, self.artist_ids
            )

    async def persist_dependents(self) -> None:
        async with self._transition(
            IngestPhase.DEPENDENTS_BUILT, IngestPhase.DEPENDENTS_PERSISTED
        ):
            assert self.relations is not None
            rel = self.relations
            self._count("track_artists", await self._db.insert_track_artists(rel.track_artists))
            self._count("track_lyrics", await self._db.upsert_track_lyrics(rel.lyrics))
            self._count(
                "audio_features", await self._db.upsert_audio_features(rel.audio_features)
            )

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    async def run(self) -> int:
        """Run every phase up to DEPENDENTS_PERSISTED. Returns affected rows."""
        await self.extract()
        await self.persist_artists()
        await self.resolve_artists()
        await self.persist_albums()
        await self.resolve_albums()
        await self.persist_album_artists()
        await self.build_tracks()
        await self.persist_tracks()
        await self.resolve_tracks()
        await self.build_dependents()
        await self.persist_dependents()
        return self.affected_rows

    def mark_committed(self) -> None:
        if self.phase is not IngestPhase.DEPENDENTS_PERSISTED:
            raise IngestStateError(f"cannot commit from {self.phase.name}")
        self.phase = IngestPhase.COMMITTED


class CatalogIngestor:
    """
    Applies record batches to a `CatalogDb`.

    Batches must be submitted one at a time; each one is atomic.
    """

    def __init__(self, db: CatalogDb) -> None:
        self._db = db

    @property
    def db(self) -> CatalogDb:
        return self._db

    async def ingest_batch(self, records: Sequence[RawTrackRecord]) -> int:
        """
        Ingest one batch inside a single transaction.

        Returns the number of rows affected, summed over all persist phases.
        Store errors roll the batch back and propagate unchanged.
        """
        if not records:
            return 0

        pipeline = BatchIngest(self._db, records)
        async with self._db.transaction():
            affected = await pipeline.run()
        pipeline.mark_committed()

        logger.debug("Committed batch of %d records (affected=%d)", len(records), affected)
        return affected

    async def rebuild_aggregates(self) -> int:
        """Recompute artist_album_count_by_year in its own transaction."""
        async with self._db.transaction():
            rows = await self._db.rebuild_artist_album_counts()
        logger.info("Rebuilt artist_album_count_by_year: %d rows", rows)
        return rows
