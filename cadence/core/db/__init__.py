"""
Internal DB subpackage for Cadence.

This package splits the catalog store into focused units (models,
schema/migrations, chunking, and per-table query groups) while keeping
`CatalogDb` as the single public interface that the rest of the codebase
imports.

Re-exports here are primarily for convenience inside the `core` package.
External code should continue to import `CatalogDb` from `cadence.core.catalog_db`.
"""

from __future__ import annotations

# Chunking
from .chunking import chunked_apply, iter_chunks

# Models / DTOs
from .models import (
    AlbumArtistRow,
    AlbumRecord,
    ArtistAlbumCountRow,
    ArtistRecord,
    AudioFeatureRow,
    TrackArtistRow,
    TrackLyricsRow,
    TrackRecord,
    TrackRow,
)

# Schema / migrations
from .schema import CATALOG_TABLES, ensure_schema, migrate

__all__ = [
    # chunking
    "chunked_apply",
    "iter_chunks",
    # models
    "AlbumArtistRow",
    "AlbumRecord",
    "ArtistAlbumCountRow",
    "ArtistRecord",
    "AudioFeatureRow",
    "TrackArtistRow",
    "TrackLyricsRow",
    "TrackRecord",
    "TrackRow",
    # schema
    "CATALOG_TABLES",
    "ensure_schema",
    "migrate",
]
