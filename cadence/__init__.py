"""
Cadence - a batch ingester for loosely-structured music-track catalogs.

Cadence reads one JSON object per track, folds textually different but
equivalent artists/albums/tracks onto stable natural keys, and writes a
normalized SQLite catalog (artists, albums, tracks, joins, lyrics, audio
features) one atomic batch at a time.
"""

__version__ = "0.1.0"
__author__ = "Cadence Contributors"
__license__ = "GPL-2.0"

from cadence.core.catalog_db import CatalogDb
from cadence.core.ingest import CatalogIngestor

__all__ = ["CatalogDb", "CatalogIngestor", "__version__"]
