"""
Configuration management for Cadence.

This module loads ingest settings (batch size, aggregate rebuild cadence,
per-table chunk sizes) from TOML files.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent


@dataclass(frozen=True, slots=True)
class ChunkSizes:
    """Max rows per multi-row statement, per table (and for id lookups)."""

    artists: int = 500
    albums: int = 400
    album_artists: int = 800
    tracks: int = 300
    track_artists: int = 800
    track_lyrics: int = 200
    audio_features: int = 400
    lookups: int = 500

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or value < 1:
                raise ValueError(f"chunks.{f.name} must be a positive integer, got {value!r}")


@dataclass(frozen=True, slots=True)
class IngestConfig:
    """Loaded ingest configuration."""

    batch_size: int = 800
    rebuild_every: int = 0
    rebuild_at_end: bool = True
    db_path: str = "cadence-catalog.sqlite3"
    chunks: ChunkSizes = field(default_factory=ChunkSizes)

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.rebuild_every < 0:
            raise ValueError(f"rebuild_every must be >= 0, got {self.rebuild_every}")


def _parse_chunks(data: dict[str, object]) -> ChunkSizes:
    """Parse the [chunks] table; unknown keys are ignored, missing keys keep defaults."""
    known = {f.name for f in fields(ChunkSizes)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown chunk settings: %s", ", ".join(unknown))
    return ChunkSizes(**{k: v for k, v in data.items() if k in known})  # type: ignore[arg-type]


def load_ingest_config(config_path: Path | None = None) -> IngestConfig:
    """
    Load ingest configuration from a TOML file.

    Args:
        config_path: Path to an ingest TOML file. If None, uses the packaged default.

    Returns:
        Loaded IngestConfig instance.
    """
    if config_path is None:
        config_path = CONFIG_DIR / "ingest.toml"

    logger.debug("Loading ingest config from %s", config_path)

    with config_path.open("rb") as f:
        data = tomllib.load(f)

    ingest = data.get("ingest", {})
    defaults = IngestConfig()

    return IngestConfig(
        batch_size=int(ingest.get("batch_size", defaults.batch_size)),
        rebuild_every=int(ingest.get("rebuild_every", defaults.rebuild_every)),
        rebuild_at_end=bool(ingest.get("rebuild_at_end", defaults.rebuild_at_end)),
        db_path=str(ingest.get("db_path", defaults.db_path)),
        chunks=_parse_chunks(data.get("chunks", {})),
    )


# Global singleton instance (lazy loaded)
_ingest_config: IngestConfig | None = None


def get_ingest_config() -> IngestConfig:
    """
    Get the global ingest configuration (lazy loaded singleton).

    Returns:
        The IngestConfig instance.
    """
    global _ingest_config

    if _ingest_config is None:
        _ingest_config = load_ingest_config()

    return _ingest_config


def reload_ingest_config() -> IngestConfig:
    """
    Force reload of ingest configuration.

    Returns:
        The newly loaded IngestConfig instance.
    """
    global _ingest_config
    _ingest_config = load_ingest_config()
    return _ingest_config
