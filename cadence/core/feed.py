"""
NDJSON feed parsing for catalog ingest.

One line = one self-contained JSON object describing a track. Source key names
are the dataset's column headers ("Artist(s)", "Release Date", ...), but feeds
in the wild differ in casing, so keys are matched case-insensitively.

Error policy:
- A line that is not valid UTF-8 or not a JSON object raises `FeedParseError`
  (fatal for the run).
- A field holding a value of the wrong shape degrades to None.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Final

from cadence.core import FeedParseError

logger = logging.getLogger(__name__)

# How many raw lines a worker-thread read pulls at once.
READ_BLOCK_LINES: Final[int] = 1000

# SQLite INTEGER is a signed 64-bit value.
_INT64_MIN: Final[int] = -(2**63)
_INT64_MAX: Final[int] = 2**63 - 1


@dataclass(frozen=True, slots=True)
class RawTrackRecord:
    """
    One raw track as it appears in the feed, before any normalization.

    Text fields are kept verbatim (not trimmed); the ingest pipeline owns
    normalization so that the same rules apply to every consumer.
    """

    artists: str | None = None
    song: str | None = None
    text: str | None = None
    length: str | None = None
    emotion: str | None = None
    genre: str | None = None
    album: str | None = None
    release_date: str | None = None
    key: str | None = None
    tempo: float | None = None
    loudness_db: float | None = None
    time_signature: str | None = None
    explicit: str | None = None
    popularity: int | None = None
    # Audio descriptors (0-100 scale)
    energy: int | None = None
    danceability: int | None = None
    positiveness: int | None = None
    speechiness: int | None = None
    liveness: int | None = None
    acousticness: int | None = None
    instrumentalness: int | None = None


# field name -> source JSON key
_TEXT_FIELDS: Final[dict[str, str]] = {
    "artists": "Artist(s)",
    "song": "song",
    "text": "text",
    "length": "Length",
    "emotion": "emotion",
    "genre": "Genre",
    "album": "Album",
    "release_date": "Release Date",
    "key": "Key",
    "time_signature": "Time signature",
    "explicit": "Explicit",
}

_FLOAT_FIELDS: Final[dict[str, str]] = {
    "tempo": "Tempo",
    "loudness_db": "Loudness (db)",
}

_INT_FIELDS: Final[dict[str, str]] = {
    "popularity": "Popularity",
    "energy": "Energy",
    "danceability": "Danceability",
    "positiveness": "Positiveness",
    "speechiness": "Speechiness",
    "liveness": "Liveness",
    "acousticness": "Acousticness",
    "instrumentalness": "Instrumentalness",
}


def _fold_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Case-insensitive view of a JSON object.

    When a key appears more than once with different casing, the first
    non-null value wins.
    """
    out: dict[str, Any] = {}
    for k, v in data.items():
        fk = str(k).strip().casefold()
        if out.get(fk) is None:
            out[fk] = v
    return out


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        # Lone surrogates survive json.loads but cannot be stored as UTF-8.
        return value.encode("utf-8", "replace").decode("utf-8")
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, int | float):
        return str(value)
    # Lists/objects are not meaningful for any text column.
    return None


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _int64(value: int) -> int | None:
    return value if _INT64_MIN <= value <= _INT64_MAX else None


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return _int64(value)
    if isinstance(value, float):
        return _int64(int(value)) if value.is_integer() else None
    if isinstance(value, str):
        s = value.strip()
        try:
            return _int64(int(s))
        except ValueError:
            f = _as_float(s)
            return _int64(int(f)) if f is not None and f.is_integer() else None
    return None


def record_from_mapping(data: Mapping[str, Any]) -> RawTrackRecord:
    """Build a `RawTrackRecord` from a decoded JSON object. Unknown keys are ignored."""
    folded = _fold_keys(data)
    values: dict[str, Any] = {}

    for field_name, source in _TEXT_FIELDS.items():
        values[field_name] = _as_text(folded.get(source.casefold()))
    for field_name, source in _FLOAT_FIELDS.items():
        values[field_name] = _as_float(folded.get(source.casefold()))
    for field_name, source in _INT_FIELDS.items():
        values[field_name] = _as_int(folded.get(source.casefold()))

    return RawTrackRecord(**values)


def parse_line(line: str | bytes, *, line_no: int) -> RawTrackRecord:
    """
    Parse one NDJSON line.

    Raw bytes are decoded as UTF-8 first.

    Raises:
        FeedParseError: if the line is not valid UTF-8, not valid JSON or
            not a JSON object.
    """
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FeedParseError(line_no, f"invalid UTF-8: {e.reason}") from e

    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise FeedParseError(line_no, f"invalid JSON: {e.msg}") from e

    if not isinstance(data, dict):
        raise FeedParseError(line_no, f"expected a JSON object, got {type(data).__name__}")

    return record_from_mapping(data)


def _read_block(fh: IO[bytes], max_lines: int) -> list[bytes]:
    lines: list[bytes] = []
    for _ in range(max_lines):
        line = fh.readline()
        if not line:
            break
        lines.append(line)
    return lines


async def iter_record_batches(
    source: str | Path, batch_size: int
) -> AsyncIterator[list[RawTrackRecord]]:
    """
    Asynchronously yield batches of parsed records from an NDJSON file.

    Implementation notes:
    - File reads run in a worker thread (one block of lines at a time) so the
      event loop stays responsive while the previous batch is being written.
    - Lines are read as bytes and decoded one at a time by `parse_line`.
    - Blank lines are skipped but still counted for error line numbers.
    - Only one block plus one batch are held in memory at a time.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(path)

    fh = await asyncio.to_thread(path.open, "rb")
    try:
        line_no = 0
        batch: list[RawTrackRecord] = []
        while True:
            lines = await asyncio.to_thread(_read_block, fh, READ_BLOCK_LINES)
            if not lines:
                break
            for line in lines:
                line_no += 1
                if not line.strip():
                    continue
                batch.append(parse_line(line, line_no=line_no))
                if len(batch) >= batch_size:
                    yield batch
                    batch = []
        if batch:
            yield batch
        logger.debug("Feed %s exhausted after %d lines", path, line_no)
    finally:
        await asyncio.to_thread(fh.close)
