"""
Normalization, parsing and identity-key helpers used by the ingest pipeline.

This module is intentionally lightweight:
- No DB connection knowledge
- No SQL
- Pure functions only

Contract: every parser here degrades to `None` (or `False` for flags) on
malformed input instead of raising. One bad field must never abort a batch.
"""

from __future__ import annotations

import hashlib
import re
import unicodedata
from collections.abc import Iterable
from datetime import date

_ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
_DIGITS_RE = re.compile(r"\d+", re.ASCII)

# Everything except ASCII alphanumerics and Hangul letters is dropped from keys.
# Hangul ranges: Jamo, Compatibility Jamo, Jamo Extended-A, Syllables,
# Jamo Extended-B, Halfwidth Jamo.
_KEY_DISALLOWED_RE = re.compile(
    r"[^a-z0-9"
    r"\u1100-\u11ff"
    r"\u3131-\u318e"
    r"\ua960-\ua97f"
    r"\uac00-\ud7a3"
    r"\ud7b0-\ud7ff"
    r"\uffa0-\uffdc"
    r"]"
)


def normalize(value: str | None) -> str | None:
    """
    Normalize optional text fields:
    - strip whitespace
    - coerce empty strings to None
    """
    if value is None:
        return None
    v = value.strip()
    return v if v else None


def split_artists(raw: str | None) -> list[str]:
    """
    Split a comma-joined artist string ("A, B, C") into trimmed names.

    Empty tokens are dropped. `None` or blank input yields an empty list.
    We only split on ',' since that is the separator the catalog feeds use.
    """
    if raw is None or not raw.strip():
        return []
    out: list[str] = []
    for part in raw.split(","):
        s = part.strip()
        if s:
            out.append(s)
    return out


def parse_date(value: str | None) -> date | None:
    """Parse a strict ISO `YYYY-MM-DD` date. Returns None on any failure."""
    s = normalize(value)
    if s is None or not _ISO_DATE_RE.fullmatch(s):
        return None
    try:
        return date(int(s[0:4]), int(s[5:7]), int(s[8:10]))
    except ValueError:
        return None


def parse_duration_ms(value: str | None) -> int | None:
    """
    Parse a "mm:ss" length string into milliseconds.

    Examples:
      "03:47"  -> 227000
      "03:60"  -> None (seconds must be < 60)
      "1:2:3"  -> None (exactly one colon)
    """
    s = normalize(value)
    if s is None:
        return None

    parts = s.split(":")
    if len(parts) != 2:
        return None

    minutes, seconds = (p.strip() for p in parts)
    if not _DIGITS_RE.fullmatch(minutes) or not _DIGITS_RE.fullmatch(seconds):
        return None

    mm = int(minutes)
    ss = int(seconds)
    if ss >= 60:
        return None
    return (mm * 60 + ss) * 1000


def parse_explicit_flag(value: str | None) -> bool:
    """True iff the value is "yes" (case-insensitive). Everything else is False."""
    if value is None:
        return False
    return value.strip().lower() == "yes"


def simplify_for_key(value: str | None) -> str | None:
    """
    Fold a display string into a comparison key.

    Steps:
    - NFKC (compatibility composed form), then lowercase
    - NFD and drop combining marks (diacritics)
    - NFC again so decomposed Hangul jamo recompose into syllables
    - drop whitespace and anything that is not ASCII alphanumeric or Hangul

    "Beyoncé", "BEYONCE" and " beyonce " all fold to "beyonce".
    """
    if value is None:
        return None

    result = unicodedata.normalize("NFKC", value)
    result = unicodedata.normalize("NFD", result.lower())
    result = "".join(ch for ch in result if not unicodedata.category(ch).startswith("M"))
    result = unicodedata.normalize("NFC", result)
    return _KEY_DISALLOWED_RE.sub("", result)


def artist_key(name: str | None) -> str | None:
    """
    Identity key for an artist name.

    A name made only of punctuation/symbols folds to "" and gets no key, so
    unrelated symbol-only names are not merged into one artist.
    """
    key = simplify_for_key(normalize(name))
    return key if key else None


def album_key(name: str | None, release_date: date | None) -> str | None:
    """
    Identity key for an album: folded name + "|" + ISO date (or "null").

    Same name with different dates are distinct albums. Returns None when the
    album has no name.
    """
    folded = simplify_for_key(normalize(name))
    if folded is None:
        return None
    return f"{folded}|{release_date.isoformat() if release_date else 'null'}"


def track_natural_key(
    title: str | None,
    album: str | None,
    release_date: date | None,
    artists: Iterable[str],
) -> str:
    """
    Natural key string for a track (input for `content_hash`).

    Shape: "title|album|YYYY-MM-DD|artistkey1,artistkey2". Artist keys are
    sorted so that artist order does not affect identity. Missing parts are
    empty strings, never the word "null".
    """
    t = simplify_for_key(normalize(title)) or ""
    a = simplify_for_key(normalize(album)) or ""
    d = release_date.isoformat() if release_date else ""
    keys = sorted(k for k in (artist_key(name) for name in artists) if k is not None)
    return "|".join((t, a, d, ",".join(keys)))


def content_hash(key: str) -> str:
    """SHA-256 of the UTF-8 bytes of `key` as 64 lowercase hex chars."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()
