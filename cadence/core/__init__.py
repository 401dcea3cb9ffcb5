"""
Core domain package.

This package contains the ingest logic, which should be independent of any
outer surface (CLI, web, etc.). The goal is to keep this layer small, testable,
and free of I/O concerns other than the catalog DB itself.

We intentionally keep exports minimal; consumers should usually import from the
specific module they need (e.g. `cadence.core.ingest`).
"""

from __future__ import annotations

__all__: list[str] = [
    "CoreError",
    "IngestError",
    "IngestStateError",
    "FeedParseError",
]


class CoreError(Exception):
    """Base class for core-layer exceptions."""


class IngestError(CoreError):
    """Base class for errors raised while ingesting a feed."""


class IngestStateError(IngestError):
    """Raised when a batch pipeline transition is invoked out of order."""


class FeedParseError(IngestError):
    """
    Raised when a feed line is not valid UTF-8 or not a JSON object.

    This is fatal for the whole run: a structurally broken line means the
    input source itself cannot be trusted.
    """

    def __init__(self, line_no: int, message: str) -> None:
        super().__init__(f"line {line_no}: {message}")
        self.line_no = line_no
