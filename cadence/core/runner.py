"""
Feed-to-catalog runner.

Reads an NDJSON feed in batches, hands each batch to a `CatalogIngestor`
strictly one after another, and rebuilds the derived aggregates on a fixed
cadence and/or once at the end of the run.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from pathlib import Path

from cadence.core.events import (
    AggregatesRebuiltEvent,
    EventBus,
    IngestBatchCommittedEvent,
    IngestBatchFailedEvent,
    IngestCompletedEvent,
    IngestStartedEvent,
    event_bus,
)
from cadence.core.feed import iter_record_batches
from cadence.core.ingest import CatalogIngestor

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 800


@dataclass(frozen=True, slots=True)
class IngestSummary:
    batches: int = 0
    records: int = 0
    affected_rows: int = 0
    # Rows produced by the most recent aggregate rebuild (0 if none ran).
    aggregate_rows: int = 0
    rebuilds: int = 0


async def run_ingest(
    ingestor: CatalogIngestor,
    source: str | Path,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    rebuild_every: int = 0,
    rebuild_at_end: bool = True,
    bus: EventBus | None = None,
) -> IngestSummary:
    """
    Ingest a whole feed.

    Args:
        ingestor: Target ingestor (its DB must be open with schema ensured).
        source: Path to an NDJSON file.
        batch_size: Records per batch/transaction.
        rebuild_every: Rebuild aggregates after every N committed batches (0 = never mid-run).
        rebuild_at_end: Rebuild once after the last batch (skipped if no batch ran).
        bus: Event bus to publish progress on (defaults to the global bus).

    Raises:
        FeedParseError: a feed line is not a JSON object. Batches committed
            before it stay committed.
        Any store error from a batch; that batch is rolled back.
    """
    if rebuild_every < 0:
        raise ValueError(f"rebuild_every must be >= 0, got {rebuild_every}")

    bus = bus or event_bus
    batches = records = affected = aggregate_rows = rebuilds = 0

    await bus.publish(IngestStartedEvent(source=str(source)))
    logger.info("Ingesting %s (batch_size=%d)", source, batch_size)

    async with contextlib.aclosing(iter_record_batches(source, batch_size)) as feed:
        async for batch in feed:
            batch_no = batches + 1
            try:
                batch_affected = await ingestor.ingest_batch(batch)
            except Exception as e:
                logger.error("Batch %d failed, rolled back: %s", batch_no, e)
                await bus.publish(IngestBatchFailedEvent(batch_no=batch_no, error=str(e)))
                raise

            batches = batch_no
            records += len(batch)
            affected += batch_affected
            logger.info("Batch %d done. affected=%d", batch_no, batch_affected)
            await bus.publish(
                IngestBatchCommittedEvent(
                    batch_no=batch_no, records=len(batch), affected_rows=batch_affected
                )
            )

            if rebuild_every > 0 and batches % rebuild_every == 0:
                aggregate_rows = await ingestor.rebuild_aggregates()
                rebuilds += 1
                await bus.publish(AggregatesRebuiltEvent(rows=aggregate_rows))

    if rebuild_at_end and batches > 0:
        aggregate_rows = await ingestor.rebuild_aggregates()
        rebuilds += 1
        await bus.publish(AggregatesRebuiltEvent(rows=aggregate_rows))

    summary = IngestSummary(
        batches=batches,
        records=records,
        affected_rows=affected,
        aggregate_rows=aggregate_rows,
        rebuilds=rebuilds,
    )
    logger.info(
        "Ingest finished: %d batches, %d records, %d rows affected, %d aggregate rebuilds",
        summary.batches,
        summary.records,
        summary.affected_rows,
        summary.rebuilds,
    )
    await bus.publish(
        IngestCompletedEvent(
            batches=summary.batches,
            records=summary.records,
            affected_rows=summary.affected_rows,
            aggregate_rows=summary.aggregate_rows,
            rebuilds=summary.rebuilds,
        )
    )
    return summary
