"""
Ingestion of one Logpush delivery.

Decodes the payload, classifies and groups its events by script, converts
each group into log records fed to that script's export unit, then waits
for every unit to flush before reporting the outcome.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

import httpx

from logpush_otel.logpush.decoder import DecodeIssue, decode_logpush_payload_async
from logpush_otel.logpush.events import LogpushEvent, classify_event, group_events_by_script
from logpush_otel.otel.conversion import process_event
from logpush_otel.otel.pipeline import ExportPipeline, ExportUnit

if TYPE_CHECKING:
    from logpush_otel.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class IngestionOutcome:
    """Result of ingesting one delivery."""

    status: str  # ingested, probe
    events_received: int = 0
    sources: list[str] = field(default_factory=list)
    records_emitted: int = 0
    batches_attempted: int = 0
    batches_succeeded: int = 0
    batches_failed: int = 0
    skipped_lines: list[DecodeIssue] = field(default_factory=list)
    processing_time_ms: int = 0


def _emit_events(unit: ExportUnit, events: list[LogpushEvent]) -> int:
    return sum(process_event(event, unit) for event in events)


async def ingest_logpush_payload(
    body: bytes,
    content_encoding: Optional[str],
    *,
    settings: Settings,
    transport: Optional[httpx.BaseTransport] = None,
    pipeline: Optional[ExportPipeline] = None,
) -> IngestionOutcome:
    """
    Ingest a Logpush delivery and export its logs.

    Delivery failures are reported on the outcome and logged; they never
    raise. The call returns only after every export unit has flushed.

    Args:
        body: Raw (gzip-compressed) request body.
        content_encoding: The request's Content-Encoding header.
        settings: Destination, batching and parsing configuration.
        transport: Optional httpx transport for outbound deliveries.
        pipeline: Pre-built export pipeline (defaults to one built from settings).

    Raises:
        InvalidContentEncodingError: If the body is not gzip-encoded.
        LogpushDecodeError: If the payload cannot be decoded.
        EventShapeError: If an event violates the documented shape.
    """
    start = time.monotonic()

    decoded = await decode_logpush_payload_async(
        body, content_encoding, strict=settings.strict_parsing
    )
    if decoded.is_probe:
        logger.info("Received Logpush connectivity probe")
        return IngestionOutcome(
            status="probe",
            processing_time_ms=int((time.monotonic() - start) * 1000),
        )

    events = [classify_event(record) for record in decoded.records]
    groups = group_events_by_script(events)

    if pipeline is None:
        pipeline = ExportPipeline.from_settings(settings, transport=transport)

    records_emitted = 0
    try:
        for source, source_events in groups.items():
            unit = pipeline.unit_for(source)
            records_emitted += await asyncio.to_thread(_emit_events, unit, source_events)
    finally:
        await pipeline.flush_all()

    results = pipeline.results
    outcome = IngestionOutcome(
        status="ingested",
        events_received=len(events),
        sources=list(groups),
        records_emitted=records_emitted,
        batches_attempted=len(results),
        batches_succeeded=sum(1 for result in results if result.success),
        batches_failed=sum(1 for result in results if not result.success),
        skipped_lines=decoded.issues,
        processing_time_ms=int((time.monotonic() - start) * 1000),
    )

    logger.info(
        "Ingested %d events from %d sources: %d records, %d/%d batches delivered (%dms)",
        outcome.events_received,
        len(outcome.sources),
        outcome.records_emitted,
        outcome.batches_succeeded,
        outcome.batches_attempted,
        outcome.processing_time_ms,
    )
    if outcome.batches_failed:
        logger.warning("%d batches failed delivery", outcome.batches_failed)

    return outcome
