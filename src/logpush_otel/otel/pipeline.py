"""
Per-source export pipeline.

Each logical source (Workers script) of a delivery gets its own export
unit: an SDK LoggerProvider with that source's resource, one
BatchLogRecordProcessor and one exporter. Units live for one request and
are flushed and released together at its end.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

import httpx
from opentelemetry.sdk._logs import LoggerProvider, LogRecord
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource

from logpush_otel import __version__
from logpush_otel.exceptions import ExportUnitClosedError
from logpush_otel.otel.conversion import SDK_NAME, NormalizedLogRecord, base_attributes
from logpush_otel.otel.exporter import DeliveryResult, OTLPJsonLogExporter

if TYPE_CHECKING:
    from logpush_otel.config import Settings

logger = logging.getLogger(__name__)

ExporterFactory = Callable[[str], OTLPJsonLogExporter]


class ExportUnitState(Enum):
    CREATED = "created"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"
    TERMINATED = "terminated"


class ExportUnit:
    """Logger provider, batch processor and exporter owned by one source."""

    def __init__(
        self,
        source: str,
        exporter: OTLPJsonLogExporter,
        *,
        schedule_delay_millis: float = 1000,
        max_export_batch_size: int = 512,
        max_queue_size: int = 2048,
        export_timeout_millis: float = 30000,
    ):
        self.source = source
        self.exporter = exporter
        self.max_export_batch_size = max_export_batch_size
        self.export_timeout_millis = export_timeout_millis
        self.resource = Resource(base_attributes(source))
        self.processor = BatchLogRecordProcessor(
            exporter,
            schedule_delay_millis=schedule_delay_millis,
            max_export_batch_size=max_export_batch_size,
            export_timeout_millis=export_timeout_millis,
            max_queue_size=max_queue_size,
        )
        self._provider = LoggerProvider(resource=self.resource, shutdown_on_exit=False)
        self._provider.add_log_record_processor(self.processor)
        self._logger = self._provider.get_logger(SDK_NAME, __version__)
        self.state = ExportUnitState.CREATED
        self.records_emitted = 0

    def emit(self, record: NormalizedLogRecord) -> None:
        """
        Queue a record for export.

        Every full batch is exported before this returns, so the bounded
        processor queue never overflows. Call from a worker thread when
        running inside an event loop.

        Raises:
            ExportUnitClosedError: Once the unit is flushing or terminated.
        """
        if self.state in (ExportUnitState.FLUSHING, ExportUnitState.TERMINATED):
            raise ExportUnitClosedError(self.source)

        self.state = ExportUnitState.ACCUMULATING
        self._logger.emit(
            LogRecord(
                timestamp=record.timestamp_ns,
                observed_timestamp=record.observed_timestamp_ns,
                severity_text=record.severity_text,
                severity_number=record.severity_number,
                body=record.body,
                resource=self.resource,
                attributes=record.attributes,
            )
        )
        self.records_emitted += 1
        if self.records_emitted % self.max_export_batch_size == 0:
            if not self.processor.force_flush(int(self.export_timeout_millis)):
                logger.warning(
                    "Timed out exporting a full batch for source '%s'", self.source
                )

    def shutdown(self) -> None:
        """Flush queued records, wait for every delivery and release the unit."""
        if self.state is ExportUnitState.TERMINATED:
            return
        self.state = ExportUnitState.FLUSHING
        try:
            self._provider.shutdown()
        finally:
            self.state = ExportUnitState.TERMINATED

    async def aclose(self) -> None:
        await asyncio.to_thread(self.shutdown)


class ExportPipeline:
    """Map of source name to its export unit, built lazily within one request."""

    def __init__(
        self,
        exporter_factory: ExporterFactory,
        *,
        schedule_delay_millis: float = 1000,
        max_export_batch_size: int = 512,
        max_queue_size: int = 2048,
        export_timeout_millis: float = 30000,
    ):
        self._exporter_factory = exporter_factory
        self._batch_options = {
            "schedule_delay_millis": schedule_delay_millis,
            "max_export_batch_size": max_export_batch_size,
            "max_queue_size": max_queue_size,
            "export_timeout_millis": export_timeout_millis,
        }
        self._units: dict[str, ExportUnit] = {}

    @classmethod
    def from_settings(
        cls,
        config: Settings,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> ExportPipeline:
        """Build a pipeline delivering to the configured destination."""
        headers = config.destination_headers()

        def exporter_factory(source: str) -> OTLPJsonLogExporter:
            return OTLPJsonLogExporter(
                config.destination,
                headers,
                timeout=config.destination_timeout_seconds,
                transport=transport,
            )

        return cls(
            exporter_factory,
            schedule_delay_millis=config.otel_batch_delay_ms,
            max_export_batch_size=config.otel_max_batch_size,
            max_queue_size=config.otel_max_queue_size,
            export_timeout_millis=config.otel_export_timeout_ms,
        )

    def unit_for(self, source: str) -> ExportUnit:
        unit = self._units.get(source)
        if unit is None:
            unit = ExportUnit(source, self._exporter_factory(source), **self._batch_options)
            self._units[source] = unit
        return unit

    @property
    def units(self) -> dict[str, ExportUnit]:
        return dict(self._units)

    @property
    def pending_deliveries(self) -> int:
        return sum(unit.exporter.pending for unit in self._units.values())

    @property
    def results(self) -> list[DeliveryResult]:
        return [result for unit in self._units.values() for result in unit.exporter.results]

    async def flush_all(self) -> None:
        """
        Shut down every unit concurrently and wait for all of them.

        A unit failing to shut down is logged and does not interrupt the
        others.
        """
        units = list(self._units.values())
        outcomes = await asyncio.gather(
            *(unit.aclose() for unit in units), return_exceptions=True
        )
        for unit, outcome in zip(units, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Failed to flush export unit for source '%s': %s",
                    unit.source,
                    outcome,
                    exc_info=outcome,
                )
