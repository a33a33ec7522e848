"""
OTLP/HTTP JSON log exporter.

Delivers each batch handed over by the SDK batch processor as one POST to
the configured destination. Every delivery outcome is reported, and
shutdown waits for in-flight deliveries to settle.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import httpx
from opentelemetry.sdk._logs import LogData
from opentelemetry.sdk._logs.export import LogExporter, LogExportResult

from logpush_otel.exceptions import SerializationError
from logpush_otel.otel.serializer import serialize_logs

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    """Outcome of delivering one batch."""

    success: bool
    record_count: int
    status_code: Optional[int] = None
    error: Optional[str] = None


class OTLPJsonLogExporter(LogExporter):
    """
    Log exporter posting OTLP/JSON batches with httpx.

    One instance serves exactly one export unit. ``export`` is called from
    the batch processor's worker thread (and from the caller's thread on
    flush), so the in-flight count is guarded by a condition variable.
    """

    def __init__(
        self,
        url: str,
        headers: Optional[dict[str, str]] = None,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        on_result: Optional[Callable[[DeliveryResult], None]] = None,
    ):
        self.url = url
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self.results: list[DeliveryResult] = []
        self._on_result = on_result
        self._client = httpx.Client(headers=self.headers, timeout=timeout, transport=transport)
        self._condition = threading.Condition()
        self._pending = 0
        self._shutdown = False

    @property
    def pending(self) -> int:
        """Number of deliveries currently in flight."""
        with self._condition:
            return self._pending

    def export(self, batch: Sequence[LogData]) -> LogExportResult:
        with self._condition:
            if self._shutdown:
                logger.warning("Exporter already shut down, dropping %d log records", len(batch))
                return LogExportResult.FAILURE
            self._pending += 1

        try:
            result = self._deliver(batch)
            self._report(result)
        finally:
            with self._condition:
                self._pending -= 1
                self._condition.notify_all()

        return LogExportResult.SUCCESS if result.success else LogExportResult.FAILURE

    def _deliver(self, batch: Sequence[LogData]) -> DeliveryResult:
        try:
            payload = serialize_logs(batch)
        except SerializationError as exc:
            return DeliveryResult(
                success=False, record_count=len(batch), error=f"No serialized logs: {exc}"
            )

        try:
            response = self._client.post(self.url, content=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return DeliveryResult(
                success=False,
                record_count=len(batch),
                error=str(exc) or exc.__class__.__name__,
            )

        if response.is_success:
            return DeliveryResult(
                success=True, record_count=len(batch), status_code=response.status_code
            )

        return DeliveryResult(
            success=False,
            record_count=len(batch),
            status_code=response.status_code,
            error=response.reason_phrase,
        )

    def _report(self, result: DeliveryResult) -> None:
        self.results.append(result)
        if result.success:
            logger.debug("Delivered %d log records to %s", result.record_count, self.url)
        else:
            logger.warning(
                "Failed to deliver %d log records to %s: %s",
                result.record_count,
                self.url,
                result.error,
            )
        if self._on_result is not None:
            self._on_result(result)

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Wait until no delivery is in flight."""
        with self._condition:
            return self._condition.wait_for(
                lambda: self._pending == 0, timeout=timeout_millis / 1000
            )

    def shutdown(self) -> None:
        """Refuse new batches, wait for in-flight ones to settle, release the client."""
        with self._condition:
            if self._shutdown:
                return
            self._shutdown = True
            self._condition.wait_for(lambda: self._pending == 0)
        self._client.close()
