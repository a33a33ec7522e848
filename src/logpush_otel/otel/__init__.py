"""OpenTelemetry log conversion and OTLP/HTTP export."""

from logpush_otel.otel.conversion import (
    SEVERITY_MAP,
    NormalizedLogRecord,
    convert_event,
    event_to_attributes,
    normalize_log_arguments,
    process_event,
    try_parse_message,
)
from logpush_otel.otel.exporter import DeliveryResult, OTLPJsonLogExporter
from logpush_otel.otel.pipeline import ExportPipeline, ExportUnit, ExportUnitState
from logpush_otel.otel.serializer import serialize_logs

__all__ = [
    "SEVERITY_MAP",
    "DeliveryResult",
    "ExportPipeline",
    "ExportUnit",
    "ExportUnitState",
    "NormalizedLogRecord",
    "OTLPJsonLogExporter",
    "convert_event",
    "event_to_attributes",
    "normalize_log_arguments",
    "process_event",
    "serialize_logs",
    "try_parse_message",
]
