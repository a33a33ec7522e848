"""Workers Logpush payload decoding and event classification."""

from logpush_otel.logpush.decoder import (
    CONNECTIVITY_PROBE,
    DecodeIssue,
    DecodeResult,
    decode_logpush_payload,
    decode_logpush_payload_async,
    parse_ndjson,
)
from logpush_otel.logpush.events import (
    EventType,
    LogLevel,
    LogpushEvent,
    classify_event,
    group_events_by_script,
)

__all__ = [
    "CONNECTIVITY_PROBE",
    "DecodeIssue",
    "DecodeResult",
    "EventType",
    "LogLevel",
    "LogpushEvent",
    "classify_event",
    "decode_logpush_payload",
    "decode_logpush_payload_async",
    "group_events_by_script",
    "parse_ndjson",
]
