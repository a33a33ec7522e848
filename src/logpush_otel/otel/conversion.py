"""
Trace event to OpenTelemetry log record conversion.

Each Logpush event becomes one log record per console call followed by one
record per uncaught exception. Console arguments are reshaped into a single
log body on a best-effort basis.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

from opentelemetry._logs import SeverityNumber

from logpush_otel.logpush.events import EventType, LogLevel, LogpushEvent

SDK_NAME = "logpush-otel"
UNKNOWN_SERVICE = "unknown"

SEVERITY_MAP: dict[LogLevel, SeverityNumber] = {
    LogLevel.DEBUG: SeverityNumber.DEBUG,
    LogLevel.INFO: SeverityNumber.INFO,
    LogLevel.LOG: SeverityNumber.INFO,
    LogLevel.WARN: SeverityNumber.WARN,
    LogLevel.ERROR: SeverityNumber.ERROR,
    LogLevel.UNKNOWN: SeverityNumber.UNSPECIFIED,
}


@dataclass
class NormalizedLogRecord:
    """A vendor-neutral log record ready to hand to an export unit."""

    timestamp_ns: int
    observed_timestamp_ns: int
    severity_number: SeverityNumber
    severity_text: str
    body: Any
    attributes: dict[str, Any] = field(default_factory=dict)


class LogSink(Protocol):
    def emit(self, record: NormalizedLogRecord) -> None: ...


def base_attributes(script_name: Optional[str]) -> dict[str, Any]:
    """Attributes identifying the platform and service, shared by every record."""
    return {
        "cloud.provider": "cloudflare",
        "cloud.platform": "cloudflare.workers",
        "cloud.region": "earth",
        "telemetry.sdk.language": "python",
        "telemetry.sdk.name": SDK_NAME,
        "service.name": script_name or UNKNOWN_SERVICE,
    }


def _fetch_attributes(event: LogpushEvent) -> dict[str, Any]:
    info = event.event
    return {
        "http.request.method": info.method,
        "url.full": info.url,
        "http.response.status_code": info.status,
        "cloudflare.ray_id": info.ray_id,
    }


def _no_attributes(event: LogpushEvent) -> dict[str, Any]:
    return {}


EVENT_ATTRIBUTE_EXTRACTORS: dict[EventType, Callable[[LogpushEvent], dict[str, Any]]] = {
    EventType.FETCH: _fetch_attributes,
    EventType.SCHEDULED: _no_attributes,
    EventType.ALARM: _no_attributes,
    EventType.QUEUE: _no_attributes,
    EventType.EMAIL: _no_attributes,
    EventType.RPC: _no_attributes,
    EventType.TAIL: _no_attributes,
    EventType.UNKNOWN: _no_attributes,
}


def event_to_attributes(event: LogpushEvent) -> dict[str, Any]:
    """
    Derive record attributes for an event.

    Base attributes win over variant-specific ones; attributes without a
    value are dropped.
    """
    attributes = {
        key: value
        for key, value in EVENT_ATTRIBUTE_EXTRACTORS[event.event_type](event).items()
        if value is not None
    }
    attributes.update(base_attributes(event.script_name))
    return attributes


def _to_json_text(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _with_message(message: str, fields: Optional[dict[str, Any]]) -> dict[str, Any]:
    return {"message": message, **{k: v for k, v in (fields or {}).items() if k != "message"}}


def normalize_log_arguments(args: list[Any]) -> Any:
    """
    Fold console arguments into a single log body.

    - no arguments: empty string
    - one argument: the argument itself, or an empty string for null
    - a string and an object (or null), in either order: the object's
      fields with ``message`` set to the string
    - anything else: arguments joined by spaces, non-strings as JSON
    """
    if len(args) == 0:
        return ""

    if len(args) == 1:
        return "" if args[0] is None else args[0]

    if len(args) == 2:
        first, second = args
        if isinstance(first, str) and (second is None or isinstance(second, dict)):
            return _with_message(first, second)
        if (first is None or isinstance(first, dict)) and isinstance(second, str):
            return _with_message(second, first)

    return " ".join(arg if isinstance(arg, str) else _to_json_text(arg) for arg in args)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def try_parse_message(message: Any) -> Any:
    """Replace a string body with its parsed JSON value when it is valid JSON."""
    if not isinstance(message, str):
        return message
    try:
        return json.loads(message, parse_constant=_reject_constant)
    except ValueError:
        return message


def _ms_to_ns(timestamp_ms: float) -> int:
    return int(timestamp_ms * 1_000_000)


def convert_event(
    event: LogpushEvent, observed_at_ns: Optional[int] = None
) -> list[NormalizedLogRecord]:
    """
    Convert one event into log records.

    Args:
        event: Classified Logpush event.
        observed_at_ns: Observation time to stamp on every record; defaults
            to the current time, read per record.

    Returns:
        One record per log entry, then one per exception, in entry order.
    """
    attributes = event_to_attributes(event)
    records: list[NormalizedLogRecord] = []

    for log in event.logs:
        records.append(
            NormalizedLogRecord(
                timestamp_ns=_ms_to_ns(log.timestamp_ms),
                observed_timestamp_ns=observed_at_ns or time.time_ns(),
                severity_number=SEVERITY_MAP[log.level],
                severity_text=log.level.value,
                body=try_parse_message(normalize_log_arguments(log.message)),
                attributes=dict(attributes),
            )
        )

    for exception in event.exceptions:
        body = {
            "display": f"Uncaught {exception.name}: {exception.message}",
            "name": exception.name,
            "message": exception.message,
        }
        if exception.stack is not None:
            body["stack"] = exception.stack
        records.append(
            NormalizedLogRecord(
                timestamp_ns=_ms_to_ns(exception.timestamp_ms),
                observed_timestamp_ns=observed_at_ns or time.time_ns(),
                severity_number=SeverityNumber.ERROR,
                severity_text=LogLevel.ERROR.value,
                body=body,
                attributes=dict(attributes),
            )
        )

    return records


def process_event(event: LogpushEvent, sink: LogSink) -> int:
    """Emit every record converted from ``event`` into ``sink``; returns the count."""
    records = convert_event(event)
    for record in records:
        sink.emit(record)
    return len(records)
