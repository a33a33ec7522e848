"""
Workers trace event models.

Typed view over the records of a Workers Trace Events Logpush job. Each
record is classified into exactly one :class:`EventType`; records whose
``EventType`` is missing or not recognized become ``UNKNOWN`` and keep
only the common fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Union

from logpush_otel.exceptions import EventShapeError


class EventType(str, Enum):
    """Workers invocation type that produced a trace event."""

    FETCH = "fetch"
    SCHEDULED = "scheduled"
    ALARM = "alarm"
    QUEUE = "queue"
    EMAIL = "email"
    RPC = "rpc"
    TAIL = "tail"
    UNKNOWN = "unknown"


class LogLevel(str, Enum):
    """console.* level recorded for a log line."""

    UNKNOWN = "unknown"
    DEBUG = "debug"
    INFO = "info"
    LOG = "log"
    WARN = "warn"
    ERROR = "error"


@dataclass
class LogEntry:
    """One console.* call captured during the invocation."""

    level: LogLevel
    message: list[Any]  # console arguments, in call order
    timestamp_ms: float


@dataclass
class ExceptionEntry:
    """An uncaught exception captured during the invocation."""

    name: str
    message: str
    timestamp_ms: float
    stack: Optional[str] = None


@dataclass
class ScriptVersion:
    id: Optional[str] = None
    message: Optional[str] = None
    tag: Optional[str] = None


@dataclass
class FetchInfo:
    ray_id: Optional[str] = None
    method: Optional[str] = None
    url: Optional[str] = None
    status: Optional[int] = None
    headers: dict[str, str] = field(default_factory=dict)
    cf: dict[str, Any] = field(default_factory=dict)


@dataclass
class ScheduledInfo:
    cron: Optional[str] = None
    scheduled_time_ms: Optional[float] = None


@dataclass
class AlarmInfo:
    scheduled_time_ms: Optional[float] = None
    script_name: Optional[str] = None


@dataclass
class QueueInfo:
    queue: Optional[str] = None
    batch_size: Optional[int] = None
    script_name: Optional[str] = None


@dataclass
class EmailInfo:
    mail_from: Optional[str] = None
    rcpt_to: Optional[str] = None
    raw_size: Optional[int] = None
    script_name: Optional[str] = None


@dataclass
class RpcInfo:
    rpc_method: Optional[str] = None


@dataclass
class TailInfo:
    consumed_events: list[Any] = field(default_factory=list)


EventInfo = Union[
    FetchInfo, ScheduledInfo, AlarmInfo, QueueInfo, EmailInfo, RpcInfo, TailInfo
]


@dataclass
class LogpushEvent:
    """A classified trace event."""

    event_type: EventType
    script_name: str
    logs: list[LogEntry]
    exceptions: list[ExceptionEntry]
    event: Optional[EventInfo] = None  # None only for EventType.UNKNOWN
    event_timestamp_ms: Optional[float] = None
    outcome: Optional[str] = None
    cpu_time_ms: Optional[float] = None
    wall_time_ms: Optional[float] = None
    truncated: bool = False
    script_tags: list[str] = field(default_factory=list)
    script_version: Optional[ScriptVersion] = None
    entrypoint: Optional[str] = None
    dispatch_namespace: Optional[str] = None
    diagnostics_channel_events: list[Any] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


def _fetch_info(event: dict[str, Any]) -> FetchInfo:
    request = event.get("Request") or {}
    response = event.get("Response") or {}
    return FetchInfo(
        ray_id=event.get("RayID"),
        method=request.get("Method"),
        url=request.get("URL"),
        status=response.get("Status"),
        headers=request.get("Headers") or {},
        cf=request.get("CF") or {},
    )


def _scheduled_info(event: dict[str, Any]) -> ScheduledInfo:
    return ScheduledInfo(
        cron=event.get("Cron"),
        scheduled_time_ms=event.get("ScheduledTimeMs"),
    )


def _alarm_info(event: dict[str, Any]) -> AlarmInfo:
    return AlarmInfo(
        scheduled_time_ms=event.get("ScheduledTimeMs"),
        script_name=event.get("ScriptName"),
    )


def _queue_info(event: dict[str, Any]) -> QueueInfo:
    return QueueInfo(
        queue=event.get("Queue"),
        batch_size=event.get("BatchSize"),
        script_name=event.get("ScriptName"),
    )


def _email_info(event: dict[str, Any]) -> EmailInfo:
    return EmailInfo(
        mail_from=event.get("MailFrom"),
        rcpt_to=event.get("RcptTo"),
        raw_size=event.get("RawSize"),
        script_name=event.get("ScriptName"),
    )


def _rpc_info(event: dict[str, Any]) -> RpcInfo:
    return RpcInfo(rpc_method=event.get("rpcMethod"))


def _tail_info(event: dict[str, Any]) -> TailInfo:
    return TailInfo(consumed_events=event.get("ConsumedEvents") or [])


EVENT_INFO_PARSERS: dict[EventType, Callable[[dict[str, Any]], EventInfo]] = {
    EventType.FETCH: _fetch_info,
    EventType.SCHEDULED: _scheduled_info,
    EventType.ALARM: _alarm_info,
    EventType.QUEUE: _queue_info,
    EventType.EMAIL: _email_info,
    EventType.RPC: _rpc_info,
    EventType.TAIL: _tail_info,
}


def event_type_of(record: dict[str, Any]) -> EventType:
    """Return the record's variant, falling back to UNKNOWN."""
    value = record.get("EventType")
    if not isinstance(value, str):
        return EventType.UNKNOWN
    try:
        event_type = EventType(value)
    except ValueError:
        return EventType.UNKNOWN
    # "unknown" is not a discriminator value Cloudflare sends
    if event_type not in EVENT_INFO_PARSERS:
        return EventType.UNKNOWN
    return event_type


def _parse_log(entry: Any) -> LogEntry:
    if not isinstance(entry, dict):
        raise EventShapeError(f"Log entry must be an object, got {type(entry).__name__}")

    level = entry.get("Level")
    try:
        log_level = LogLevel(level)
    except ValueError as exc:
        raise EventShapeError(f"Unrecognized log level: {level!r}") from exc

    message = entry.get("Message")
    if message is None:
        message = []
    if not isinstance(message, list):
        raise EventShapeError("Log message must be a list of console arguments")

    return LogEntry(level=log_level, message=message, timestamp_ms=entry.get("TimestampMs") or 0)


def _parse_exception(entry: Any) -> ExceptionEntry:
    if not isinstance(entry, dict):
        raise EventShapeError(
            f"Exception entry must be an object, got {type(entry).__name__}"
        )
    return ExceptionEntry(
        name=str(entry.get("Name") or ""),
        message=str(entry.get("Message") or ""),
        timestamp_ms=entry.get("TimestampMs") or 0,
        stack=entry.get("Stack"),
    )


def _list_field(record: dict[str, Any], key: str) -> list[Any]:
    value = record.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise EventShapeError(f"{key} must be a list")
    return value


def classify_event(record: dict[str, Any]) -> LogpushEvent:
    """
    Build a typed event from a decoded Logpush record.

    Raises:
        EventShapeError: If the record's logs or exceptions do not have the
            documented shape (including an unrecognized log level).
    """
    event_type = event_type_of(record)
    info: Optional[EventInfo] = None
    if event_type is not EventType.UNKNOWN:
        payload = record.get("Event")
        info = EVENT_INFO_PARSERS[event_type](payload if isinstance(payload, dict) else {})

    version = record.get("ScriptVersion")
    script_version = None
    if isinstance(version, dict):
        script_version = ScriptVersion(
            id=version.get("ID"),
            message=version.get("Message"),
            tag=version.get("Tag"),
        )

    script_name = record.get("ScriptName")

    return LogpushEvent(
        event_type=event_type,
        script_name=script_name if isinstance(script_name, str) else "",
        logs=[_parse_log(entry) for entry in _list_field(record, "Logs")],
        exceptions=[_parse_exception(entry) for entry in _list_field(record, "Exceptions")],
        event=info,
        event_timestamp_ms=record.get("EventTimestampMs"),
        outcome=record.get("Outcome"),
        cpu_time_ms=record.get("CPUTimeMs"),
        # Cloudflare documents WallTimeMs; older jobs used WallTimeMS
        wall_time_ms=record.get("WallTimeMs", record.get("WallTimeMS")),
        truncated=bool(record.get("Truncated", False)),
        script_tags=_list_field(record, "ScriptTags"),
        script_version=script_version,
        entrypoint=record.get("Entrypoint"),
        dispatch_namespace=record.get("DispatchNamespace"),
        diagnostics_channel_events=_list_field(record, "DiagnosticsChannelEvents"),
        raw=record,
    )


def group_events_by_script(
    events: Iterable[LogpushEvent],
) -> dict[str, list[LogpushEvent]]:
    """
    Partition events by script name.

    Keys are script names taken verbatim (``""`` when absent), in order of
    first occurrence; each group keeps arrival order.
    """
    groups: dict[str, list[LogpushEvent]] = {}
    for event in events:
        groups.setdefault(event.script_name, []).append(event)
    return groups
