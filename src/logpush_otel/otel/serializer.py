"""
OTLP/JSON encoding of SDK log batches.

Builds an ExportLogsServiceRequest from a batch of SDK ``LogData`` and
renders it with the protobuf JSON mapping used by OTLP/HTTP JSON.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Sequence

from google.protobuf.json_format import MessageToDict
from opentelemetry.proto.collector.logs.v1.logs_service_pb2 import (
    ExportLogsServiceRequest,
)
from opentelemetry.proto.common.v1.common_pb2 import (
    AnyValue,
    ArrayValue,
    InstrumentationScope,
    KeyValue,
    KeyValueList,
)
from opentelemetry.proto.logs.v1.logs_pb2 import LogRecord, ResourceLogs, ScopeLogs
from opentelemetry.proto.resource.v1.resource_pb2 import Resource
from opentelemetry.sdk._logs import LogData

from logpush_otel.exceptions import SerializationError

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def to_any_value(value: Any) -> AnyValue:
    """
    Convert a Python value into an OTLP AnyValue.

    Raises:
        SerializationError: If the value has no AnyValue representation.
    """
    if value is None:
        return AnyValue()
    if isinstance(value, bool):
        return AnyValue(bool_value=value)
    if isinstance(value, str):
        return AnyValue(string_value=value)
    if isinstance(value, int):
        if _INT64_MIN <= value <= _INT64_MAX:
            return AnyValue(int_value=value)
        return AnyValue(double_value=float(value))
    if isinstance(value, float):
        return AnyValue(double_value=value)
    if isinstance(value, (bytes, bytearray)):
        return AnyValue(bytes_value=bytes(value))
    if isinstance(value, Mapping):
        return AnyValue(
            kvlist_value=KeyValueList(
                values=[KeyValue(key=str(k), value=to_any_value(v)) for k, v in value.items()]
            )
        )
    if isinstance(value, Sequence):
        return AnyValue(array_value=ArrayValue(values=[to_any_value(v) for v in value]))
    raise SerializationError(f"Cannot encode value of type {type(value).__name__}")


def _key_values(attributes: Mapping[str, Any] | None) -> list[KeyValue]:
    if not attributes:
        return []
    return [KeyValue(key=key, value=to_any_value(value)) for key, value in attributes.items()]


def _resource_key(resource: Any) -> tuple:
    attributes = getattr(resource, "attributes", None) or {}
    return tuple(sorted((key, repr(value)) for key, value in attributes.items()))


def _encode_log_record(log_data: LogData) -> LogRecord:
    record = log_data.log_record
    encoded = LogRecord(
        time_unix_nano=record.timestamp or 0,
        observed_time_unix_nano=record.observed_timestamp or 0,
        severity_text=record.severity_text or "",
        body=to_any_value(record.body),
        attributes=_key_values(record.attributes),
        dropped_attributes_count=getattr(record, "dropped_attributes", 0) or 0,
    )
    if record.severity_number is not None:
        encoded.severity_number = record.severity_number.value
    return encoded


def encode_logs(batch: Sequence[LogData]) -> ExportLogsServiceRequest:
    """Group a batch by resource and instrumentation scope into an export request."""
    request = ExportLogsServiceRequest()
    resource_logs: dict[tuple, ResourceLogs] = {}
    scope_logs: dict[tuple, ScopeLogs] = {}

    for log_data in batch:
        resource = log_data.log_record.resource
        resource_key = _resource_key(resource)
        if resource_key not in resource_logs:
            entry = request.resource_logs.add()
            entry.resource.CopyFrom(
                Resource(attributes=_key_values(getattr(resource, "attributes", None)))
            )
            schema_url = getattr(resource, "schema_url", "")
            if schema_url:
                entry.schema_url = schema_url
            resource_logs[resource_key] = entry

        scope = log_data.instrumentation_scope
        scope_key = (
            resource_key,
            getattr(scope, "name", ""),
            getattr(scope, "version", None) or "",
        )
        if scope_key not in scope_logs:
            entry = resource_logs[resource_key].scope_logs.add()
            if scope is not None:
                entry.scope.CopyFrom(
                    InstrumentationScope(name=scope.name, version=scope.version or "")
                )
                if scope.schema_url:
                    entry.schema_url = scope.schema_url
            scope_logs[scope_key] = entry

        scope_logs[scope_key].log_records.append(_encode_log_record(log_data))

    return request


def serialize_logs(batch: Sequence[LogData]) -> bytes:
    """
    Render a batch as an OTLP/HTTP JSON request body.

    Raises:
        SerializationError: If the batch is empty or a value cannot be encoded.
    """
    if not batch:
        raise SerializationError("Empty log batch")

    try:
        request = encode_logs(batch)
        payload = MessageToDict(request, use_integers_for_enums=True)
    except SerializationError:
        raise
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Cannot encode log batch: {exc}") from exc

    return json.dumps(payload, separators=(",", ":")).encode("utf-8")
