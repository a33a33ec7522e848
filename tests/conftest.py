"""
Pytest configuration and fixtures for the Logpush OTel bridge tests.

Provides builders for Logpush records and deliveries, and a mock OTLP
destination backed by httpx.MockTransport.
"""

import gzip
import json
import logging
import threading
from typing import Any, Optional

import httpx
import pytest

DESTINATION = "https://otel.example.com/v1/logs"


def make_record(
    script_name: Optional[str] = "my-worker",
    event_type: Optional[str] = "fetch",
    logs: Optional[list[dict[str, Any]]] = None,
    exceptions: Optional[list[dict[str, Any]]] = None,
    **overrides: Any,
) -> dict[str, Any]:
    """Build a Workers trace event record as Logpush delivers it."""
    record: dict[str, Any] = {
        "DispatchNamespace": "",
        "Entrypoint": "",
        "Event": {
            "RayID": "8f1a2b3c4d5e6f70",
            "Request": {
                "URL": "https://example.com/api/items?page=2",
                "Method": "GET",
                "Headers": {"accept": "application/json"},
                "CF": {"colo": "AMS"},
            },
            "Response": {"Status": 200},
        },
        "EventTimestampMs": 1735689600000,
        "Exceptions": exceptions or [],
        "Logs": logs
        if logs is not None
        else [{"Level": "log", "Message": ["hello"], "TimestampMs": 1735689600001}],
        "Outcome": "ok",
        "ScriptName": script_name,
        "ScriptTags": [],
        "ScriptVersion": {"ID": "a1b2c3d4", "Message": "", "Tag": ""},
        "CPUTimeMs": 2,
        "WallTimeMs": 15,
        "Truncated": False,
        "EventType": event_type,
    }
    if script_name is None:
        del record["ScriptName"]
    if event_type is None:
        del record["EventType"]
    record.update(overrides)
    return record


def make_payload(records: list[dict[str, Any]]) -> bytes:
    """Gzip newline-delimited JSON records into a Logpush delivery body."""
    text = "\n".join(json.dumps(record) for record in records)
    return gzip.compress(text.encode("utf-8"))


class MockDestination:
    """Records OTLP deliveries and answers with a configurable status."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []
        self._lock = threading.Lock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        return httpx.Response(self.status_code)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def payloads(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    def log_records(self) -> list[dict[str, Any]]:
        return [
            log_record
            for payload in self.payloads()
            for resource_logs in payload.get("resourceLogs", [])
            for scope_logs in resource_logs.get("scopeLogs", [])
            for log_record in scope_logs.get("logRecords", [])
        ]

    def service_names(self) -> list[str]:
        names = []
        for payload in self.payloads():
            for resource_logs in payload.get("resourceLogs", []):
                for attribute in resource_logs["resource"]["attributes"]:
                    if attribute["key"] == "service.name":
                        names.append(attribute["value"]["stringValue"])
        return names


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo handler changes made by setup_logging."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def destination() -> MockDestination:
    return MockDestination()


@pytest.fixture
def test_settings(monkeypatch):
    """Settings pointing at the mock destination with small batches."""
    from logpush_otel.config import Settings

    monkeypatch.delenv("AUTHORIZATION", raising=False)
    return Settings(
        destination=DESTINATION,
        otel_batch_delay_ms=50,
        otel_max_batch_size=2,
        otel_max_queue_size=64,
        _env_file=None,
    )


@pytest.fixture
def api_client(destination: MockDestination, monkeypatch):
    """Test client for the API with deliveries routed to the mock destination."""
    from fastapi.testclient import TestClient

    from logpush_otel.api.app import app
    from logpush_otel.api.routes.logpush import get_http_transport
    from logpush_otel.config import settings

    monkeypatch.setattr(settings, "destination", DESTINATION)
    monkeypatch.setattr(settings, "authorization", None)
    monkeypatch.setattr(settings, "strict_parsing", True)

    app.dependency_overrides[get_http_transport] = lambda: destination.transport

    # No `with` block: lifespan (logging setup, startup checks) is not run
    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
