from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from blogsmith.telemetry import (
    RecordingTelemetrySink,
    StructuredLogTelemetrySink,
    TelemetryClient,
    build_telemetry_client,
)


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


def test_telemetry_client_redacts_sensitive_fields() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    client.emit(
        "rewrite.article.failed",
        article_id="article_123",
        original_content="full article body",
        prompt="rewrite this",
        api_key="sk-secret",
        page_html="<html></html>",
        references=2,
    )

    assert len(sink.events) == 1
    event_name, attributes = sink.events[0]
    assert event_name == "rewrite.article.failed"
    assert attributes["article_id"] == "article_123"
    assert attributes["references"] == 2
    assert attributes["original_content"] == "[redacted]"
    assert attributes["prompt"] == "[redacted]"
    assert attributes["api_key"] == "[redacted]"
    assert attributes["page_html"] == "[redacted]"


def test_telemetry_client_compacts_values() -> None:
    sink = RecordingTelemetrySink()
    client = TelemetryClient(enabled=True, sink=sink)

    client.emit("page.fetch.escalated", url="https://example.com/" + "a" * 300, detail={"x": 1}, missing=None)

    _, attributes = sink.events[0]
    assert attributes["url"].endswith("...")
    assert len(attributes["url"]) == 163
    assert attributes["detail"] == "dict"
    assert attributes["missing"] is None
    assert sink.names() == ["page.fetch.escalated"]


def test_disabled_telemetry_client_does_not_emit() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=False, sink=sink)

    client.emit("rewrite.batch.started", run_id="batch_1")

    assert sink.events == []


def test_build_telemetry_client_sinks() -> None:
    assert build_telemetry_client(enabled=True, sink="none").enabled is False
    assert build_telemetry_client(enabled=False, sink="log").enabled is False

    log_client = build_telemetry_client(enabled=True, sink="log")
    assert log_client.enabled is True
    assert isinstance(log_client.sink, StructuredLogTelemetrySink)
