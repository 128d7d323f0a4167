"""
Product events for the API, source import and rewrite batch.

Attributes pass through `scrub_attributes` before reaching a sink: anything
that may carry article bodies, prompts, markup or credentials is replaced by
`[redacted]`, and long strings are compacted to one line.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

import structlog

TelemetryValue = bool | int | float | str | None

REDACTED = "[redacted]"
_REDACTED_KEY_PARTS = (
    "api_key",
    "authorization",
    "content",
    "html",
    "password",
    "prompt",
    "secret",
    "text",
    "token",
)
_STRING_LIMIT = 160


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        ...


class NoOpTelemetrySink:
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        pass


class StructuredLogTelemetrySink:
    """Writes each event as one `telemetry` record on the telemetry logger."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger("blogsmith.telemetry")

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self._logger.info("telemetry", telemetry_event=event_name, **attributes)


@dataclass
class RecordingTelemetrySink:
    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@dataclass(frozen=True)
class TelemetryClient:
    enabled: bool
    sink: TelemetrySink

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=NoOpTelemetrySink())

    def emit(self, event_name: str, **attributes: Any) -> None:
        if self.enabled:
            self.sink.emit(event_name=event_name, attributes=scrub_attributes(attributes))


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    # `sink` is validated by AppSettings, so anything but "log" means off.
    if enabled and sink == "log":
        return TelemetryClient(enabled=True, sink=StructuredLogTelemetrySink())
    return TelemetryClient.disabled()


def scrub_attributes(attributes: Mapping[str, Any]) -> dict[str, TelemetryValue]:
    scrubbed: dict[str, TelemetryValue] = {}
    for raw_key, value in attributes.items():
        key = str(raw_key).strip().lower()
        if not key:
            continue
        if any(part in key for part in _REDACTED_KEY_PARTS):
            scrubbed[key] = REDACTED
        elif value is None or isinstance(value, bool | int | float):
            scrubbed[key] = value
        elif isinstance(value, str):
            scrubbed[key] = _compact(value)
        else:
            scrubbed[key] = type(value).__name__
    return scrubbed


def _compact(value: str) -> str:
    single_line = " ".join(value.split())
    if len(single_line) > _STRING_LIMIT:
        return f"{single_line[:_STRING_LIMIT]}..."
    return single_line
