"""
Telemetry sinks for batch runs, dispatch and background tasks.

A sink is injected into each orchestrator/dispatcher instance; there is no
process-wide event log.
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class TelemetrySink(ABC):

    @abstractmethod
    def record(self, event: TelemetryEvent) -> None:
        pass

    def emit(self, name: str, /, **data: Any) -> None:
        self.record(TelemetryEvent(name=name, data=data))


class LoggingTelemetrySink(TelemetrySink):
    """Writes every event to the log at a fixed level."""

    def __init__(self, level: int = logging.INFO, log: Optional[logging.Logger] = None):
        self.level = level
        self.log = log or logger

    def record(self, event: TelemetryEvent) -> None:
        details = " ".join(f"{k}={v}" for k, v in event.data.items())
        self.log.log(self.level, f"[telemetry] {event.name} {details}".rstrip())


class InMemoryTelemetrySink(TelemetrySink):
    """Keeps events in memory. Safe to share across worker threads."""

    def __init__(self):
        self._events: List[TelemetryEvent] = []
        self._lock = threading.Lock()

    def record(self, event: TelemetryEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[TelemetryEvent]:
        with self._lock:
            return list(self._events)

    def named(self, name: str) -> List[TelemetryEvent]:
        return [e for e in self.events if e.name == name]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class CompositeTelemetrySink(TelemetrySink):
    def __init__(self, *sinks: TelemetrySink):
        self.sinks = list(sinks)

    def record(self, event: TelemetryEvent) -> None:
        for sink in self.sinks:
            sink.record(event)
