"""Batch Module - cross-product matching, bulk match jobs, telemetry and export."""
from core.batch.models import (
    BatchMatchEntry,
    BatchMatchResult,
    BatchRunStats,
    BulkMatchJob,
    BulkMatchStatus,
    GroupBy,
    MatchType,
)
from core.batch.orchestrator import BatchMatchOrchestrator
from core.batch.telemetry import (
    CompositeTelemetrySink,
    InMemoryTelemetrySink,
    LoggingTelemetrySink,
    TelemetryEvent,
    TelemetrySink,
)

__all__ = [
    'BatchMatchOrchestrator',
    'BatchMatchEntry',
    'BatchMatchResult',
    'BatchRunStats',
    'BulkMatchJob',
    'BulkMatchStatus',
    'GroupBy',
    'MatchType',
    'TelemetryEvent',
    'TelemetrySink',
    'LoggingTelemetrySink',
    'InMemoryTelemetrySink',
    'CompositeTelemetrySink',
]
