"""Data models for the unified analysis schema."""

from analysis_hub.models.entity import Entity, EntityKind
from analysis_hub.models.issue import AnalysisType, FormalStatus, Issue, Severity
from analysis_hub.models.raw import (
    AdapterCapabilities,
    AdapterFailure,
    AdapterOutput,
    FailureReason,
    RawFinding,
    TimeoutClass,
)
from analysis_hub.models.result import (
    AdapterOutcome,
    AdapterStatus,
    AnalysisResult,
    AnalysisSummary,
    CorrelationGroup,
    CorrelationType,
    FileMetrics,
    FormalVerdict,
    Hotspot,
)

__all__ = [
    "AdapterCapabilities",
    "AdapterFailure",
    "AdapterOutcome",
    "AdapterOutput",
    "AdapterStatus",
    "AnalysisResult",
    "AnalysisSummary",
    "AnalysisType",
    "CorrelationGroup",
    "CorrelationType",
    "Entity",
    "EntityKind",
    "FailureReason",
    "FileMetrics",
    "FormalStatus",
    "FormalVerdict",
    "Hotspot",
    "Issue",
    "RawFinding",
    "Severity",
    "TimeoutClass",
]
