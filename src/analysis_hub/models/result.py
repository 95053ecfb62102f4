"""Aggregate and top-level result models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from analysis_hub.models.issue import AnalysisType, Issue, Severity
from analysis_hub.models.raw import FailureReason


class CorrelationType(Enum):
    """Independent partitioning classes for correlated issues."""

    SAME_LOCATION = "same_location"
    SAME_RULE_FAMILY = "same_rule_family"
    DATA_FLOW_OVERLAP = "data_flow_overlap"
    SEMANTIC_EQUIVALENCE = "semantic_equivalence"
    FORMAL_STATIC = "formal_static"


class FormalVerdict(Enum):
    """How a formal result bears on a static finding."""

    CORROBORATED = "corroborated"
    REFUTED = "refuted"


class AdapterStatus(Enum):
    """Final status of one adapter in a run."""

    RAN = "ran"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FileMetrics:
    """Per-file aggregate over all file-kind issues."""

    canonical_path: str
    issue_count: int
    severity_distribution: dict[Severity, int]
    analysis_type_distribution: dict[AnalysisType, int]
    tool_coverage: tuple[str, ...]
    hotspot_score: float


@dataclass(frozen=True)
class CorrelationGroup:
    """Two or more issues judged to describe a related defect."""

    id: str
    correlation_type: CorrelationType
    issues: tuple[Issue, ...]
    risk_score: float
    files_affected: tuple[str, ...]
    rationale: str
    verdicts: dict[str, FormalVerdict] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        """Validate group invariants."""
        if len(self.issues) < 2:
            raise ValueError(f"correlation group needs at least 2 issues, got {len(self.issues)}")
        if not 0.0 <= self.risk_score <= 100.0:
            raise ValueError(f"risk_score must be within [0, 100], got {self.risk_score}")

    @property
    def issue_ids(self) -> tuple[str, ...]:
        """Member issue ids in group order."""
        return tuple(issue.id for issue in self.issues)

    @property
    def tools(self) -> tuple[str, ...]:
        """Distinct contributing tool names, sorted."""
        return tuple(sorted({issue.tool_name for issue in self.issues}))

    @property
    def likely_false_positive(self) -> bool:
        """Whether a formal proof contradicts a static finding in this group."""
        return "likely_false_positive" in self.rationale


@dataclass(frozen=True)
class Hotspot:
    """A file whose risk profile exceeds the configured thresholds."""

    canonical_path: str
    issue_count: int
    tool_coverage: tuple[str, ...]
    risk_score: float
    recommended_actions: tuple[str, ...]
    issue_ids: tuple[str, ...] = ()


@dataclass
class AdapterOutcome:
    """What happened to one adapter during orchestration."""

    adapter: str
    status: AdapterStatus
    reason: FailureReason | None = None
    duration_ms: int = 0
    version: str = "unknown"
    finding_count: int = 0
    issue_count: int = 0
    diagnostics: list[str] = field(default_factory=list)


@dataclass
class AnalysisSummary:
    """Counts and rollups for one analysis run."""

    total_issues: int = 0
    files_with_issues: int = 0
    hotspot_count: int = 0
    dropped_findings: int = 0
    severity_counts: dict[str, int] = field(default_factory=dict)
    analysis_type_counts: dict[str, int] = field(default_factory=dict)
    tool_counts: dict[str, int] = field(default_factory=dict)
    correlation_counts: dict[str, int] = field(default_factory=dict)
    adapter_status_counts: dict[str, int] = field(default_factory=dict)
    failure_reasons: dict[str, int] = field(default_factory=dict)


@dataclass
class AnalysisResult:
    """Top-level output of one analysis run."""

    generated_at: datetime
    issues: list[Issue]
    file_metrics: dict[str, FileMetrics]
    correlation_groups: list[CorrelationGroup]
    hotspots: list[Hotspot]
    adapter_outcomes: list[AdapterOutcome]
    summary: AnalysisSummary
    diagnostics: list[str] = field(default_factory=list)

    @property
    def issues_by_id(self) -> dict[str, Issue]:
        """Index of issues by id."""
        return {issue.id: issue for issue in self.issues}

    @property
    def has_critical_issues(self) -> bool:
        """Check if any issue is critical."""
        return any(issue.severity == Severity.CRITICAL for issue in self.issues)

    @property
    def all_adapters_failed(self) -> bool:
        """Check if every scheduled adapter failed."""
        scheduled = [o for o in self.adapter_outcomes if o.status != AdapterStatus.SKIPPED]
        return bool(scheduled) and all(o.status == AdapterStatus.FAILED for o in scheduled)

    def outcome_for(self, adapter: str) -> AdapterOutcome | None:
        """Look up the outcome for an adapter by name."""
        for outcome in self.adapter_outcomes:
            if outcome.adapter == adapter:
                return outcome
        return None
