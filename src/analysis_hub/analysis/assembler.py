"""Deterministic assembly of the final analysis result."""

import logging
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timezone

from analysis_hub.models.issue import Issue, Severity
from analysis_hub.models.result import (
    AdapterOutcome,
    AdapterStatus,
    AnalysisResult,
    AnalysisSummary,
    CorrelationGroup,
    FileMetrics,
    Hotspot,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def verify_integrity(result: AnalysisResult) -> list[str]:
    """Check cross references inside a result.

    Returns:
        Problems found (empty when every reference resolves)
    """
    problems = []
    issue_ids = {issue.id for issue in result.issues}
    if len(issue_ids) != len(result.issues):
        problems.append("duplicate issue ids")

    for group in result.correlation_groups:
        missing = [i for i in group.issue_ids if i not in issue_ids]
        if missing:
            problems.append(f"group {group.id} references unknown issues {missing}")

    for hotspot in result.hotspots:
        missing = [i for i in hotspot.issue_ids if i not in issue_ids]
        if missing:
            problems.append(f"hotspot {hotspot.canonical_path} references unknown issues {missing}")
        if hotspot.canonical_path not in result.file_metrics:
            problems.append(f"hotspot {hotspot.canonical_path} has no file metrics")

    file_paths = {issue.entity.canonical_path for issue in result.issues if issue.entity.is_file}
    if set(result.file_metrics) != file_paths:
        problems.append("file metrics keys differ from file entities")

    return problems


def build_summary(
    issues: list[Issue],
    metrics: dict[str, FileMetrics],
    groups: list[CorrelationGroup],
    hotspots: list[Hotspot],
    outcomes: list[AdapterOutcome],
    dropped_findings: int = 0,
) -> AnalysisSummary:
    """Roll up counts for one run."""
    severities = Counter(issue.severity for issue in issues)
    types = Counter(issue.analysis_type.value for issue in issues)
    tools = Counter(issue.tool_name for issue in issues)
    correlations = Counter(group.correlation_type.value for group in groups)
    statuses = Counter(outcome.status for outcome in outcomes)
    reasons = Counter(
        outcome.reason.value
        for outcome in outcomes
        if outcome.status != AdapterStatus.RAN and outcome.reason is not None
    )

    return AnalysisSummary(
        total_issues=len(issues),
        files_with_issues=len(metrics),
        hotspot_count=len(hotspots),
        dropped_findings=dropped_findings,
        severity_counts={s.value: severities[s] for s in Severity},
        analysis_type_counts=dict(sorted(types.items())),
        tool_counts=dict(sorted(tools.items())),
        correlation_counts=dict(sorted(correlations.items())),
        adapter_status_counts={s.value: statuses[s] for s in AdapterStatus},
        failure_reasons=dict(sorted(reasons.items())),
    )


class ResultAssembler:
    """Builds an ``AnalysisResult`` with sorted, reproducible collections."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        """Initialize the assembler.

        Args:
            clock: Source of ``generated_at``
        """
        self.clock = clock

    def assemble(
        self,
        issues: list[Issue],
        metrics: dict[str, FileMetrics],
        groups: list[CorrelationGroup],
        hotspots: list[Hotspot],
        outcomes: list[AdapterOutcome],
        dropped_findings: int = 0,
        diagnostics: list[str] | None = None,
    ) -> AnalysisResult:
        """Assemble and verify the final result.

        Issues are ordered by id, metrics by path and outcomes by adapter
        name. Group and hotspot order is kept as produced, since both are
        already sorted deterministically.
        """
        ordered_issues = sorted(issues, key=lambda i: i.id)
        ordered_outcomes = sorted(outcomes, key=lambda o: o.adapter)

        result = AnalysisResult(
            generated_at=self.clock(),
            issues=ordered_issues,
            file_metrics={path: metrics[path] for path in sorted(metrics)},
            correlation_groups=list(groups),
            hotspots=list(hotspots),
            adapter_outcomes=ordered_outcomes,
            summary=build_summary(ordered_issues, metrics, groups, hotspots, ordered_outcomes, dropped_findings),
            diagnostics=list(diagnostics or []),
        )

        for problem in verify_integrity(result):
            logger.error(f"Result integrity: {problem}")
            result.diagnostics.append(f"integrity: {problem}")
        return result
