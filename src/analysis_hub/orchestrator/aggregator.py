"""Aggregator folding issues into per-file metrics and hotspots."""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass

from analysis_hub.models.issue import AnalysisType, FormalStatus, Issue, Severity
from analysis_hub.models.result import CorrelationGroup, FileMetrics, Hotspot

logger = logging.getLogger(__name__)

DEFAULT_HOTSPOT_THRESHOLD = 40.0
TOOL_BONUS = 5

SECURITY_REVIEW = "security-review"
REFACTOR = "refactor"
FORMAL_REVIEW = "formal-review"
CODE_REVIEW = "code-review"
TRIAGE_FALSE_POSITIVES = "triage-false-positives"

# Ties on the dominant analysis type resolve in this order.
TYPE_PRIORITY = [
    AnalysisType.SECURITY,
    AnalysisType.CORRECTNESS,
    AnalysisType.ARCHITECTURE_DESIGN,
    AnalysisType.PERFORMANCE,
    AnalysisType.SEMANTIC,
    AnalysisType.ARCHITECTURE_DEBT,
    AnalysisType.QUALITY,
]


@dataclass
class AggregatorConfig:
    """Configuration for the aggregator."""

    hotspot_threshold: float = DEFAULT_HOTSPOT_THRESHOLD
    refactor_tool_count: int = 3


def hotspot_score(issues: list[Issue]) -> float:
    """Per-file score ``min(100, sum of weights + 5 * (tools - 1))``."""
    if not issues:
        return 0.0
    tools = {issue.tool_name for issue in issues}
    total = sum(issue.severity.weight for issue in issues) + TOOL_BONUS * (len(tools) - 1)
    return float(min(100, total))


class Aggregator:
    """Produces file metrics and hotspots from normalized issues."""

    def __init__(self, config: AggregatorConfig | None = None) -> None:
        """Initialize the aggregator.

        Args:
            config: Optional configuration
        """
        self.config = config or AggregatorConfig()

    def file_metrics(self, issues: list[Issue]) -> dict[str, FileMetrics]:
        """Fold file-kind issues into per-path metrics.

        Args:
            issues: All normalized issues

        Returns:
            Metrics keyed by canonical path, in sorted key order
        """
        by_path = self._issues_by_path(issues)
        metrics = {}
        for path in sorted(by_path):
            members = by_path[path]
            severities = Counter(issue.severity for issue in members)
            types = Counter(issue.analysis_type for issue in members)
            metrics[path] = FileMetrics(
                canonical_path=path,
                issue_count=len(members),
                severity_distribution={s: severities[s] for s in Severity if severities[s]},
                analysis_type_distribution={t: types[t] for t in AnalysisType if types[t]},
                tool_coverage=tuple(sorted({issue.tool_name for issue in members})),
                hotspot_score=hotspot_score(members),
            )
        return metrics

    def hotspots(
        self,
        issues: list[Issue],
        metrics: dict[str, FileMetrics],
        groups: list[CorrelationGroup],
    ) -> list[Hotspot]:
        """Select hotspot files and derive recommended actions.

        A file's risk is the larger of its hotspot score and the risk of any
        correlation group touching it. Files reach hotspot status when that
        risk crosses the threshold or when they carry a critical issue; a
        critical-only hotspot is reported at the threshold.

        Args:
            issues: All normalized issues
            metrics: Output of ``file_metrics``
            groups: Correlation groups

        Returns:
            Hotspots sorted by descending risk, then path
        """
        threshold = self.config.hotspot_threshold
        by_path = self._issues_by_path(issues)

        group_risk: dict[str, float] = defaultdict(float)
        false_positive_paths: set[str] = set()
        for group in groups:
            for path in group.files_affected:
                group_risk[path] = max(group_risk[path], group.risk_score)
                if group.likely_false_positive:
                    false_positive_paths.add(path)

        hotspots = []
        for path, metric in metrics.items():
            members = by_path.get(path, [])
            risk = max(metric.hotspot_score, group_risk.get(path, 0.0))
            has_critical = any(issue.severity == Severity.CRITICAL for issue in members)
            if risk < threshold and not has_critical:
                continue

            hotspots.append(
                Hotspot(
                    canonical_path=path,
                    issue_count=metric.issue_count,
                    tool_coverage=metric.tool_coverage,
                    risk_score=round(min(100.0, max(risk, threshold)), 2),
                    recommended_actions=tuple(
                        self.recommended_actions(members, path in false_positive_paths)
                    ),
                    issue_ids=tuple(sorted(issue.id for issue in members)),
                )
            )

        hotspots.sort(key=lambda h: (-h.risk_score, h.canonical_path))
        logger.debug(f"Selected {len(hotspots)} hotspots from {len(metrics)} files")
        return hotspots

    def recommended_actions(self, issues: list[Issue], likely_false_positive: bool = False) -> list[str]:
        """Derive ordered action tags for one file.

        The first tag comes from the dominant analysis type; supplementary
        tags follow without duplicates.
        """
        has_violation = any(i.formal_status == FormalStatus.VERIFIED_VIOLATION for i in issues)
        has_formal = any(i.is_formal for i in issues)

        dominant = self._dominant_type(issues)
        if dominant == AnalysisType.SECURITY:
            primary = SECURITY_REVIEW
        elif dominant == AnalysisType.ARCHITECTURE_DESIGN:
            primary = REFACTOR
        elif dominant == AnalysisType.CORRECTNESS and has_formal:
            primary = FORMAL_REVIEW
        else:
            primary = CODE_REVIEW

        actions = [primary]
        if likely_false_positive:
            actions.append(TRIAGE_FALSE_POSITIVES)
        if has_violation:
            actions.append(FORMAL_REVIEW)
        if len({i.tool_name for i in issues}) >= self.config.refactor_tool_count:
            actions.append(REFACTOR)

        return list(dict.fromkeys(actions))

    @staticmethod
    def _dominant_type(issues: list[Issue]) -> AnalysisType | None:
        if not issues:
            return None
        counts = Counter(issue.analysis_type for issue in issues)
        return max(TYPE_PRIORITY, key=lambda t: (counts[t], -TYPE_PRIORITY.index(t)))

    @staticmethod
    def _issues_by_path(issues: list[Issue]) -> dict[str, list[Issue]]:
        by_path: dict[str, list[Issue]] = defaultdict(list)
        for issue in issues:
            if issue.entity.is_file:
                by_path[issue.entity.canonical_path].append(issue)
        return by_path
