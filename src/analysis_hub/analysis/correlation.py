"""Cross-tool correlation engine.

Each correlation class partitions the issue set independently, so an issue
can belong to one group per class but never to two groups of the same class.
Only file-kind entities take part.
"""

import hashlib
import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

from analysis_hub.models.issue import FormalStatus, Issue
from analysis_hub.models.result import CorrelationGroup, CorrelationType, FormalVerdict

logger = logging.getLogger(__name__)

DEFAULT_LINE_BUCKET_SIZE = 3
MAX_RISK = 100.0
VIOLATION_FACTOR = 1.25
FALSE_POSITIVE_FACTOR = 0.5
LIKELY_FALSE_POSITIVE = "likely_false_positive"


@dataclass
class CorrelationConfig:
    """Configuration for the correlation engine."""

    line_bucket_size: int = DEFAULT_LINE_BUCKET_SIZE

    def __post_init__(self) -> None:
        if self.line_bucket_size < 1:
            raise ValueError(f"line_bucket_size must be >= 1, got {self.line_bucket_size}")


def confidence_factor(tool_count: int) -> float:
    """Multi-tool agreement factor ``min(2, 1 + 0.2 * (T - 1))``."""
    return min(2.0, 1.0 + 0.2 * (tool_count - 1))


def risk_score(issues: Iterable[Issue]) -> tuple[float, bool]:
    """Compute the composite risk of a set of issues.

    Args:
        issues: Members of a candidate group

    Returns:
        Tuple of (risk score rounded to 2 decimals, likely_false_positive)
    """
    members = list(issues)
    if not members:
        return 0.0, False

    tools = {issue.tool_name for issue in members}
    mean_weight = sum(issue.severity.weight for issue in members) / len(members)
    score = 10.0 * confidence_factor(len(tools)) * mean_weight
    score = min(MAX_RISK, score)

    statuses = {issue.formal_status for issue in members if issue.is_formal}
    # a safety proof only discounts static findings about the same defect class
    proven_families = {
        issue.rule_family
        for issue in members
        if issue.is_formal and issue.formal_status is FormalStatus.VERIFIED_SAFE and issue.rule_family
    }
    likely_false_positive = any(
        not issue.is_formal and issue.rule_family in proven_families for issue in members
    )

    if FormalStatus.VERIFIED_VIOLATION in statuses:
        score *= VIOLATION_FACTOR
    if likely_false_positive:
        score *= FALSE_POSITIVE_FACTOR

    return round(min(MAX_RISK, score), 2), likely_false_positive


def _group_id(correlation_type: CorrelationType, issues: list[Issue]) -> str:
    digest = hashlib.sha1(",".join(sorted(i.id for i in issues)).encode("utf-8")).hexdigest()
    return f"{correlation_type.value}:{digest[:12]}"


def _flow_nodes(issue: Issue) -> set[str]:
    flow = issue.flow or {}
    nodes = set(flow.get("path") or [])
    for end in ("source", "sink"):
        if flow.get(end):
            nodes.add(flow[end])
    return nodes


class _UnionFind:
    def __init__(self, size: int) -> None:
        self.parent = list(range(size))

    def find(self, x: int) -> int:
        while self.parent[x] != x:
            self.parent[x] = self.parent[self.parent[x]]
            x = self.parent[x]
        return x

    def union(self, a: int, b: int) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            # smaller root wins so components are order independent
            self.parent[max(ra, rb)] = min(ra, rb)


class CorrelationEngine:
    """Groups issues from different tools that describe related defects."""

    def __init__(self, config: CorrelationConfig | None = None) -> None:
        """Initialize the engine.

        Args:
            config: Optional configuration
        """
        self.config = config or CorrelationConfig()

    def correlate(self, issues: list[Issue]) -> list[CorrelationGroup]:
        """Emit correlation groups for every correlation class.

        Args:
            issues: Normalized issues from all adapters

        Returns:
            Groups sorted by descending risk, then smallest member id
        """
        candidates = sorted((i for i in issues if i.entity.is_file), key=lambda i: i.id)

        groups: list[CorrelationGroup] = []
        groups.extend(self._same_location(candidates))
        groups.extend(self._same_rule_family(candidates))
        groups.extend(self._data_flow_overlap(candidates))
        groups.extend(self._formal_static(candidates))

        groups.sort(key=lambda g: (-g.risk_score, min(g.issue_ids), g.correlation_type.value))
        logger.debug(f"Correlated {len(candidates)} issues into {len(groups)} groups")
        return groups

    def _same_location(self, issues: list[Issue]) -> list[CorrelationGroup]:
        bucket_size = self.config.line_bucket_size
        buckets: dict[tuple[str, int], list[Issue]] = defaultdict(list)
        for issue in issues:
            if issue.line is None:
                continue
            buckets[(issue.entity.canonical_path, issue.line // bucket_size)].append(issue)

        groups = []
        for (path, bucket), members in sorted(buckets.items()):
            if len({m.tool_name for m in members}) < 2:
                continue
            first, last = bucket * bucket_size, bucket * bucket_size + bucket_size - 1
            groups.append(
                self._build(
                    CorrelationType.SAME_LOCATION,
                    members,
                    f"{self._tool_phrase(members)} report {path} lines {first}-{last}",
                )
            )
        return groups

    def _same_rule_family(self, issues: list[Issue]) -> list[CorrelationGroup]:
        families: dict[tuple[str, str, str], list[Issue]] = defaultdict(list)
        for issue in issues:
            if issue.rule_family is None:
                continue
            key = (issue.entity.canonical_path, issue.analysis_type.value, issue.rule_family)
            families[key].append(issue)

        groups = []
        for (path, analysis_type, family), members in sorted(families.items()):
            if len({m.tool_name for m in members}) < 2:
                continue
            groups.append(
                self._build(
                    CorrelationType.SAME_RULE_FAMILY,
                    members,
                    f"{self._tool_phrase(members)} report {family} ({analysis_type}) in {path}",
                )
            )
        return groups

    def _data_flow_overlap(self, issues: list[Issue]) -> list[CorrelationGroup]:
        by_entity: dict[str, list[Issue]] = defaultdict(list)
        for issue in issues:
            if issue.flow is not None:
                by_entity[issue.entity.canonical_path].append(issue)

        groups = []
        for path, members in sorted(by_entity.items()):
            nodes = [_flow_nodes(m) for m in members]
            uf = _UnionFind(len(members))
            for i, issue in enumerate(members):
                flow = issue.flow or {}
                source, sink = flow.get("source"), flow.get("sink")
                if not source or not sink:
                    continue
                for j, other in enumerate(members):
                    if other.tool_name == issue.tool_name:
                        continue
                    if source in nodes[j] and sink in nodes[j]:
                        uf.union(i, j)

            components: dict[int, list[Issue]] = defaultdict(list)
            for i, issue in enumerate(members):
                components[uf.find(i)].append(issue)

            for root in sorted(components):
                component = components[root]
                if len(component) < 2 or len({m.tool_name for m in component}) < 2:
                    continue
                groups.append(
                    self._build(
                        CorrelationType.DATA_FLOW_OVERLAP,
                        component,
                        f"{self._tool_phrase(component)} trace overlapping data flows in {path}",
                    )
                )
        return groups

    def _formal_static(self, issues: list[Issue]) -> list[CorrelationGroup]:
        pairs: dict[tuple[str, str], list[Issue]] = defaultdict(list)
        for issue in issues:
            if issue.rule_family is None or issue.line is None:
                continue
            pairs[(issue.entity.canonical_path, issue.rule_family)].append(issue)

        groups = []
        for (path, family), members in sorted(pairs.items()):
            formal = [m for m in members if m.is_formal]
            static = [m for m in members if not m.is_formal]
            if not formal or not static:
                continue

            statuses = {m.formal_status for m in formal}
            verdict = None
            if FormalStatus.VERIFIED_VIOLATION in statuses:
                verdict = FormalVerdict.CORROBORATED
            elif FormalStatus.VERIFIED_SAFE in statuses:
                verdict = FormalVerdict.REFUTED
            verdicts = {m.id: verdict for m in static} if verdict else {}

            outcome = verdict.value if verdict else "inconclusive"
            groups.append(
                self._build(
                    CorrelationType.FORMAL_STATIC,
                    members,
                    f"formal result on {family} in {path} is {outcome} for {len(static)} static finding(s)",
                    verdicts,
                )
            )
        return groups

    def _build(
        self,
        correlation_type: CorrelationType,
        members: list[Issue],
        rationale: str,
        verdicts: dict[str, FormalVerdict] | None = None,
    ) -> CorrelationGroup:
        ordered = sorted(members, key=lambda i: i.id)
        score, likely_false_positive = risk_score(ordered)
        if likely_false_positive:
            rationale = f"{rationale}; {LIKELY_FALSE_POSITIVE}"
        return CorrelationGroup(
            id=_group_id(correlation_type, ordered),
            correlation_type=correlation_type,
            issues=tuple(ordered),
            risk_score=score,
            files_affected=tuple(sorted({i.entity.canonical_path for i in ordered})),
            rationale=rationale,
            verdicts=verdicts or {},
        )

    @staticmethod
    def _tool_phrase(members: list[Issue]) -> str:
        tools = sorted({m.tool_name for m in members})
        return f"{len(tools)} tools ({', '.join(tools)})"
