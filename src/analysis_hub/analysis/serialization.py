"""JSON encoding of analysis results.

The encoding mirrors the model field for field. Enums become their
lowercase values, timestamps ISO 8601 strings, and correlation group
members are written as issue ids that are resolved again on decode.
"""

import json
from datetime import datetime
from typing import Any

from analysis_hub.models.entity import Entity, EntityKind
from analysis_hub.models.issue import AnalysisType, Issue, Severity
from analysis_hub.models.raw import FailureReason
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

SCHEMA_VERSION = 1


def entity_to_dict(entity: Entity) -> dict[str, Any]:
    return {
        "kind": entity.kind.value,
        "canonical_path": entity.canonical_path,
        "display_name": entity.display_name,
        "original_identifier": entity.original_identifier,
    }


def issue_to_dict(issue: Issue) -> dict[str, Any]:
    return {
        "id": issue.id,
        "entity": entity_to_dict(issue.entity),
        "severity": issue.severity.value,
        "analysis_type": issue.analysis_type.value,
        "tool_name": issue.tool_name,
        "rule_id": issue.rule_id,
        "title": issue.title,
        "description": issue.description,
        "line": issue.line,
        "column": issue.column,
        "end_line": issue.end_line,
        "end_column": issue.end_column,
        "created_at": issue.created_at.isoformat(),
        "metadata": issue.metadata,
    }


def _metrics_to_dict(metrics: FileMetrics) -> dict[str, Any]:
    return {
        "canonical_path": metrics.canonical_path,
        "issue_count": metrics.issue_count,
        "severity_distribution": {k.value: v for k, v in metrics.severity_distribution.items()},
        "analysis_type_distribution": {k.value: v for k, v in metrics.analysis_type_distribution.items()},
        "tool_coverage": list(metrics.tool_coverage),
        "hotspot_score": metrics.hotspot_score,
    }


def _group_to_dict(group: CorrelationGroup) -> dict[str, Any]:
    return {
        "id": group.id,
        "correlation_type": group.correlation_type.value,
        "issues": list(group.issue_ids),
        "risk_score": group.risk_score,
        "files_affected": list(group.files_affected),
        "rationale": group.rationale,
        "verdicts": {k: v.value for k, v in group.verdicts.items()},
    }


def _hotspot_to_dict(hotspot: Hotspot) -> dict[str, Any]:
    return {
        "canonical_path": hotspot.canonical_path,
        "issue_count": hotspot.issue_count,
        "tool_coverage": list(hotspot.tool_coverage),
        "risk_score": hotspot.risk_score,
        "recommended_actions": list(hotspot.recommended_actions),
        "issue_ids": list(hotspot.issue_ids),
    }


def _outcome_to_dict(outcome: AdapterOutcome) -> dict[str, Any]:
    return {
        "adapter": outcome.adapter,
        "status": outcome.status.value,
        "reason": outcome.reason.value if outcome.reason else None,
        "duration_ms": outcome.duration_ms,
        "version": outcome.version,
        "finding_count": outcome.finding_count,
        "issue_count": outcome.issue_count,
        "diagnostics": list(outcome.diagnostics),
    }


def _summary_to_dict(summary: AnalysisSummary) -> dict[str, Any]:
    return {
        "total_issues": summary.total_issues,
        "files_with_issues": summary.files_with_issues,
        "hotspot_count": summary.hotspot_count,
        "dropped_findings": summary.dropped_findings,
        "severity_counts": dict(summary.severity_counts),
        "analysis_type_counts": dict(summary.analysis_type_counts),
        "tool_counts": dict(summary.tool_counts),
        "correlation_counts": dict(summary.correlation_counts),
        "adapter_status_counts": dict(summary.adapter_status_counts),
        "failure_reasons": dict(summary.failure_reasons),
    }


def to_dict(result: AnalysisResult) -> dict[str, Any]:
    """Encode a result as plain JSON-compatible data."""
    return {
        "schema_version": SCHEMA_VERSION,
        "generated_at": result.generated_at.isoformat(),
        "summary": _summary_to_dict(result.summary),
        "issues": [issue_to_dict(issue) for issue in result.issues],
        "file_metrics": {path: _metrics_to_dict(m) for path, m in result.file_metrics.items()},
        "correlation_groups": [_group_to_dict(group) for group in result.correlation_groups],
        "hotspots": [_hotspot_to_dict(hotspot) for hotspot in result.hotspots],
        "adapter_outcomes": [_outcome_to_dict(outcome) for outcome in result.adapter_outcomes],
        "diagnostics": list(result.diagnostics),
    }


def to_json(result: AnalysisResult, indent: int | None = 2) -> str:
    """Encode a result as a JSON document."""
    return json.dumps(to_dict(result), indent=indent, default=str)


def _issue_from_dict(data: dict[str, Any]) -> Issue:
    entity = data["entity"]
    return Issue(
        id=data["id"],
        entity=Entity(
            kind=EntityKind(entity["kind"]),
            canonical_path=entity["canonical_path"],
            display_name=entity.get("display_name", ""),
            original_identifier=entity.get("original_identifier", ""),
        ),
        severity=Severity(data["severity"]),
        analysis_type=AnalysisType(data["analysis_type"]),
        tool_name=data["tool_name"],
        rule_id=data.get("rule_id"),
        title=data["title"],
        description=data.get("description", ""),
        line=data.get("line"),
        column=data.get("column"),
        end_line=data.get("end_line"),
        end_column=data.get("end_column"),
        created_at=datetime.fromisoformat(data["created_at"]),
        metadata=data.get("metadata") or {},
    )


def from_dict(data: dict[str, Any]) -> AnalysisResult:
    """Decode a result produced by ``to_dict``.

    Raises:
        ValueError: If the document references unknown issues or carries
            unknown enum values
        KeyError: If a required field is missing
    """
    issues = [_issue_from_dict(item) for item in data.get("issues", [])]
    by_id = {issue.id: issue for issue in issues}

    def resolve(issue_id: str) -> Issue:
        if issue_id not in by_id:
            raise ValueError(f"correlation group references unknown issue {issue_id!r}")
        return by_id[issue_id]

    file_metrics = {
        path: FileMetrics(
            canonical_path=m["canonical_path"],
            issue_count=m["issue_count"],
            severity_distribution={Severity(k): v for k, v in m["severity_distribution"].items()},
            analysis_type_distribution={AnalysisType(k): v for k, v in m["analysis_type_distribution"].items()},
            tool_coverage=tuple(m["tool_coverage"]),
            hotspot_score=m["hotspot_score"],
        )
        for path, m in data.get("file_metrics", {}).items()
    }

    groups = [
        CorrelationGroup(
            id=g["id"],
            correlation_type=CorrelationType(g["correlation_type"]),
            issues=tuple(resolve(i) for i in g["issues"]),
            risk_score=g["risk_score"],
            files_affected=tuple(g["files_affected"]),
            rationale=g["rationale"],
            verdicts={k: FormalVerdict(v) for k, v in (g.get("verdicts") or {}).items()},
        )
        for g in data.get("correlation_groups", [])
    ]

    hotspots = [
        Hotspot(
            canonical_path=h["canonical_path"],
            issue_count=h["issue_count"],
            tool_coverage=tuple(h["tool_coverage"]),
            risk_score=h["risk_score"],
            recommended_actions=tuple(h["recommended_actions"]),
            issue_ids=tuple(h.get("issue_ids", [])),
        )
        for h in data.get("hotspots", [])
    ]

    outcomes = [
        AdapterOutcome(
            adapter=o["adapter"],
            status=AdapterStatus(o["status"]),
            reason=FailureReason(o["reason"]) if o.get("reason") else None,
            duration_ms=o.get("duration_ms", 0),
            version=o.get("version", "unknown"),
            finding_count=o.get("finding_count", 0),
            issue_count=o.get("issue_count", 0),
            diagnostics=list(o.get("diagnostics", [])),
        )
        for o in data.get("adapter_outcomes", [])
    ]

    return AnalysisResult(
        generated_at=datetime.fromisoformat(data["generated_at"]),
        issues=issues,
        file_metrics=file_metrics,
        correlation_groups=groups,
        hotspots=hotspots,
        adapter_outcomes=outcomes,
        summary=AnalysisSummary(**data.get("summary", {})),
        diagnostics=list(data.get("diagnostics", [])),
    )


def from_json(text: str) -> AnalysisResult:
    """Decode a JSON document produced by ``to_json``."""
    return from_dict(json.loads(text))
