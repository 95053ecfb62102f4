"""Normalizer turning raw adapter findings into unified issues."""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePath
from typing import Any

from analysis_hub.analysis.canonicalizer import Canonicalizer
from analysis_hub.analysis.taxonomy import (
    AdapterTables,
    resolve_analysis_type,
    resolve_rule_family,
    resolve_severity,
)
from analysis_hub.errors import InvalidEntity, NormalizationDrop
from analysis_hub.models.entity import Entity
from analysis_hub.models.issue import Issue
from analysis_hub.models.raw import RawFinding

logger = logging.getLogger(__name__)


@dataclass
class NormalizationResult:
    """Issues produced from one adapter's output plus per-record diagnostics."""

    issues: list[Issue] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)
    dropped: int = 0


def content_hash(title: str, rule_id: str | None, description: str) -> str:
    """Stable hash over the textual content of a finding."""
    payload = "\x00".join([title, rule_id or "", description])
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()[:12]


def _as_position(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _consistent_positions(raw: RawFinding) -> tuple[dict[str, int | None], str | None]:
    """Return position fields when internally consistent, else a reason."""
    line = _as_position(raw.line)
    column = _as_position(raw.column)
    end_line = _as_position(raw.end_line)
    end_column = _as_position(raw.end_column)
    empty = {"line": None, "column": None, "end_line": None, "end_column": None}

    if line is None:
        if any(v is not None for v in (column, end_line, end_column)):
            return empty, "position without a start line"
        return empty, None
    if line < 1:
        return empty, f"line {line} < 1"
    if end_line is not None and end_line < line:
        return empty, f"end_line {end_line} < line {line}"
    if column is not None and column < 0:
        return empty, f"column {column} < 0"
    if end_column is not None and end_column < 0:
        return empty, f"end_column {end_column} < 0"
    if (
        column is not None
        and end_column is not None
        and (end_line is None or end_line == line)
        and end_column < column
    ):
        return empty, f"end_column {end_column} < column {column}"

    return {"line": line, "column": column, "end_line": end_line, "end_column": end_column}, None


class Normalizer:
    """Maps raw adapter output into issues attached to canonical entities."""

    def __init__(self, project_root: str | PurePath, created_at: datetime) -> None:
        """Initialize the normalizer.

        Args:
            project_root: Absolute project root used for canonicalization
            created_at: Timestamp stamped on every issue of this run
        """
        self.project_root = project_root
        self.created_at = created_at

    def normalize(
        self,
        adapter_name: str,
        tables: AdapterTables,
        findings: list[RawFinding],
        strip_component_prefix: bool = False,
    ) -> NormalizationResult:
        """Normalize and deduplicate one adapter's findings.

        Algorithm:
        1. Canonicalize the entity (invalid entities are dropped)
        2. Resolve severity, analysis type and rule family from the tables
        3. Keep positions only if they are internally consistent
        4. Collapse identical ``(entity, rule, line, title)`` findings and
           record the count in ``metadata["occurrences"]``

        Args:
            adapter_name: Name of the adapter that produced the findings
            tables: The adapter's taxonomy tables
            findings: Raw findings in adapter order
            strip_component_prefix: Reduce ``key:path`` component keys

        Returns:
            NormalizationResult with issues in first-seen order
        """
        result = NormalizationResult()
        canonicalizer = Canonicalizer(self.project_root, strip_component_prefix)

        drafts: dict[tuple, dict[str, Any]] = {}
        counts: dict[tuple, int] = {}

        for index, raw in enumerate(findings):
            try:
                draft = self._draft(adapter_name, tables, raw, canonicalizer, result.diagnostics)
                key = (draft["entity"].identity, draft["rule_id"], draft["line"], draft["title"])
            except (InvalidEntity, NormalizationDrop) as e:
                result.dropped += 1
                result.diagnostics.append(f"{adapter_name}: dropped finding #{index}: {e}")
                logger.warning(f"{adapter_name}: dropped finding #{index}: {e}")
                continue
            except Exception as e:
                result.dropped += 1
                message = f"{adapter_name}: dropped malformed finding #{index}: {type(e).__name__}: {e}"
                result.diagnostics.append(message)
                logger.warning(message)
                continue

            if key in drafts:
                counts[key] += 1
            else:
                drafts[key] = draft
                counts[key] = 1

        seen_ids: set[str] = set()
        for key, draft in drafts.items():
            draft["metadata"]["occurrences"] = counts[key]
            issue_id = self._unique_id(draft.pop("base_id"), seen_ids)
            result.issues.append(Issue(id=issue_id, created_at=self.created_at, **draft))

        return result

    def _draft(
        self,
        adapter_name: str,
        tables: AdapterTables,
        raw: RawFinding,
        canonicalizer: Canonicalizer,
        diagnostics: list[str],
    ) -> dict[str, Any]:
        """Build the keyword arguments for one issue."""
        entity: Entity = canonicalizer.entity(raw.kind, raw.raw_path)

        title = (raw.title or "").strip() or (raw.rule_id or "").strip()
        if not title:
            raise NormalizationDrop("finding has neither a title nor a rule id")
        rule_id = (raw.rule_id or "").strip() or None
        description = raw.description or ""

        severity, mapped = resolve_severity(tables, raw.severity_raw)
        if not mapped and raw.severity_raw:
            logger.debug(f"{adapter_name}: unknown severity {raw.severity_raw!r}, using {severity.value}")

        positions, problem = _consistent_positions(raw)
        if problem:
            diagnostics.append(
                f"{adapter_name}: dropped inconsistent position for {entity.canonical_path} ({problem})"
            )

        tool_payload = dict(raw.metadata or {})
        metadata: dict[str, Any] = {"tool": tool_payload}
        family = resolve_rule_family(tables, rule_id)
        if family:
            metadata["rule_family"] = family
        if isinstance(tool_payload.get("formal"), dict):
            metadata["formal"] = dict(tool_payload["formal"])
        if isinstance(tool_payload.get("flow"), dict):
            flow = self._canonical_flow(tool_payload["flow"], canonicalizer)
            if flow is None:
                diagnostics.append(f"{adapter_name}: dropped unresolvable flow on {entity.canonical_path}")
            else:
                metadata["flow"] = flow

        line = positions["line"]
        base_id = ":".join(
            [
                adapter_name,
                rule_id or "-",
                entity.canonical_path,
                str(line or 0),
                content_hash(title, rule_id, description),
            ]
        )

        return {
            "base_id": base_id,
            "entity": entity,
            "severity": severity,
            "analysis_type": resolve_analysis_type(tables, raw.category_raw),
            "tool_name": adapter_name,
            "rule_id": rule_id,
            "title": title,
            "description": description,
            "metadata": metadata,
            **positions,
        }

    def _canonical_flow(
        self, flow: dict[str, Any], canonicalizer: Canonicalizer
    ) -> dict[str, Any] | None:
        """Canonicalize the files named by a source/sink flow block."""
        try:
            source = canonicalizer.path(flow["source"]) if flow.get("source") else None
            sink = canonicalizer.path(flow["sink"]) if flow.get("sink") else None
            steps = [canonicalizer.path(step) for step in flow.get("path") or [] if step]
        except InvalidEntity:
            return None
        if source is None and sink is None and not steps:
            return None
        return {"source": source, "sink": sink, "path": steps}

    def _unique_id(self, base_id: str, seen: set[str]) -> str:
        """Disambiguate ids that collide after deduplication."""
        issue_id = base_id
        suffix = 2
        while issue_id in seen:
            issue_id = f"{base_id}#{suffix}"
            suffix += 1
        seen.add(issue_id)
        return issue_id
