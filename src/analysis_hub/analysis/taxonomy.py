"""Severity, analysis-type and rule-family taxonomies."""

import re
from dataclasses import dataclass, field

from analysis_hub.models.issue import AnalysisType, Severity

DEFAULT_SEVERITY = Severity.MEDIUM

# Published grade table for tools that rate rather than classify.
GRADE_TABLE = {
    "A": Severity.INFO,
    "B": Severity.LOW,
    "C": Severity.MEDIUM,
    "D": Severity.HIGH,
    "E": Severity.CRITICAL,
    "F": Severity.CRITICAL,
}


@dataclass(frozen=True)
class AdapterTables:
    """Fixed mapping tables one adapter contributes to the core.

    Keys of ``severity_map``, ``category_map`` and ``rule_families`` are
    matched case-insensitively. ``family_patterns`` are tried in order when a
    rule id has no exact entry.
    """

    severity_map: dict[str, Severity]
    default_analysis_type: AnalysisType
    category_map: dict[str, AnalysisType] = field(default_factory=dict)
    rule_families: dict[str, str] = field(default_factory=dict)
    family_patterns: tuple[tuple[str, str], ...] = ()
    uses_grades: bool = False

    def __post_init__(self) -> None:
        """Lowercase table keys once so lookups are case-insensitive."""
        object.__setattr__(self, "severity_map", {k.lower(): v for k, v in self.severity_map.items()})
        object.__setattr__(self, "category_map", {k.lower(): v for k, v in self.category_map.items()})
        object.__setattr__(self, "rule_families", {k.lower(): v for k, v in self.rule_families.items()})


def resolve_severity(tables: AdapterTables, severity_raw: str | None) -> tuple[Severity, bool]:
    """Map a native severity (or grade) into the unified taxonomy.

    Args:
        tables: The reporting adapter's tables
        severity_raw: Severity or grade exactly as the tool reported it

    Returns:
        Tuple of (severity, mapped) where ``mapped`` is False when the
        documented default was used
    """
    raw = (str(severity_raw) if severity_raw is not None else "").strip()
    if not raw:
        return DEFAULT_SEVERITY, False

    mapped = tables.severity_map.get(raw.lower())
    if mapped is not None:
        return mapped, True

    if tables.uses_grades and raw.upper() in GRADE_TABLE:
        return GRADE_TABLE[raw.upper()], True

    return DEFAULT_SEVERITY, False


def resolve_analysis_type(tables: AdapterTables, category_raw: str | None) -> AnalysisType:
    """Map a native rule category to the analysis type it contributes to."""
    if not category_raw:
        return tables.default_analysis_type
    return tables.category_map.get(str(category_raw).strip().lower(), tables.default_analysis_type)


def resolve_rule_family(tables: AdapterTables, rule_id: str | None) -> str | None:
    """Map a native rule id to a coarse cross-tool rule family.

    Most rules are unmapped; those return None and only take part in
    location-based correlation.
    """
    if not rule_id:
        return None
    key = rule_id.strip().lower()
    family = tables.rule_families.get(key)
    if family is not None:
        return family
    for pattern, pattern_family in tables.family_patterns:
        if re.search(pattern, key):
            return pattern_family
    return None
