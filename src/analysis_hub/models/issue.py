"""Issue models for normalized tool findings."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from analysis_hub.models.entity import Entity


class Severity(Enum):
    """Unified severity levels, most severe first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def weight(self) -> int:
        """Severity weight used in risk scoring (critical=5 ... info=1)."""
        return SEVERITY_WEIGHTS[self]


SEVERITY_WEIGHTS = {
    Severity.CRITICAL: 5,
    Severity.HIGH: 4,
    Severity.MEDIUM: 3,
    Severity.LOW: 2,
    Severity.INFO: 1,
}


class AnalysisType(Enum):
    """Analysis focus areas an issue contributes to."""

    SECURITY = "security"
    QUALITY = "quality"
    SEMANTIC = "semantic"
    ARCHITECTURE_DESIGN = "architecture_design"
    ARCHITECTURE_DEBT = "architecture_debt"
    PERFORMANCE = "performance"
    CORRECTNESS = "correctness"


class FormalStatus(Enum):
    """Outcome reported by a formal verification tool for one property."""

    VERIFIED_VIOLATION = "verified_violation"
    VERIFIED_SAFE = "verified_safe"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Issue:
    """A single normalized finding attached to exactly one entity."""

    id: str
    entity: Entity
    severity: Severity
    analysis_type: AnalysisType
    tool_name: str
    title: str
    description: str
    created_at: datetime
    rule_id: str | None = None
    line: int | None = None
    column: int | None = None
    end_line: int | None = None
    end_column: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        """Validate issue invariants."""
        if not self.tool_name:
            raise ValueError("tool_name must not be empty")
        if self.line is not None and self.line < 1:
            raise ValueError(f"line must be >= 1, got {self.line}")
        if self.line is not None and self.end_line is not None and self.end_line < self.line:
            raise ValueError(f"end_line ({self.end_line}) must be >= line ({self.line})")

    @property
    def rule_family(self) -> str | None:
        """Coarse cross-tool rule family, if the adapter mapped one."""
        return self.metadata.get("rule_family")

    @property
    def formal_status(self) -> FormalStatus | None:
        """Formal verification status, present only for formal results."""
        formal = self.metadata.get("formal")
        if not isinstance(formal, dict) or "status" not in formal:
            return None
        try:
            return FormalStatus(formal["status"])
        except ValueError:
            return FormalStatus.UNKNOWN

    @property
    def is_formal(self) -> bool:
        """Whether this issue came from a formal verification result."""
        return self.formal_status is not None

    @property
    def flow(self) -> dict[str, Any] | None:
        """Canonicalized source/sink flow block, if the tool reported one."""
        flow = self.metadata.get("flow")
        return flow if isinstance(flow, dict) else None

    @property
    def occurrences(self) -> int:
        """How many identical raw findings collapsed into this issue."""
        return int(self.metadata.get("occurrences", 1))
