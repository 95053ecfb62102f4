"""Raw adapter output models exchanged between adapters and the core."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from analysis_hub.models.entity import EntityKind


class FailureReason(Enum):
    """Reason classes for adapter outcomes that did not produce findings."""

    TIMEOUT = "timeout"
    BUFFER_EXCEEDED = "buffer_exceeded"
    PARSE_ERROR = "parse_error"
    ERROR = "error"
    RATE_LIMITED = "rate_limited"
    NOT_AVAILABLE = "not_available"
    DISABLED = "disabled"
    NO_MATCHING_TARGETS = "no_matching_targets"
    CANCELLED = "cancelled"


class TimeoutClass(Enum):
    """Budget class an adapter belongs to."""

    LOCAL = "local"  # scaled per target file
    DATABASE = "database"  # builds a semantic database first
    NETWORK = "network"  # cloud service


@dataclass
class RawFinding:
    """A finding as reported by an adapter, before normalization."""

    raw_path: str
    severity_raw: str
    category_raw: str
    title: str
    description: str = ""
    kind: EntityKind = EntityKind.FILE
    rule_id: str | None = None
    line: int | None = None
    column: int | None = None
    end_line: int | None = None
    end_column: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AdapterFailure:
    """Why an adapter run failed."""

    reason: FailureReason
    message: str


@dataclass
class AdapterOutput:
    """Everything an adapter returns from one ``analyze`` call."""

    findings: list[RawFinding] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)
    diagnostics: list[str] = field(default_factory=list)
    failure: AdapterFailure | None = None

    @property
    def ok(self) -> bool:
        """Whether the run completed without failure."""
        return self.failure is None

    @classmethod
    def failed(
        cls,
        reason: FailureReason,
        message: str,
        diagnostics: list[str] | None = None,
    ) -> "AdapterOutput":
        """Build a failed output with no findings.

        Args:
            reason: Failure reason class
            message: Human-readable failure message

        Returns:
            AdapterOutput carrying the failure
        """
        return cls(
            findings=[],
            diagnostics=[*(diagnostics or []), message],
            failure=AdapterFailure(reason=reason, message=message),
        )


@dataclass(frozen=True)
class AdapterCapabilities:
    """What an adapter can analyze and how it should be budgeted."""

    languages: frozenset[str]
    kinds: frozenset[EntityKind] = frozenset({EntityKind.FILE})
    notes: str = ""
    timeout_class: TimeoutClass = TimeoutClass.LOCAL
    cache_max_age_seconds: int | None = None

    def supports_any(self, languages: set[str]) -> bool:
        """Check whether the adapter handles any of the given languages."""
        if "*" in self.languages:
            return True
        return bool(self.languages & languages)
