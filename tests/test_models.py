"""Tests for data models."""

import pytest

from conftest import FIXED_NOW, make_issue


class TestEntity:
    """Tests for Entity model."""

    def test_identity_ignores_display_fields(self):
        """Test that entities from different tools compare equal by identity."""
        from analysis_hub.models.entity import Entity, EntityKind

        a = Entity(EntityKind.FILE, "src/app.ts", display_name="app.ts", original_identifier="/repo/src/app.ts")
        b = Entity(EntityKind.FILE, "src/app.ts", display_name="app", original_identifier="proj:src/app.ts")

        assert a == b
        assert hash(a) == hash(b)
        assert a.identity == ("file", "src/app.ts")

    def test_kind_is_part_of_identity(self):
        """Test that a module and a file with the same path differ."""
        from analysis_hub.models.entity import Entity, EntityKind

        assert Entity(EntityKind.FILE, "src") != Entity(EntityKind.MODULE, "src")

    @pytest.mark.parametrize("path", ["", "/abs/path.py", "../escape.py", "a/../../b.py"])
    def test_rejects_non_canonical_paths(self, path):
        """Test that invalid canonical paths are rejected."""
        from analysis_hub.models.entity import Entity, EntityKind

        with pytest.raises(ValueError):
            Entity(EntityKind.FILE, path)


class TestIssue:
    """Tests for Issue model."""

    def test_severity_weights(self):
        """Test severity weights run from critical=5 to info=1."""
        from analysis_hub.models.issue import Severity

        assert [s.weight for s in Severity] == [5, 4, 3, 2, 1]

    def test_rejects_line_zero(self):
        """Test that lines are 1-based."""
        with pytest.raises(ValueError):
            make_issue("x", line=0)

    def test_rejects_end_before_start(self):
        """Test that end_line must not precede line."""
        from analysis_hub.models.entity import Entity, EntityKind
        from analysis_hub.models.issue import AnalysisType, Issue, Severity

        with pytest.raises(ValueError):
            Issue(
                id="x",
                entity=Entity(EntityKind.FILE, "a.py"),
                severity=Severity.LOW,
                analysis_type=AnalysisType.QUALITY,
                tool_name="t",
                title="T",
                description="",
                created_at=FIXED_NOW,
                line=10,
                end_line=9,
            )

    def test_formal_status_from_metadata(self):
        """Test formal status is read from the formal metadata block."""
        from analysis_hub.models.issue import FormalStatus

        static = make_issue("s")
        safe = make_issue("f", metadata={"formal": {"status": "verified_safe"}})
        odd = make_issue("g", metadata={"formal": {"status": "maybe"}})

        assert static.formal_status is None
        assert not static.is_formal
        assert safe.formal_status == FormalStatus.VERIFIED_SAFE
        assert odd.formal_status == FormalStatus.UNKNOWN

    def test_occurrences_default(self):
        """Test occurrences defaults to one."""
        assert make_issue("x").occurrences == 1
        assert make_issue("y", metadata={"occurrences": 3}).occurrences == 3


class TestCorrelationGroup:
    """Tests for CorrelationGroup model."""

    def test_requires_two_issues(self):
        """Test that a group needs at least two members."""
        from analysis_hub.models.result import CorrelationGroup, CorrelationType

        with pytest.raises(ValueError):
            CorrelationGroup(
                id="g",
                correlation_type=CorrelationType.SAME_LOCATION,
                issues=(make_issue("a"),),
                risk_score=10.0,
                files_affected=("a.py",),
                rationale="",
            )

    def test_risk_bounds(self):
        """Test that risk must be within [0, 100]."""
        from analysis_hub.models.result import CorrelationGroup, CorrelationType

        with pytest.raises(ValueError):
            CorrelationGroup(
                id="g",
                correlation_type=CorrelationType.SAME_LOCATION,
                issues=(make_issue("a"), make_issue("b", tool="tool-b")),
                risk_score=101.0,
                files_affected=("a.py",),
                rationale="",
            )


class TestAnalysisResult:
    """Tests for AnalysisResult helpers."""

    def _result(self, outcomes):
        from analysis_hub.models.result import AnalysisResult, AnalysisSummary

        return AnalysisResult(
            generated_at=FIXED_NOW,
            issues=[make_issue("a")],
            file_metrics={},
            correlation_groups=[],
            hotspots=[],
            adapter_outcomes=outcomes,
            summary=AnalysisSummary(),
        )

    def test_all_adapters_failed_ignores_skipped(self):
        """Test that skipped adapters do not count as scheduled."""
        from analysis_hub.models.raw import FailureReason
        from analysis_hub.models.result import AdapterOutcome, AdapterStatus

        result = self._result(
            [
                AdapterOutcome("p", AdapterStatus.FAILED, FailureReason.TIMEOUT),
                AdapterOutcome("q", AdapterStatus.SKIPPED, FailureReason.NOT_AVAILABLE),
            ]
        )

        assert result.all_adapters_failed
        assert result.outcome_for("q").reason == FailureReason.NOT_AVAILABLE
        assert result.outcome_for("zzz") is None

    def test_not_all_failed_when_one_ran(self):
        """Test that one successful adapter clears the flag."""
        from analysis_hub.models.raw import FailureReason
        from analysis_hub.models.result import AdapterOutcome, AdapterStatus

        result = self._result(
            [
                AdapterOutcome("p", AdapterStatus.FAILED, FailureReason.TIMEOUT),
                AdapterOutcome("q", AdapterStatus.RAN),
            ]
        )

        assert not result.all_adapters_failed
        assert "a" in result.issues_by_id
