"""End-to-end tests for run_analysis."""

import pytest

from conftest import FIXED_NOW, FakeAdapter, raw


async def analyze(project, adapters, config, **kwargs):
    from analysis_hub.pipeline import run_analysis

    return await run_analysis(["."], str(project), adapters, config=config, clock=lambda: FIXED_NOW, **kwargs)


class TestBoundaryScenarios:
    """Worked scenarios covering the main stages together."""

    @pytest.mark.asyncio
    async def test_two_tools_same_line(self, project, no_cache_config):
        """Test two tools flagging adjacent lines of one file."""
        adapters = {
            "x": FakeAdapter("x", [raw(str(project / "a.js"), line=10, severity="warning", rule="no-null")]),
            "y": FakeAdapter("y", [raw("a.js", line=11, severity="error", rule="NullDeref")]),
        }

        result = await analyze(project, adapters, no_cache_config)

        assert len(result.issues) == 2
        assert {i.entity for i in result.issues} == {result.issues[0].entity}
        assert result.issues[0].entity.canonical_path == "a.js"

        groups = [g for g in result.correlation_groups if g.correlation_type.value == "same_location"]
        assert len(groups) == 1
        assert groups[0].risk_score == 42.0

        assert [h.canonical_path for h in result.hotspots] == ["a.js"]
        assert result.hotspots[0].risk_score >= 40

    @pytest.mark.asyncio
    async def test_timeout_isolation(self, project, no_cache_config):
        """Test that a timed-out adapter does not affect the others."""
        from analysis_hub.config import AdapterConfig
        from analysis_hub.models.raw import FailureReason
        from analysis_hub.models.result import AdapterStatus

        no_cache_config.orchestrator.kill_grace_seconds = 0
        no_cache_config.adapters["p"] = AdapterConfig(name="p", timeout_seconds=0.05)
        adapters = {
            "p": FakeAdapter("p", [raw()], delay=5),
            "q": FakeAdapter("q", [raw(line=i, title=f"T{i}") for i in range(1, 6)]),
        }

        result = await analyze(project, adapters, no_cache_config)

        assert len(result.issues) == 5
        p = result.outcome_for("p")
        q = result.outcome_for("q")
        assert (p.status, p.reason) == (AdapterStatus.FAILED, FailureReason.TIMEOUT)
        assert q.status == AdapterStatus.RAN
        assert q.issue_count == 5
        assert result.summary.failure_reasons == {"timeout": 1}

    @pytest.mark.asyncio
    async def test_formal_refutation(self, project, no_cache_config):
        """Test that a safe proof flags the static finding as a likely false positive."""
        adapters = {
            "static": FakeAdapter(
                "static", [raw("buf.c", line=20, severity="high", rule="array-bounds", title="Out of bounds")]
            ),
            "formal": FakeAdapter(
                "formal",
                [
                    raw(
                        "buf.c",
                        line=20,
                        severity="success",
                        rule="array-bounds",
                        title="array bounds in main",
                        metadata={"formal": {"status": "verified_safe"}},
                    )
                ],
            ),
        }

        result = await analyze(project, adapters, no_cache_config)

        groups = [g for g in result.correlation_groups if g.correlation_type.value == "formal_static"]
        assert len(groups) == 1
        assert len(groups[0].issues) == 2
        assert "likely_false_positive" in groups[0].rationale
        assert groups[0].risk_score == 21.0

    @pytest.mark.asyncio
    async def test_path_canonicalization(self, project, no_cache_config):
        """Test that dotted relative paths canonicalize."""
        adapters = {"t": FakeAdapter("t", [raw("./src/../src/app.ts")])}

        result = await analyze(project, adapters, no_cache_config)

        assert result.issues[0].entity.canonical_path == "src/app.ts"
        assert list(result.file_metrics) == ["src/app.ts"]

    @pytest.mark.asyncio
    async def test_dedup_within_adapter(self, project, no_cache_config):
        """Test that identical findings from one adapter collapse."""
        adapters = {"t": FakeAdapter("t", [raw("a.py", line=7, rule="X", title="T") for _ in range(3)])}

        result = await analyze(project, adapters, no_cache_config)

        assert len(result.issues) == 1
        assert result.issues[0].metadata["occurrences"] == 3

    @pytest.mark.asyncio
    async def test_grade_to_severity(self, project, no_cache_config):
        """Test that a file graded F is critical and becomes a hotspot."""
        from analysis_hub.models.issue import Severity

        adapters = {"t": FakeAdapter("t", [raw("a.py", line=None, severity="F", rule="grade", title="Grade F")])}

        result = await analyze(project, adapters, no_cache_config)

        assert result.issues[0].severity == Severity.CRITICAL
        assert result.has_critical_issues
        assert [h.canonical_path for h in result.hotspots] == ["a.py"]


class TestInvariants:
    """Tests for result-wide guarantees."""

    @pytest.mark.asyncio
    async def test_references_resolve(self, project, no_cache_config):
        """Test that every group and hotspot references existing issues."""
        from analysis_hub.analysis.assembler import verify_integrity

        adapters = {
            "x": FakeAdapter("x", [raw("a.py", line=i, rule=f"R{i}") for i in range(1, 10)]),
            "y": FakeAdapter("y", [raw("a.py", line=i, rule="Y", severity="error") for i in range(1, 10, 2)]),
        }

        result = await analyze(project, adapters, no_cache_config)

        assert verify_integrity(result) == []
        assert not any(d.startswith("integrity") for d in result.diagnostics)
        ids = [i.id for i in result.issues]
        assert ids == sorted(ids)
        assert len(ids) == len(set(ids))

    @pytest.mark.asyncio
    async def test_deterministic(self, project, no_cache_config):
        """Test that identical inputs produce identical encodings apart from timings."""
        from analysis_hub.analysis.serialization import to_dict

        def adapters():
            return {
                "x": FakeAdapter("x", [raw("a.py", line=i) for i in range(1, 5)]),
                "y": FakeAdapter("y", [raw("a.py", line=i, severity="error") for i in range(2, 6)], delay=0.01),
            }

        first = await analyze(project, adapters(), no_cache_config)
        second = await analyze(project, adapters(), no_cache_config)

        encoded = [to_dict(first), to_dict(second)]
        for data in encoded:
            for outcome in data["adapter_outcomes"]:
                outcome.pop("duration_ms")
        assert encoded[0] == encoded[1]

    @pytest.mark.asyncio
    async def test_timestamps_from_clock(self, project, no_cache_config):
        """Test that the injected clock stamps issues and the result."""
        adapters = {"t": FakeAdapter("t", [raw()])}

        result = await analyze(project, adapters, no_cache_config)

        assert result.generated_at == FIXED_NOW
        assert result.issues[0].created_at == FIXED_NOW

    @pytest.mark.asyncio
    async def test_dropped_findings_counted(self, project, no_cache_config):
        """Test that invalid findings are dropped without failing the adapter."""
        from analysis_hub.models.result import AdapterStatus

        adapters = {"t": FakeAdapter("t", [raw("../escape.py"), raw("a.py")])}

        result = await analyze(project, adapters, no_cache_config)

        outcome = result.outcome_for("t")
        assert outcome.status == AdapterStatus.RAN
        assert (outcome.finding_count, outcome.issue_count) == (2, 1)
        assert result.summary.dropped_findings == 1
        assert any("dropped finding" in d for d in outcome.diagnostics)

    @pytest.mark.asyncio
    async def test_empty_run(self, project, no_cache_config):
        """Test that no adapters yields an empty but valid result."""
        result = await analyze(project, {}, no_cache_config)

        assert result.issues == []
        assert result.hotspots == []
        assert result.summary.total_issues == 0
        assert result.summary.severity_counts["critical"] == 0


class TestAdapterIndependence:
    """Tests that one adapter's fate never changes another adapter's issues."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("how", ["raises", "failure", "missing"])
    async def test_failing_equals_disabled(self, project, how):
        """Test that a failing adapter leaves the same issues and metrics as a disabled one."""
        from analysis_hub.config import AdapterConfig, Config
        from analysis_hub.models.raw import FailureReason

        def config(disabled=()):
            cfg = Config()
            cfg.cache.enabled = False
            for name in disabled:
                cfg.adapters[name] = AdapterConfig(name=name, enabled=False)
            return cfg

        def adapters():
            failing = {
                "raises": FakeAdapter("a", [raw("a.py", line=3)], raises=RuntimeError("boom")),
                "failure": FakeAdapter("a", [raw("a.py", line=3)], failure=FailureReason.TIMEOUT),
                "missing": FakeAdapter("a", [raw("a.py", line=3)], available=False),
            }[how]
            return {
                "a": failing,
                "b": FakeAdapter("b", [raw("a.py", line=4, severity="error"), raw("buf.c", line=2)]),
            }

        failed = await analyze(project, adapters(), config())
        disabled = await analyze(project, adapters(), config(disabled=["a"]))

        assert len(failed.issues) == 2
        assert failed.issues == disabled.issues
        assert failed.file_metrics == disabled.file_metrics
        assert failed.correlation_groups == disabled.correlation_groups


class TestNeverRaises:
    """Tests for the no-raise contract of run_analysis."""

    @pytest.mark.asyncio
    async def test_all_failed(self, project, no_cache_config):
        """Test that every adapter failing still returns a result."""
        from analysis_hub.models.raw import FailureReason

        adapters = {
            "a": FakeAdapter("a", failure=FailureReason.PARSE_ERROR),
            "b": FakeAdapter("b", raises=ValueError("bad")),
        }

        result = await analyze(project, adapters, no_cache_config)

        assert result.all_adapters_failed
        assert result.summary.failure_reasons == {"error": 1, "parse_error": 1}

    @pytest.mark.asyncio
    async def test_malformed_finding_stays_local(self, project, no_cache_config):
        """Test that one malformed finding never removes another adapter's issues."""
        from analysis_hub.models.result import AdapterStatus

        adapters = {
            "good": FakeAdapter("good", [raw("a.py", line=3, severity="error")]),
            "zbad": FakeAdapter("zbad", [raw("a.py", line=4, metadata=["oops"]), raw("buf.c", line=1)]),
        }

        result = await analyze(project, adapters, no_cache_config)

        assert sorted(i.tool_name for i in result.issues) == ["good", "zbad"]
        assert [o.adapter for o in result.adapter_outcomes] == ["good", "zbad"]
        zbad = result.outcome_for("zbad")
        assert zbad.status == AdapterStatus.RAN
        assert zbad.issue_count == 1
        assert any("dropped malformed finding #0" in d for d in zbad.diagnostics)
        assert result.summary.dropped_findings == 1

    @pytest.mark.asyncio
    async def test_normalization_error_fails_only_that_adapter(self, project, no_cache_config):
        """Test that an adapter whose findings cannot be normalized is marked failed alone."""
        from analysis_hub.models.raw import FailureReason
        from analysis_hub.models.result import AdapterStatus

        broken = FakeAdapter("broken", [raw("buf.c")])
        del broken.tables
        adapters = {"broken": broken, "good": FakeAdapter("good", [raw("a.py", line=3)])}

        result = await analyze(project, adapters, no_cache_config)

        assert [i.tool_name for i in result.issues] == ["good"]
        outcome = result.outcome_for("broken")
        assert (outcome.status, outcome.reason) == (AdapterStatus.FAILED, FailureReason.ERROR)
        assert any(d.startswith("normalization failed") for d in outcome.diagnostics)
        assert result.outcome_for("good").status == AdapterStatus.RAN
        assert not any(d.startswith("pipeline failed") for d in result.diagnostics)

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, project, no_cache_config):
        """Test that a pre-cancelled run reports cancelled adapters."""
        from analysis_hub.adapters.base import CancellationToken
        from analysis_hub.models.result import AdapterStatus

        token = CancellationToken()
        token.cancel()
        adapters = {"t": FakeAdapter("t", [raw()], delay=1)}

        result = await analyze(project, adapters, no_cache_config, cancel_token=token)

        assert result.outcome_for("t").status == AdapterStatus.CANCELLED
        assert result.issues == []
        assert any("cancelled" in d for d in result.diagnostics)
