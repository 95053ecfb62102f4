"""Pytest configuration and shared fixtures."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest

from analysis_hub.analysis.taxonomy import AdapterTables
from analysis_hub.models.entity import Entity, EntityKind
from analysis_hub.models.issue import AnalysisType, Issue, Severity
from analysis_hub.models.raw import (
    AdapterCapabilities,
    AdapterOutput,
    FailureReason,
    RawFinding,
    TimeoutClass,
)

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

FAKE_TABLES = AdapterTables(
    severity_map={
        "error": Severity.HIGH,
        "warning": Severity.MEDIUM,
        "note": Severity.LOW,
        "critical": Severity.CRITICAL,
        "high": Severity.HIGH,
        "medium": Severity.MEDIUM,
        "low": Severity.LOW,
        "info": Severity.INFO,
    },
    default_analysis_type=AnalysisType.QUALITY,
    category_map={
        "security": AnalysisType.SECURITY,
        "correctness": AnalysisType.CORRECTNESS,
        "architecture": AnalysisType.ARCHITECTURE_DESIGN,
    },
    rule_families={"array-bounds": "array-bounds", "sqli": "sql-injection"},
    uses_grades=True,
)


class FakeAdapter:
    """In-memory adapter for orchestrator and pipeline tests."""

    def __init__(
        self,
        name: str,
        findings: list[RawFinding] | None = None,
        *,
        delay: float = 0.0,
        failure: FailureReason | None = None,
        raises: Exception | None = None,
        available: bool = True,
        languages: frozenset[str] = frozenset({"*"}),
        timeout_class: TimeoutClass = TimeoutClass.LOCAL,
        tables: AdapterTables = FAKE_TABLES,
        version: str = "1.0.0",
    ) -> None:
        self.name = name
        self.tables = tables
        self.findings = findings or []
        self.delay = delay
        self.failure = failure
        self.raises = raises
        self.available = available
        self.languages = languages
        self.timeout_class = timeout_class
        self.version = version
        self.calls: list[tuple[list[str], object]] = []
        self.started_at: float | None = None
        self.finished_at: float | None = None

    def is_available(self) -> bool:
        return self.available

    async def get_version(self) -> str:
        return self.version

    def capabilities(self) -> AdapterCapabilities:
        return AdapterCapabilities(languages=self.languages, timeout_class=self.timeout_class)

    async def analyze(self, targets, options) -> AdapterOutput:
        loop = asyncio.get_running_loop()
        self.calls.append((list(targets), options))
        self.started_at = loop.time()
        if self.delay:
            await asyncio.sleep(self.delay)
        self.finished_at = loop.time()
        if self.raises is not None:
            raise self.raises
        if self.failure is not None:
            return AdapterOutput.failed(self.failure, f"{self.name} failed")
        return AdapterOutput(findings=list(self.findings))


def raw(
    path: str = "a.py",
    line: int | None = 1,
    severity: str = "warning",
    rule: str | None = "R1",
    title: str = "Problem",
    category: str = "quality",
    **kwargs,
) -> RawFinding:
    """Build a raw finding with sensible defaults."""
    return RawFinding(
        raw_path=path,
        severity_raw=severity,
        category_raw=category,
        title=title,
        rule_id=rule,
        line=line,
        **kwargs,
    )


def make_issue(
    issue_id: str,
    path: str = "a.py",
    tool: str = "tool-a",
    severity: Severity = Severity.MEDIUM,
    analysis_type: AnalysisType = AnalysisType.QUALITY,
    line: int | None = 1,
    kind: EntityKind = EntityKind.FILE,
    metadata: dict | None = None,
    rule_id: str | None = "R1",
) -> Issue:
    """Build a normalized issue directly."""
    return Issue(
        id=issue_id,
        entity=Entity(kind=kind, canonical_path=path, display_name=path.rsplit("/", 1)[-1]),
        severity=severity,
        analysis_type=analysis_type,
        tool_name=tool,
        title=f"Issue {issue_id}",
        description="",
        created_at=FIXED_NOW,
        rule_id=rule_id,
        line=line,
        metadata=metadata or {},
    )


@pytest.fixture
def fixed_clock():
    """Clock that always returns the same instant."""
    return lambda: FIXED_NOW


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A small project tree with Python, JavaScript and C sources."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.ts").write_text("export const x = 1;\n")
    (tmp_path / "a.js").write_text("let a = null;\n")
    (tmp_path / "a.py").write_text("print('hi')\n")
    (tmp_path / "buf.c").write_text("int main(void) { return 0; }\n")
    (tmp_path / "README.md").write_text("# readme\n")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.js").write_text("module.exports = 1;\n")
    return tmp_path


@pytest.fixture
def no_cache_config():
    """Default configuration with the artifact cache disabled."""
    from analysis_hub.config import Config

    config = Config()
    config.cache.enabled = False
    return config
