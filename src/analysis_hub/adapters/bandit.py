"""Bandit adapter."""

from collections.abc import Mapping
from typing import Any

from analysis_hub.adapters.base import AnalyzeOptions, guarded, parse_json_output, version_or_unknown
from analysis_hub.adapters.runner import run_tool, tool_version, which
from analysis_hub.adapters.tables import BANDIT_TABLES
from analysis_hub.credentials import CredentialProvider
from analysis_hub.errors import AdapterParseError
from analysis_hub.models.raw import AdapterCapabilities, AdapterOutput, RawFinding


def parse_bandit(document: Any) -> AdapterOutput:
    """Convert ``bandit -f json`` output into raw findings."""
    if not isinstance(document, dict) or not isinstance(document.get("results"), list):
        raise AdapterParseError("bandit output has no results list")

    findings = []
    for result in document["results"]:
        line_range = result.get("line_range") or []
        end_line = max(line_range) if line_range else None
        col = result.get("col_offset")
        findings.append(
            RawFinding(
                raw_path=result.get("filename", ""),
                severity_raw=result.get("issue_severity", ""),
                category_raw="security",
                title=result.get("issue_text", ""),
                description=f"{result.get('test_name', '')}: {result.get('issue_text', '')}".strip(": "),
                rule_id=result.get("test_id"),
                line=result.get("line_number"),
                # bandit columns are 0-based offsets
                column=col + 1 if isinstance(col, int) else None,
                end_line=end_line,
                metadata={"native": result, "confidence": result.get("issue_confidence")},
            )
        )

    diagnostics = [
        f"bandit: {error.get('filename', '?')}: {error.get('reason', '')}"
        for error in document.get("errors") or []
    ]
    totals = (document.get("metrics") or {}).get("_totals") or {}
    return AdapterOutput(findings=findings, stats={"loc": totals.get("loc", 0)}, diagnostics=diagnostics)


class BanditAdapter:
    """Runs Bandit security checks over Python files."""

    name = "bandit"
    tables = BANDIT_TABLES
    executable = "bandit"

    def __init__(
        self,
        settings: Mapping[str, Any] | None = None,
        credentials: CredentialProvider | None = None,
    ) -> None:
        self.settings = dict(settings or {})

    def is_available(self) -> bool:
        return which(self.executable) is not None

    async def get_version(self) -> str:
        return await version_or_unknown(lambda: tool_version([self.executable, "--version"]))

    def capabilities(self) -> AdapterCapabilities:
        return AdapterCapabilities(languages=frozenset({"python"}), notes="security checks for Python")

    @guarded
    async def analyze(self, targets: list[str], options: AnalyzeOptions) -> AdapterOutput:
        argv = [self.executable, "--format", "json", "--quiet"]
        if options.setting("skip"):
            argv.extend(["--skip", ",".join(options.setting("skip"))])
        argv.extend(targets)

        result = await run_tool(argv, options)
        result.check(ok_codes=(0, 1))
        return parse_bandit(parse_json_output(result.stdout_text, self.name))
