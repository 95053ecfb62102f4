"""Semgrep adapter."""

from collections.abc import Mapping
from typing import Any

from analysis_hub.adapters.base import AnalyzeOptions, guarded, parse_json_output, version_or_unknown
from analysis_hub.adapters.runner import run_tool, tool_version, which
from analysis_hub.adapters.tables import SEMGREP_TABLES
from analysis_hub.credentials import CredentialProvider
from analysis_hub.errors import AdapterParseError
from analysis_hub.models.raw import AdapterCapabilities, AdapterOutput, RawFinding

SEMGREP_LANGUAGES = frozenset(
    {
        "python",
        "javascript",
        "typescript",
        "java",
        "go",
        "ruby",
        "c",
        "cpp",
        "csharp",
        "php",
        "kotlin",
        "scala",
        "rust",
        "swift",
    }
)


def _trace_paths(node: Any) -> list[str]:
    """Collect file paths from a Semgrep ``dataflow_trace`` fragment."""
    paths: list[str] = []
    if isinstance(node, dict):
        if isinstance(node.get("path"), str):
            paths.append(node["path"])
        for value in node.values():
            if isinstance(value, (dict, list)):
                paths.extend(_trace_paths(value))
    elif isinstance(node, list):
        for item in node:
            paths.extend(_trace_paths(item))
    return paths


def _flow(trace: Any) -> dict[str, Any] | None:
    if not isinstance(trace, dict):
        return None
    sources = _trace_paths(trace.get("taint_source"))
    sinks = _trace_paths(trace.get("taint_sink"))
    if not sources or not sinks:
        return None
    steps = _trace_paths(trace.get("intermediate_vars"))
    return {"source": sources[0], "sink": sinks[-1], "path": [sources[0], *steps, sinks[-1]]}


def parse_semgrep(document: Any) -> AdapterOutput:
    """Convert ``semgrep --json`` output into raw findings."""
    if not isinstance(document, dict) or not isinstance(document.get("results"), list):
        raise AdapterParseError("semgrep output has no results list")

    findings = []
    for result in document["results"]:
        extra = result.get("extra") or {}
        rule_metadata = extra.get("metadata") or {}
        start = result.get("start") or {}
        end = result.get("end") or {}
        message = extra.get("message") or ""
        check_id = result.get("check_id")

        metadata: dict[str, Any] = {"native": result}
        flow = _flow(extra.get("dataflow_trace"))
        if flow:
            metadata["flow"] = flow

        findings.append(
            RawFinding(
                raw_path=result.get("path", ""),
                severity_raw=rule_metadata.get("impact") or extra.get("severity", ""),
                category_raw=rule_metadata.get("category", ""),
                title=message.splitlines()[0] if message else (check_id or ""),
                description=message,
                rule_id=check_id,
                line=start.get("line"),
                column=start.get("col"),
                end_line=end.get("line"),
                end_column=end.get("col"),
                metadata=metadata,
            )
        )

    diagnostics = [
        f"semgrep: {error.get('type', 'error')}: {error.get('message', '')}".strip()
        for error in document.get("errors") or []
    ]
    return AdapterOutput(
        findings=findings,
        stats={"scanned": len((document.get("paths") or {}).get("scanned") or [])},
        diagnostics=diagnostics,
    )


class SemgrepAdapter:
    """Runs Semgrep rules over source files."""

    name = "semgrep"
    tables = SEMGREP_TABLES
    executable = "semgrep"

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
        return AdapterCapabilities(
            languages=SEMGREP_LANGUAGES,
            notes="pattern and taint rules; taint traces become data flows",
        )

    @guarded
    async def analyze(self, targets: list[str], options: AnalyzeOptions) -> AdapterOutput:
        argv = [
            self.executable,
            "scan",
            "--json",
            "--quiet",
            "--metrics=off",
            "--disable-version-check",
            "--dataflow-traces",
            f"--config={options.setting('config', 'auto')}",
            *targets,
        ]
        result = await run_tool(argv, options)
        # 1 means findings with --error, anything else above is a failure
        result.check(ok_codes=(0, 1))
        return parse_semgrep(parse_json_output(result.stdout_text, self.name))
