"""ESLint adapter."""

from collections.abc import Mapping
from typing import Any

from analysis_hub.adapters.base import AnalyzeOptions, guarded, parse_json_output, version_or_unknown
from analysis_hub.adapters.runner import run_tool, tool_version, which
from analysis_hub.adapters.tables import ESLINT_TABLES
from analysis_hub.credentials import CredentialProvider
from analysis_hub.errors import AdapterParseError
from analysis_hub.models.raw import AdapterCapabilities, AdapterOutput, RawFinding

ESLINT_SEVERITIES = {1: "warning", 2: "error"}


def _category(rule_id: str | None, fatal: bool) -> str:
    if fatal:
        return "parse"
    if not rule_id:
        return ""
    # plugin rules are "plugin/rule" or "@scope/plugin/rule"
    if "/" in rule_id:
        return rule_id.rsplit("/", 1)[0].lstrip("@")
    return "core"


def parse_eslint(document: Any) -> AdapterOutput:
    """Convert ``eslint --format json`` output into raw findings."""
    if not isinstance(document, list):
        raise AdapterParseError("eslint output is not a list of file results")

    findings = []
    for file_result in document:
        path = file_result.get("filePath", "")
        for message in file_result.get("messages") or []:
            fatal = bool(message.get("fatal"))
            rule_id = message.get("ruleId")
            text = message.get("message") or ""
            findings.append(
                RawFinding(
                    raw_path=path,
                    severity_raw="fatal" if fatal else ESLINT_SEVERITIES.get(message.get("severity"), ""),
                    category_raw=_category(rule_id, fatal),
                    title=text.splitlines()[0] if text else (rule_id or ""),
                    description=text,
                    rule_id=rule_id,
                    line=message.get("line"),
                    column=message.get("column"),
                    end_line=message.get("endLine"),
                    end_column=message.get("endColumn"),
                    metadata={"native": message},
                )
            )
    return AdapterOutput(findings=findings, stats={"files": len(document)})


class EslintAdapter:
    """Runs ESLint with the project's own configuration."""

    name = "eslint"
    tables = ESLINT_TABLES
    executable = "eslint"

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
            languages=frozenset({"javascript", "typescript"}),
            notes="uses the project's ESLint configuration",
        )

    @guarded
    async def analyze(self, targets: list[str], options: AnalyzeOptions) -> AdapterOutput:
        argv = [self.executable, "--format", "json", "--no-error-on-unmatched-pattern"]
        if options.setting("config"):
            argv.extend(["--config", str(options.setting("config"))])
        argv.extend(targets)

        result = await run_tool(argv, options)
        # 0 clean, 1 lint errors, 2 configuration or crash
        result.check(ok_codes=(0, 1))
        return parse_eslint(parse_json_output(result.stdout_text, self.name))
