"""CBMC bounded model checker adapter.

CBMC proves or refutes generated properties (array bounds, pointer
dereferences, arithmetic overflow) up to an unwinding bound. Every checked
property becomes a formal result: failures as ``verified_violation``,
successes as ``verified_safe``.
"""

import logging
from collections.abc import Mapping
from typing import Any

from analysis_hub.adapters.base import AnalyzeOptions, guarded, parse_json_output, version_or_unknown
from analysis_hub.adapters.runner import run_tool, tool_version, which
from analysis_hub.adapters.tables import CBMC_TABLES
from analysis_hub.credentials import CredentialProvider
from analysis_hub.errors import AdapterParseError
from analysis_hub.models.issue import FormalStatus
from analysis_hub.models.raw import AdapterCapabilities, AdapterOutput, RawFinding

logger = logging.getLogger(__name__)

DEFAULT_CHECKS = ("--bounds-check", "--pointer-check", "--signed-overflow-check", "--div-by-zero-check")

STATUS_MAP = {
    "FAILURE": FormalStatus.VERIFIED_VIOLATION,
    "SUCCESS": FormalStatus.VERIFIED_SAFE,
}


def property_class(property_id: str) -> str:
    """Extract the check class from ``function.class.N`` property ids."""
    parts = property_id.split(".")
    if len(parts) >= 3 and parts[-1].isdigit():
        return parts[-2]
    return parts[-1] if parts else property_id


def parse_cbmc(document: Any, report_safe: bool = True) -> AdapterOutput:
    """Convert ``cbmc --json-ui`` output into formal raw findings.

    Args:
        document: Decoded JSON message list
        report_safe: Emit proven-safe properties as well as violations

    Raises:
        AdapterParseError: If the output carries no property results
    """
    if not isinstance(document, list):
        raise AdapterParseError("cbmc output is not a JSON message list")

    results = None
    diagnostics = []
    for message in document:
        if not isinstance(message, dict):
            continue
        if "result" in message:
            results = message["result"]
        elif message.get("messageType") == "ERROR":
            diagnostics.append(f"cbmc: {message.get('messageText', '')}")
    if results is None:
        raise AdapterParseError("cbmc output has no property results")

    findings = []
    for prop in results:
        status = STATUS_MAP.get(str(prop.get("status", "")).upper(), FormalStatus.UNKNOWN)
        if status == FormalStatus.VERIFIED_SAFE and not report_safe:
            continue
        location = prop.get("sourceLocation") or {}
        if not location.get("file"):
            continue

        property_id = prop.get("property", "")
        description = prop.get("description", "")
        findings.append(
            RawFinding(
                raw_path=location["file"],
                severity_raw=str(prop.get("status", "unknown")).lower(),
                category_raw="correctness",
                title=f"{description} ({status.value})" if description else property_id,
                description=description,
                rule_id=property_class(property_id),
                line=int(location["line"]) if str(location.get("line", "")).isdigit() else None,
                metadata={
                    "formal": {"status": status.value, "property": property_id},
                    "function": location.get("function"),
                    "native": {k: v for k, v in prop.items() if k != "trace"},
                },
            )
        )

    return AdapterOutput(
        findings=findings,
        stats={"properties": len(results)},
        diagnostics=diagnostics,
    )


class CbmcAdapter:
    """Runs CBMC on C translation units."""

    name = "cbmc"
    tables = CBMC_TABLES
    executable = "cbmc"

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
            languages=frozenset({"c"}),
            notes="bounded model checking; results are proofs up to the unwind bound",
        )

    @guarded
    async def analyze(self, targets: list[str], options: AnalyzeOptions) -> AdapterOutput:
        sources = [t for t in targets if t.endswith(".c")]
        if not sources:
            return AdapterOutput(stats={"properties": 0})

        argv = [self.executable, "--json-ui", *options.setting("checks", DEFAULT_CHECKS)]
        if options.setting("unwind"):
            argv.extend(["--unwind", str(options.setting("unwind")), "--unwinding-assertions"])
        if options.setting("function"):
            argv.extend(["--function", str(options.setting("function"))])
        argv.extend(sources)

        result = await run_tool(argv, options)
        # 0 all properties hold, 10 at least one fails
        result.check(ok_codes=(0, 10))
        output = parse_cbmc(
            parse_json_output(result.stdout_text, self.name),
            report_safe=bool(options.setting("report_safe", True)),
        )
        logger.debug(f"cbmc checked {output.stats['properties']} properties")
        return output
