"""SARIF 2.1.0 reader producing raw findings."""

from typing import Any

from analysis_hub.errors import AdapterParseError
from analysis_hub.models.raw import RawFinding

# Tags that name a rule category, most specific first.
CATEGORY_TAGS = ("security", "correctness", "performance", "reliability", "maintainability", "readability")


def security_bucket(score: Any) -> str | None:
    """Bucket a numeric ``security-severity`` into a severity name."""
    try:
        value = float(score)
    except (TypeError, ValueError):
        return None
    if value >= 9.0:
        return "critical"
    if value >= 7.0:
        return "high"
    if value >= 4.0:
        return "medium"
    if value > 0.0:
        return "low"
    return "info"


def _rules_by_id(run: dict[str, Any]) -> dict[str, dict[str, Any]]:
    driver = run.get("tool", {}).get("driver", {})
    rules = {}
    for rule in driver.get("rules") or []:
        if isinstance(rule, dict) and rule.get("id"):
            rules[rule["id"]] = rule
    return rules


def _location_uri(location: dict[str, Any]) -> str | None:
    physical = location.get("physicalLocation") or {}
    return (physical.get("artifactLocation") or {}).get("uri")


def _flow_paths(result: dict[str, Any]) -> list[str]:
    for code_flow in result.get("codeFlows") or []:
        for thread_flow in code_flow.get("threadFlows") or []:
            uris = [
                _location_uri(step.get("location") or {})
                for step in thread_flow.get("locations") or []
            ]
            uris = [u for u in uris if u]
            if uris:
                return uris
    return []


def parse_sarif(document: Any) -> list[RawFinding]:
    """Convert a SARIF log into raw findings, in document order.

    Severity comes from the rule's ``security-severity`` when present,
    otherwise from the result or rule level. Code flows become ``flow``
    metadata with the first step as source and the last as sink.

    Raises:
        AdapterParseError: If the document is not a SARIF log
    """
    if not isinstance(document, dict) or not isinstance(document.get("runs"), list):
        raise AdapterParseError("SARIF document has no runs")

    findings = []
    for run in document["runs"]:
        rules = _rules_by_id(run)
        for result in run.get("results") or []:
            locations = result.get("locations") or []
            if not locations:
                continue
            uri = _location_uri(locations[0])
            if not uri:
                continue

            rule_id = result.get("ruleId") or (result.get("rule") or {}).get("id")
            rule = rules.get(rule_id, {})
            properties = rule.get("properties") or {}
            tags = [str(t).lower() for t in properties.get("tags") or []]

            severity = security_bucket(properties.get("security-severity"))
            if severity is None:
                severity = result.get("level") or (rule.get("defaultConfiguration") or {}).get("level") or "warning"
            category = next((tag for tag in CATEGORY_TAGS if tag in tags), "")

            region = (locations[0].get("physicalLocation") or {}).get("region") or {}
            metadata: dict[str, Any] = {"rule_name": rule.get("name"), "tags": tags, "native": result}
            flow = _flow_paths(result)
            if len(flow) >= 2:
                metadata["flow"] = {"source": flow[0], "sink": flow[-1], "path": flow}

            message = (result.get("message") or {}).get("text", "")
            description = (rule.get("fullDescription") or {}).get("text") or message
            findings.append(
                RawFinding(
                    raw_path=uri,
                    severity_raw=severity,
                    category_raw=category,
                    title=message.splitlines()[0] if message else (rule_id or ""),
                    description=description,
                    rule_id=rule_id,
                    line=region.get("startLine"),
                    column=region.get("startColumn"),
                    end_line=region.get("endLine"),
                    end_column=region.get("endColumn"),
                    metadata=metadata,
                )
            )
    return findings
