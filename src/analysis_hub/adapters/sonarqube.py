"""SonarQube adapter reading issues from a SonarQube server."""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from analysis_hub.adapters.base import AnalyzeOptions, guarded, version_or_unknown
from analysis_hub.adapters.http import ApiClient, ApiConfig, basic_token_auth
from analysis_hub.adapters.tables import SONARQUBE_TABLES
from analysis_hub.credentials import CredentialProvider, MappingCredentials
from analysis_hub.errors import AdapterParseError, AdapterUnavailable
from analysis_hub.models.raw import AdapterCapabilities, AdapterOutput, RawFinding, TimeoutClass

logger = logging.getLogger(__name__)

TOKEN_NAME = "sonarqube_token"
PAGE_SIZE = 500
# the issues API refuses to page past 10,000 results
MAX_PAGES = 20


def parse_issues(issues: list[dict[str, Any]]) -> list[RawFinding]:
    """Convert ``/api/issues/search`` issue records into raw findings."""
    findings = []
    for issue in issues:
        text_range = issue.get("textRange") or {}
        message = issue.get("message") or ""
        start_offset = text_range.get("startOffset")
        end_offset = text_range.get("endOffset")
        findings.append(
            RawFinding(
                raw_path=issue.get("component", ""),
                severity_raw=issue.get("severity", ""),
                category_raw=issue.get("type", ""),
                title=message,
                description=message,
                rule_id=issue.get("rule"),
                line=text_range.get("startLine", issue.get("line")),
                # offsets are 0-based
                column=start_offset + 1 if isinstance(start_offset, int) else None,
                end_line=text_range.get("endLine"),
                end_column=end_offset + 1 if isinstance(end_offset, int) else None,
                metadata={"native": issue, "tags": issue.get("tags", [])},
            )
        )
    return findings


class SonarqubeAdapter:
    """Pulls open issues for one project from SonarQube."""

    name = "sonarqube"
    tables = SONARQUBE_TABLES
    # component keys look like "projectKey:src/App.java"
    strip_component_prefix = True

    def __init__(
        self,
        settings: Mapping[str, Any] | None = None,
        credentials: CredentialProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = dict(settings or {})
        self.credentials = credentials or MappingCredentials()
        self.transport = transport

    @property
    def url(self) -> str | None:
        return self.settings.get("url")

    @property
    def project_key(self) -> str | None:
        return self.settings.get("project_key")

    def is_available(self) -> bool:
        return bool(self.url and self.project_key and self.credentials.get(TOKEN_NAME))

    def _client(self) -> ApiClient:
        token = self.credentials.get(TOKEN_NAME)
        if not (self.url and token):
            raise AdapterUnavailable("sonarqube url or token not configured")
        return ApiClient(
            ApiConfig(
                base_url=self.url.rstrip("/"),
                headers={"Authorization": basic_token_auth(token)},
                timeout=float(self.settings.get("request_timeout", 30)),
            ),
            transport=self.transport,
        )

    async def get_version(self) -> str:
        async def probe() -> str:
            async with self._client() as client:
                return await client.get_text("/api/server/version")

        return await version_or_unknown(probe)

    def capabilities(self) -> AdapterCapabilities:
        return AdapterCapabilities(
            languages=frozenset({"*"}),
            notes="reads the last server-side analysis; does not scan locally",
            timeout_class=TimeoutClass.NETWORK,
        )

    @guarded
    async def analyze(self, targets: list[str], options: AnalyzeOptions) -> AdapterOutput:
        if not self.project_key:
            raise AdapterUnavailable("sonarqube project_key not configured")

        issues: list[dict[str, Any]] = []
        max_pages = int(options.setting("max_pages", MAX_PAGES))
        async with self._client() as client:
            page = 1
            while page <= max_pages:
                data = await client.get_json(
                    "/api/issues/search",
                    params={
                        "componentKeys": self.project_key,
                        "resolved": "false",
                        "ps": PAGE_SIZE,
                        "p": page,
                    },
                )
                if not isinstance(data, dict) or not isinstance(data.get("issues"), list):
                    raise AdapterParseError("sonarqube response has no issues list")
                issues.extend(data["issues"])

                paging = data.get("paging") or {}
                total = int(paging.get("total", data.get("total", len(issues))))
                logger.debug(f"sonarqube page {page}: {len(issues)}/{total} issues")
                if len(issues) >= total or not data["issues"]:
                    break
                page += 1

        diagnostics = []
        if page > max_pages:
            diagnostics.append(f"sonarqube: stopped after {max_pages} pages")
        return AdapterOutput(
            findings=parse_issues(issues),
            stats={"pages": min(page, max_pages), "issues": len(issues)},
            diagnostics=diagnostics,
        )
