"""Code Climate Quality adapter.

Reads issues and per-file letter grades for the latest default-branch
snapshot. Grades below the configured floor become file-level findings
whose severity comes from the published grade table.
"""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from analysis_hub.adapters.base import AnalyzeOptions, guarded
from analysis_hub.adapters.http import ApiClient, ApiConfig
from analysis_hub.adapters.tables import CODECLIMATE_TABLES
from analysis_hub.credentials import CredentialProvider, MappingCredentials
from analysis_hub.errors import AdapterParseError, AdapterUnavailable
from analysis_hub.models.raw import AdapterCapabilities, AdapterOutput, RawFinding, TimeoutClass

logger = logging.getLogger(__name__)

API_BASE = "https://api.codeclimate.com/v1"
API_VERSION = "api-v1"
TOKEN_NAME = "codeclimate_token"
GRADES = "ABCDEF"
DEFAULT_MIN_GRADE = "C"
MAX_PAGES = 50


def parse_issue_records(records: list[dict[str, Any]]) -> list[RawFinding]:
    """Convert JSON:API issue resources into raw findings."""
    findings = []
    for record in records:
        attributes = record.get("attributes") or {}
        location = attributes.get("location") or {}
        lines = location.get("lines") or {}
        categories = attributes.get("categories") or []
        description = attributes.get("description") or ""
        findings.append(
            RawFinding(
                raw_path=location.get("path", ""),
                severity_raw=attributes.get("severity", ""),
                category_raw=categories[0] if categories else "",
                title=description,
                description=description,
                rule_id=attributes.get("check_name"),
                line=location.get("start_line", lines.get("begin")),
                end_line=location.get("end_line", lines.get("end")),
                metadata={"native": record, "engine": attributes.get("engine_name")},
            )
        )
    return findings


def parse_grade_records(records: list[dict[str, Any]], min_grade: str = DEFAULT_MIN_GRADE) -> list[RawFinding]:
    """Turn file ratings at or below ``min_grade`` into file-level findings."""
    floor = GRADES.index(min_grade.upper())
    findings = []
    for record in records:
        attributes = record.get("attributes") or {}
        rating = str(attributes.get("rating") or "").upper()
        if rating not in GRADES or GRADES.index(rating) < floor:
            continue
        findings.append(
            RawFinding(
                raw_path=attributes.get("path", ""),
                severity_raw=rating,
                category_raw="grade",
                title=f"Maintainability grade {rating}",
                description=f"File rated {rating} for maintainability",
                rule_id="grade",
                metadata={"native": record, "grade": rating},
            )
        )
    return findings


class CodeclimateAdapter:
    """Pulls issues and file grades from Code Climate."""

    name = "codeclimate"
    tables = CODECLIMATE_TABLES

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
    def repo_id(self) -> str | None:
        return self.settings.get("repo_id")

    def is_available(self) -> bool:
        return bool(self.repo_id and self.credentials.get(TOKEN_NAME))

    def _client(self) -> ApiClient:
        token = self.credentials.get(TOKEN_NAME)
        if not token:
            raise AdapterUnavailable("codeclimate token not configured")
        return ApiClient(
            ApiConfig(
                base_url=self.settings.get("url", API_BASE).rstrip("/"),
                headers={
                    "Authorization": f"Token token={token}",
                    "Accept": "application/vnd.api+json",
                },
            ),
            transport=self.transport,
        )

    async def get_version(self) -> str:
        # the service does not publish a version; report the API revision
        return API_VERSION

    def capabilities(self) -> AdapterCapabilities:
        return AdapterCapabilities(
            languages=frozenset({"*"}),
            notes="reads the latest default-branch snapshot",
            timeout_class=TimeoutClass.NETWORK,
        )

    @guarded
    async def analyze(self, targets: list[str], options: AnalyzeOptions) -> AdapterOutput:
        if not self.repo_id:
            raise AdapterUnavailable("codeclimate repo_id not configured")

        async with self._client() as client:
            snapshot_id = await self._snapshot_id(client)
            base = f"/repos/{self.repo_id}/snapshots/{snapshot_id}"
            issues = await self._collect(client, f"{base}/issues")
            files = await self._collect(client, f"{base}/files")

        min_grade = str(options.setting("min_grade", DEFAULT_MIN_GRADE))
        findings = parse_issue_records(issues) + parse_grade_records(files, min_grade)
        return AdapterOutput(
            findings=findings,
            stats={"snapshot": snapshot_id, "issues": len(issues), "files": len(files)},
        )

    async def _snapshot_id(self, client: ApiClient) -> str:
        data = await client.get_json(f"/repos/{self.repo_id}")
        try:
            relationship = data["data"]["relationships"]["latest_default_branch_snapshot"]
            return relationship["data"]["id"]
        except (KeyError, TypeError) as e:
            raise AdapterParseError(f"codeclimate repo has no default-branch snapshot: {e}") from e

    async def _collect(self, client: ApiClient, path: str) -> list[dict[str, Any]]:
        """Follow JSON:API ``links.next`` pagination."""
        records: list[dict[str, Any]] = []
        url: str | None = path
        params: dict[str, Any] | None = {"page[size]": 100}
        pages = 0
        while url and pages < MAX_PAGES:
            data = await client.get_json(url, params=params)
            if not isinstance(data, dict) or not isinstance(data.get("data"), list):
                raise AdapterParseError(f"codeclimate response for {path} has no data list")
            records.extend(data["data"])
            url = (data.get("links") or {}).get("next")
            # next links already carry their query string
            params = None
            pages += 1
        logger.debug(f"codeclimate {path}: {len(records)} records in {pages} pages")
        return records
