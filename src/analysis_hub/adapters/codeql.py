"""CodeQL adapter.

CodeQL first builds a semantic database per language, then runs a query
suite against it. Databases are kept in the artifact cache when one is
configured, so repeated runs only pay for the queries.
"""

import hashlib
import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from analysis_hub.adapters.base import AnalyzeOptions, guarded, version_or_unknown
from analysis_hub.adapters.runner import run_tool, tool_version, which
from analysis_hub.adapters.sarif import parse_sarif
from analysis_hub.adapters.tables import CODEQL_TABLES
from analysis_hub.credentials import CredentialProvider
from analysis_hub.errors import AdapterBufferExceeded, AdapterParseError
from analysis_hub.languages import languages_of
from analysis_hub.models.raw import AdapterCapabilities, AdapterOutput, RawFinding, TimeoutClass

logger = logging.getLogger(__name__)

DATABASE_MAX_AGE_SECONDS = 24 * 3600

# Detected language -> CodeQL extractor
EXTRACTORS = {
    "python": "python",
    "javascript": "javascript",
    "typescript": "javascript",
    "java": "java",
    "kotlin": "java",
    "go": "go",
    "c": "cpp",
    "cpp": "cpp",
    "csharp": "csharp",
    "ruby": "ruby",
    "swift": "swift",
}


def database_key(project_root: str, extractor: str) -> str:
    """Cache key for the database of one project and extractor."""
    digest = hashlib.sha1(project_root.encode("utf-8")).hexdigest()[:12]
    return f"codeql-{extractor}-{digest}"


class CodeqlAdapter:
    """Builds CodeQL databases and runs a query suite per language."""

    name = "codeql"
    tables = CODEQL_TABLES
    executable = "codeql"

    def __init__(
        self,
        settings: Mapping[str, Any] | None = None,
        credentials: CredentialProvider | None = None,
    ) -> None:
        self.settings = dict(settings or {})

    def is_available(self) -> bool:
        return which(self.executable) is not None

    async def get_version(self) -> str:
        return await version_or_unknown(lambda: tool_version([self.executable, "version", "--format=terse"]))

    def capabilities(self) -> AdapterCapabilities:
        return AdapterCapabilities(
            languages=frozenset(EXTRACTORS),
            notes="semantic database analysis; data-flow queries report code flows",
            timeout_class=TimeoutClass.DATABASE,
            cache_max_age_seconds=DATABASE_MAX_AGE_SECONDS,
        )

    @guarded
    async def analyze(self, targets: list[str], options: AnalyzeOptions) -> AdapterOutput:
        extractors = sorted({EXTRACTORS[lang] for lang in languages_of(targets) if lang in EXTRACTORS})
        output = AdapterOutput(stats={"languages": extractors})
        for extractor in extractors:
            findings = await self._analyze_language(extractor, options)
            output.findings.extend(findings)
        return output

    async def _analyze_language(self, extractor: str, options: AnalyzeOptions) -> list[RawFinding]:
        cache = options.cache
        if cache is None:
            with tempfile.TemporaryDirectory(prefix="analysis-hub-codeql-") as tmp:
                database = Path(tmp) / "db"
                await self._create_database(database, extractor, options)
                return await self._run_queries(database, extractor, options)

        key = database_key(options.project_root, extractor)
        async with cache.hold(key):
            async with cache.read(key) as database:
                if database is not None:
                    logger.info(f"Reusing cached CodeQL database for {extractor}")
                    return await self._run_queries(database / "db", extractor, options)

            async with cache.write(key, DATABASE_MAX_AGE_SECONDS) as entry:
                await self._create_database(entry / "db", extractor, options)

            async with cache.read(key) as database:
                if database is None:
                    raise AdapterParseError(f"CodeQL database for {extractor} vanished from the cache")
                return await self._run_queries(database / "db", extractor, options)

    async def _create_database(self, database: Path, extractor: str, options: AnalyzeOptions) -> None:
        logger.info(f"Building CodeQL database for {extractor}")
        argv = [
            self.executable,
            "database",
            "create",
            str(database),
            f"--language={extractor}",
            f"--source-root={options.project_root}",
            "--overwrite",
        ]
        if options.setting("build_command"):
            argv.append(f"--command={options.setting('build_command')}")
        result = await run_tool(argv, options)
        result.check()

    async def _run_queries(self, database: Path, extractor: str, options: AnalyzeOptions) -> list[RawFinding]:
        suite = options.setting("queries", f"codeql/{extractor}-queries")
        with tempfile.TemporaryDirectory(prefix="analysis-hub-sarif-") as tmp:
            sarif_path = os.path.join(tmp, "results.sarif")
            argv = [
                self.executable,
                "database",
                "analyze",
                str(database),
                suite,
                "--format=sarif-latest",
                f"--output={sarif_path}",
            ]
            result = await run_tool(argv, options)
            result.check()
            return self._read_sarif(sarif_path, options.max_output_bytes)

    @staticmethod
    def _read_sarif(path: str, limit: int) -> list[RawFinding]:
        size = os.path.getsize(path)
        if size > limit:
            raise AdapterBufferExceeded(f"SARIF output of {size} bytes exceeds {limit}")
        try:
            with open(path, encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            raise AdapterParseError(f"unreadable SARIF output: {e}") from e
        return parse_sarif(document)
