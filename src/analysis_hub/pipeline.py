"""End-to-end analysis pipeline."""

import logging
import os
from collections.abc import Callable, Mapping
from datetime import datetime
from itertools import groupby
from operator import itemgetter
from pathlib import Path

from analysis_hub.adapters.base import Adapter, AnalyzeOptions, CancellationToken
from analysis_hub.adapters.registry import AdapterRegistry, default_registry
from analysis_hub.analysis.assembler import ResultAssembler, utc_now
from analysis_hub.analysis.correlation import CorrelationConfig, CorrelationEngine
from analysis_hub.analysis.normalizer import Normalizer
from analysis_hub.cache import ArtifactCache
from analysis_hub.config import Config
from analysis_hub.models.raw import FailureReason
from analysis_hub.models.result import AdapterStatus, AnalysisResult
from analysis_hub.orchestrator.aggregator import Aggregator, AggregatorConfig
from analysis_hub.orchestrator.orchestrator import AdapterOrchestrator, OrchestratorConfig

logger = logging.getLogger(__name__)


def orchestrator_config(config: Config) -> OrchestratorConfig:
    """Translate loaded settings into orchestrator configuration."""
    settings = config.orchestrator
    return OrchestratorConfig(
        max_concurrent=settings.max_concurrent,
        local_timeout_per_file=settings.local_timeout_per_file,
        database_timeout=settings.database_timeout,
        network_timeout=settings.network_timeout,
        adapter_timeouts={
            name: a.timeout_seconds for name, a in config.adapters.items() if a.timeout_seconds is not None
        },
        disabled_adapters={name for name, a in config.adapters.items() if not a.enabled},
        adapter_settings={name: dict(a.settings) for name, a in config.adapters.items()},
    )


def build_adapters(
    config: Config,
    registry: AdapterRegistry | None = None,
    names: list[str] | None = None,
) -> dict[str, Adapter]:
    """Instantiate adapters from the registry with their configured settings."""
    registry = registry or default_registry()
    return registry.create_all(
        names=names,
        settings={name: a.settings for name, a in config.adapters.items()},
        credentials=config.credential_provider(),
    )


def build_cache(config: Config, project_root: str) -> ArtifactCache | None:
    """Artifact cache rooted under the project unless an absolute path is set."""
    if not config.cache.enabled:
        return None
    directory = Path(config.cache.directory)
    if not directory.is_absolute():
        directory = Path(project_root) / directory
    return ArtifactCache(directory, config.cache.default_max_age_seconds)


async def run_analysis(
    targets: list[str],
    project_root: str,
    adapters: Mapping[str, Adapter] | None = None,
    *,
    config: Config | None = None,
    cancel_token: CancellationToken | None = None,
    cache: ArtifactCache | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> AnalysisResult:
    """Run adapters over targets and produce a correlated analysis result.

    Never raises for adapter, finding or assembly errors: failures are
    reported through adapter outcomes and diagnostics.

    Args:
        targets: Files or directories, absolute or relative to project_root
        project_root: Root that canonical paths are relative to
        adapters: Adapters keyed by name (default: all built-in adapters)
        config: Loaded configuration (default: built-in defaults)
        cancel_token: Global cancellation signal
        cache: Artifact cache (default: built from configuration)
        clock: Injected clock for issue timestamps and ``generated_at``

    Returns:
        AnalysisResult, possibly with empty collections
    """
    config = config or Config()
    project_root = os.path.abspath(project_root)
    outcomes = []

    try:
        if adapters is None:
            adapters = build_adapters(config)
        if cache is None:
            cache = build_cache(config, project_root)

        options = AnalyzeOptions(
            project_root=project_root,
            max_output_bytes=config.orchestrator.max_output_bytes,
            kill_grace_seconds=config.orchestrator.kill_grace_seconds,
            credentials=config.credential_provider(),
            cache=cache,
            cancel_token=cancel_token,
        )
        orchestration = await AdapterOrchestrator(orchestrator_config(config)).orchestrate(
            targets, adapters, options
        )
        outcomes = orchestration.outcomes

        # one timestamp for every issue and the result itself
        now = clock()
        normalizer = Normalizer(project_root, now)
        issues = []
        dropped = 0
        for name, entries in groupby(orchestration.merged_findings, key=itemgetter(0)):
            adapter = adapters[name]
            outcome = orchestration.per_adapter[name].outcome
            try:
                normalized = normalizer.normalize(
                    name,
                    adapter.tables,
                    [finding for _, finding in entries],
                    strip_component_prefix=getattr(adapter, "strip_component_prefix", False),
                )
            except Exception as e:
                logger.exception(f"Normalizing findings of {name} failed")
                outcome.status = AdapterStatus.FAILED
                outcome.reason = FailureReason.ERROR
                outcome.diagnostics.append(f"normalization failed: {type(e).__name__}: {e}")
                continue
            outcome.issue_count = len(normalized.issues)
            outcome.diagnostics.extend(normalized.diagnostics)
            issues.extend(normalized.issues)
            dropped += normalized.dropped

        engine = CorrelationEngine(CorrelationConfig(line_bucket_size=config.correlation.line_bucket_size))
        groups = engine.correlate(issues)

        aggregator = Aggregator(
            AggregatorConfig(
                hotspot_threshold=config.aggregator.hotspot_threshold,
                refactor_tool_count=config.aggregator.refactor_tool_count,
            )
        )
        metrics = aggregator.file_metrics(issues)
        hotspots = aggregator.hotspots(issues, metrics, groups)

        diagnostics = list(orchestration.diagnostics)
        if orchestration.cancelled:
            diagnostics.append("run cancelled; results cover adapters that completed")

        result = ResultAssembler(lambda: now).assemble(
            issues,
            metrics,
            groups,
            hotspots,
            outcomes,
            dropped_findings=dropped,
            diagnostics=diagnostics,
        )
    except Exception as e:
        logger.exception("Analysis pipeline failed")
        return ResultAssembler(clock).assemble(
            [], {}, [], [], outcomes, diagnostics=[f"pipeline failed: {type(e).__name__}: {e}"]
        )

    ran = result.summary.adapter_status_counts.get(AdapterStatus.RAN.value, 0)
    logger.info(
        f"Analysis complete: {result.summary.total_issues} issues, "
        f"{len(result.correlation_groups)} correlation groups, "
        f"{len(result.hotspots)} hotspots from {ran} adapters"
    )
    return result
