"""Adapter orchestrator for concurrent, failure-isolated tool runs."""

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from analysis_hub.adapters.base import Adapter, AnalyzeOptions, CancellationToken
from analysis_hub.languages import expand_targets, relevant_files
from analysis_hub.models.raw import (
    AdapterCapabilities,
    AdapterOutput,
    FailureReason,
    RawFinding,
    TimeoutClass,
)
from analysis_hub.models.result import AdapterOutcome, AdapterStatus

logger = logging.getLogger(__name__)

VERSION_PROBE_TIMEOUT = 30.0


@dataclass
class OrchestratorConfig:
    """Configuration for the orchestrator."""

    max_concurrent: int = 4
    local_timeout_per_file: float = 60.0
    database_timeout: float = 600.0
    network_timeout: float = 120.0
    adapter_timeouts: dict[str, float] = field(default_factory=dict)
    disabled_adapters: set[str] = field(default_factory=set)
    adapter_settings: dict[str, dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {self.max_concurrent}")


@dataclass
class AdapterRun:
    """Outcome of one adapter plus its output when it ran."""

    outcome: AdapterOutcome
    output: AdapterOutput | None = None
    targets: list[str] = field(default_factory=list)


@dataclass
class OrchestrationResult:
    """Per-adapter runs and the merged raw findings of successful adapters."""

    per_adapter: dict[str, AdapterRun]
    merged_findings: list[tuple[str, RawFinding]]
    cancelled: bool = False
    diagnostics: list[str] = field(default_factory=list)

    @property
    def outcomes(self) -> list[AdapterOutcome]:
        """Outcomes in adapter-name order."""
        return [self.per_adapter[name].outcome for name in sorted(self.per_adapter)]


class AdapterOrchestrator:
    """Coordinates adapters with bounded concurrency and per-adapter budgets."""

    def __init__(self, config: OrchestratorConfig | None = None) -> None:
        """Initialize the orchestrator.

        Args:
            config: Optional configuration
        """
        self.config = config or OrchestratorConfig()

    def timeout_for(self, name: str, capabilities: AdapterCapabilities, relevant_count: int) -> float:
        """Wall-clock budget for one adapter run.

        Args:
            name: Adapter name, checked against per-adapter overrides
            capabilities: Adapter capabilities carrying the timeout class
            relevant_count: Number of target files the adapter handles

        Returns:
            Timeout in seconds
        """
        if name in self.config.adapter_timeouts:
            return float(self.config.adapter_timeouts[name])
        if capabilities.timeout_class == TimeoutClass.DATABASE:
            return self.config.database_timeout
        if capabilities.timeout_class == TimeoutClass.NETWORK:
            return self.config.network_timeout
        return self.config.local_timeout_per_file * max(1, relevant_count)

    async def orchestrate(
        self,
        targets: list[str],
        adapters: Mapping[str, Adapter],
        options: AnalyzeOptions,
    ) -> OrchestrationResult:
        """Run every applicable adapter and merge their findings.

        Algorithm:
        1. Evict expired cache entries that nobody references
        2. Expand targets and filter them per adapter capabilities
        3. Skip disabled, unavailable and non-matching adapters
        4. Run the rest under a FIFO semaphore with per-adapter timeouts
        5. On cancellation, mark running and queued adapters cancelled
        6. Merge findings of adapters that ran, in adapter-name order

        Args:
            targets: Files or directories to analyze
            adapters: Adapters keyed by name
            options: Base options; each adapter gets its own snapshot

        Returns:
            OrchestrationResult with one run record per adapter
        """
        diagnostics: list[str] = []
        token = options.cancel_token or CancellationToken()
        options = options.replace(cancel_token=token)

        if options.cache is not None:
            try:
                await options.cache.evict_expired()
            except OSError as e:
                logger.warning(f"Cache eviction failed: {e}")
                diagnostics.append(f"cache eviction failed: {e}")

        files = await asyncio.to_thread(expand_targets, targets, options.project_root)
        logger.info(f"Expanded {len(targets)} targets into {len(files)} files")

        runs: dict[str, AdapterRun] = {}
        scheduled: list[tuple[str, Adapter, AdapterCapabilities, list[str]]] = []
        for name in sorted(adapters):
            adapter = adapters[name]
            run, plan = self._plan(name, adapter, files)
            if run is not None:
                runs[name] = run
            else:
                scheduled.append((name, adapter, *plan))

        semaphore = asyncio.Semaphore(self.config.max_concurrent)
        started: dict[str, float] = {}
        tasks: dict[str, asyncio.Task] = {}
        for name, adapter, capabilities, relevant in scheduled:
            tasks[name] = asyncio.create_task(
                self._run_adapter(name, adapter, capabilities, relevant, options, semaphore, started),
                name=f"adapter-{name}",
            )

        cancelled = await self._wait(tasks, token)

        for name, adapter, _, relevant in scheduled:
            task = tasks[name]
            if task.cancelled():
                runs[name] = self._cancelled_run(name, relevant, started)
            else:
                runs[name] = task.result()

        merged: list[tuple[str, RawFinding]] = []
        for name in sorted(runs):
            run = runs[name]
            if run.outcome.status == AdapterStatus.RAN and run.output is not None:
                merged.extend((name, finding) for finding in run.output.findings)

        return OrchestrationResult(
            per_adapter=dict(sorted(runs.items())),
            merged_findings=merged,
            cancelled=cancelled,
            diagnostics=diagnostics,
        )

    def _plan(
        self, name: str, adapter: Adapter, files: list[str]
    ) -> tuple[AdapterRun | None, tuple[AdapterCapabilities, list[str]] | None]:
        """Decide whether an adapter is skipped or scheduled."""
        if name in self.config.disabled_adapters:
            logger.info(f"Adapter {name} disabled by configuration")
            return self._skipped(name, FailureReason.DISABLED, "disabled by configuration"), None

        try:
            capabilities = adapter.capabilities()
        except Exception as e:
            logger.warning(f"Adapter {name} capabilities failed: {e}")
            return self._failed(name, FailureReason.ERROR, f"capabilities failed: {e}"), None

        relevant = relevant_files(files, capabilities.languages)
        if not relevant:
            logger.info(f"Adapter {name} has no matching targets")
            return self._skipped(name, FailureReason.NO_MATCHING_TARGETS, "no matching targets"), None

        try:
            available = adapter.is_available()
        except Exception as e:
            logger.warning(f"Adapter {name} availability check raised: {e}")
            available = False
        if not available:
            logger.info(f"Adapter {name} not available, skipping")
            return self._skipped(name, FailureReason.NOT_AVAILABLE, "tool not available"), None

        return None, (capabilities, relevant)

    async def _wait(self, tasks: dict[str, asyncio.Task], token: CancellationToken) -> bool:
        """Wait for all adapter tasks; cancel the remainder if the token fires."""
        if not tasks:
            return token.cancelled

        pending = set(tasks.values())
        watcher = asyncio.ensure_future(token.wait())
        try:
            while pending:
                done, _ = await asyncio.wait(pending | {watcher}, return_when=asyncio.FIRST_COMPLETED)
                pending -= done
                if watcher in done:
                    logger.warning(f"Cancelling {len(pending)} running or queued adapters")
                    for task in pending:
                        task.cancel()
                    await asyncio.gather(*pending, return_exceptions=True)
                    return True
        finally:
            watcher.cancel()
        return token.cancelled

    async def _run_adapter(
        self,
        name: str,
        adapter: Adapter,
        capabilities: AdapterCapabilities,
        relevant: list[str],
        options: AnalyzeOptions,
        semaphore: asyncio.Semaphore,
        started: dict[str, float],
    ) -> AdapterRun:
        async with semaphore:
            self._check_cancelled(options)
            start = time.monotonic()
            started[name] = start
            timeout = self.timeout_for(name, capabilities, len(relevant))
            adapter_options = options.replace(
                timeout_seconds=timeout,
                settings={**options.settings, **self.config.adapter_settings.get(name, {})},
            )

            version = await self._version(name, adapter)
            self._check_cancelled(options)
            logger.info(f"Running adapter {name} ({version}) on {len(relevant)} files, timeout {timeout:.0f}s")

            try:
                output = await asyncio.wait_for(
                    adapter.analyze(relevant, adapter_options),
                    timeout + options.kill_grace_seconds,
                )
            except asyncio.TimeoutError:
                output = AdapterOutput.failed(FailureReason.TIMEOUT, f"{name} exceeded {timeout:.0f}s")
            except Exception as e:
                logger.exception(f"Adapter {name} raised from analyze")
                output = AdapterOutput.failed(FailureReason.ERROR, f"{name}: {type(e).__name__}: {e}")
            # output that completes after the token fired is discarded
            self._check_cancelled(options)

        duration_ms = int((time.monotonic() - start) * 1000)
        outcome = self._outcome(name, output, duration_ms, version)
        if outcome.status == AdapterStatus.RAN:
            logger.info(f"Adapter {name} finished with {outcome.finding_count} findings in {duration_ms}ms")
        else:
            logger.warning(f"Adapter {name} {outcome.status.value}: {output.failure.message}")
        return AdapterRun(outcome=outcome, output=output, targets=relevant)

    async def _version(self, name: str, adapter: Adapter) -> str:
        try:
            return await asyncio.wait_for(adapter.get_version(), VERSION_PROBE_TIMEOUT)
        except asyncio.TimeoutError:
            return "unknown"
        except Exception as e:
            logger.debug(f"Adapter {name} version probe failed: {e}")
            return "unknown"

    @staticmethod
    def _check_cancelled(options: AnalyzeOptions) -> None:
        if options.cancel_token is not None and options.cancel_token.cancelled:
            raise asyncio.CancelledError()

    @staticmethod
    def _outcome(name: str, output: AdapterOutput, duration_ms: int, version: str) -> AdapterOutcome:
        if output.ok:
            return AdapterOutcome(
                adapter=name,
                status=AdapterStatus.RAN,
                duration_ms=duration_ms,
                version=version,
                finding_count=len(output.findings),
                diagnostics=list(output.diagnostics),
            )

        reason = output.failure.reason
        if reason == FailureReason.NOT_AVAILABLE:
            status = AdapterStatus.SKIPPED
        elif reason == FailureReason.CANCELLED:
            status = AdapterStatus.CANCELLED
        else:
            status = AdapterStatus.FAILED
        return AdapterOutcome(
            adapter=name,
            status=status,
            reason=reason,
            duration_ms=duration_ms,
            version=version,
            diagnostics=list(output.diagnostics),
        )

    @staticmethod
    def _cancelled_run(name: str, relevant: list[str], started: dict[str, float]) -> AdapterRun:
        duration_ms = int((time.monotonic() - started[name]) * 1000) if name in started else 0
        state = "running" if name in started else "queued"
        return AdapterRun(
            outcome=AdapterOutcome(
                adapter=name,
                status=AdapterStatus.CANCELLED,
                reason=FailureReason.CANCELLED,
                duration_ms=duration_ms,
                diagnostics=[f"cancelled while {state}"],
            ),
            targets=relevant,
        )

    @staticmethod
    def _skipped(name: str, reason: FailureReason, message: str) -> AdapterRun:
        return AdapterRun(
            outcome=AdapterOutcome(adapter=name, status=AdapterStatus.SKIPPED, reason=reason, diagnostics=[message])
        )

    @staticmethod
    def _failed(name: str, reason: FailureReason, message: str) -> AdapterRun:
        return AdapterRun(
            outcome=AdapterOutcome(adapter=name, status=AdapterStatus.FAILED, reason=reason, diagnostics=[message])
        )
