"""Orchestrator components for analysis-hub."""

from analysis_hub.orchestrator.aggregator import Aggregator, AggregatorConfig
from analysis_hub.orchestrator.orchestrator import (
    AdapterOrchestrator,
    AdapterRun,
    OrchestrationResult,
    OrchestratorConfig,
)

__all__ = [
    "AdapterOrchestrator",
    "AdapterRun",
    "Aggregator",
    "AggregatorConfig",
    "OrchestrationResult",
    "OrchestratorConfig",
]
