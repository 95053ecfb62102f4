"""Tool adapters for analysis-hub."""

from analysis_hub.adapters.base import (
    Adapter,
    AnalyzeOptions,
    CancellationToken,
    guarded,
)
from analysis_hub.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "AnalyzeOptions",
    "CancellationToken",
    "default_registry",
    "guarded",
]
