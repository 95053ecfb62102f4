"""Core analysis stages: canonicalization, normalization, correlation, assembly."""

from analysis_hub.analysis.assembler import ResultAssembler, verify_integrity
from analysis_hub.analysis.canonicalizer import Canonicalizer, canonicalize
from analysis_hub.analysis.correlation import CorrelationConfig, CorrelationEngine, risk_score
from analysis_hub.analysis.normalizer import NormalizationResult, Normalizer
from analysis_hub.analysis.serialization import from_json, to_json
from analysis_hub.analysis.taxonomy import AdapterTables

__all__ = [
    "AdapterTables",
    "Canonicalizer",
    "CorrelationConfig",
    "CorrelationEngine",
    "NormalizationResult",
    "Normalizer",
    "ResultAssembler",
    "canonicalize",
    "from_json",
    "risk_score",
    "to_json",
    "verify_integrity",
]
