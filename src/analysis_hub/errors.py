"""Exception hierarchy for analysis-hub.

Everything raised on purpose inherits from ``AnalysisHubError``. Adapter
errors carry a ``FailureReason`` so the orchestrator can turn them into
outcome records without inspecting messages.
"""

from analysis_hub.models.raw import FailureReason


class AnalysisHubError(Exception):
    """Base exception for all analysis-hub errors."""


class ConfigError(AnalysisHubError):
    """Raised when a configuration file cannot be loaded or parsed."""


class InvalidEntity(AnalysisHubError):
    """Raised when a raw tool identifier cannot be canonicalized."""

    def __init__(self, raw_path: str, reason: str) -> None:
        super().__init__(f"Invalid entity {raw_path!r}: {reason}")
        self.raw_path = raw_path
        self.reason = reason


class NormalizationDrop(AnalysisHubError):
    """Raised when a single raw finding violates issue invariants."""


class Cancelled(AnalysisHubError):
    """Raised when a run is cancelled through the cancellation token."""


class AdapterError(AnalysisHubError):
    """Base class for failures of a single adapter run."""

    reason: FailureReason = FailureReason.ERROR


class AdapterUnavailable(AdapterError):
    """The adapter's tool or service is not available."""

    reason = FailureReason.NOT_AVAILABLE


class AdapterTimeout(AdapterError):
    """The adapter exceeded its wall-clock budget."""

    reason = FailureReason.TIMEOUT


class AdapterBufferExceeded(AdapterError):
    """The tool produced more output than the configured cap."""

    reason = FailureReason.BUFFER_EXCEEDED


class AdapterParseError(AdapterError):
    """The tool's output could not be parsed."""

    reason = FailureReason.PARSE_ERROR


class AdapterRateLimited(AdapterError):
    """The remote service reported a rate limit."""

    reason = FailureReason.RATE_LIMITED


class AdapterFailed(AdapterError):
    """Generic adapter failure with an explicit reason."""

    def __init__(self, message: str, reason: FailureReason = FailureReason.ERROR) -> None:
        super().__init__(message)
        self.reason = reason
