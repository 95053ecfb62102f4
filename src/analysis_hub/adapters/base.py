"""Adapter contract shared by every tool wrapper.

Adapters are plain classes satisfying the ``Adapter`` protocol. Shared
behavior comes from composition: ``run_tool`` for subprocess tools,
``ApiClient`` for network services and ``guarded`` to turn adapter errors
into failed outputs.
"""

import asyncio
import dataclasses
import functools
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from analysis_hub.analysis.taxonomy import AdapterTables
from analysis_hub.credentials import CredentialProvider, MappingCredentials
from analysis_hub.errors import AdapterError, AdapterParseError, Cancelled
from analysis_hub.models.raw import AdapterCapabilities, AdapterOutput, FailureReason

if TYPE_CHECKING:
    from analysis_hub.cache import ArtifactCache

logger = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024
DEFAULT_KILL_GRACE_SECONDS = 5.0


class CancellationToken:
    """Global cancellation signal for one analysis run.

    The first ``signal()`` requests cooperative cancellation; the second
    escalates to a forced stop, which subprocess runners honor by killing
    their children without waiting for the grace period.
    """

    def __init__(self) -> None:
        self._cancelled = asyncio.Event()
        self._forced = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def forced(self) -> bool:
        return self._forced.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def force(self) -> None:
        self._cancelled.set()
        self._forced.set()

    def signal(self) -> None:
        """Cancel on the first call, force on any later call."""
        if self.cancelled:
            logger.warning("Second interrupt received, force-killing adapters")
            self.force()
        else:
            logger.warning("Interrupt received, cancelling adapters")
            self.cancel()

    async def wait(self) -> None:
        await self._cancelled.wait()

    async def wait_forced(self) -> None:
        await self._forced.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise Cancelled("analysis run was cancelled")


@dataclass(frozen=True)
class AnalyzeOptions:
    """Immutable per-adapter snapshot handed to ``Adapter.analyze``."""

    project_root: str
    timeout_seconds: float = 60.0
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS
    settings: Mapping[str, Any] = field(default_factory=dict)
    credentials: CredentialProvider = field(default_factory=MappingCredentials)
    cache: "ArtifactCache | None" = None
    cancel_token: CancellationToken | None = None

    def __post_init__(self) -> None:
        """Freeze the settings mapping."""
        object.__setattr__(self, "settings", MappingProxyType(dict(self.settings)))

    def setting(self, key: str, default: Any = None) -> Any:
        """Read one adapter setting."""
        return self.settings.get(key, default)

    def replace(self, **changes: Any) -> "AnalyzeOptions":
        """Return a copy with some fields changed."""
        return dataclasses.replace(self, **changes)


@runtime_checkable
class Adapter(Protocol):
    """Uniform interface every tool adapter implements."""

    name: str
    tables: AdapterTables

    def is_available(self) -> bool:
        """Whether the tool or service can be used. Never raises."""
        ...

    async def get_version(self) -> str:
        """Tool version string, ``"unknown"`` on any failure."""
        ...

    async def analyze(self, targets: list[str], options: AnalyzeOptions) -> AdapterOutput:
        """Run the tool and return raw findings or a failure."""
        ...

    def capabilities(self) -> AdapterCapabilities:
        """Languages, entity kinds and budget class the adapter handles."""
        ...


AnalyzeFn = Callable[[Any, list[str], AnalyzeOptions], Awaitable[AdapterOutput]]


def guarded(func: AnalyzeFn) -> AnalyzeFn:
    """Decorate an ``analyze`` method so it returns failures instead of raising.

    ``asyncio.CancelledError`` still propagates for cooperative cancellation.
    """

    @functools.wraps(func)
    async def wrapper(self: Any, targets: list[str], options: AnalyzeOptions) -> AdapterOutput:
        name = getattr(self, "name", type(self).__name__)
        try:
            return await func(self, targets, options)
        except AdapterError as e:
            logger.warning(f"Adapter {name} failed ({e.reason.value}): {e}")
            return AdapterOutput.failed(e.reason, f"{name}: {e}")
        except Cancelled as e:
            raise asyncio.CancelledError(str(e)) from e
        except Exception as e:
            logger.exception(f"Adapter {name} raised unexpectedly")
            return AdapterOutput.failed(FailureReason.ERROR, f"{name}: {type(e).__name__}: {e}")

    return wrapper


async def version_or_unknown(probe: Callable[[], Awaitable[str]]) -> str:
    """Await a version probe, collapsing any failure to ``"unknown"``."""
    try:
        version = (await probe()).strip()
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.debug(f"Version probe failed: {e}")
        return "unknown"
    return version.splitlines()[0] if version else "unknown"


def parse_json_output(text: str, tool: str) -> Any:
    """Decode a tool's JSON output.

    Raises:
        AdapterParseError: If the output is empty or not valid JSON
    """
    if not text.strip():
        raise AdapterParseError(f"{tool} produced no output")
    try:
        return json.loads(text)
    except ValueError as e:
        raise AdapterParseError(f"{tool} output is not valid JSON: {e}") from e
