"""Configuration loading and validation for analysis-hub."""

import os
import re
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from analysis_hub.credentials import MappingCredentials
from analysis_hub.errors import ConfigError

DEFAULT_CONFIG_FILE = "analysis-hub.yaml"
EXAMPLE_CONFIG_FILE = "analysis-hub.example.yaml"

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass
class OrchestratorSettings:
    """Orchestrator configuration."""

    max_concurrent: int = 4
    local_timeout_per_file: float = 60.0
    database_timeout: float = 600.0
    network_timeout: float = 120.0
    max_output_bytes: int = 10 * 1024 * 1024
    kill_grace_seconds: float = 5.0


@dataclass
class CorrelationSettings:
    """Correlation engine configuration."""

    line_bucket_size: int = 3


@dataclass
class AggregatorSettings:
    """Aggregator configuration."""

    hotspot_threshold: float = 40.0
    refactor_tool_count: int = 3


@dataclass
class CacheSettings:
    """Artifact cache configuration."""

    enabled: bool = True
    directory: str = ".analysis-hub/cache"
    default_max_age_seconds: int = 7 * 24 * 3600


@dataclass
class AdapterConfig:
    """Configuration for a single adapter."""

    name: str
    enabled: bool = True
    timeout_seconds: float | None = None
    settings: dict[str, Any] = field(default_factory=dict)


@dataclass
class ServerSettings:
    """HTTP server configuration."""

    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class Config:
    """Complete application configuration."""

    orchestrator: OrchestratorSettings = field(default_factory=OrchestratorSettings)
    correlation: CorrelationSettings = field(default_factory=CorrelationSettings)
    aggregator: AggregatorSettings = field(default_factory=AggregatorSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    adapters: dict[str, AdapterConfig] = field(default_factory=dict)
    credentials: dict[str, str] = field(default_factory=dict)
    server: ServerSettings = field(default_factory=ServerSettings)

    def adapter(self, name: str) -> AdapterConfig:
        """Configuration for ``name``, defaulting to enabled with no settings."""
        return self.adapters.get(name) or AdapterConfig(name=name)

    def credential_provider(self) -> MappingCredentials:
        """Credential provider over the configured secrets."""
        return MappingCredentials(self.credentials)


def find_config_file(config_path: Path | None = None) -> Path | None:
    """Locate the configuration file, falling back to the example file."""
    if config_path is not None:
        return config_path
    for candidate in (Path(DEFAULT_CONFIG_FILE), Path(EXAMPLE_CONFIG_FILE)):
        if candidate.exists():
            return candidate
    return None


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Path to config file (default: analysis-hub.yaml)

    Returns:
        Loaded configuration

    Raises:
        ConfigError: If the file is unreadable or malformed
    """
    path = find_config_file(config_path)

    raw_config: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path) as f:
                raw_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not load {path}: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Top level of {path} must be a mapping")

    raw_config = _expand_env_vars(raw_config)
    return parse_config(raw_config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand ``${VAR}`` references in config strings."""
    if isinstance(obj, str):
        return _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), ""), obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return section


def parse_config(raw: dict[str, Any]) -> Config:
    """Parse a raw config dict into a Config object.

    Raises:
        ConfigError: If a section has the wrong shape
    """
    orch_raw = _section(raw, "orchestrator")
    defaults = OrchestratorSettings()
    orchestrator = OrchestratorSettings(
        max_concurrent=orch_raw.get("max_concurrent", defaults.max_concurrent),
        local_timeout_per_file=orch_raw.get("local_timeout_per_file", defaults.local_timeout_per_file),
        database_timeout=orch_raw.get("database_timeout", defaults.database_timeout),
        network_timeout=orch_raw.get("network_timeout", defaults.network_timeout),
        max_output_bytes=orch_raw.get("max_output_bytes", defaults.max_output_bytes),
        kill_grace_seconds=orch_raw.get("kill_grace_seconds", defaults.kill_grace_seconds),
    )

    corr_raw = _section(raw, "correlation")
    correlation = CorrelationSettings(
        line_bucket_size=corr_raw.get("line_bucket_size", 3),
    )

    agg_raw = _section(raw, "aggregator")
    aggregator = AggregatorSettings(
        hotspot_threshold=agg_raw.get("hotspot_threshold", 40.0),
        refactor_tool_count=agg_raw.get("refactor_tool_count", 3),
    )

    cache_raw = _section(raw, "cache")
    cache = CacheSettings(
        enabled=cache_raw.get("enabled", True),
        directory=cache_raw.get("directory", CacheSettings.directory),
        default_max_age_seconds=cache_raw.get("default_max_age_seconds", CacheSettings.default_max_age_seconds),
    )

    adapters = {}
    for name, adapter_raw in _section(raw, "adapters").items():
        adapter_raw = adapter_raw or {}
        if not isinstance(adapter_raw, dict):
            raise ConfigError(f"Adapter '{name}' configuration must be a mapping")
        settings = adapter_raw.get("settings") or {}
        if not isinstance(settings, dict):
            raise ConfigError(f"Adapter '{name}' settings must be a mapping")
        adapters[name] = AdapterConfig(
            name=name,
            enabled=adapter_raw.get("enabled", True),
            timeout_seconds=adapter_raw.get("timeout_seconds"),
            settings=settings,
        )

    credentials = {k: str(v) for k, v in _section(raw, "credentials").items() if v}

    server_raw = _section(raw, "server")
    server = ServerSettings(
        host=server_raw.get("host", "127.0.0.1"),
        port=server_raw.get("port", 8080),
    )

    return Config(
        orchestrator=orchestrator,
        correlation=correlation,
        aggregator=aggregator,
        cache=cache,
        adapters=adapters,
        credentials=credentials,
        server=server,
    )


def validate_config(config: Config, known_adapters: Iterable[str] | None = None) -> list[str]:
    """Validate configuration and return list of errors.

    Args:
        config: Configuration to validate
        known_adapters: Registered adapter names, to catch typos

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []
    orch = config.orchestrator

    if orch.max_concurrent < 1:
        errors.append(f"orchestrator.max_concurrent must be >= 1 (got {orch.max_concurrent})")

    for key in ("local_timeout_per_file", "database_timeout", "network_timeout"):
        if getattr(orch, key) <= 0:
            errors.append(f"orchestrator.{key} must be positive (got {getattr(orch, key)})")

    if orch.max_output_bytes <= 0:
        errors.append(f"orchestrator.max_output_bytes must be positive (got {orch.max_output_bytes})")

    if orch.kill_grace_seconds < 0:
        errors.append(f"orchestrator.kill_grace_seconds must not be negative (got {orch.kill_grace_seconds})")

    if config.correlation.line_bucket_size < 1:
        errors.append(f"correlation.line_bucket_size must be >= 1 (got {config.correlation.line_bucket_size})")

    if not 0 <= config.aggregator.hotspot_threshold <= 100:
        errors.append(
            f"aggregator.hotspot_threshold must be within [0, 100] (got {config.aggregator.hotspot_threshold})"
        )

    if config.cache.default_max_age_seconds <= 0:
        errors.append("cache.default_max_age_seconds must be positive")

    known = set(known_adapters) if known_adapters is not None else None
    for name, adapter in sorted(config.adapters.items()):
        if known is not None and name not in known:
            errors.append(f"Unknown adapter '{name}' (known: {', '.join(sorted(known))})")
        if adapter.timeout_seconds is not None and adapter.timeout_seconds <= 0:
            errors.append(f"adapters.{name}.timeout_seconds must be positive")

    return errors


def config_to_dict(config: Config) -> dict[str, Any]:
    """Dump configuration for display, with credential values redacted."""
    data = asdict(config)
    data["credentials"] = {name: "***" for name in sorted(config.credentials)}
    return data
