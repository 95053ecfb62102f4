"""Adapter registry mapping adapter names to factories."""

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from analysis_hub.adapters.bandit import BanditAdapter
from analysis_hub.adapters.base import Adapter
from analysis_hub.adapters.cbmc import CbmcAdapter
from analysis_hub.adapters.codeclimate import CodeclimateAdapter
from analysis_hub.adapters.codeql import CodeqlAdapter
from analysis_hub.adapters.eslint import EslintAdapter
from analysis_hub.adapters.semgrep import SemgrepAdapter
from analysis_hub.adapters.sonarqube import SonarqubeAdapter
from analysis_hub.credentials import CredentialProvider, MappingCredentials

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[Mapping[str, Any], CredentialProvider], Adapter]


class AdapterRegistry:
    """Name -> factory mapping for adapters."""

    def __init__(self, factories: Mapping[str, AdapterFactory] | None = None) -> None:
        self._factories: dict[str, AdapterFactory] = dict(factories or {})

    def register(self, name: str, factory: AdapterFactory) -> None:
        """Register a factory, replacing any previous one with the same name."""
        if name in self._factories:
            logger.debug(f"Replacing adapter factory {name}")
        self._factories[name] = factory

    def names(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def create(
        self,
        name: str,
        settings: Mapping[str, Any] | None = None,
        credentials: CredentialProvider | None = None,
    ) -> Adapter:
        """Instantiate one adapter.

        Raises:
            KeyError: If no adapter is registered under ``name``
        """
        if name not in self._factories:
            raise KeyError(f"Unknown adapter {name!r}; known: {', '.join(self.names())}")
        return self._factories[name](settings or {}, credentials or MappingCredentials())

    def create_all(
        self,
        names: Iterable[str] | None = None,
        settings: Mapping[str, Mapping[str, Any]] | None = None,
        credentials: CredentialProvider | None = None,
    ) -> dict[str, Adapter]:
        """Instantiate the named adapters (all registered ones by default)."""
        settings = settings or {}
        selected = sorted(names) if names is not None else self.names()
        return {name: self.create(name, settings.get(name), credentials) for name in selected}


def default_registry() -> AdapterRegistry:
    """Registry with every built-in adapter."""
    return AdapterRegistry(
        {
            BanditAdapter.name: BanditAdapter,
            CbmcAdapter.name: CbmcAdapter,
            CodeclimateAdapter.name: CodeclimateAdapter,
            CodeqlAdapter.name: CodeqlAdapter,
            EslintAdapter.name: EslintAdapter,
            SemgrepAdapter.name: SemgrepAdapter,
            SonarqubeAdapter.name: SonarqubeAdapter,
        }
    )
