"""Opaque credential providers for network adapters."""

from collections.abc import Mapping
from typing import Protocol, runtime_checkable


@runtime_checkable
class CredentialProvider(Protocol):
    """Looks up a named secret; returns None when it is not configured."""

    def get(self, name: str) -> str | None: ...


class MappingCredentials:
    """Credential provider backed by an in-memory mapping."""

    def __init__(self, values: Mapping[str, str | None] | None = None) -> None:
        self._values = {k: v for k, v in (values or {}).items() if v}

    def get(self, name: str) -> str | None:
        return self._values.get(name)

    def names(self) -> list[str]:
        """Names of configured credentials, never their values."""
        return sorted(self._values)

    def __repr__(self) -> str:
        return f"MappingCredentials(names={self.names()!r})"
