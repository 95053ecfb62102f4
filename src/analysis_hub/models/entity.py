"""Entity models for canonical code artifacts."""

from dataclasses import dataclass, field
from enum import Enum


class EntityKind(Enum):
    """Kinds of code artifact a finding can be about."""

    FILE = "file"
    MODULE = "module"
    INTERFACE = "interface"
    TYPE = "type"
    FUNCTION = "function"
    ARCHITECTURE = "architecture"


@dataclass(frozen=True)
class Entity:
    """A code artifact identified by ``(kind, canonical_path)``.

    Display fields do not take part in equality or hashing, so two entities
    reported by different tools compare equal when they point at the same
    artifact.
    """

    kind: EntityKind
    canonical_path: str
    display_name: str = field(default="", compare=False)
    original_identifier: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        """Validate the canonical path."""
        if not self.canonical_path:
            raise ValueError("canonical_path must not be empty")
        if self.canonical_path.startswith("/"):
            raise ValueError(f"canonical_path must be relative, got {self.canonical_path!r}")
        if ".." in self.canonical_path.split("/"):
            raise ValueError(f"canonical_path must not contain '..', got {self.canonical_path!r}")

    @property
    def identity(self) -> tuple[str, str]:
        """The identity key used for grouping."""
        return (self.kind.value, self.canonical_path)

    @property
    def is_file(self) -> bool:
        """Whether this entity is a file-kind entity."""
        return self.kind == EntityKind.FILE
