"""Canonical entity identification across analysis tools.

Every tool reports locations in its own shape: absolute paths, paths relative
to its own working directory, SARIF ``file://`` URIs, or component keys such
as ``project:src/App.java``. Correlation needs one representation, so all of
them are reduced to a project-root-relative, forward-slash path.
"""

import posixpath
import re
from pathlib import PurePath
from urllib.parse import unquote, urlparse

from analysis_hub.errors import InvalidEntity
from analysis_hub.models.entity import Entity, EntityKind

_DRIVE_RE = re.compile(r"^[A-Za-z]:/")


def _to_posix(path: str) -> str:
    return path.replace("\\", "/")


def _is_absolute(path: str) -> bool:
    return path.startswith("/") or bool(_DRIVE_RE.match(path))


def _decode_uri(path: str) -> str:
    if not path.startswith("file:"):
        return path
    decoded = unquote(urlparse(path).path)
    # file:///C:/repo/x parses to /C:/repo/x
    if re.match(r"^/[A-Za-z]:/", decoded):
        decoded = decoded[1:]
    return decoded


def _strip_component_key(path: str) -> str:
    """Reduce ``projectKey:path`` component keys to ``path``."""
    if _DRIVE_RE.match(_to_posix(path)):
        return path
    project, sep, rest = path.partition(":")
    if sep and rest and "/" not in project:
        return rest
    return path


def normalize_root(project_root: str | PurePath) -> str:
    """Normalize a project root to a collapsed forward-slash string."""
    root = posixpath.normpath(_to_posix(str(project_root)))
    return root.rstrip("/") or "/"


def canonicalize(
    kind: EntityKind,
    raw_path: str,
    project_root: str | PurePath,
    *,
    strip_component_prefix: bool = False,
) -> Entity:
    """Translate a raw tool identifier into a canonical entity.

    Args:
        kind: Kind of artifact the identifier names
        raw_path: Identifier exactly as the tool reported it
        project_root: Absolute project root the tool ran against
        strip_component_prefix: Reduce ``key:path`` component keys to ``path``

    Returns:
        Entity with a project-root-relative canonical path

    Raises:
        InvalidEntity: If the identifier is empty or escapes the project root
    """
    if raw_path is None or not str(raw_path).strip():
        raise InvalidEntity(str(raw_path), "empty identifier")

    original = str(raw_path)
    path = _decode_uri(original.strip())
    if strip_component_prefix:
        path = _strip_component_key(path)
    path = _to_posix(path)

    root = normalize_root(project_root)
    if _is_absolute(path):
        path = posixpath.normpath(path)
        if root != "/" and (path == root or path.startswith(root + "/")):
            path = path[len(root):]
        elif _DRIVE_RE.match(path):
            # outside the root: keep the path but drop the drive
            path = path[2:]
    else:
        path = posixpath.normpath(path)

    path = path.lstrip("/")
    if path in ("", "."):
        raise InvalidEntity(original, "identifier resolves to the project root")
    if ".." in path.split("/"):
        raise InvalidEntity(original, "identifier escapes the project root")

    display_name = path.rsplit("/", 1)[-1]
    return Entity(
        kind=kind,
        canonical_path=path,
        display_name=display_name,
        original_identifier=original,
    )


class Canonicalizer:
    """Canonicalizes identifiers against one fixed project root."""

    def __init__(self, project_root: str | PurePath, strip_component_prefix: bool = False) -> None:
        """Initialize the canonicalizer.

        Args:
            project_root: Absolute project root
            strip_component_prefix: Reduce ``key:path`` component keys to ``path``
        """
        self.project_root = normalize_root(project_root)
        self.strip_component_prefix = strip_component_prefix

    def entity(self, kind: EntityKind, raw_path: str) -> Entity:
        """Canonicalize a raw identifier into an entity."""
        return canonicalize(
            kind,
            raw_path,
            self.project_root,
            strip_component_prefix=self.strip_component_prefix,
        )

    def path(self, raw_path: str) -> str:
        """Canonicalize a raw file path and return only the canonical path."""
        return self.entity(EntityKind.FILE, raw_path).canonical_path
