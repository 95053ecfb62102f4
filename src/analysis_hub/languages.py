"""Language detection and target expansion."""

import os
from collections.abc import Iterable
from pathlib import Path

EXTENSION_LANGUAGES = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".java": "java",
    ".kt": "kotlin",
    ".scala": "scala",
    ".c": "c",
    ".h": "c",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".go": "go",
    ".rb": "ruby",
    ".cs": "csharp",
    ".php": "php",
    ".rs": "rust",
    ".swift": "swift",
}

SKIP_DIRS = {
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    "__pycache__",
    ".venv",
    "venv",
    ".tox",
    "dist",
    "build",
    "target",
}


def detect_language(path: str) -> str | None:
    """Language of a file by extension, or None if unrecognized."""
    return EXTENSION_LANGUAGES.get(os.path.splitext(path)[1].lower())


def languages_of(paths: Iterable[str]) -> set[str]:
    """Distinct languages among the given files."""
    return {lang for lang in map(detect_language, paths) if lang}


def expand_targets(targets: Iterable[str], project_root: str) -> list[str]:
    """Expand files and directories into a sorted, de-duplicated file list.

    Relative targets are resolved against ``project_root``. Version control,
    dependency and build directories are skipped. Missing targets are
    ignored. This walks the file system and should run off the event loop.
    """
    root = Path(project_root)
    files: set[str] = set()
    for target in targets:
        path = Path(target)
        if not path.is_absolute():
            path = root / path
        if path.is_file():
            files.add(str(path))
        elif path.is_dir():
            for dirpath, dirnames, filenames in os.walk(path):
                dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS and not d.startswith("."))
                files.update(os.path.join(dirpath, name) for name in filenames)
    return sorted(files)


def relevant_files(files: Iterable[str], languages: frozenset[str] | set[str]) -> list[str]:
    """Files whose language an adapter handles; ``"*"`` accepts any source file."""
    if "*" in languages:
        return [f for f in files if detect_language(f)]
    return [f for f in files if detect_language(f) in languages]
