"""Tests for entity canonicalization."""

import pytest


class TestCanonicalize:
    """Tests for canonicalize."""

    @pytest.mark.parametrize(
        "raw_path,expected",
        [
            ("./src/../src/app.ts", "src/app.ts"),
            ("/repo/src/app.ts", "src/app.ts"),
            ("src\\win\\path.cs", "src/win/path.cs"),
            ("file:///repo/src/app.ts", "src/app.ts"),
            ("file:///repo/src/with%20space.py", "src/with space.py"),
            ("src//double//slash.py", "src/double/slash.py"),
        ],
    )
    def test_relative_forward_slash_paths(self, raw_path, expected):
        """Test that varied tool paths reduce to one canonical path."""
        from analysis_hub.analysis.canonicalizer import canonicalize
        from analysis_hub.models.entity import EntityKind

        entity = canonicalize(EntityKind.FILE, raw_path, "/repo")

        assert entity.canonical_path == expected
        assert entity.original_identifier == raw_path

    def test_idempotent(self):
        """Test that canonicalizing a canonical path is a no-op."""
        from analysis_hub.analysis.canonicalizer import canonicalize
        from analysis_hub.models.entity import EntityKind

        once = canonicalize(EntityKind.FILE, "/repo/./lib/../lib/x.py", "/repo")
        twice = canonicalize(EntityKind.FILE, once.canonical_path, "/repo")

        assert once == twice
        assert twice.canonical_path == "lib/x.py"

    def test_root_with_trailing_slash(self):
        """Test that the project root is normalized before comparison."""
        from analysis_hub.analysis.canonicalizer import canonicalize
        from analysis_hub.models.entity import EntityKind

        assert canonicalize(EntityKind.FILE, "/repo/a.py", "/repo/").canonical_path == "a.py"

    def test_windows_drive_root(self):
        """Test drive-letter absolute paths under a Windows root."""
        from analysis_hub.analysis.canonicalizer import canonicalize
        from analysis_hub.models.entity import EntityKind

        entity = canonicalize(EntityKind.FILE, "C:\\work\\repo\\src\\a.c", "C:\\work\\repo")

        assert entity.canonical_path == "src/a.c"

    def test_component_prefix_stripped_when_requested(self):
        """Test that project-key prefixes are removed for server-side tools."""
        from analysis_hub.analysis.canonicalizer import canonicalize
        from analysis_hub.models.entity import EntityKind

        stripped = canonicalize(EntityKind.FILE, "my-proj:src/App.java", "/repo", strip_component_prefix=True)
        kept = canonicalize(EntityKind.FILE, "my-proj:src/App.java", "/repo")

        assert stripped.canonical_path == "src/App.java"
        assert kept.canonical_path == "my-proj:src/App.java"

    @pytest.mark.parametrize("raw_path", ["", "   ", ".", "/repo", "../outside.py", "src/../../x.py"])
    def test_invalid_identifiers(self, raw_path):
        """Test that empty or escaping identifiers raise InvalidEntity."""
        from analysis_hub.analysis.canonicalizer import canonicalize
        from analysis_hub.errors import InvalidEntity
        from analysis_hub.models.entity import EntityKind

        with pytest.raises(InvalidEntity):
            canonicalize(EntityKind.FILE, raw_path, "/repo")

    def test_non_file_kinds_keep_kind(self):
        """Test that module entities keep their kind."""
        from analysis_hub.analysis.canonicalizer import Canonicalizer
        from analysis_hub.models.entity import EntityKind

        entity = Canonicalizer("/repo").entity(EntityKind.MODULE, "/repo/pkg/sub")

        assert entity.kind == EntityKind.MODULE
        assert entity.canonical_path == "pkg/sub"
        assert entity.display_name == "sub"
