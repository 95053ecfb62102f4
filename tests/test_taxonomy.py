"""Tests for severity, analysis-type and rule-family tables."""


class TestResolveSeverity:
    """Tests for resolve_severity."""

    def test_grade_f_is_critical(self):
        """Test that grade F maps to critical via the grade table."""
        from analysis_hub.adapters.tables import CODECLIMATE_TABLES
        from analysis_hub.analysis.taxonomy import resolve_severity
        from analysis_hub.models.issue import Severity

        assert resolve_severity(CODECLIMATE_TABLES, "F") == (Severity.CRITICAL, True)
        assert resolve_severity(CODECLIMATE_TABLES, "a") == (Severity.INFO, True)

    def test_unknown_severity_defaults_to_medium(self):
        """Test that unmapped severities fall back to the documented default."""
        from analysis_hub.adapters.tables import ESLINT_TABLES
        from analysis_hub.analysis.taxonomy import resolve_severity
        from analysis_hub.models.issue import Severity

        assert resolve_severity(ESLINT_TABLES, "bogus") == (Severity.MEDIUM, False)
        assert resolve_severity(ESLINT_TABLES, None) == (Severity.MEDIUM, False)

    def test_case_insensitive(self):
        """Test that native severities match regardless of case."""
        from analysis_hub.adapters.tables import ESLINT_TABLES
        from analysis_hub.analysis.taxonomy import resolve_severity
        from analysis_hub.models.issue import Severity

        assert resolve_severity(ESLINT_TABLES, "ERROR") == (Severity.HIGH, True)
        assert resolve_severity(ESLINT_TABLES, "Warning") == (Severity.MEDIUM, True)

    def test_grades_ignored_without_grade_support(self):
        """Test that letter grades only apply to grading tools."""
        from analysis_hub.adapters.tables import ESLINT_TABLES
        from analysis_hub.analysis.taxonomy import resolve_severity

        assert resolve_severity(ESLINT_TABLES, "F")[1] is False


class TestAnalysisTypeAndFamily:
    """Tests for analysis type and rule family lookups."""

    def test_category_fallback(self):
        """Test that unknown categories use the adapter default."""
        from analysis_hub.analysis.taxonomy import AdapterTables, resolve_analysis_type
        from analysis_hub.models.issue import AnalysisType, Severity

        tables = AdapterTables(
            severity_map={"x": Severity.LOW},
            default_analysis_type=AnalysisType.QUALITY,
            category_map={"Security": AnalysisType.SECURITY},
        )

        assert resolve_analysis_type(tables, "security") == AnalysisType.SECURITY
        assert resolve_analysis_type(tables, "style") == AnalysisType.QUALITY
        assert resolve_analysis_type(tables, None) == AnalysisType.QUALITY

    def test_rule_family_exact_and_pattern(self):
        """Test exact rule-family entries and regex patterns."""
        from analysis_hub.analysis.taxonomy import AdapterTables, resolve_rule_family
        from analysis_hub.models.issue import AnalysisType, Severity

        tables = AdapterTables(
            severity_map={"x": Severity.LOW},
            default_analysis_type=AnalysisType.QUALITY,
            rule_families={"B608": "sql-injection"},
            family_patterns=((r"sql", "sql-injection"),),
        )

        assert resolve_rule_family(tables, "b608") == "sql-injection"
        assert resolve_rule_family(tables, "python.lang.sql-format") == "sql-injection"
        assert resolve_rule_family(tables, "no-unused-vars") is None
        assert resolve_rule_family(tables, None) is None
