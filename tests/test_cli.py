"""Tests for CLI commands."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from conftest import FakeAdapter, raw


@pytest.fixture
def config_file(tmp_path):
    """Minimal config file with the cache disabled."""
    path = tmp_path / "analysis-hub.yaml"
    path.write_text("cache:\n  enabled: false\n")
    return path


class TestCLI:
    """Tests for CLI commands."""

    def test_cli_help(self):
        """Test that CLI shows help."""
        from analysis_hub.cli import cli

        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "Unified code analysis" in result.output
        assert "analyze" in result.output

    def test_version(self):
        """Test the version option."""
        from analysis_hub import __version__
        from analysis_hub.cli import cli

        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_analyze_table_output(self, project, config_file):
        """Test analyze renders tables from a real pipeline run."""
        from analysis_hub.cli import cli

        adapters = {
            "x": FakeAdapter("x", [raw("a.py", line=3, severity="error")]),
            "y": FakeAdapter("y", [raw("a.py", line=4, severity="error")]),
        }

        with patch("analysis_hub.cli.build_adapters", return_value=adapters):
            result = CliRunner().invoke(
                cli,
                ["analyze", ".", "--root", str(project), "--config", str(config_file)],
                catch_exceptions=False,
            )

        assert result.exit_code == 0
        assert "2 issues" in result.output
        assert "Adapters" in result.output
        assert "a.py" in result.output

    def test_analyze_json_output(self, project, config_file, tmp_path):
        """Test analyze --output json prints the encoded result and writes --out."""
        from analysis_hub.cli import cli

        adapters = {"x": FakeAdapter("x", [raw("a.py")])}
        out = tmp_path / "result.json"

        with patch("analysis_hub.cli.build_adapters", return_value=adapters):
            result = CliRunner().invoke(
                cli,
                [
                    "analyze",
                    ".",
                    "--root",
                    str(project),
                    "--config",
                    str(config_file),
                    "--output",
                    "json",
                    "--out",
                    str(out),
                ],
            )

        assert result.exit_code == 0
        written = json.loads(out.read_text())
        assert written["summary"]["total_issues"] == 1
        assert written["issues"][0]["entity"]["canonical_path"] == "a.py"
        assert '"schema_version": 1' in result.output

    def test_analyze_all_failed_exit_code(self, project, config_file):
        """Test that analyze exits non-zero when every adapter fails."""
        from analysis_hub.cli import cli
        from analysis_hub.models.raw import FailureReason

        adapters = {"x": FakeAdapter("x", failure=FailureReason.PARSE_ERROR)}

        with patch("analysis_hub.cli.build_adapters", return_value=adapters):
            result = CliRunner().invoke(
                cli, ["analyze", ".", "--root", str(project), "--config", str(config_file)]
            )

        assert result.exit_code == 1

    def test_analyze_passes_options(self, project, config_file):
        """Test that adapter selection and concurrency reach the pipeline."""
        from analysis_hub.cli import cli

        with patch("analysis_hub.cli.analyze_async", new_callable=AsyncMock) as mock_analyze, patch(
            "analysis_hub.cli.print_result"
        ):
            mock_analyze.return_value = MagicMock(all_adapters_failed=False)

            result = CliRunner().invoke(
                cli,
                [
                    "analyze",
                    "src",
                    "a.py",
                    "--root",
                    str(project),
                    "--config",
                    str(config_file),
                    "--adapter",
                    "semgrep",
                    "--adapter",
                    "bandit",
                    "--max-concurrent",
                    "2",
                ],
                catch_exceptions=False,
            )

        assert result.exit_code == 0
        call_args = mock_analyze.call_args
        assert call_args.kwargs["targets"] == ["src", "a.py"]
        assert call_args.kwargs["adapter_names"] == ["semgrep", "bandit"]
        assert call_args.kwargs["config"].orchestrator.max_concurrent == 2

    def test_analyze_unknown_adapter(self, project, config_file):
        """Test that unknown adapter names are rejected before running."""
        from analysis_hub.cli import cli

        with patch("analysis_hub.cli.analyze_async", new_callable=AsyncMock) as mock_analyze:
            result = CliRunner().invoke(
                cli,
                ["analyze", ".", "--root", str(project), "--config", str(config_file), "--adapter", "pylint"],
            )

        assert result.exit_code == 1
        assert "Unknown adapter" in result.output
        mock_analyze.assert_not_called()

    def test_analyze_rejects_zero_concurrency(self, project, config_file):
        """Test that --max-concurrent must be positive."""
        from analysis_hub.cli import cli

        result = CliRunner().invoke(
            cli,
            ["analyze", ".", "--root", str(project), "--config", str(config_file), "--max-concurrent", "0"],
        )

        assert result.exit_code == 1

    def test_adapters_command(self, config_file):
        """Test adapters lists availability and versions."""
        from analysis_hub.cli import cli

        adapters = {
            "fake-ok": FakeAdapter("fake-ok", version="2.3.4"),
            "fake-missing": FakeAdapter("fake-missing", available=False, languages=frozenset({"c"})),
        }

        with patch("analysis_hub.cli.build_adapters", return_value=adapters):
            result = CliRunner().invoke(cli, ["adapters", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "fake-ok" in result.output
        assert "2.3.4" in result.output
        assert "fake-missing" in result.output


class TestConfigCommands:
    """Tests for the config command group."""

    def test_config_validate_command(self, config_file):
        """Test config validate on a valid file."""
        from analysis_hub.cli import cli

        result = CliRunner().invoke(cli, ["config", "validate", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "valid" in result.output.lower()

    def test_config_validate_invalid(self, tmp_path):
        """Test config validate reports every error."""
        from analysis_hub.cli import cli

        path = tmp_path / "bad.yaml"
        path.write_text("orchestrator:\n  max_concurrent: 0\nadapters:\n  pylint: {}\n")

        result = CliRunner().invoke(cli, ["config", "validate", "--config", str(path)])

        assert result.exit_code == 1
        assert "Configuration is invalid" in result.output
        assert "max_concurrent" in result.output
        assert "pylint" in result.output

    def test_config_validate_malformed(self, tmp_path):
        """Test config validate on unparseable YAML."""
        from analysis_hub.cli import cli

        path = tmp_path / "broken.yaml"
        path.write_text("orchestrator: [unclosed\n")

        result = CliRunner().invoke(cli, ["config", "validate", "--config", str(path)])

        assert result.exit_code == 1
        assert "Error loading config" in result.output

    def test_config_show_redacts_credentials(self, tmp_path, monkeypatch):
        """Test config show lists credential names but never values."""
        from analysis_hub.cli import cli

        monkeypatch.setenv("SONARQUBE_TOKEN", "squ_secret_value")
        path = tmp_path / "analysis-hub.yaml"
        path.write_text(
            "adapters:\n"
            "  sonarqube:\n"
            "    timeout_seconds: 30\n"
            "    settings:\n"
            "      project_key: demo\n"
            "credentials:\n"
            "  sonarqube_token: ${SONARQUBE_TOKEN}\n"
        )

        result = CliRunner().invoke(cli, ["config", "show", "--config", str(path)])

        assert result.exit_code == 0
        assert "sonarqube_token" in result.output
        assert "squ_secret_value" not in result.output
        assert "project_key=demo" in result.output


class TestAnalyzeAsync:
    """Tests for analyze_async."""

    @pytest.mark.asyncio
    async def test_builds_selected_adapters(self, project, no_cache_config):
        """Test that only the selected adapters are built and run."""
        from analysis_hub.cli import analyze_async

        adapters = {"x": FakeAdapter("x", [raw("a.py")])}

        with patch("analysis_hub.cli.build_adapters", return_value=adapters) as mock_build:
            result = await analyze_async(["."], str(project), no_cache_config, adapter_names=["x"])

        assert mock_build.call_args.kwargs["names"] == ["x"]
        assert result.summary.total_issues == 1
        assert adapters["x"].calls
