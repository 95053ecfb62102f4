"""Command-line interface for analysis-hub."""

import asyncio
import logging
import signal
import sys
from pathlib import Path

import click
import uvicorn
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from analysis_hub import __version__
from analysis_hub.adapters.base import CancellationToken
from analysis_hub.adapters.registry import default_registry
from analysis_hub.analysis.serialization import to_json
from analysis_hub.config import Config, config_to_dict, load_config, validate_config
from analysis_hub.errors import ConfigError
from analysis_hub.models.result import AdapterStatus, AnalysisResult
from analysis_hub.pipeline import build_adapters, run_analysis
from analysis_hub.server import create_app

console = Console()

SEVERITY_STYLES = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "cyan",
    "info": "dim",
}

STATUS_STYLES = {
    AdapterStatus.RAN: "green",
    AdapterStatus.SKIPPED: "dim",
    AdapterStatus.FAILED: "red",
    AdapterStatus.CANCELLED: "yellow",
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def _load_or_exit(config_path: str | None) -> Config:
    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        sys.exit(1)

    errors = validate_config(config, default_registry().names())
    if errors:
        for error in errors:
            console.print(f"[red]Config error:[/red] {error}")
        sys.exit(1)
    return config


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def cli(verbose: bool) -> None:
    """analysis-hub - Unified code analysis across static, formal and cloud tools."""
    setup_logging(verbose)


@cli.command("analyze")
@click.argument("targets", nargs=-1, required=True)
@click.option("--root", "project_root", type=click.Path(exists=True, file_okay=False), default=".")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
@click.option("--adapter", "adapter_names", multiple=True, help="Run only this adapter (repeatable)")
@click.option("--output", type=click.Choice(["table", "json"]), default="table")
@click.option("--out", "out_path", type=click.Path(dir_okay=False), help="Also write JSON result to a file")
@click.option("--max-concurrent", type=int, help="Override orchestrator.max_concurrent")
def analyze(
    targets: tuple[str, ...],
    project_root: str,
    config_path: str | None,
    adapter_names: tuple[str, ...],
    output: str,
    out_path: str | None,
    max_concurrent: int | None,
) -> None:
    """Analyze TARGETS (files or directories) with the configured adapters.

    Press Ctrl-C once to cancel running adapters gracefully, twice to
    force-kill their processes.
    """
    config = _load_or_exit(config_path)
    if max_concurrent is not None:
        if max_concurrent < 1:
            console.print("[red]--max-concurrent must be >= 1[/red]")
            sys.exit(1)
        config.orchestrator.max_concurrent = max_concurrent

    registry = default_registry()
    unknown = [name for name in adapter_names if name not in registry]
    if unknown:
        console.print(f"[red]Unknown adapter(s):[/red] {', '.join(unknown)}")
        console.print(f"Known adapters: {', '.join(registry.names())}")
        sys.exit(1)

    result = asyncio.run(
        analyze_async(
            targets=list(targets),
            project_root=project_root,
            config=config,
            adapter_names=list(adapter_names) or None,
        )
    )

    if out_path:
        Path(out_path).write_text(to_json(result))
        console.print(f"📝 Wrote result to {out_path}")

    if output == "json":
        click.echo(to_json(result))
    else:
        print_result(result)

    if result.all_adapters_failed:
        sys.exit(1)


async def analyze_async(
    targets: list[str],
    project_root: str,
    config: Config,
    adapter_names: list[str] | None = None,
) -> AnalysisResult:
    """Run the pipeline with SIGINT wired to a cancellation token."""
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.signal)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        # not supported on this platform or outside the main thread
        handler_installed = False

    try:
        adapters = build_adapters(config, names=adapter_names)
        return await run_analysis(
            targets,
            project_root,
            adapters,
            config=config,
            cancel_token=token,
        )
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def print_result(result: AnalysisResult) -> None:
    """Render a result as rich tables."""
    summary = result.summary
    console.print(
        f"\n[bold]{summary.total_issues} issues[/bold] in {summary.files_with_issues} files, "
        f"{len(result.correlation_groups)} correlation groups, {summary.hotspot_count} hotspots"
    )
    if summary.dropped_findings:
        console.print(f"[yellow]{summary.dropped_findings} findings dropped during normalization[/yellow]")

    severities = "  ".join(
        f"[{SEVERITY_STYLES.get(name, '')}]{name}: {count}[/]"
        for name, count in summary.severity_counts.items()
        if count
    )
    if severities:
        console.print(severities)

    outcomes = Table(title="Adapters")
    outcomes.add_column("Adapter")
    outcomes.add_column("Status")
    outcomes.add_column("Reason")
    outcomes.add_column("Issues", justify="right")
    outcomes.add_column("Time", justify="right")
    outcomes.add_column("Version")
    for outcome in result.adapter_outcomes:
        style = STATUS_STYLES[outcome.status]
        outcomes.add_row(
            outcome.adapter,
            f"[{style}]{outcome.status.value}[/{style}]",
            outcome.reason.value if outcome.reason else "",
            str(outcome.issue_count),
            f"{outcome.duration_ms / 1000:.1f}s",
            outcome.version,
        )
    console.print(outcomes)

    if result.hotspots:
        hotspots = Table(title="Hotspots")
        hotspots.add_column("File")
        hotspots.add_column("Risk", justify="right")
        hotspots.add_column("Issues", justify="right")
        hotspots.add_column("Tools")
        hotspots.add_column("Actions")
        for hotspot in result.hotspots:
            hotspots.add_row(
                hotspot.canonical_path,
                f"{hotspot.risk_score:.1f}",
                str(hotspot.issue_count),
                ", ".join(hotspot.tool_coverage),
                ", ".join(hotspot.recommended_actions),
            )
        console.print(hotspots)

    if result.correlation_groups:
        groups = Table(title="Correlation Groups")
        groups.add_column("Type")
        groups.add_column("Risk", justify="right")
        groups.add_column("Tools")
        groups.add_column("Rationale")
        for group in result.correlation_groups[:20]:
            groups.add_row(
                group.correlation_type.value,
                f"{group.risk_score:.1f}",
                ", ".join(group.tools),
                group.rationale,
            )
        console.print(groups)
        if len(result.correlation_groups) > 20:
            console.print(f"[dim]... {len(result.correlation_groups) - 20} more groups[/dim]")

    for diagnostic in result.diagnostics:
        console.print(f"[yellow]⚠️  {diagnostic}[/yellow]")


@cli.command("adapters")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def list_adapters(config_path: str | None) -> None:
    """List registered adapters with availability and version."""
    config = _load_or_exit(config_path)
    adapters = build_adapters(config)

    async def probe() -> dict[str, str]:
        versions = await asyncio.gather(*(adapter.get_version() for adapter in adapters.values()))
        return dict(zip(adapters, versions))

    versions = asyncio.run(probe())

    table = Table(title="Adapters")
    table.add_column("Name")
    table.add_column("Enabled")
    table.add_column("Available")
    table.add_column("Languages")
    table.add_column("Version")
    for name, adapter in adapters.items():
        capabilities = adapter.capabilities()
        table.add_row(
            name,
            "yes" if config.adapter(name).enabled else "[dim]no[/dim]",
            "[green]yes[/green]" if adapter.is_available() else "[red]no[/red]",
            ", ".join(sorted(capabilities.languages)),
            versions[name],
        )
    console.print(table)


@cli.group("config")
def config_group() -> None:
    """Configuration commands."""
    pass


@config_group.command("validate")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def config_validate(config_path: str | None) -> None:
    """Validate configuration file."""
    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        sys.exit(1)

    errors = validate_config(config, default_registry().names())
    if errors:
        console.print("[red]Configuration is invalid:[/red]")
        for error in errors:
            console.print(f"  • {error}")
        sys.exit(1)
    console.print("[green]✓ Configuration is valid[/green]")


@config_group.command("show")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def config_show(config_path: str | None) -> None:
    """Show current configuration."""
    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        sys.exit(1)
    data = config_to_dict(config)

    console.print("\n[bold]Current Configuration[/bold]\n")
    for section in ("orchestrator", "correlation", "aggregator", "cache", "server"):
        console.print(f"[bold]{section}[/bold]")
        for key, value in data[section].items():
            console.print(f"  {key}: {value}")

    table = Table(title="Configured Adapters")
    table.add_column("Name")
    table.add_column("Enabled")
    table.add_column("Timeout")
    table.add_column("Settings")
    for name, adapter in sorted(config.adapters.items()):
        table.add_row(
            name,
            str(adapter.enabled),
            f"{adapter.timeout_seconds}s" if adapter.timeout_seconds else "default",
            ", ".join(f"{k}={v}" for k, v in adapter.settings.items()),
        )
    console.print(table)

    if data["credentials"]:
        console.print(f"\n[bold]Credentials:[/bold] {', '.join(data['credentials'])}")


@cli.command("serve")
@click.option("--port", type=int, help="Port to listen on")
@click.option("--host", help="Host to bind to")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file path")
def serve(port: int | None, host: str | None, config_path: str | None) -> None:
    """Start the HTTP analysis server."""
    config = _load_or_exit(config_path)
    host = host or config.server.host
    port = port or config.server.port

    app = create_app(config)

    console.print(f"🚀 Starting analysis server on {host}:{port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    cli()
