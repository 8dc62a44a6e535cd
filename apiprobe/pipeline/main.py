"""CLI entry point for the endpoint health prober.

Loads the endpoint registry, probes every endpoint with bounded concurrency,
prints one live line per settled probe, and writes the JSON report.
"""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from apiprobe.models.config import ConfigManager, ProbeConfig
from apiprobe.models.data_models import Category, Endpoint, ProbeOutcome, Report
from apiprobe.pipeline.orchestrator import ProbeOrchestrator
from apiprobe.pipeline.output import JSONReportFormatter
from apiprobe.processor.aggregator import rank_by_latency


console = Console()

STATUS_LABELS = {
    Category.SUCCESS: "[green]✓ OK     [/green]",
    Category.SUCCESS_NO_DATA: "[yellow]⚠ NO DATA[/yellow]",
}
FAILED_LABEL = "[red]✗ FAILED [/red]"


@click.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(path_type=Path),
    default="config/config.yaml",
    help="Path to configuration YAML file (optional)",
)
@click.option(
    "--registry",
    "-r",
    type=str,
    help="Path to the endpoint registry JSON (overrides config)",
)
@click.option(
    "--concurrency",
    "-n",
    type=int,
    help="Maximum probes in flight (overrides config)",
)
@click.option(
    "--timeout",
    "-t",
    type=float,
    help="Per-probe timeout in seconds (overrides config)",
)
@click.option(
    "--retries",
    type=int,
    help="Retries after a network error (overrides config)",
)
@click.option(
    "--query",
    "-q",
    type=str,
    help="Query string appended to every API URL (overrides config)",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Report JSON file path (overrides config)",
)
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (overrides config)",
)
@click.option(
    "--no-progress",
    is_flag=True,
    help="Disable live per-endpoint lines (useful for CI/CD)",
)
@click.version_option(version="1.0.0", prog_name="apiprobe")
def main(
    config: Path,
    registry: Optional[str],
    concurrency: Optional[int],
    timeout: Optional[float],
    retries: Optional[int],
    query: Optional[str],
    output: Optional[Path],
    log_level: Optional[str],
    no_progress: bool,
) -> None:
    """
    API Health Probe - batch availability check for resource-site APIs.

    Probes every endpoint of the registry concurrently, classifies each
    result (ok, no data, HTTP error, timeout, network error) and writes a
    JSON report. Exits 0 whenever the run completes, however many endpoints
    failed.

    Examples:

        # Probe the endpoints in ./config.json
        $ apiprobe

        # Use another registry with more parallelism
        $ apiprobe --registry sites.json --concurrency 20 --timeout 5

        # Quiet run for CI/CD
        $ apiprobe --no-progress --output out/report.json
    """
    try:
        cli_overrides = {}
        if registry is not None:
            cli_overrides["registry_path"] = registry
        if concurrency is not None:
            cli_overrides["concurrency"] = concurrency
        if timeout is not None:
            cli_overrides["timeout"] = timeout
        if retries is not None:
            cli_overrides["max_retries"] = retries
        if query is not None:
            cli_overrides["test_query"] = query
        if log_level is not None:
            cli_overrides["log_level"] = log_level.upper()

        config_manager = ConfigManager(config)
        probe_config = config_manager.load_config(cli_overrides)
        endpoints = config_manager.load_endpoints(probe_config)

        output_path = output if output else probe_config.output_path

        _display_config_summary(probe_config, endpoints)

        try:
            report = asyncio.run(
                _run_probes(probe_config, endpoints, no_progress)
            )
        except asyncio.TimeoutError:
            console.print(
                f"\n[red]Error:[/red] run exceeded total_timeout of {probe_config.total_timeout}s",
                style="bold red"
            )
            sys.exit(1)

        formatter = JSONReportFormatter()
        formatter.save(report, str(output_path))

        _display_results(report, output_path, no_progress)

        sys.exit(0)

    except KeyboardInterrupt:
        console.print("\n[yellow]Run interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[red]Error:[/red] {escape(str(e))}", style="bold red")
        sys.exit(1)


async def _run_probes(
    config: ProbeConfig,
    endpoints: List[Endpoint],
    no_progress: bool,
) -> Report:
    """
    Run the probes, printing a line per endpoint as each one settles.

    Args:
        config: Prober configuration
        endpoints: Endpoints in registry order
        no_progress: Whether to suppress the live lines

    Returns:
        Run report
    """
    if no_progress:
        console.print("[cyan]Probing endpoints...[/cyan]")
        orchestrator = ProbeOrchestrator(config, endpoints)
    else:
        console.print("Probing...\n")
        orchestrator = ProbeOrchestrator(config, endpoints, on_result=_print_progress_line)
    return await orchestrator.run()


def _print_progress_line(outcome: ProbeOutcome) -> None:
    """Live line: label, display name, key, elapsed time."""
    label = STATUS_LABELS.get(outcome.status, FAILED_LABEL)
    name = escape(outcome.name.ljust(12))
    console.print(f"  {label} {name} [bright_black]{escape(outcome.key)}[/bright_black] "
                  f"[bright_black]{outcome.elapsed_ms}ms[/bright_black]")


def _display_config_summary(config: ProbeConfig, endpoints: List[Endpoint]) -> None:
    """Display run parameters before probing."""
    console.print("\n[bold cyan]API Health Probe[/bold cyan]")
    console.print(f"  Endpoints: {len(endpoints)}")
    console.print(f"  Concurrency: {config.concurrency}")
    console.print(f"  Timeout: {int(config.timeout * 1000)}ms")
    console.print(f"  Retries: {config.max_retries}")
    console.print()


def _display_results(
    report: Report,
    output_path: Path,
    no_progress: bool,
) -> None:
    """Display final results summary."""
    if no_progress:
        console.print(
            f"✓ Probe complete: {report.success_count} ok, {report.no_data_count} no data, "
            f"{report.failed_count} failed of {report.total_count}"
        )
        console.print(f"✓ Report saved to: {output_path}")
        return

    console.print()
    summary_table = Table(title="Probe Summary", show_header=False)
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Value", justify="right")

    summary_table.add_row("[green]✓ Available[/green]", str(report.success_count))
    summary_table.add_row("[yellow]⚠ No data[/yellow]", str(report.no_data_count))
    summary_table.add_row("[red]✗ Failed[/red]", str(report.failed_count))
    summary_table.add_row("Total", str(report.total_count))
    summary_table.add_row("Elapsed", f"{report.total_elapsed_ms / 1000:.2f}s")

    console.print(summary_table)
    console.print()

    failed = report.failed
    if failed:
        console.print("[red]Failed endpoints:[/red]\n")
        for outcome in failed:
            console.print(f"  [red]✗[/red] {escape(outcome.name)} ({escape(outcome.key)})")
            console.print(f"    [bright_black]API:[/bright_black] {escape(outcome.api)}")
            console.print(f"    [bright_black]Error:[/bright_black] {escape(outcome.error_message or '')}")
            console.print()

    ranked = rank_by_latency(report.results)
    if ranked:
        ranking_table = Table(title="Available Endpoints (fastest first)")
        ranking_table.add_column("#", justify="right", style="bright_black")
        ranking_table.add_column("Name", style="cyan")
        ranking_table.add_column("Key")
        ranking_table.add_column("Time", justify="right", style="green")
        ranking_table.add_column("Items", justify="right", style="magenta")

        for position, outcome in enumerate(ranked, start=1):
            ranking_table.add_row(
                str(position),
                escape(outcome.name),
                escape(outcome.key),
                f"{outcome.elapsed_ms}ms",
                str(outcome.item_count),
            )

        console.print(ranking_table)
        console.print()

    console.print(f"[bold]Report saved to:[/bold] {output_path}")
    console.print()


if __name__ == "__main__":
    main()
