"""CLI entry point for the page monitor."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pagewatch.models.config import MonitorConfig, ProductConfig
from pagewatch.orchestrator import Orchestrator

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(config: str) -> MonitorConfig:
    try:
        return MonitorConfig.load(config)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Run 'pagewatch init' to create a default config.")
        sys.exit(1)


def _print_reports(reports: dict[str, str]) -> None:
    for fmt, path in reports.items():
        console.print(f"  {fmt.upper()} report: [blue]{path}[/blue]")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Daily visual and layout regression monitor"""
    setup_logging(verbose)


@cli.command()
@click.option("--product", "-p", default="default", help="Product name for the first URL")
@click.option("--url", "-u", prompt="Page URL", help="First page to monitor")
@click.option("--config", "-c", default="pagewatch.json", help="Config file path")
def init(product: str, url: str, config: str) -> None:
    """Create a default configuration file."""
    config_path = Path(config)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    cfg = MonitorConfig(products={product: ProductConfig(urls=[url])})
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print(f"\nSave a logged-in storage state to [blue]{cfg.storage_state_for(product)}[/blue], then run:")
    console.print("  [blue]pagewatch run[/blue]")


@cli.command()
@click.option("--config", "-c", default="pagewatch.json", help="Config file path")
@click.option("--date", "today", default=None, help="Run date (YYYY-MM-DD), defaults to today in UTC")
def capture(config: str, today: str | None) -> None:
    """Capture screenshots and layout snapshots of every configured page."""
    cfg = _load_config(config)
    orchestrator = Orchestrator(cfg, today)
    outcomes = orchestrator.run_capture()

    failed = [o for o in outcomes if o.failed]
    console.print(f"[green]Capture complete:[/green] {len(outcomes)} pages")
    for outcome in failed:
        console.print(f"  [red]✗ {outcome.result.url}[/red]")
        for reason in outcome.failure_reasons:
            console.print(f"      {reason}")
    if failed:
        sys.exit(1)


@cli.command()
@click.option("--config", "-c", default="pagewatch.json", help="Config file path")
@click.option("--date", "today", default=None, help="Run date (YYYY-MM-DD), defaults to today in UTC")
def report(config: str, today: str | None) -> None:
    """Compare today's captures with the previous run and write the daily report."""
    cfg = _load_config(config)
    orchestrator = Orchestrator(cfg, today)
    try:
        reports = orchestrator.run_report()
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        console.print("Run 'pagewatch capture' first.")
        sys.exit(1)
    console.print("[green]Report generated[/green]")
    _print_reports(reports)


@cli.command()
@click.option("--config", "-c", default="pagewatch.json", help="Config file path")
def run(config: str) -> None:
    """Run the full pipeline: capture → report → cleanup."""
    cfg = _load_config(config)
    orchestrator = Orchestrator(cfg)
    results = orchestrator.run_full_pipeline()

    console.print("\n[bold green]Run Complete[/bold green]")
    table = Table(title="Results Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Date", results["date"])
    table.add_row("Duration", f"{results['duration']}s")
    table.add_row("Pages", str(results["results"]["total"]))
    table.add_row("OK", f"[green]{results['results']['ok']}[/green]")
    table.add_row("Changes", f"[yellow]{results['results']['diff']}[/yellow]")
    table.add_row("Errors", f"[red]{results['results']['error']}[/red]")
    table.add_row("Removed old entries", str(results["removed"]))
    console.print(table)
    _print_reports(results["reports"])

    if results["failures"]:
        console.print(f"\n[red]{len(results['failures'])} page(s) failed[/red]")
        for url, reasons in results["failures"].items():
            console.print(f"  [red]✗ {url}[/red]: {'; '.join(reasons)}")
        sys.exit(1)


@cli.command()
@click.argument("date1")
@click.argument("date2")
@click.option("--config", "-c", default="pagewatch.json", help="Config file path")
def compare(date1: str, date2: str, config: str) -> None:
    """Compare the screenshots of two capture dates (YYYY-MM-DD)."""
    cfg = _load_config(config)
    orchestrator = Orchestrator(cfg)
    try:
        reports = orchestrator.compare_dates(date1, date2)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(f"[green]Comparison complete:[/green] {date1} vs {date2}")
    _print_reports(reports)


@cli.command("list")
@click.option("--config", "-c", default="pagewatch.json", help="Config file path")
def list_dates(config: str) -> None:
    """List available capture dates."""
    cfg = _load_config(config)
    dates = Orchestrator(cfg).available_dates()
    if not dates:
        console.print("[yellow]No captures found[/yellow]")
        return

    table = Table(title="Available Dates")
    table.add_column("Date", style="bold")
    table.add_column("Screenshots", justify="right")
    for date, count in dates:
        table.add_row(date, str(count))
    console.print(table)


@cli.command()
@click.argument("keep", type=int, required=False)
@click.option("--config", "-c", default="pagewatch.json", help="Config file path")
def cleanup(keep: int | None, config: str) -> None:
    """Delete all but the newest KEEP runs (defaults to keep_runs_count)."""
    cfg = _load_config(config)
    try:
        removed = Orchestrator(cfg).cleanup(keep)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(f"[green]Cleanup complete:[/green] removed {len(removed)} entries")


if __name__ == "__main__":
    cli()
