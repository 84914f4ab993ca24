"""Command line entry point running demonstration chains."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.table import Table

from taskchain.config import Settings, clear_settings_cache, get_settings
from taskchain.scenarios import SCENARIOS, ScenarioReport
from taskchain.utils.logger import setup_logging

console = Console()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="taskchain",
        description="taskchain - run demonstration chains",
    )

    parser.add_argument(
        "scenarios",
        nargs="*",
        metavar="SCENARIO",
        help="Scenario(s) to run (see --list)",
    )

    parser.add_argument(
        "--all",
        action="store_true",
        help="Run every scenario",
    )

    parser.add_argument(
        "--list",
        action="store_true",
        help="List available scenarios",
    )

    parser.add_argument(
        "-c", "--config",
        type=str,
        help="Path to config file (default: config/config.yaml)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def print_scenarios() -> None:
    table = Table(title="Scenarios")
    table.add_column("Name", style="cyan")
    table.add_column("Expected")
    table.add_column("Description")
    for scenario in SCENARIOS.values():
        table.add_row(scenario.name, scenario.expected.name, scenario.description)
    console.print(table)


def print_report(report: ScenarioReport) -> None:
    status = "[green]OK[/green]" if report.passed else "[red]UNEXPECTED[/red]"
    outcome = report.result.outcome.name if report.result else "NONE"
    console.print(f"\n[bold]{report.name}[/bold]: {outcome} {status}")
    for line in report.lines:
        console.print(f"  {line}", markup=False)


async def run_scenarios(names: list[str], settings: Settings) -> int:
    """Run the named scenarios and return the number of unexpected outcomes."""
    failures = 0
    for name in names:
        report = await SCENARIOS[name].execute(settings)
        print_report(report)
        if not report.passed:
            failures += 1
    return failures


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    clear_settings_cache()
    settings = get_settings(args.config)

    level = logging.DEBUG if args.debug else settings.logging.level
    setup_logging(
        log_dir=settings.logging.log_dir,
        level=level,
        log_to_file=settings.logging.log_to_file,
    )

    if args.list:
        print_scenarios()
        return 0

    names = list(SCENARIOS) if args.all else args.scenarios
    if not names:
        print_scenarios()
        return 0

    unknown = [name for name in names if name not in SCENARIOS]
    if unknown:
        console.print(f"[red]Unknown scenario(s): {', '.join(unknown)}[/red]")
        return 2

    failures = asyncio.run(run_scenarios(names, settings))
    if failures:
        console.print(f"\n[red]{failures} scenario(s) ended unexpectedly[/red]")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
