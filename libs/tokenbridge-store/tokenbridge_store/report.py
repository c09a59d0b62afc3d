"""Rich rendering of dual-run comparisons and pre-sync validation reports."""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tokenbridge_core.presync import Severity, ValidationReport

from tokenbridge_store.dualrun import ComparisonResult

MAX_VALUE_ROWS = 20


def _fmt(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def render_comparison(result: ComparisonResult, console: Console | None = None) -> None:
    """Print a summary panel plus one table per kind of difference."""
    console = console or Console()

    if result.identical:
        status = Text("identical", style="bold green")
    elif result.exceeds_threshold:
        status = Text("at or above threshold", style="bold red")
    else:
        status = Text("within threshold", style="bold yellow")

    summary = Table.grid(padding=(0, 2))
    summary.add_column(justify="left")
    summary.add_column(justify="left")
    summary.add_row("[bold]Records:[/bold]", str(result.total))
    summary.add_row("[bold]Differences:[/bold]", str(result.total_differences))
    summary.add_row(
        "[bold]Discrepancy:[/bold]",
        f"{result.discrepancy_rate:.2%} (threshold {result.threshold:.2%})",
    )
    summary.add_row("[bold]Status:[/bold]", status)
    console.print(Panel(summary, title="Dual-run comparison", expand=True))

    if result.only_in_legacy or result.only_in_candidate:
        table = Table(title="Missing records", show_header=True, header_style="bold")
        table.add_column("Identity")
        table.add_column("Present in")
        for identity in result.only_in_legacy:
            table.add_row(identity, "[red]legacy only[/red]")
        for identity in result.only_in_candidate:
            table.add_row(identity, "[green]candidate only[/green]")
        console.print(table)

    if result.value_mismatches:
        table = Table(title="Value mismatches", show_header=True, header_style="bold")
        table.add_column("Identity")
        table.add_column("Legacy", style="red")
        table.add_column("Candidate", style="green")
        for m in result.value_mismatches[:MAX_VALUE_ROWS]:
            table.add_row(m.identity, _fmt(m.legacy_value), _fmt(m.candidate_value))
        console.print(table)
        hidden = len(result.value_mismatches) - MAX_VALUE_ROWS
        if hidden > 0:
            console.print(f"[dim]... and {hidden} more[/dim]")

    if result.type_mismatches:
        table = Table(title="Type mismatches", show_header=True, header_style="bold")
        table.add_column("Identity")
        table.add_column("Legacy", style="red")
        table.add_column("Candidate", style="green")
        for m in result.type_mismatches:
            table.add_row(m.identity, m.legacy_type, m.candidate_type)
        console.print(table)


_SEVERITY_STYLE = {Severity.ERROR: "red", Severity.WARNING: "yellow", Severity.INFO: "cyan"}


def render_validation(report: ValidationReport, console: Console | None = None) -> None:
    console = console or Console()
    if not report.issues:
        console.print("[green][OK][/green] All tokens are ready to sync")
        return

    table = Table(title="Pre-sync issues", show_header=True, header_style="bold")
    table.add_column("Severity")
    table.add_column("Token")
    table.add_column("Code")
    table.add_column("Message")
    table.add_column("Fix", style="dim")
    for issue in report.issues:
        style = _SEVERITY_STYLE[issue.severity]
        table.add_row(
            f"[{style}]{issue.severity.value}[/{style}]",
            "/".join(issue.token_path),
            issue.code,
            Text(issue.message),
            Text(issue.fix or ""),
        )
    console.print(table)
    console.print(
        f"{report.error_count} error(s), {report.warning_count} warning(s), {report.info_count} info"
    )
