from typing import Iterable, List, Tuple

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .types import ValidationReport

# Paths and placeholders contain square brackets, so dynamic text is always
# escaped before it reaches rich markup.
console = Console(soft_wrap=True, emoji=False, highlight=False)
err_console = Console(stderr=True, soft_wrap=True, emoji=False, highlight=False)


def print_error(message: str) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {escape(message)}")


def print_warning(message: str) -> None:
    err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}")


def print_success(message: str) -> None:
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_header(title: str, subtitle: str = "") -> None:
    body = f"[bold cyan]{escape(title)}[/bold cyan]"
    if subtitle:
        body += f"\n{escape(subtitle)}"
    console.print(Panel(body, expand=False))


def print_details(rows: Iterable[Tuple[str, str]]) -> None:
    """Prints 'label: value' lines; kept as plain text so long paths never wrap."""
    for label, value in rows:
        console.print(f"  [cyan]{escape(label)}:[/cyan] {escape(value)}")


def print_findings(report: ValidationReport) -> None:
    """
    Prints every finding of a report as an ERROR/WARN line.

    Args:
        report (ValidationReport): The report to print.

    Returns:
        None
    """
    for finding in report["findings"]:
        if finding["severity"] == "error":
            line = f"[red]ERROR:[/red] {escape(finding['message'])}"
        else:
            line = f"[yellow]WARN:[/yellow] {escape(finding['message'])}"
        if finding["detail"]:
            line += f" ({escape(finding['detail'])})"
        console.print(line)


def print_report_summary(title: str, report: ValidationReport, passed: bool) -> None:
    """Prints the error/warning totals and the overall result."""
    table = Table(title=title)
    table.add_column("Check", style="cyan")
    table.add_column("Result", justify="right")
    table.add_row("Errors", f"[red]{report['errors']}[/red]" if report["errors"] else "0")
    table.add_row(
        "Warnings", f"[yellow]{report['warnings']}[/yellow]" if report["warnings"] else "0"
    )
    table.add_row("Status", "[green]PASS[/green]" if passed else "[red]FAIL[/red]")
    console.print(table)


def print_list(title: str, items: List[str]) -> None:
    if not items:
        return
    console.print(f"\n[bold]{escape(title)}[/bold]")
    for item in items:
        console.print(f"- {escape(item)}")
