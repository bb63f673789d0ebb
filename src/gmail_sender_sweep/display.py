"""Rich-based display functions for Gmail Sender Sweep."""

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .constants import DATE_FORMAT
from .models import BulkSummary, Checkpoint, FullPage, ScanOutcome, ScanStatus, SenderAggregate

console = Console()

_STATUS_COLOR = {
    ScanStatus.SUCCESS: "green",
    ScanStatus.TIMEOUT: "yellow",
    ScanStatus.MAX_REACHED: "yellow",
}


def display_directory(
    senders: list[SenderAggregate],
    date_format: str = DATE_FORMAT,
    title: str = "Sender Directory",
) -> None:
    """Display senders in the order given, numbered for selection."""
    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name")
    table.add_column("Email")
    table.add_column("Last Date")
    table.add_column("Count", justify="right")

    total_messages = 0
    for idx, sender in enumerate(senders, start=1):
        total_messages += sender.message_count
        last = sender.last_seen.strftime(date_format) if sender.last_seen else "-"
        table.add_row(str(idx), sender.primary_name, sender.email, last, str(sender.message_count))

    console.print(table)
    console.print(
        Panel(
            f"Senders shown: {len(senders)}  |  Items: {total_messages}",
            title="Summary",
        )
    )


def display_variations(rows: list[list]) -> None:
    if not rows:
        console.print("[dim]No sender uses more than one display name.[/dim]")
        return
    table = Table(title="Name Variations")
    table.add_column("Email")
    table.add_column("Count", justify="right")
    table.add_column("Variations")
    table.add_column("#", justify="right")
    for email, count, variations, n in rows:
        table.add_row(str(email), str(count), str(variations), str(n))
    console.print(table)


def display_outcome(outcome: ScanOutcome) -> None:
    color = _STATUS_COLOR[outcome.status]
    console.print(Panel(f"[bold {color}]{outcome.message}[/bold {color}]", title="Scan"))


def display_status(
    checkpoint: Checkpoint | None,
    running_since: str | None = None,
    next_resume: str | None = None,
) -> None:
    if checkpoint is None:
        console.print("[dim]No scan has been run yet.[/dim]")
        return

    lines = [
        f"[bold]Status:[/bold] {checkpoint.status}",
        f"[bold]Items processed:[/bold] {checkpoint.processed_count}",
        f"[bold]Page token:[/bold] {checkpoint.page_token or '-'}",
        f"[bold]Last checkpoint:[/bold] {checkpoint.updated_at or '-'}",
    ]
    in_flight = checkpoint.in_flight
    if in_flight is not None:
        if isinstance(in_flight, FullPage):
            lines.append(
                f"[bold]In-flight page:[/bold] {in_flight.remaining} of {len(in_flight.items)} items left"
            )
        else:
            lines.append(f"[bold]In-flight page:[/bold] {in_flight.size} items, will be re-fetched")
    if running_since:
        lines.append(f"[bold yellow]Scan running since {running_since}[/bold yellow]")
    if next_resume:
        lines.append(f"[bold]Next resume:[/bold] {next_resume}")

    console.print(Panel("\n".join(lines), title="Scan Progress"))


def create_progress(description: str) -> Progress:
    """Create a configured Rich Progress bar."""
    return Progress(
        SpinnerColumn(),
        TextColumn(f"[bold blue]{description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    )


def confirm_action(selected: list[SenderAggregate], action: str) -> bool:
    """Staged confirmation; permanent delete asks twice."""
    total = sum(s.message_count for s in selected)
    verb = "trashed" if action == "trash" else "PERMANENTLY DELETED"

    lines = [f"[bold]Mail from these senders will be {verb}:[/bold]", ""]
    for sender in selected:
        lines.append(f"  - {sender.email} ({sender.message_count} items)")
    lines.append("")
    lines.append(f"[bold]Total items seen in the last scan: {total}[/bold]")
    console.print(Panel("\n".join(lines), title="Confirm"))

    word = "TRASH" if action == "trash" else "DELETE"
    answer = Prompt.ask(f'[bold red]Type "{word}" to confirm[/bold red]', console=console)
    if answer != word:
        return False
    if action == "delete":
        return Confirm.ask(
            "[bold red]Deleted mail cannot be recovered from Trash. Continue?[/bold red]",
            console=console,
            default=False,
        )
    return True


def display_bulk_summary(summary: BulkSummary) -> None:
    table = Table(title="Results")
    table.add_column("Email")
    table.add_column("Processed", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Result")
    for o in summary.outcomes:
        if o.error:
            result = f"[red]{o.error}[/red]"
        elif o.complete:
            result = "[green]done[/green]"
        else:
            result = "[yellow]incomplete, run again[/yellow]"
        table.add_row(o.email, str(o.processed), str(o.failed), result)
    console.print(table)

    verb = "trashed" if summary.action == "trash" else "permanently deleted"
    console.print(
        Panel(
            f"[bold green]{summary.total} items {verb} "
            f"from {len(summary.outcomes)} senders.[/bold green]",
            title="Done",
        )
    )
