"""CLI entry point for Gmail Sender Sweep."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import datetime, timezone

import click
from rich.logging import RichHandler

from . import constants
from .auth import get_mail_store, reset_token
from .checkpoint import CheckpointManager
from .cleaner import bulk_action
from .directory import SenderDirectory
from .display import (
    confirm_action,
    console,
    create_progress,
    display_bulk_summary,
    display_directory,
    display_outcome,
    display_status,
    display_variations,
)
from .errors import SweepError
from .exclusions import add_keeper, list_keepers, remove_keeper
from .export import export_directory
from .scanner import ScanConfig, run_scan
from .scheduler import WorkbookScheduler
from .variations import name_variation_rows, read_variation_report, write_variation_report
from .workbook import Workbook


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # The discovery client is chatty at INFO.
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)


def _open_workbook() -> Workbook:
    return Workbook(constants.WORKBOOK_PATH)


def _mail_store(unit: str):
    try:
        return get_mail_store(unit)
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(version="0.1.0", prog_name="gmail-sender-sweep")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """Gmail Sender Sweep - build a sender directory and clear out senders in bulk."""
    _configure_logging(verbose)


def _scan_loop(config: ScanConfig, resume: bool, follow: bool) -> None:
    with _open_workbook() as wb:
        checkpoints = CheckpointManager(wb)
        if resume:
            stored_unit = checkpoints.get_value("unit")
            if stored_unit in constants.UNITS:
                config = replace(config, unit=stored_unit)
        mail = _mail_store(config.unit)
        scheduler = WorkbookScheduler(checkpoints)

        while True:
            with create_progress("Scanning") as progress:
                task = progress.add_task("scanning", total=None)
                try:
                    outcome = run_scan(
                        mail,
                        wb,
                        config,
                        resume=resume,
                        scheduler=scheduler,
                        on_item=lambda count: progress.update(task, completed=count),
                    )
                except SweepError as e:
                    raise click.ClickException(str(e)) from e
            display_outcome(outcome)

            if outcome.complete or not follow:
                return
            resume = True
            next_at = scheduler.next_resume_at()
            wait = (next_at - datetime.now(timezone.utc)).total_seconds() if next_at else 0
            if wait > 0:
                console.print(f"[dim]Resuming in {wait:.0f}s (Ctrl+C to stop, progress is saved)[/dim]")
                time.sleep(wait)


def _check_time_budget(ctx, param, value: float) -> float:
    if value >= constants.EXECUTION_CEILING_SECONDS:
        raise click.BadParameter(
            f"must be below the {constants.EXECUTION_CEILING_SECONDS}s execution ceiling."
        )
    return value


def _budget_options(f):
    f = click.option(
        "--max-units",
        default=constants.MAX_UNITS_PER_RUN,
        show_default=True,
        type=click.IntRange(min=1),
        help="Items to process before pausing.",
    )(f)
    f = click.option(
        "--time-budget",
        default=constants.TIME_BUDGET_SECONDS,
        show_default=True,
        type=click.FloatRange(min=0, min_open=True),
        callback=_check_time_budget,
        help="Seconds to run before pausing.",
    )(f)
    f = click.option(
        "--page-size",
        default=constants.PAGE_SIZE,
        show_default=True,
        type=click.IntRange(min=1),
        help="Items listed per page.",
    )(f)
    f = click.option("--follow", is_flag=True, help="Keep resuming until the scan completes.")(f)
    return f


@cli.command()
@click.option("-q", "--query", default="", help="Gmail search query (e.g. 'before:2024/01/01').")
@click.option(
    "--unit",
    type=click.Choice(constants.UNITS),
    default="threads",
    show_default=True,
    help="Count threads or individual messages.",
)
@_budget_options
def scan(query: str, unit: str, page_size: int, max_units: int, time_budget: float, follow: bool) -> None:
    """Start a fresh scan of the mailbox."""
    config = ScanConfig(
        query=query, unit=unit, page_size=page_size, max_units=max_units, time_budget=time_budget
    )
    _scan_loop(config, resume=False, follow=follow)


@cli.command()
@_budget_options
def resume(page_size: int, max_units: int, time_budget: float, follow: bool) -> None:
    """Continue the last scan from where it stopped."""
    config = ScanConfig(page_size=page_size, max_units=max_units, time_budget=time_budget)
    _scan_loop(config, resume=True, follow=follow)


@cli.command()
def status() -> None:
    """Show where the last scan stopped."""
    with _open_workbook() as wb:
        checkpoints = CheckpointManager(wb)
        next_at = WorkbookScheduler(checkpoints).next_resume_at()
        display_status(
            checkpoints.load(),
            running_since=checkpoints.lock_holder(),
            next_resume=next_at.isoformat(timespec="seconds") if next_at else None,
        )


@cli.command()
@click.option("-n", "--limit", default=None, type=int, help="Show only the first N senders.")
@click.option("-s", "--search", default=None, help="Only senders whose name or email contains this.")
def senders(limit: int | None, search: str | None) -> None:
    """List the sender directory, most recent first."""
    with _open_workbook() as wb:
        directory = SenderDirectory(wb)
        if not directory.exists():
            raise click.ClickException("No sender directory found. Run 'scan' first.")
        rows = directory.load().sorted()
        date_format = directory.date_format()
        status_text = directory.status()

    if search:
        needle = search.lower()
        rows = [r for r in rows if needle in r.email or needle in r.primary_name.lower()]
    if limit is not None:
        rows = rows[:limit]
    display_directory(rows, date_format=date_format)
    if status_text:
        console.print(f"[dim]{status_text}[/dim]")


@cli.command()
@click.option("--rebuild", is_flag=True, help="Rebuild the report from the sender directory.")
def variations(rebuild: bool) -> None:
    """Show senders that use more than one display name."""
    with _open_workbook() as wb:
        if rebuild:
            directory = SenderDirectory(wb)
            if not directory.exists():
                raise click.ClickException("No sender directory found. Run 'scan' first.")
            write_variation_report(wb, name_variation_rows(directory.load()))
        rows = read_variation_report(wb)
    display_variations(rows)


def _parse_selection(selection: str, count: int) -> list[int] | None:
    """Turn '1,3,5-7' into zero-based indices; None if it does not parse."""
    indices: list[int] = []
    try:
        for part in selection.split(","):
            part = part.strip()
            if not part:
                continue
            if "-" in part:
                start, end = (int(x) for x in part.split("-", 1))
                indices.extend(range(start - 1, end))
            else:
                indices.append(int(part) - 1)
    except ValueError:
        return None
    return [i for i in dict.fromkeys(indices) if 0 <= i < count]


@cli.command()
@click.option(
    "--action",
    type=click.Choice(constants.ACTIONS),
    default="trash",
    show_default=True,
    help="Move to Trash, or delete permanently.",
)
@click.option("-e", "--email", "emails", multiple=True, help="Sender to clean (skips the picker).")
@click.option("--execute", is_flag=True, help="Actually change mail (default is dry-run).")
def clean(action: str, emails: tuple[str, ...], execute: bool) -> None:
    """Select senders and trash or delete all of their mail."""
    with _open_workbook() as wb:
        directory = SenderDirectory(wb)
        if not directory.exists():
            raise click.ClickException("No sender directory found. Run 'scan' first.")
        listed = directory.load().sorted()

        if emails:
            wanted = {e.strip().lower() for e in emails}
            selected = [s for s in listed if s.email in wanted]
            missing = wanted - {s.email for s in selected}
            if missing:
                console.print(f"[yellow]Not in the directory: {', '.join(sorted(missing))}[/yellow]")
        else:
            display_directory(listed, date_format=directory.date_format())
            console.print()
            console.print(
                "[bold]Select senders (e.g. 1,3,5-7, 'all', or 'q' to quit):[/bold]"
            )
            selection = console.input("> ").strip().lower()
            if selection == "q":
                console.print("[dim]Cancelled.[/dim]")
                return
            if selection == "all":
                selected = listed
            else:
                indices = _parse_selection(selection, len(listed))
                if indices is None:
                    raise click.ClickException("Invalid selection.")
                selected = [listed[i] for i in indices]

        if not selected:
            console.print("[yellow]No senders selected.[/yellow]")
            return

        if not execute:
            for s in selected:
                console.print(f"  - {s.email} ({s.message_count} items)")
            console.print(
                "\n[yellow][DRY RUN] No mail was changed. "
                "Use --execute to apply the action.[/yellow]"
            )
            return

        if not confirm_action(selected, action):
            console.print("[dim]Cancelled.[/dim]")
            return

        mail = _mail_store(CheckpointManager(wb).get_value("unit") or "threads")
        with create_progress("Cleaning senders") as progress:
            task = progress.add_task("cleaning", total=len(selected))
            try:
                summary = bulk_action(
                    mail,
                    wb,
                    [s.email for s in selected],
                    action,
                    callback=lambda outcome: progress.advance(task),
                    log_path=constants.ACTION_LOG_PATH,
                )
            except SweepError as e:
                raise click.ClickException(str(e)) from e

    display_bulk_summary(summary)


@cli.group(name="keepers")
def keepers_group() -> None:
    """Manage addresses that are never listed or cleaned."""


@keepers_group.command(name="add")
@click.argument("emails", nargs=-1, required=True)
def keepers_add(emails: tuple[str, ...]) -> None:
    """Add one or more keeper addresses."""
    with _open_workbook() as wb:
        for email in emails:
            try:
                added = add_keeper(wb, email)
            except ValueError as e:
                raise click.ClickException(str(e)) from e
            if added:
                console.print(f"[green]Added {email.strip().lower()}[/green]")
            else:
                console.print(f"[dim]{email.strip().lower()} is already a keeper[/dim]")


@keepers_group.command(name="remove")
@click.argument("email")
def keepers_remove(email: str) -> None:
    """Remove a keeper address."""
    with _open_workbook() as wb:
        removed = remove_keeper(wb, email)
    if not removed:
        raise click.ClickException(f"{email} is not a keeper.")
    console.print(f"[green]Removed {email.strip().lower()}[/green]")


@keepers_group.command(name="list")
def keepers_list() -> None:
    """List keeper addresses."""
    with _open_workbook() as wb:
        keepers = list_keepers(wb)
    if not keepers:
        console.print("[dim]No keepers.[/dim]")
        return
    for email in keepers:
        console.print(email)


@cli.command(name="export")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["csv", "json"]),
    default="csv",
    help="Output format.",
)
@click.option("-o", "--output", required=True, help="Output file path.")
def export_cmd(fmt: str, output: str) -> None:
    """Export the sender directory to CSV or JSON."""
    with _open_workbook() as wb:
        directory = SenderDirectory(wb)
        if not directory.exists():
            raise click.ClickException("No sender directory found. Run 'scan' first.")
        store = directory.load()

    count = export_directory(store, format=fmt, output_path=output)
    console.print(f"Saved {count} senders to {output}")


@cli.command()
@click.option("--reset", is_flag=True, help="Forget the saved token and sign in again.")
def auth(reset: bool) -> None:
    """Test or reset Gmail authentication."""
    if reset and reset_token():
        console.print("[dim]Saved token removed.[/dim]")
    mail = _mail_store("threads")
    try:
        owner = mail.owner_address()
    except Exception as exc:  # noqa: BLE001
        raise click.ClickException(f"Authentication failed: {exc}") from exc
    console.print(f"Authenticated as {owner}")


@cli.command()
@click.option("--lock", "lock_only", is_flag=True, help="Only clear a stuck 'scan running' flag.")
@click.confirmation_option(prompt="Reset scan progress?")
def reset(lock_only: bool) -> None:
    """Clear scan progress so the next scan starts over."""
    with _open_workbook() as wb:
        checkpoints = CheckpointManager(wb)
        if lock_only:
            checkpoints.release_lock()
            console.print("[green]Scan lock cleared.[/green]")
            return
        checkpoints.clear()
        for sheet in (constants.SENDERS_SHEET, constants.VARIATIONS_SHEET):
            if wb.has_sheet(sheet):
                wb.delete_sheet(sheet)
    console.print("[green]Scan progress and sender directory cleared.[/green]")
