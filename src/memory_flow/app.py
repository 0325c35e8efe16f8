"""Interactive CLI application."""
import calendar
import logging
from datetime import datetime

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt
from rich.table import Table

from memory_flow.activity import (
    active_dates, get_study_stats, month_progress, notes_created_on, shift_month,
)
from memory_flow.config import get_intervals, get_log_level
from memory_flow.db import init_db, DEFAULT_DB_PATH
from memory_flow.notes import (
    create_note, delete_note, get_log_entries, load_items, record_review,
)
from memory_flow.scheduler import Status, classify, partition_and_sort

console = Console()

EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """Raised when the user leaves a review session early."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def configure_logging() -> None:
    logging.basicConfig(
        level=get_log_level(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def show_welcome():
    console.print(Panel(
        "[bold]Memory Flow[/bold]\n[dim]Capture ideas, review memories[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("review", "Review due notes"),
        ("add", "Write a new note"),
        ("list", "All notes by schedule"),
        ("record", "Study log calendar"),
        ("delete", "Delete a note"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<10}[/cyan] {desc}")


def _note_heading(item) -> str:
    return item.title or item.created_at.strftime("%Y/%m/%d %H:%M")


def run_review_session(db_path: str, items: list, clock=datetime.now) -> int:
    """Walk through due notes; returns the number remembered."""
    if not items:
        console.print("[green]You're all caught up![/green]")
        return 0
    intervals = get_intervals(db_path)
    remembered = 0
    console.print(f"\n[bold]Review[/bold] - {len(items)} notes\n")
    for i, item in enumerate(items, 1):
        verdict = classify(item, clock(), intervals)
        style = "red" if verdict.status is Status.EXPIRED else "cyan"
        console.print(Panel(
            escape(item.content),
            title=f"{i}/{len(items)} {escape(_note_heading(item))} ({verdict.label})",
            border_style=style,
        ))
        if item.body:
            session_prompt("[dim]Press Enter to reveal[/dim]", default="")
            console.print(Panel(escape(item.body), border_style="green"))
        answer = session_prompt("Did you remember it? (r=remembered, f=forgot)", choices=["r", "f", "q"])
        review = record_review(db_path, item.id, answer == "r", clock(), intervals)
        if review.log_entry is not None:
            remembered += 1
        after = classify(review.item, clock(), intervals)
        console.print(f"[dim]Stage {review.item.review_stage}, {after.label}[/dim]\n")
    return remembered


def cmd_review(db_path: str):
    partition = partition_and_sort(load_items(db_path), datetime.now(), get_intervals(db_path))
    try:
        count = run_review_session(db_path, partition.due)
    except SessionExitRequested:
        console.print("[dim]Review paused.[/dim]")
        return
    if partition.due:
        console.print(f"[bold]Remembered {count}/{len(partition.due)}[/bold]")


def cmd_add(db_path: str):
    content = Prompt.ask("Note").strip()
    if not content:
        console.print("[yellow]Nothing to save.[/yellow]")
        return
    title = Prompt.ask("Title (optional)", default="").strip() or None
    body = Prompt.ask("Answer / details (optional)", default="").strip() or None
    item = create_note(db_path, content, datetime.now(), title=title, body=body)
    console.print(f"[green]Saved note {item.id}.[/green]")


def cmd_list(db_path: str):
    now = datetime.now()
    intervals = get_intervals(db_path)
    partition = partition_and_sort(load_items(db_path), now, intervals)
    table = Table(title="All Memories")
    table.add_column("ID", justify="right")
    table.add_column("Note")
    table.add_column("Stage", justify="right")
    table.add_column("Status")

    def add_rows(items):
        for item in items:
            verdict = classify(item, now, intervals)
            color = {Status.EXPIRED: "red", Status.NEW: "cyan", Status.DUE: "yellow",
                     Status.MASTERED: "green"}.get(verdict.status, "white")
            table.add_row(str(item.id), escape(item.title or item.content[:40]),
                          str(item.review_stage), f"[{color}]{verdict.label}[/{color}]")

    add_rows(partition.due)
    for days in partition.upcoming:
        add_rows(partition.upcoming[days])
    add_rows(partition.mastered)
    console.print(table)


def show_month(month, today, active) -> None:
    table = Table(title=month.strftime("%B %Y"))
    for name in ("SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"):
        table.add_column(name, justify="center")
    for week in calendar.Calendar(firstweekday=6).monthdatescalendar(month.year, month.month):
        cells = []
        for day in week:
            if day.month != month.month:
                cells.append("")
                continue
            mark = "[green]✓[/green]" if day in active else ""
            text = f"[bold]{day.day}[/bold]" if day == today else str(day.day)
            cells.append(f"{text}{mark}")
        table.add_row(*cells)
    console.print(table)
    days_active, days_total = month_progress(active, month, today)
    console.print(f"\n  Study Log: [bold]{days_active}[/bold] / {days_total} days")


def show_day(items, day) -> None:
    created = notes_created_on(items, day)
    if not created:
        console.print(f"[dim]No notes created on {day.strftime('%b %d')}.[/dim]")
        return
    console.print(f"[bold]{day.strftime('%b %d')} - Created Notes[/bold]")
    for item in created:
        console.print(f"  - {escape(_note_heading(item))}")


def cmd_record(db_path: str, today=None):
    today = today or datetime.now().date()
    items = load_items(db_path)
    active = active_dates(items, get_log_entries(db_path))

    stats = get_study_stats(db_path, datetime.now())
    console.print(f"  Notes: [bold]{stats['notes']}[/bold]  |  "
                  f"Due: [bold]{stats['new'] + stats['due'] + stats['expired']}[/bold]  |  "
                  f"Mastered: [bold]{stats['mastered']}[/bold]  |  "
                  f"Reviews: [bold]{stats['reviews_logged']}[/bold]")

    month = today.replace(day=1)
    show_month(month, today, active)
    while True:
        choice = Prompt.ask(
            "[dim]prev, next, today, a day number, or done[/dim]", default="done",
        ).strip().lower()
        if choice == "prev":
            month = shift_month(month, -1)
        elif choice == "next":
            month = shift_month(month, 1)
        elif choice == "today":
            month = today.replace(day=1)
        elif choice.isdigit():
            try:
                day = month.replace(day=int(choice))
            except ValueError:
                console.print(f"[red]{month.strftime('%B')} has no day {choice}.[/red]")
            else:
                show_day(items, day)
            continue
        else:
            break
        show_month(month, today, active)


def cmd_delete(db_path: str):
    note_id = IntPrompt.ask("Note ID")
    if Prompt.ask(f"Delete note {note_id}?", choices=["y", "n"], default="n") != "y":
        return
    delete_note(db_path, note_id)
    console.print(f"[green]Deleted note {note_id}.[/green]")


def main():
    configure_logging()
    db_path = DEFAULT_DB_PATH
    init_db(db_path)
    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="review").strip().lower()
        try:
            if choice == "review":
                cmd_review(db_path)
            elif choice == "add":
                cmd_add(db_path)
            elif choice == "list":
                cmd_list(db_path)
            elif choice == "record":
                cmd_record(db_path)
            elif choice == "delete":
                cmd_delete(db_path)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]See you tomorrow![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
