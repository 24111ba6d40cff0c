import os
import json
from typing import List, Any, Dict
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def _borrower(book: Any) -> str:
    if not book.borrower_phone:
        return ""
    name = " ".join(part for part in (book.first_name, book.last_name) if part)
    return f"{name} ({book.borrower_phone})" if name else book.borrower_phone

def print_books(books: List[Any]) -> None:
    """Print books in the current output mode.
    - plain: '#id Title by Author [status]' lines, or 'No books in library.'
    - json: JSON array of book dicts
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        print("No books in library.")
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Status")
        table.add_column("Borrower", style="dim")
        for b in books:
            status_style = "yellow" if b.is_borrowed else "green"
            table.add_row(str(b.id), b.title, b.author, f"[{status_style}]{b.status.value}[/]", _borrower(b))
        _console.print(table)
    else:
        for b in books:
            line = f"#{b.id} {b.title} by {b.author} [{b.status.value}]"
            if b.is_borrowed:
                line += f" -> {_borrower(b)} since {b.borrowed_date.isoformat()}"
            print(line)

def print_book_details(book: Any) -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(book.to_dict(), ensure_ascii=False))
        return
    lines = [
        f"Title: {book.title}",
        f"Author: {book.author}",
        f"Year: {book.publication_year}",
        f"Genre: {book.genre}",
        f"Pages: {book.page_count}",
        f"Cover: {book.cover_type.value}",
        f"Condition: {book.condition.value}",
        f"Status: {book.status.value}",
    ]
    if book.is_borrowed:
        lines.append(f"Borrower: {_borrower(book)}")
        lines.append(f"Borrowed on: {book.borrowed_date.isoformat()}")
    if mode == "rich":
        _console.print(Panel.fit("\n".join(lines), title=f"📖 Book #{book.id}", border_style="blue"))
    else:
        print(f"Book #{book.id}")
        for line in lines:
            print(line)

def print_readers(readers: List[Any]) -> None:
    mode = get_output_mode()

    if not readers:
        print("No readers registered.")
        return

    if mode == "json":
        print(json.dumps([r.to_dict() for r in readers], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="👥 Readers", show_lines=True, header_style="bold cyan")
        table.add_column("Phone", style="magenta", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Born")
        table.add_column("Registered")
        for r in readers:
            table.add_row(r.phone, r.full_name, r.birth_date.isoformat(), r.registration_date.isoformat())
        _console.print(table)
    else:
        for r in readers:
            print(f"{r.phone} - {r.full_name} (registered {r.registration_date.isoformat()})")

def print_overdue(loans: List[Any]) -> None:
    mode = get_output_mode()

    if not loans:
        print("No overdue books.")
        return

    if mode == "json":
        print(json.dumps([loan.to_dict() for loan in loans], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="⏰ Overdue", show_lines=True, header_style="bold red")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Reader")
        table.add_column("Days", justify="right", style="red")
        for loan in loans:
            table.add_row(str(loan.book_id), loan.title,
                          f"{loan.first_name} {loan.last_name} ({loan.reader_phone})", str(loan.days_overdue))
        _console.print(table)
    else:
        for loan in loans:
            print(f"#{loan.book_id} {loan.title} - {loan.first_name} {loan.last_name} "
                  f"({loan.reader_phone}), {loan.days_overdue} days")

def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print statistics in the current output mode.
    - plain: one 'Label: value' line per counter
    - json: JSON object
    - rich: Panel with the counters
    """
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    labels = [
        ("Total Books", stats.get("total_books", 0)),
        ("Available", stats.get("available_books", 0)),
        ("Borrowed", stats.get("borrowed_books", 0)),
        ("Total Readers", stats.get("total_readers", 0)),
    ]

    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
    elif mode == "rich":
        content = "\n".join(f"[bold]{label}:[/] {value}" for label, value in labels)
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        for label, value in labels:
            print(f"{label}: {value}")
