import logging
import subprocess
import sys
from functools import wraps
from typing import Optional

import typer
from rich.console import Console

import database
from book import BookChanges, BookFields
from config import settings
from errors import LibraryError
from library import Library
from utils.ui_helpers import (
    print_book_details,
    print_books,
    print_overdue,
    print_readers,
    print_stats_result,
    set_output_mode,
)

console = Console()


# Single Library instance, rebuilt when the database file changes
class LibraryManager:
    _instance: Optional[Library] = None
    _db_file: Optional[str] = None

    @classmethod
    def use_database(cls, db_file: str) -> None:
        cls._db_file = db_file

    @classmethod
    def get_instance(cls) -> Library:
        """Get or create the Library for the selected database file."""
        db_file = cls._db_file or database.DATABASE_FILE
        if cls._instance is None or cls._instance.db_file != db_file:
            cls._instance = Library(db_file=db_file)
        return cls._instance


def handle_library_errors(func):
    """Print library failures and exit with status 1 instead of a traceback."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LibraryError as e:
            print(f"Error: {e.message}")
            raise typer.Exit(code=1)
    return wrapper


# --- Typer CLI application ---
app = typer.Typer(help="Library CLI: catalog, readers and lending")

@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="SQLite database file (default: LIBRARY_DB_FILE or library.db)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
):
    """Global options for the CLI (output mode, database file)."""
    logging.basicConfig(level=settings.effective_log_level(verbose))
    if output:
        set_output_mode(output)
    if db:
        LibraryManager.use_database(db)

# ------------------------- Books ------------------------- #
@app.command("list")
@handle_library_errors
def cli_list(
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Substring of title, author or borrower phone"),
    status: Optional[str] = typer.Option(None, "--status", "-s", help="available | borrowed"),
):
    """List books ordered by title."""
    books = LibraryManager.get_instance().list_books(query=query, status=status)
    print_books(books)

@app.command("show")
@handle_library_errors
def cli_show(book_id: int):
    """Show one book with its borrower."""
    print_book_details(LibraryManager.get_instance().get_book(book_id))

@app.command("add")
@handle_library_errors
def cli_add(
    title: str,
    author: str,
    cover_type: str = typer.Option("hard", "--cover", help="soft | hard"),
    year: Optional[int] = typer.Option(None, "--year", help="Publication year (default: current year)"),
    genre: Optional[str] = typer.Option(None, "--genre"),
    pages: int = typer.Option(0, "--pages", help="Page count"),
    condition: str = typer.Option("good", "--condition", help="new | good | average | bad"),
):
    """Add a book to the catalog."""
    fields = BookFields(title=title, author=author, cover_type=cover_type, genre=genre,
                        page_count=pages, condition=condition)
    if year is not None:
        fields.publication_year = year
    book_id = LibraryManager.get_instance().create_book(fields)
    print(f"Added book #{book_id}: {title.strip()} by {author.strip()}")

@app.command("update")
@handle_library_errors
def cli_update(
    book_id: int,
    title: Optional[str] = typer.Option(None, "--title"),
    author: Optional[str] = typer.Option(None, "--author"),
    cover_type: Optional[str] = typer.Option(None, "--cover"),
    year: Optional[int] = typer.Option(None, "--year"),
    genre: Optional[str] = typer.Option(None, "--genre"),
    pages: Optional[int] = typer.Option(None, "--pages"),
    condition: Optional[str] = typer.Option(None, "--condition"),
):
    """Change some fields of a book; the others keep their values."""
    changes = BookChanges(title=title, author=author, cover_type=cover_type, publication_year=year,
                          genre=genre, page_count=pages, condition=condition)
    if changes.is_empty():
        print("Nothing to update. Provide at least one field option.")
        raise typer.Exit(code=1)
    book = LibraryManager.get_instance().update_book(book_id, changes)
    print(f"Updated book #{book.id}: {book.title} by {book.author}")

@app.command("remove")
@handle_library_errors
def cli_remove(book_id: int):
    """Delete a book by id."""
    LibraryManager.get_instance().delete_book(book_id)
    print(f"Book #{book_id} has been removed.")

# ------------------------- Readers ------------------------- #
@app.command("readers")
@handle_library_errors
def cli_readers():
    """List registered readers, newest first."""
    print_readers(LibraryManager.get_instance().list_readers())

@app.command("register")
@handle_library_errors
def cli_register(phone: str, first_name: str, last_name: str, birth_date: str):
    """Register a reader (phone 7XXXXXXXXXX, birth date YYYY-MM-DD)."""
    reader = LibraryManager.get_instance().register_reader(phone, first_name, last_name, birth_date)
    print(f"Registered reader {reader.full_name} ({reader.phone})")

@app.command("unregister")
@handle_library_errors
def cli_unregister(phone: str):
    """Remove a reader who has no books on loan."""
    LibraryManager.get_instance().remove_reader(phone)
    print(f"Reader {phone} has been removed.")

# ------------------------- Lending ------------------------- #
@app.command("borrow")
@handle_library_errors
def cli_borrow(book_id: int, phone: str):
    """Lend a book to a registered reader."""
    book = LibraryManager.get_instance().borrow_book(book_id, phone)
    print(f"Book #{book.id} '{book.title}' lent to {phone}")

@app.command("return")
@handle_library_errors
def cli_return(book_id: int):
    """Take a book back."""
    book = LibraryManager.get_instance().return_book(book_id)
    print(f"Book #{book.id} '{book.title}' returned")

@app.command("overdue")
@handle_library_errors
def cli_overdue():
    """List books held longer than 14 days."""
    print_overdue(LibraryManager.get_instance().list_overdue())

@app.command("stats")
@handle_library_errors
def cli_stats():
    """Show library statistics."""
    print_stats_result(LibraryManager.get_instance().get_statistics())

@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, "--host"),
    port: int = typer.Option(settings.api_port, "--port"),
):
    """Start the HTTP API with uvicorn."""
    print(f"Starting API on http://{host}:{port}/api")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
    ]
    try:
        subprocess.run(args, check=False)
    except FileNotFoundError:
        console.print("[bold red]Error:[/] could not start `uvicorn`. Make sure it is installed.")
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        console.print("[green]Server stopped.[/]")

if __name__ == "__main__":
    app()
