import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from config import settings
from errors import StoreFailureError

logger = logging.getLogger(__name__)

# Default database file, overridable per Library instance.
DATABASE_FILE = settings.database_file


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Opens a connection to the SQLite database with dict-like rows."""
    conn = sqlite3.connect(db_file or DATABASE_FILE, timeout=settings.database_timeout)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def transaction(db_file: Optional[str] = None, immediate: bool = False) -> Iterator[sqlite3.Connection]:
    """Runs a block as one atomic unit against the store.

    With ``immediate`` the write lock is taken up front, so concurrent writers
    queue on the busy timeout instead of racing between their read and write.

    Commits on success, rolls back on any exception and always closes the
    connection. ``sqlite3.Error`` is surfaced as ``StoreFailureError``; library
    errors raised inside the block pass through untouched.
    """
    try:
        conn = get_db_connection(db_file)
    except sqlite3.Error as e:
        logger.error(f"Could not open database {db_file or DATABASE_FILE}: {e}")
        raise StoreFailureError(f"Database unavailable: {e}") from e
    try:
        if immediate:
            conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        logger.error(f"Database operation failed: {e}")
        raise StoreFailureError(f"Database operation failed: {e}") from e
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def create_tables(db_file: Optional[str] = None) -> None:
    """Creates the books and readers tables if they do not exist yet."""
    with transaction(db_file) as conn:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS readers (
                phone TEXT PRIMARY KEY,
                first_name TEXT NOT NULL,
                last_name TEXT NOT NULL,
                birth_date TEXT NOT NULL,
                registration_date TEXT NOT NULL
            )
        """)
        # borrower_phone is a plain value link to readers.phone; integrity is
        # enforced by Library, not by a foreign key.
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                author TEXT NOT NULL,
                cover_type TEXT NOT NULL DEFAULT 'hard' CHECK(cover_type IN ('soft', 'hard')),
                publication_year INTEGER,
                genre TEXT NOT NULL DEFAULT 'unspecified',
                page_count INTEGER NOT NULL DEFAULT 0,
                condition_state TEXT NOT NULL DEFAULT 'good'
                    CHECK(condition_state IN ('new', 'good', 'average', 'bad')),
                status TEXT NOT NULL DEFAULT 'available' CHECK(status IN ('available', 'borrowed')),
                borrowed_date TEXT,
                borrower_phone TEXT
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_status ON books(status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_borrower_phone ON books(borrower_phone)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_readers_registration ON readers(registration_date)")


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initializes the database, creating tables if needed."""
    create_tables(db_file)
    logger.debug(f"Database ready at {db_file or DATABASE_FILE}")
