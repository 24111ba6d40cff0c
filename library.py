import logging
import sqlite3
from datetime import date
from typing import List, Optional, Dict, Any

import database
import lending
from book import Book, BookChanges, BookFields, BookStatus, ConditionState, CoverType, DEFAULT_GENRE
from database import initialize_database, transaction
from errors import (
    BookNotFoundError,
    BookUnavailableError,
    DuplicatePhoneError,
    HasActiveLoansError,
    ReaderNotFoundError,
    ValidationFailedError,
)
from lending import OverdueLoan
from reader import Reader
from utils.validators import (
    NAME_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    PhoneValidator,
    TextValidator,
    ValueValidator,
)

logger = logging.getLogger(__name__)

GENRE_MAX_LENGTH = 255

_BOOK_VIEW_SQL = """
    SELECT
        b.id, b.title, b.author, b.cover_type, b.publication_year,
        b.genre, b.page_count, b.condition_state, b.status,
        b.borrowed_date, b.borrower_phone,
        r.first_name, r.last_name
    FROM books b
    LEFT JOIN readers r ON b.borrower_phone = r.phone
"""


class Library:
    """Catalog, readers and lending on top of one SQLite database.

    Every public method is one atomic unit against the store: it opens its own
    connection, commits or rolls back, and closes it again.
    """

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or database.DATABASE_FILE
        initialize_database(self.db_file)  # Ensure tables exist

    # ------------------------- Catalog ------------------------- #
    def list_books(self, query: Optional[str] = None, status: Optional[str] = None) -> List[Book]:
        """All books ordered by title, with the borrower's name when lent.

        ``query`` matches title, author or borrower phone as a case-insensitive
        substring (Unicode case folding, so Cyrillic works too); ``status``
        keeps one status.
        """
        sql = _BOOK_VIEW_SQL
        params: List[Any] = []
        if status:
            sql += " WHERE b.status = ?"
            params.append(ValueValidator.require_enum(status, BookStatus, "status").value)
        sql += " ORDER BY b.title ASC, b.id ASC"

        with transaction(self.db_file) as conn:
            rows = conn.execute(sql, params).fetchall()
        books = [Book.from_dict(dict(row)) for row in rows]

        needle = query.strip().casefold() if query else ""
        if needle:
            books = [b for b in books if self._matches(b, needle)]
        return books

    def get_book(self, book_id: int) -> Book:
        book_id = self._require_book_id(book_id)
        with transaction(self.db_file) as conn:
            return self._fetch_book(conn, book_id)

    def create_book(self, fields: BookFields, today: Optional[date] = None) -> int:
        """Validate and insert a book. Returns the generated id."""
        title = TextValidator.require_text(fields.title, "Title", TITLE_MAX_LENGTH)
        author = TextValidator.require_text(fields.author, "Author", TITLE_MAX_LENGTH)
        genre = TextValidator.optional_text(fields.genre, "Genre", GENRE_MAX_LENGTH, default=DEFAULT_GENRE)
        cover_type = ValueValidator.require_enum(fields.cover_type or CoverType.HARD, CoverType, "Cover type")
        condition = ValueValidator.require_enum(fields.condition or ConditionState.GOOD, ConditionState, "Condition")
        status = ValueValidator.require_enum(fields.status or BookStatus.AVAILABLE, BookStatus, "Status")
        year = ValueValidator.require_non_negative_int(
            fields.publication_year if fields.publication_year is not None else date.today().year,
            "Publication year",
        )
        page_count = ValueValidator.require_non_negative_int(fields.page_count or 0, "Page count")

        borrower_phone = PhoneValidator.normalize_phone(fields.borrower_phone) or None
        borrowed_date = None
        if status is BookStatus.BORROWED:
            if not borrower_phone:
                raise ValidationFailedError("A borrowed book needs the borrower's phone number.")
            borrowed_date = (today or date.today()).isoformat()
        elif borrower_phone:
            raise ValidationFailedError("Only a borrowed book can have a borrower.")

        with transaction(self.db_file, immediate=True) as conn:
            if borrower_phone and not self._reader_exists(conn, borrower_phone):
                raise ReaderNotFoundError(borrower_phone, "Reader not found. Register the reader first.")
            cursor = conn.execute(
                """
                INSERT INTO books
                (title, author, cover_type, publication_year, genre, page_count,
                 condition_state, status, borrowed_date, borrower_phone)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (title, author, cover_type.value, year, genre, page_count,
                 condition.value, status.value, borrowed_date, borrower_phone),
            )
            book_id = cursor.lastrowid
        logger.info(f"Book {book_id} added: {title} by {author}")
        return book_id

    def update_book(self, book_id: int, changes: BookChanges) -> Book:
        """Merge the supplied fields into the stored book and return it."""
        book_id = self._require_book_id(book_id)
        title = TextValidator.optional_text(changes.title, "Title", TITLE_MAX_LENGTH)
        author = TextValidator.optional_text(changes.author, "Author", TITLE_MAX_LENGTH)
        genre = TextValidator.optional_text(changes.genre, "Genre", GENRE_MAX_LENGTH)
        cover_type = (ValueValidator.require_enum(changes.cover_type, CoverType, "Cover type").value
                      if changes.cover_type is not None else None)
        condition = (ValueValidator.require_enum(changes.condition, ConditionState, "Condition").value
                     if changes.condition is not None else None)
        year = (ValueValidator.require_non_negative_int(changes.publication_year, "Publication year")
                if changes.publication_year is not None else None)
        page_count = (ValueValidator.require_non_negative_int(changes.page_count, "Page count")
                      if changes.page_count is not None else None)

        with transaction(self.db_file, immediate=True) as conn:
            cursor = conn.execute(
                """
                UPDATE books SET
                    title = COALESCE(?, title),
                    author = COALESCE(?, author),
                    cover_type = COALESCE(?, cover_type),
                    publication_year = COALESCE(?, publication_year),
                    genre = COALESCE(?, genre),
                    page_count = COALESCE(?, page_count),
                    condition_state = COALESCE(?, condition_state)
                WHERE id = ?
                """,
                (title, author, cover_type, year, genre, page_count, condition, book_id),
            )
            if cursor.rowcount == 0:
                raise BookNotFoundError(book_id)
            book = self._fetch_book(conn, book_id)
        logger.info(f"Book {book_id} updated")
        return book

    def delete_book(self, book_id: int) -> None:
        """Remove a book whatever its status."""
        book_id = self._require_book_id(book_id)
        with transaction(self.db_file, immediate=True) as conn:
            row = conn.execute(
                "SELECT status, borrower_phone FROM books WHERE id = ?", (book_id,)
            ).fetchone()
            if row is None:
                raise BookNotFoundError(book_id)
            conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        if row["status"] == BookStatus.BORROWED.value:
            logger.warning(f"Book {book_id} deleted while borrowed by {row['borrower_phone']}")
        else:
            logger.info(f"Book {book_id} deleted")

    # ------------------------- Readers ------------------------- #
    def list_readers(self) -> List[Reader]:
        with transaction(self.db_file) as conn:
            rows = conn.execute(
                """
                SELECT phone, first_name, last_name, birth_date, registration_date
                FROM readers
                ORDER BY registration_date DESC, last_name ASC
                """
            ).fetchall()
        return [Reader.from_dict(dict(row)) for row in rows]

    def get_reader(self, phone: str) -> Reader:
        phone = PhoneValidator.normalize_phone(phone)
        with transaction(self.db_file) as conn:
            row = conn.execute(
                """
                SELECT phone, first_name, last_name, birth_date, registration_date
                FROM readers WHERE phone = ?
                """,
                (phone,),
            ).fetchone()
        if row is None:
            raise ReaderNotFoundError(phone)
        return Reader.from_dict(dict(row))

    def register_reader(self, phone: str, first_name: str, last_name: str,
                        birth_date, today: Optional[date] = None) -> Reader:
        """Register a reader; the registration date is today and never changes."""
        phone = PhoneValidator.require_phone(phone)
        first_name = TextValidator.require_text(first_name, "First name", NAME_MAX_LENGTH)
        last_name = TextValidator.require_text(last_name, "Last name", NAME_MAX_LENGTH)
        birth = ValueValidator.require_date(birth_date, "Birth date")
        reader = Reader(phone, first_name, last_name, birth, today or date.today())

        with transaction(self.db_file, immediate=True) as conn:
            if self._reader_exists(conn, phone):
                logger.warning(f"Refused duplicate reader registration for {phone}")
                raise DuplicatePhoneError(phone)
            try:
                conn.execute(
                    """
                    INSERT INTO readers (phone, first_name, last_name, birth_date, registration_date)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (reader.phone, reader.first_name, reader.last_name,
                     reader.birth_date.isoformat(), reader.registration_date.isoformat()),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicatePhoneError(phone) from e
        logger.info(f"Reader {phone} registered: {reader.full_name}")
        return reader

    def remove_reader(self, phone: str) -> None:
        """Delete a reader, refusing while any book is still lent to them."""
        phone = PhoneValidator.normalize_phone(phone)
        with transaction(self.db_file, immediate=True) as conn:
            count = conn.execute(
                "SELECT COUNT(*) FROM books WHERE borrower_phone = ?", (phone,)
            ).fetchone()[0]
            if count > 0:
                logger.warning(f"Refused to remove reader {phone}: {count} book(s) on loan")
                raise HasActiveLoansError(phone, count)
            cursor = conn.execute("DELETE FROM readers WHERE phone = ?", (phone,))
            if cursor.rowcount == 0:
                raise ReaderNotFoundError(phone)
        logger.info(f"Reader {phone} removed")

    # ------------------------- Lending ------------------------- #
    def borrow_book(self, book_id: int, phone: str, today: Optional[date] = None) -> Book:
        """Lend an available book to a registered reader."""
        book_id = self._require_book_id(book_id)
        phone = PhoneValidator.normalize_phone(phone)
        if not phone:
            raise ValidationFailedError("Reader phone number is required.")

        with transaction(self.db_file, immediate=True) as conn:
            if not self._reader_exists(conn, phone):
                raise ReaderNotFoundError(phone, "Reader not found. Register the reader first.")
            if not lending.mark_borrowed(conn, book_id, phone, today or date.today()):
                logger.warning(f"Borrow refused: book {book_id} unavailable")
                raise BookUnavailableError(book_id)
            book = self._fetch_book(conn, book_id)
        logger.info(f"Book {book_id} borrowed by {phone}")
        return book

    def return_book(self, book_id: int) -> Book:
        """Bring a book back; returning an available book is a no-op."""
        book_id = self._require_book_id(book_id)
        with transaction(self.db_file, immediate=True) as conn:
            if not lending.mark_returned(conn, book_id):
                raise BookNotFoundError(book_id)
            book = self._fetch_book(conn, book_id)
        logger.info(f"Book {book_id} returned")
        return book

    def list_overdue(self, today: Optional[date] = None) -> List[OverdueLoan]:
        with transaction(self.db_file) as conn:
            return lending.find_overdue(conn, today or date.today())

    def get_statistics(self) -> Dict[str, int]:
        """Counts derived from the current rows on every call."""
        with transaction(self.db_file) as conn:
            row = conn.execute(
                """
                SELECT
                    (SELECT COUNT(*) FROM books) AS total_books,
                    (SELECT COUNT(*) FROM books WHERE status = ?) AS available_books,
                    (SELECT COUNT(*) FROM books WHERE status = ?) AS borrowed_books,
                    (SELECT COUNT(*) FROM readers) AS total_readers
                """,
                (BookStatus.AVAILABLE.value, BookStatus.BORROWED.value),
            ).fetchone()
        return dict(row)

    def ping(self) -> None:
        """Raise StoreFailureError when the database cannot answer."""
        with transaction(self.db_file) as conn:
            conn.execute("SELECT 1")

    # ------------------------- Helpers ------------------------- #
    @staticmethod
    def _reader_exists(conn: sqlite3.Connection, phone: str) -> bool:
        return conn.execute("SELECT 1 FROM readers WHERE phone = ?", (phone,)).fetchone() is not None

    @staticmethod
    def _fetch_book(conn: sqlite3.Connection, book_id: int) -> Book:
        row = conn.execute(_BOOK_VIEW_SQL + " WHERE b.id = ?", (book_id,)).fetchone()
        if row is None:
            raise BookNotFoundError(book_id)
        return Book.from_dict(dict(row))

    @staticmethod
    def _require_book_id(book_id) -> int:
        if book_id is None or isinstance(book_id, bool):
            raise ValidationFailedError("Book id is required.")
        try:
            return int(book_id)
        except (TypeError, ValueError):
            raise ValidationFailedError("Book id must be an integer.") from None

    @staticmethod
    def _matches(book: Book, needle: str) -> bool:
        haystacks = (book.title, book.author, book.borrower_phone or "")
        return any(needle in text.casefold() for text in haystacks)
