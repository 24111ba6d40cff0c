"""Failure kinds raised by the library core.

Every error carries a human-readable ``message``; callers decide how to show it.
"""


class LibraryError(Exception):
    """Base class for all library failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(LibraryError):
    """Requested entity does not exist."""


class BookNotFoundError(NotFoundError):
    def __init__(self, book_id: int) -> None:
        super().__init__(f"Book {book_id} not found.")
        self.book_id = book_id


class ReaderNotFoundError(NotFoundError):
    def __init__(self, phone: str, message: str | None = None) -> None:
        super().__init__(message or f"Reader {phone} not found.")
        self.phone = phone


class ValidationFailedError(LibraryError):
    """Malformed, missing or oversized input."""


class DuplicatePhoneError(LibraryError):
    def __init__(self, phone: str) -> None:
        super().__init__(f"A reader with phone {phone} already exists.")
        self.phone = phone


class BookUnavailableError(LibraryError):
    """Book is already borrowed or does not exist."""

    def __init__(self, book_id: int) -> None:
        super().__init__(f"Book {book_id} is unavailable (already borrowed) or not found.")
        self.book_id = book_id


class HasActiveLoansError(LibraryError):
    def __init__(self, phone: str, count: int) -> None:
        super().__init__(
            f"Cannot remove reader {phone}: {count} book(s) still borrowed. Return all books first."
        )
        self.phone = phone
        self.count = count


class StoreFailureError(LibraryError):
    """The underlying database failed; never retried by the core."""
