from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class BookStatus(str, Enum):
    AVAILABLE = "available"
    BORROWED = "borrowed"


class CoverType(str, Enum):
    SOFT = "soft"
    HARD = "hard"


class ConditionState(str, Enum):
    NEW = "new"
    GOOD = "good"
    AVERAGE = "average"
    BAD = "bad"


DEFAULT_GENRE = "unspecified"


def _current_year() -> int:
    return date.today().year


@dataclass
class BookFields:
    """Every field accepted when a book is created, with its default."""
    title: str
    author: str
    cover_type: CoverType | str = CoverType.HARD
    publication_year: int = field(default_factory=_current_year)
    genre: str = DEFAULT_GENRE
    page_count: int = 0
    condition: ConditionState | str = ConditionState.GOOD
    status: BookStatus | str = BookStatus.AVAILABLE
    # Only meaningful together with status=borrowed.
    borrower_phone: str | None = None


@dataclass
class BookChanges:
    """Partial update of a book; ``None`` keeps the stored value."""
    title: str | None = None
    author: str | None = None
    cover_type: CoverType | str | None = None
    publication_year: int | None = None
    genre: str | None = None
    page_count: int | None = None
    condition: ConditionState | str | None = None

    def is_empty(self) -> bool:
        return all(value is None for value in vars(self).values())


def _parse_date(value) -> date | None:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


class Book:
    """A single book of the catalog, joined with its borrower's name when lent."""

    def __init__(self, id: int, title: str, author: str,
                 cover_type: CoverType = CoverType.HARD, publication_year: int | None = None,
                 genre: str = DEFAULT_GENRE, page_count: int = 0,
                 condition: ConditionState = ConditionState.GOOD,
                 status: BookStatus = BookStatus.AVAILABLE,
                 borrowed_date: date | None = None, borrower_phone: str | None = None,
                 # borrower fields from the readers join
                 first_name: str | None = None, last_name: str | None = None) -> None:
        self.id = id
        self.title = title
        self.author = author
        self.cover_type = CoverType(cover_type)
        self.publication_year = publication_year
        self.genre = genre
        self.page_count = page_count
        self.condition = ConditionState(condition)
        self.status = BookStatus(status)
        self.borrowed_date = borrowed_date
        self.borrower_phone = borrower_phone
        self.first_name = first_name
        self.last_name = last_name

    @property
    def is_borrowed(self) -> bool:
        return self.status is BookStatus.BORROWED

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"#{self.id} {self.title} by {self.author} ({self.status.value})"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "cover_type": self.cover_type.value,
            "publication_year": self.publication_year,
            "genre": self.genre,
            "page_count": self.page_count,
            "condition": self.condition.value,
            "status": self.status.value,
            "borrowed_date": self.borrowed_date.isoformat() if self.borrowed_date else None,
            "borrower_phone": self.borrower_phone,
            "first_name": self.first_name,
            "last_name": self.last_name,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        # Rows from SQLite use the column name condition_state
        condition = data.get("condition") or data.get("condition_state") or ConditionState.GOOD
        return Book(
            id=data["id"],
            title=data["title"],
            author=data["author"],
            cover_type=data.get("cover_type") or CoverType.HARD,
            publication_year=data.get("publication_year"),
            genre=data.get("genre") or DEFAULT_GENRE,
            page_count=data.get("page_count") or 0,
            condition=condition,
            status=data.get("status") or BookStatus.AVAILABLE,
            borrowed_date=_parse_date(data.get("borrowed_date")),
            borrower_phone=data.get("borrower_phone"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
        )
