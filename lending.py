"""Borrow/return transitions and overdue policy.

A book is either ``available`` or ``borrowed``. Both transitions are single
conditional statements so that the decision and the write cannot be split by
a concurrent writer: two borrows of one available book cannot both succeed.
"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date
from typing import Optional

from book import BookStatus

# Policy: a loan is overdue once it is held longer than this many days.
OVERDUE_AFTER_DAYS = 14


def days_since(borrowed_date: date, today: Optional[date] = None) -> int:
    """Whole calendar days elapsed since ``borrowed_date``."""
    today = today or date.today()
    return (today - borrowed_date).days


def is_overdue(borrowed_date: Optional[date], today: Optional[date] = None) -> bool:
    if borrowed_date is None:
        return False
    return days_since(borrowed_date, today) > OVERDUE_AFTER_DAYS


@dataclass
class OverdueLoan:
    book_id: int
    title: str
    author: str
    borrowed_date: date
    days_overdue: int
    reader_phone: str
    first_name: str
    last_name: str

    def to_dict(self) -> dict:
        return {
            "id": self.book_id,
            "title": self.title,
            "author": self.author,
            "borrowed_date": self.borrowed_date.isoformat(),
            "days_overdue": self.days_overdue,
            "reader_phone": self.reader_phone,
            "first_name": self.first_name,
            "last_name": self.last_name,
        }


def mark_borrowed(conn: sqlite3.Connection, book_id: int, phone: str, today: date) -> bool:
    """Compare-and-set: available -> borrowed. Returns False when nothing changed."""
    cursor = conn.execute(
        """
        UPDATE books
        SET status = ?, borrower_phone = ?, borrowed_date = ?
        WHERE id = ? AND status = ?
        """,
        (BookStatus.BORROWED.value, phone, today.isoformat(), book_id, BookStatus.AVAILABLE.value),
    )
    return cursor.rowcount == 1


def mark_returned(conn: sqlite3.Connection, book_id: int) -> bool:
    """Any state -> available, clearing borrower and date. False when the book is missing."""
    cursor = conn.execute(
        """
        UPDATE books
        SET status = ?, borrower_phone = NULL, borrowed_date = NULL
        WHERE id = ?
        """,
        (BookStatus.AVAILABLE.value, book_id),
    )
    return cursor.rowcount == 1


def find_overdue(conn: sqlite3.Connection, today: date) -> list[OverdueLoan]:
    """Borrowed books held longer than the policy, longest first."""
    rows = conn.execute(
        """
        SELECT b.id, b.title, b.author, b.borrowed_date,
               r.phone AS reader_phone, r.first_name, r.last_name
        FROM books b
        JOIN readers r ON b.borrower_phone = r.phone
        WHERE b.status = ? AND b.borrowed_date IS NOT NULL
        """,
        (BookStatus.BORROWED.value,),
    ).fetchall()

    loans = []
    for row in rows:
        borrowed = date.fromisoformat(row["borrowed_date"])
        if not is_overdue(borrowed, today):
            continue
        loans.append(OverdueLoan(
            book_id=row["id"],
            title=row["title"],
            author=row["author"],
            borrowed_date=borrowed,
            days_overdue=days_since(borrowed, today),
            reader_phone=row["reader_phone"],
            first_name=row["first_name"],
            last_name=row["last_name"],
        ))
    loans.sort(key=lambda loan: loan.days_overdue, reverse=True)
    return loans
