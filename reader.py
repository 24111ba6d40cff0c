from __future__ import annotations

from datetime import date


class Reader:
    """A registered reader, identified by phone number."""

    def __init__(self, phone: str, first_name: str, last_name: str,
                 birth_date: date, registration_date: date) -> None:
        self.phone = phone
        self.first_name = first_name
        self.last_name = last_name
        self.birth_date = birth_date
        self.registration_date = registration_date

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.full_name} ({self.phone})"

    def to_dict(self) -> dict:
        return {
            "phone": self.phone,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "birth_date": self.birth_date.isoformat(),
            "registration_date": self.registration_date.isoformat(),
        }

    @staticmethod
    def from_dict(data: dict) -> "Reader":
        return Reader(
            phone=data["phone"],
            first_name=data["first_name"],
            last_name=data["last_name"],
            birth_date=date.fromisoformat(data["birth_date"]),
            registration_date=date.fromisoformat(data["registration_date"]),
        )
