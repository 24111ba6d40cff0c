import re
from datetime import date
from enum import Enum
from typing import Optional, Type, TypeVar

from errors import ValidationFailedError

TITLE_MAX_LENGTH = 255
NAME_MAX_LENGTH = 100

E = TypeVar("E", bound=Enum)


class PhoneValidator:
    """Reader phone numbers: a leading 7 followed by exactly 10 digits."""

    PATTERN = re.compile(r"^7[0-9]{10}$")

    @staticmethod
    def normalize_phone(raw: Optional[str]) -> str:
        if raw is None:
            return ""
        return str(raw).strip()

    @staticmethod
    def is_valid_phone(phone: Optional[str]) -> bool:
        if not phone:
            return False
        return PhoneValidator.PATTERN.fullmatch(phone) is not None

    @staticmethod
    def require_phone(raw: Optional[str]) -> str:
        phone = PhoneValidator.normalize_phone(raw)
        if not phone:
            raise ValidationFailedError("Phone number is required.")
        if not PhoneValidator.is_valid_phone(phone):
            raise ValidationFailedError("Phone number must be in the format 7XXXXXXXXXX.")
        return phone


class TextValidator:
    """Required/optional text fields with trimming and a length cap."""

    @staticmethod
    def require_text(value: Optional[str], field: str, max_length: int) -> str:
        if value is None or not str(value).strip():
            raise ValidationFailedError(f"{field} is required.")
        cleaned = str(value).strip()
        if len(cleaned) > max_length:
            raise ValidationFailedError(f"{field} must not exceed {max_length} characters.")
        return cleaned

    @staticmethod
    def optional_text(value: Optional[str], field: str, max_length: int, default: Optional[str] = None) -> Optional[str]:
        if value is None:
            return default
        cleaned = str(value).strip()
        if not cleaned:
            return default
        if len(cleaned) > max_length:
            raise ValidationFailedError(f"{field} must not exceed {max_length} characters.")
        return cleaned


class ValueValidator:
    """Enums, numbers and dates coming from loosely typed callers."""

    @staticmethod
    def require_enum(value, enum_cls: Type[E], field: str) -> E:
        try:
            return enum_cls(value)
        except ValueError:
            allowed = ", ".join(member.value for member in enum_cls)
            raise ValidationFailedError(f"{field} must be one of: {allowed}.") from None

    @staticmethod
    def require_non_negative_int(value, field: str) -> int:
        if isinstance(value, bool):
            raise ValidationFailedError(f"{field} must be an integer.")
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValidationFailedError(f"{field} must be an integer.") from None
        if number < 0:
            raise ValidationFailedError(f"{field} must not be negative.")
        return number

    @staticmethod
    def require_date(value, field: str) -> date:
        if isinstance(value, date):
            return value
        if value is None or not str(value).strip():
            raise ValidationFailedError(f"{field} is required.")
        try:
            return date.fromisoformat(str(value).strip())
        except ValueError:
            raise ValidationFailedError(f"{field} must be a date in the format YYYY-MM-DD.") from None
