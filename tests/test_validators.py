from datetime import date

import pytest

from book import CoverType
from errors import ValidationFailedError
from utils.validators import PhoneValidator, TextValidator, ValueValidator


def test_phone_validation():
    assert PhoneValidator.is_valid_phone("79991112233")
    assert not PhoneValidator.is_valid_phone("89991112233")
    assert not PhoneValidator.is_valid_phone("7999111223")
    assert not PhoneValidator.is_valid_phone("")
    assert not PhoneValidator.is_valid_phone(None)
    # No separators, ASCII digits only
    assert not PhoneValidator.is_valid_phone("7 999 111 22 33")
    assert not PhoneValidator.is_valid_phone("7\u0661\u0662\u0663\u0664\u0665\u0666\u0667\u0668\u0669\u0660")


def test_require_phone_trims():
    assert PhoneValidator.require_phone(" 79991112233 ") == "79991112233"
    with pytest.raises(ValidationFailedError, match="required"):
        PhoneValidator.require_phone("   ")
    with pytest.raises(ValidationFailedError, match="7XXXXXXXXXX"):
        PhoneValidator.require_phone("12345")


def test_text_validator():
    assert TextValidator.require_text("  War  ", "Title", 10) == "War"
    with pytest.raises(ValidationFailedError, match="Title is required"):
        TextValidator.require_text(" ", "Title", 10)
    with pytest.raises(ValidationFailedError, match="10 characters"):
        TextValidator.require_text("x" * 11, "Title", 10)

    assert TextValidator.optional_text(None, "Genre", 10, default="unspecified") == "unspecified"
    assert TextValidator.optional_text("  ", "Genre", 10, default="unspecified") == "unspecified"
    assert TextValidator.optional_text(" Poem ", "Genre", 10) == "Poem"


def test_value_validator():
    assert ValueValidator.require_enum("soft", CoverType, "Cover type") is CoverType.SOFT
    assert ValueValidator.require_enum(CoverType.HARD, CoverType, "Cover type") is CoverType.HARD
    with pytest.raises(ValidationFailedError, match="soft, hard"):
        ValueValidator.require_enum("paper", CoverType, "Cover type")

    assert ValueValidator.require_non_negative_int("12", "Pages") == 12
    with pytest.raises(ValidationFailedError):
        ValueValidator.require_non_negative_int("twelve", "Pages")
    with pytest.raises(ValidationFailedError):
        ValueValidator.require_non_negative_int(True, "Pages")

    assert ValueValidator.require_date("1990-05-15", "Birth date") == date(1990, 5, 15)
    assert ValueValidator.require_date(date(2000, 1, 1), "Birth date") == date(2000, 1, 1)
    with pytest.raises(ValidationFailedError):
        ValueValidator.require_date("not a date", "Birth date")
