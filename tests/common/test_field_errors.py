import pytest

from presence_tracker.common.validators import FieldErrors
from presence_tracker.core.exceptions import ValidationError


@pytest.mark.parametrize("raw, expected", [("7", 7), (" 12 ", 12), (3, 3)])
def test_integer_accepts_whole_numbers(raw, expected):
    errors = FieldErrors()

    assert errors.integer({"user_id": raw}, "user_id") == expected
    errors.raise_if_any()


@pytest.mark.parametrize("raw", ["1.5", 2.9, "abc", True, "0", "-4"])
def test_integer_rejects_fractions_and_out_of_range(raw):
    errors = FieldErrors()
    errors.integer({"company_id": raw}, "company_id")

    with pytest.raises(ValidationError) as exc:
        errors.raise_if_any()
    assert list(exc.value.errors) == ["company_id"]


def test_integer_missing_value():
    errors = FieldErrors()

    assert errors.integer({}, "user_id") is None
    errors.raise_if_any()

    errors.integer({"user_id": ""}, "user_id", required=True)
    assert errors.has("user_id")
