from __future__ import annotations

from datetime import date, time
from typing import Any, Iterable, Optional

from ..core.exceptions import ValidationError
from .datetime_utils import parse_iso_date, parse_time_of_day


class FieldErrors:
    """Collects per-field problems so a request reports all of them at once.

    Usage::

        errors = FieldErrors()
        start = errors.date(payload, "start_date", required=True)
        errors.raise_if_any()
    """

    def __init__(self) -> None:
        self._errors: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        self._errors.setdefault(field, []).append(message)

    def has(self, field: str) -> bool:
        return field in self._errors

    def raise_if_any(self, message: str = "Validation failed") -> None:
        if self._errors:
            raise ValidationError(message, self._errors)

    def string(self, data: dict, field: str, *, required: bool = False, max_len: Optional[int] = None) -> Optional[str]:
        raw = data.get(field)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            if required:
                self.add(field, "This field is required.")
            return None
        if not isinstance(raw, str):
            self.add(field, "Must be a string.")
            return None
        value = raw.strip()
        if max_len is not None and len(value) > max_len:
            self.add(field, f"May not be greater than {max_len} characters.")
        return value

    def date(self, data: dict, field: str, *, required: bool = False) -> Optional[date]:
        raw = data.get(field)
        if raw in (None, ""):
            if required:
                self.add(field, "This field is required.")
            return None
        if isinstance(raw, date):
            return raw
        try:
            return parse_iso_date(str(raw))
        except ValueError:
            self.add(field, "Must be a date in YYYY-MM-DD format.")
            return None

    def time_of_day(self, data: dict, field: str, *, required: bool = False) -> Optional[time]:
        raw = data.get(field)
        if raw in (None, ""):
            if required:
                self.add(field, "This field is required.")
            return None
        if isinstance(raw, time):
            return raw
        try:
            return parse_time_of_day(str(raw))
        except ValueError:
            self.add(field, "Must be a time in HH:MM format.")
            return None

    def number(self, data: dict, field: str, *, low: float, high: float, required: bool = False) -> Optional[float]:
        raw = data.get(field)
        if raw in (None, ""):
            if required:
                self.add(field, "This field is required.")
            return None
        try:
            value = float(raw)
        except (TypeError, ValueError):
            self.add(field, "Must be a number.")
            return None
        if not low <= value <= high:
            self.add(field, f"Must be between {low:g} and {high:g}.")
        return value

    def integer(self, data: dict, field: str, *, low: int = 1, high: int = 2**31 - 1, required: bool = False) -> Optional[int]:
        """Whole number in ``[low, high]``; fractions such as ``1.5`` are rejected."""

        raw = data.get(field)
        if raw in (None, ""):
            if required:
                self.add(field, "This field is required.")
            return None
        if isinstance(raw, bool):
            self.add(field, "Must be an integer.")
            return None
        try:
            value = int(str(raw).strip())
        except ValueError:
            self.add(field, "Must be an integer.")
            return None
        if not low <= value <= high:
            self.add(field, f"Must be between {low} and {high}.")
        return value

    def choice(self, data: dict, field: str, choices: Iterable[Any], *, required: bool = False):
        raw = data.get(field)
        if raw in (None, ""):
            if required:
                self.add(field, "This field is required.")
            return None
        for choice in choices:
            if raw == choice or raw == getattr(choice, "value", choice):
                return choice
        self.add(field, "The selected value is invalid.")
        return None

    def boolean(self, data: dict, field: str, *, default: Optional[bool] = None) -> Optional[bool]:
        raw = data.get(field)
        if raw is None:
            return default
        if isinstance(raw, bool):
            return raw
        if str(raw).lower() in {"1", "true", "yes", "on"}:
            return True
        if str(raw).lower() in {"0", "false", "no", "off"}:
            return False
        self.add(field, "Must be true or false.")
        return default
