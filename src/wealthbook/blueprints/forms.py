"""Shared parsing helpers for JSON request forms."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Optional

from ..errors import ValidationError
from ..services.dates import DEFAULT_TIMEZONE, to_local


@dataclass
class FormBase:
    """Collects field errors while coercing raw request values.

    Timestamps are converted to naive wall time in ``tz_name``.
    """

    tz_name = DEFAULT_TIMEZONE

    errors: dict[str, list[str]] = field(default_factory=dict, init=False)
    raw_data: dict[str, Any] = field(default_factory=dict, init=False)

    def load(self, data: Mapping[str, Any], keys: Iterable[str]) -> None:
        self.raw_data = {key: data[key] for key in keys if key in data}

    def provided(self, key: str) -> bool:
        return key in self.raw_data

    def _add_error(self, field_name: str, message: str) -> None:
        self.errors.setdefault(field_name, []).append(message)

    def _text(self, key: str, *, required: bool = False, max_length: int = 255) -> Optional[str]:
        value = self.raw_data.get(key)
        text = "" if value is None else str(value).strip()
        if not text:
            if required:
                self._add_error(key, "This field is required.")
            return None
        if len(text) > max_length:
            self._add_error(key, f"Must be at most {max_length} characters.")
        return text

    def _number(
        self,
        key: str,
        *,
        required: bool = False,
        minimum: Optional[float] = None,
        exclusive: bool = False,
    ) -> Optional[float]:
        value = self.raw_data.get(key)
        if value is None or value == "":
            if required:
                self._add_error(key, "This field is required.")
            return None
        if isinstance(value, bool):
            self._add_error(key, "Enter a valid number.")
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            self._add_error(key, "Enter a valid number.")
            return None
        if number != number or number in (float("inf"), float("-inf")):
            self._add_error(key, "Enter a valid number.")
            return None
        if minimum is not None:
            if exclusive and number <= minimum:
                self._add_error(key, f"Must be greater than {minimum:g}.")
            elif not exclusive and number < minimum:
                self._add_error(key, f"Must be at least {minimum:g}.")
        return number

    def _integer(self, key: str, *, required: bool = False, low: int, high: int) -> Optional[int]:
        number = self._number(key, required=required)
        if number is None:
            return None
        if number != int(number) or not low <= number <= high:
            self._add_error(key, f"Enter a whole number between {low} and {high}.")
            return None
        return int(number)

    def _date(self, key: str, *, required: bool = False) -> Optional[date]:
        value = self.raw_data.get(key)
        if value is None or value == "":
            if required:
                self._add_error(key, "This field is required.")
            return None
        try:
            return date.fromisoformat(str(value)[:10])
        except ValueError:
            self._add_error(key, "Use YYYY-MM-DD.")
            return None

    def _datetime(self, key: str, *, required: bool = False) -> Optional[datetime]:
        value = self.raw_data.get(key)
        if value is None or value == "":
            if required:
                self._add_error(key, "This field is required.")
            return None
        raw = str(value).strip()
        try:
            if len(raw) == 10:
                return datetime.strptime(raw, "%Y-%m-%d")
            return to_local(datetime.fromisoformat(raw.replace("Z", "+00:00")), self.tz_name)
        except ValueError:
            self._add_error(key, "Use an ISO-8601 date or timestamp.")
            return None

    def _boolean(self, key: str, *, default: Optional[bool] = None) -> Optional[bool]:
        value = self.raw_data.get(key)
        if value is None or value == "":
            return default
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in {"1", "true", "yes", "on"}:
            return True
        if text in {"0", "false", "no", "off"}:
            return False
        self._add_error(key, "Enter true or false.")
        return None

    def _choice(self, key: str, choices: Iterable[str], *, default: Optional[str] = None) -> Optional[str]:
        value = self.raw_data.get(key)
        if value is None or value == "":
            return default
        text = str(value).strip().lower()
        options = tuple(choices)
        if text not in options:
            self._add_error(key, f"Choose one of: {', '.join(options)}.")
            return None
        return text

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ValidationError(self.errors)


def json_body() -> dict:
    """Request JSON object, or an empty dict when absent or not an object."""

    from flask import request

    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}
