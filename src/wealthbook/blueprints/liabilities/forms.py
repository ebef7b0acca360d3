"""Liability form definitions and validation helpers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ...models.liability import LIABILITY_KINDS
from ..forms import FormBase


@dataclass
class LiabilityForm(FormBase):
    """Represents liability inputs and associated validation errors."""

    partial: bool = False

    KEYS = (
        "name",
        "kind",
        "principal",
        "outstanding",
        "interest_rate",
        "emi_amount",
        "start_date",
        "end_date",
    )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, partial: bool = False) -> "LiabilityForm":
        form = cls(partial=partial)
        form.load(data, cls.KEYS)
        return form

    def _wants(self, key: str) -> bool:
        return not self.partial or self.provided(key)

    def validate(self) -> bool:
        """Validate liability inputs returning True when all values are acceptable."""

        self.errors.clear()
        values: dict[str, Any] = {}

        if self._wants("name"):
            values["name"] = self._text("name", required=True, max_length=80)
        if self._wants("kind"):
            values["kind"] = self._choice("kind", LIABILITY_KINDS, default="loan")
        if self._wants("principal"):
            values["principal"] = self._number("principal", required=True, minimum=0, exclusive=True)
        if self._wants("outstanding"):
            outstanding = self._number("outstanding", minimum=0)
            if outstanding is None and not self.partial and "outstanding" not in self.errors:
                outstanding = values.get("principal")
            values["outstanding"] = outstanding
        if self._wants("interest_rate"):
            rate = self._number("interest_rate", minimum=0)
            if rate is not None and rate > 100:
                self._add_error("interest_rate", "Interest rate must be between 0 and 100 percent.")
            values["interest_rate"] = rate or 0.0
        if self._wants("emi_amount"):
            values["emi_amount"] = self._number("emi_amount", minimum=0, exclusive=True)
        if self._wants("start_date"):
            values["start_date"] = self._date("start_date")
        if self._wants("end_date"):
            values["end_date"] = self._date("end_date")

        start, end = values.get("start_date"), values.get("end_date")
        if start and end and end < start:
            self._add_error("end_date", "End date cannot be before the start date.")
        if self.partial and "outstanding" in values and values["outstanding"] is None:
            self._add_error("outstanding", "This field is required.")

        self.values = values
        return not self.errors
