"""Price alert form."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ...models.price_alert import PRICE_ALERT_DIRECTIONS, PRICE_ALERT_STATUSES
from ..forms import FormBase


@dataclass
class PriceAlertForm(FormBase):
    """Create and edit payloads for a price alert.

    ``status`` is only accepted on edits, so users can pause or re-arm an alert.
    """

    partial: bool = False

    KEYS = ("symbol", "target_price", "direction", "notify_once", "cooldown_minutes", "status")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, partial: bool = False) -> "PriceAlertForm":
        form = cls(partial=partial)
        form.load(data, cls.KEYS)
        return form

    def _wants(self, key: str) -> bool:
        return not self.partial or self.provided(key)

    def validate(self) -> bool:
        self.errors.clear()
        values: dict[str, Any] = {}

        if self._wants("symbol"):
            symbol = self._text("symbol", required=True, max_length=32)
            values["symbol"] = symbol.upper() if symbol else None
        if self._wants("target_price"):
            values["target_price"] = self._number("target_price", required=True, minimum=0, exclusive=True)
        if self._wants("direction"):
            values["direction"] = self._choice("direction", PRICE_ALERT_DIRECTIONS, default="below")
        if self._wants("notify_once"):
            values["notify_once"] = self._boolean("notify_once", default=None if self.partial else True)
        if self._wants("cooldown_minutes"):
            minutes = self._integer("cooldown_minutes", low=1, high=1440)
            values["cooldown_minutes"] = 60 if minutes is None and not self.partial else minutes
        if self.partial and self.provided("status"):
            values["status"] = self._choice("status", PRICE_ALERT_STATUSES)

        if self.partial:
            values = {key: value for key, value in values.items() if value is not None}
        self.values = values
        return not self.errors
