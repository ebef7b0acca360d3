"""SIP and installment form validation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ...models.sip import INSTALLMENT_STATUSES, PRICE_SOURCES, SIP_FREQUENCIES, SIP_STATUSES
from ...services.sips import InstallmentDraft, SipDraft
from ..forms import FormBase


@dataclass
class SipForm(FormBase):
    """SIP fields. With ``partial`` only the supplied keys are checked."""

    partial: bool = False

    KEYS = (
        "name",
        "fund_name",
        "symbol",
        "scheme_code",
        "price_source",
        "amount",
        "frequency",
        "anchor_day",
        "start_date",
        "end_date",
        "expected_return",
        "total_invested",
        "units",
        "status",
    )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, partial: bool = False) -> "SipForm":
        form = cls(partial=partial)
        form.load(data, cls.KEYS)
        return form

    def _wants(self, key: str) -> bool:
        return not self.partial or self.provided(key)

    def validate(self) -> bool:
        self.errors.clear()
        values: dict[str, Any] = {}

        if self._wants("name"):
            values["name"] = self._text("name", required=True, max_length=128)
        if self._wants("fund_name"):
            values["fund_name"] = self._text("fund_name", max_length=160)
        if self._wants("symbol"):
            symbol = self._text("symbol", max_length=32)
            values["symbol"] = symbol.upper() if symbol else None
        if self._wants("scheme_code"):
            values["scheme_code"] = self._text("scheme_code", max_length=32)
        if self._wants("price_source"):
            values["price_source"] = self._choice("price_source", PRICE_SOURCES, default="market")
        if self._wants("amount"):
            values["amount"] = self._number("amount", required=True, minimum=0, exclusive=True)
        if self._wants("frequency"):
            values["frequency"] = self._choice("frequency", SIP_FREQUENCIES, default="monthly")
        if self._wants("start_date"):
            values["start_date"] = self._date("start_date", required=True)
        if self._wants("anchor_day"):
            anchor = self._integer("anchor_day", low=1, high=31)
            if anchor is None and not self.partial and values.get("start_date"):
                anchor = values["start_date"].day
            values["anchor_day"] = anchor
        if self._wants("end_date"):
            values["end_date"] = self._date("end_date")
        if self._wants("expected_return"):
            values["expected_return"] = self._number("expected_return", minimum=0)
        if not self.partial:
            values["total_invested"] = self._number("total_invested", minimum=0) or 0.0
            values["units"] = self._number("units", minimum=0) or 0.0
        if self.partial and self.provided("status"):
            values["status"] = self._choice("status", SIP_STATUSES)

        start, end = values.get("start_date"), values.get("end_date")
        if start and end and end < start:
            self._add_error("end_date", "End date cannot be before the start date.")
        if not self.partial:
            if values.get("price_source") == "mf_nav" and not values.get("scheme_code"):
                self._add_error("scheme_code", "A scheme code is required for NAV pricing.")
            if values.get("units") and not values.get("total_invested"):
                self._add_error("total_invested", "Opening units need an invested amount.")
            values["fund_name"] = values.get("fund_name") or values.get("name")
        self.values = values
        return not self.errors

    def to_draft(self) -> SipDraft:
        v = self.values
        return SipDraft(
            name=v["name"],
            fund_name=v["fund_name"],
            amount=v["amount"],
            start_date=v["start_date"],
            frequency=v["frequency"] or "monthly",
            anchor_day=v["anchor_day"] or 1,
            price_source=v["price_source"] or "market",
            symbol=v["symbol"],
            scheme_code=v["scheme_code"],
            end_date=v["end_date"],
            expected_return=12.0 if v["expected_return"] is None else v["expected_return"],
            total_invested=v["total_invested"],
            units=v["units"],
        )

    def changes(self) -> dict[str, Any]:
        """Field updates for an existing SIP; unset optionals clear the column."""

        changes = dict(self.values)
        for key in ("price_source", "frequency"):
            if key in changes and changes[key] is None:
                changes.pop(key)
        if changes.get("expected_return") is None:
            changes.pop("expected_return", None)
        if changes.get("anchor_day") is None:
            changes.pop("anchor_day", None)
        return changes


@dataclass
class InstallmentForm(FormBase):
    """A manual installment, or a partial edit of one."""

    partial: bool = False

    KEYS = ("id", "installment_id", "due_date", "status", "amount", "nav_or_price", "units", "note")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, partial: bool = False) -> "InstallmentForm":
        form = cls(partial=partial)
        form.load(data, cls.KEYS)
        return form

    def _wants(self, key: str) -> bool:
        return not self.partial or self.provided(key)

    def validate(self) -> bool:
        self.errors.clear()
        values: dict[str, Any] = {}
        if self.partial:
            id_key = "installment_id" if self.provided("installment_id") else "id"
            self.installment_id = self._integer(id_key, required=True, low=1, high=2**31)
        if self._wants("due_date"):
            values["due_date"] = self._date("due_date", required=True)
        if self._wants("amount"):
            values["amount"] = self._number("amount", required=True, minimum=0, exclusive=True)
        if self._wants("nav_or_price"):
            values["nav_or_price"] = self._number("nav_or_price", minimum=0, exclusive=True)
        if self._wants("units"):
            values["units"] = self._number("units", minimum=0, exclusive=True)
        if self._wants("status"):
            values["status"] = self._choice("status", INSTALLMENT_STATUSES, default="paid")
        if self._wants("note"):
            values["note"] = self._text("note")
        if self.partial and not values and not self.errors:
            self._add_error("installment", "Nothing to update.")
        self.values = values
        return not self.errors

    def to_draft(self) -> InstallmentDraft:
        v = self.values
        return InstallmentDraft(
            due_date=v["due_date"],
            amount=v["amount"],
            nav_or_price=v["nav_or_price"],
            units=v["units"],
            status=v["status"] or "paid",
            note=v["note"],
        )
