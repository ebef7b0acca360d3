"""Holding and ledger-entry form validation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ...models.portfolio import ASSET_TYPES, LEDGER_TYPES
from ...services.investments import NewHolding, NewLedgerEntry
from ..forms import FormBase


@dataclass
class HoldingForm(FormBase):
    """Opening a position, optionally with a first buy."""

    symbol: Optional[str] = None
    name: Optional[str] = None
    asset_type: Optional[str] = None
    quantity: Optional[float] = None
    price: Optional[float] = None
    occurred_at: Optional[datetime] = None
    currency: Optional[str] = None

    KEYS = ("symbol", "name", "asset_type", "type", "quantity", "price", "avg_buy_price", "date", "currency")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "HoldingForm":
        form = cls()
        form.load(data, cls.KEYS)
        return form

    def validate(self) -> bool:
        self.errors.clear()
        self.symbol = self._text("symbol", required=True, max_length=32)
        if self.symbol:
            self.symbol = self.symbol.upper()
        self.name = self._text("name", max_length=128) or self.symbol or ""
        asset_key = "asset_type" if self.provided("asset_type") else "type"
        self.asset_type = self._choice(asset_key, ASSET_TYPES, default="stock")
        self.quantity = self._number("quantity", minimum=0)
        price_key = "price" if self.provided("price") else "avg_buy_price"
        self.price = self._number(price_key, minimum=0)
        if self.quantity and self.quantity > 0 and not (self.price and self.price > 0):
            self._add_error("price", "A price is required when opening with a quantity.")
        self.occurred_at = self._datetime("date")
        self.currency = (self._text("currency", max_length=3) or "INR").upper()
        return not self.errors

    def to_new_holding(self) -> NewHolding:
        return NewHolding(
            symbol=self.symbol or "",
            name=self.name or "",
            asset_type=self.asset_type or "stock",
            quantity=self.quantity or 0.0,
            price=self.price or 0.0,
            occurred_at=self.occurred_at,
            currency=self.currency or "INR",
        )


@dataclass
class HoldingUpdateForm(FormBase):
    """Partial update of a holding's descriptive fields."""

    KEYS = ("name", "asset_type", "current_price", "currency", "quantity", "avg_buy_price")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "HoldingUpdateForm":
        form = cls()
        form.load(data, cls.KEYS)
        return form

    def validate(self) -> bool:
        self.errors.clear()
        self.changes: dict[str, Any] = {}
        if self.provided("name"):
            self.changes["name"] = self._text("name", required=True, max_length=128)
        if self.provided("asset_type"):
            self.changes["asset_type"] = self._choice("asset_type", ASSET_TYPES)
        if self.provided("currency"):
            self.changes["currency"] = (self._text("currency", required=True, max_length=3) or "").upper()
        for key in ("current_price", "quantity", "avg_buy_price"):
            if self.provided(key):
                self.changes[key] = self._number(key, required=True, minimum=0)
        return not self.errors


@dataclass
class InvestmentTransactionForm(FormBase):
    """One ledger event. ``amount`` defaults to quantity × price."""

    txn_type: Optional[str] = None
    quantity: Optional[float] = None
    price: Optional[float] = None
    amount: Optional[float] = None
    fees: float = 0.0
    taxes: float = 0.0
    note: str = ""
    occurred_at: Optional[datetime] = None

    KEYS = ("type", "quantity", "price", "amount", "fees", "taxes", "note", "date")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, tz_name: Optional[str] = None) -> "InvestmentTransactionForm":
        form = cls()
        if tz_name:
            form.tz_name = tz_name
        form.load(data, cls.KEYS)
        return form

    def validate(self, *, now: Optional[datetime] = None) -> bool:
        self.errors.clear()
        if not self.provided("type"):
            self._add_error("type", "This field is required.")
        self.txn_type = self._choice("type", LEDGER_TYPES)
        self.quantity = self._number("quantity", minimum=0, exclusive=True)
        self.price = self._number("price", minimum=0, exclusive=True)
        self.amount = self._number("amount", minimum=0)
        self.fees = self._number("fees", minimum=0) or 0.0
        self.taxes = self._number("taxes", minimum=0) or 0.0
        self.note = self._text("note") or ""
        self.occurred_at = self._datetime("date") or now

        if self.txn_type in ("buy", "sell") and self.quantity is None and "quantity" not in self.errors:
            self._add_error("quantity", f"Quantity is required for a {self.txn_type}.")
        if self.amount is None and "amount" not in self.errors:
            if self.quantity and self.price:
                self.amount = self.quantity * self.price
            else:
                self._add_error("amount", "Amount is required.")
        if self.amount is not None and self.amount <= 0 and "amount" not in self.errors:
            self._add_error("amount", "Amount must be greater than zero.")
        if self.occurred_at is None and "date" not in self.errors:
            self._add_error("date", "This field is required.")
        return not self.errors

    def to_entry(self) -> NewLedgerEntry:
        return NewLedgerEntry(
            txn_type=self.txn_type or "",
            amount=self.amount or 0.0,
            occurred_at=self.occurred_at or datetime.min,
            quantity=self.quantity,
            price=self.price,
            fees=self.fees,
            taxes=self.taxes,
            note=self.note,
        )
