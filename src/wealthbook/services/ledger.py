"""Investment ledger recomputation.

Holding valuation uses the weighted-average cost method. FIFO lot matching
for tax purposes lives in :mod:`wealthbook.services.tax_lots` and is kept
independent on purpose: the two answer different questions.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Iterable, Optional

from ..errors import LedgerIntegrityError
from ..models.portfolio import InvestmentTransaction

QUANTITY_EPSILON = 1e-6


@dataclass(frozen=True)
class LedgerEntry:
    """Engine-side view of one ledger event."""

    txn_type: str
    amount: float
    occurred_at: datetime
    quantity: Optional[float] = None
    price: Optional[float] = None
    fees: float = 0.0
    taxes: float = 0.0
    entry_id: Optional[int] = None

    @classmethod
    def from_model(cls, txn: InvestmentTransaction) -> "LedgerEntry":
        return cls(
            txn_type=txn.txn_type,
            amount=float(txn.amount or 0.0),
            occurred_at=txn.occurred_at,
            quantity=float(txn.quantity) if txn.quantity is not None else None,
            price=float(txn.price) if txn.price is not None else None,
            fees=float(txn.fees or 0.0),
            taxes=float(txn.taxes or 0.0),
            entry_id=txn.id,
        )

    @property
    def units(self) -> float:
        """Quantity moved, derived from amount/price when not recorded."""

        if self.quantity is not None and self.quantity > 0:
            return self.quantity
        if self.price is not None and self.price > 0 and self.amount > 0:
            return self.amount / self.price
        return 0.0

    @property
    def unit_price(self) -> float:
        if self.price is not None and self.price > 0:
            return self.price
        units = self.units
        if units > 0:
            return self.amount / units
        return 0.0

    def sort_key(self) -> tuple:
        # Unsaved entries sort after persisted ones recorded at the same instant.
        return (self.occurred_at, self.entry_id if self.entry_id is not None else float("inf"))


@dataclass(slots=True)
class LedgerPosition:
    """Aggregate state derived from a holding's ledger."""

    quantity: float = 0.0
    avg_buy_price: float = 0.0
    realized_gain: float = 0.0
    fees_paid: float = 0.0
    dividends: float = 0.0

    @property
    def invested(self) -> float:
        return self.quantity * self.avg_buy_price

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["invested"] = self.invested
        return payload


def recompute_position(entries: Iterable[LedgerEntry]) -> LedgerPosition:
    """Replay *entries* chronologically and return the derived position.

    Raises:
        LedgerIntegrityError: when a sell exceeds the quantity held at that point.
    """

    position = LedgerPosition()
    for entry in sorted(entries, key=LedgerEntry.sort_key):
        position.fees_paid += entry.fees + entry.taxes

        if entry.txn_type in ("buy", "sip"):
            units = entry.units
            if units <= 0:
                continue
            new_qty = position.quantity + units
            if new_qty > 0:
                position.avg_buy_price = (
                    position.quantity * position.avg_buy_price + units * entry.unit_price
                ) / new_qty
            position.quantity = new_qty

        elif entry.txn_type == "sell":
            units = entry.units
            if units <= 0:
                continue
            if units > position.quantity + QUANTITY_EPSILON:
                raise LedgerIntegrityError(
                    f"Sell of {units:g} units on {entry.occurred_at.date().isoformat()} "
                    f"exceeds the {position.quantity:g} units held."
                )
            position.realized_gain += units * (entry.unit_price - position.avg_buy_price)
            position.quantity -= units
            if position.quantity < QUANTITY_EPSILON:
                position.quantity = 0.0
                position.avg_buy_price = 0.0

        elif entry.txn_type == "dividend":
            position.dividends += entry.amount
            position.realized_gain += entry.amount

        elif entry.txn_type == "fee":
            position.fees_paid += entry.amount

    return position
