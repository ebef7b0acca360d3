"""FIFO tax-lot matching and capital-gains estimates (Indian fiscal year).

Lots are rebuilt from the full buy/sip history on every call; nothing here
is cached or shared between requests.
"""

from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import asdict, dataclass
from datetime import date, datetime, time
from typing import Iterable, Mapping, Optional

from .dates import elapsed_days, month_key
from .ledger import LedgerEntry

LOT_EPSILON = 1e-7
LONG_TERM_DAYS = 365
HARVEST_LIMIT = 8


@dataclass(frozen=True)
class TaxRules:
    """Flat-rate estimate parameters. Not authoritative tax advice."""

    stcg_rate: float = 0.15
    ltcg_rate: float = 0.10
    ltcg_exemption: float = 100_000.0


DEFAULT_TAX_RULES = TaxRules()


@dataclass
class TaxLot:
    quantity: float
    price: float
    acquired_at: datetime


@dataclass(frozen=True)
class RealizedSale:
    holding_id: int
    symbol: str
    sold_at: datetime
    quantity: float
    sale_amount: float
    cost: float
    gain: float
    holding_days: int
    bucket: str
    unmatched: bool = False

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["sold_at"] = self.sold_at.isoformat()
        for key in ("quantity", "sale_amount", "cost", "gain"):
            payload[key] = round(payload[key], 2)
        return payload


@dataclass(frozen=True)
class TaxEstimate:
    stcg_gain: float
    ltcg_gain: float
    stcg_tax: float
    taxable_ltcg: float
    ltcg_tax: float

    @property
    def realized_gain(self) -> float:
        return self.stcg_gain + self.ltcg_gain

    @property
    def total_tax(self) -> float:
        return self.stcg_tax + self.ltcg_tax

    def to_dict(self) -> dict:
        return {
            "realized_gain": round(self.realized_gain, 2),
            "stcg_gain": round(self.stcg_gain, 2),
            "ltcg_gain": round(self.ltcg_gain, 2),
            "stcg_tax": round(self.stcg_tax, 2),
            "taxable_ltcg": round(self.taxable_ltcg, 2),
            "ltcg_tax": round(self.ltcg_tax, 2),
            "total_tax": round(self.total_tax, 2),
        }


def fiscal_year_window(fy_start_year: int) -> tuple[datetime, datetime]:
    """April 1 of *fy_start_year* through March 31 of the next year, inclusive."""

    return (
        datetime.combine(date(fy_start_year, 4, 1), time.min),
        datetime.combine(date(fy_start_year + 1, 3, 31), time.max),
    )


def current_fiscal_year(today: date) -> int:
    return today.year if today.month >= 4 else today.year - 1


def _lot_price(entry: LedgerEntry) -> float:
    qty = entry.units
    if qty > 0:
        return entry.amount / qty
    return entry.price or 0.0


def match_tax_lots(
    entries: Iterable[tuple[int, LedgerEntry]],
    fy_start_year: int,
    names: Optional[Mapping[int, str]] = None,
) -> list[RealizedSale]:
    """Match sells inside the fiscal year against FIFO lots per holding.

    *entries* are ``(holding_id, entry)`` pairs covering everything up to the
    end of the fiscal year. Sells beyond the available lots yield one
    ``unmatched`` row with zero cost, classed short-term.
    """

    fy_start, fy_end = fiscal_year_window(fy_start_year)
    names = names or {}
    lots: dict[int, deque[TaxLot]] = defaultdict(deque)
    rows: list[RealizedSale] = []

    ordered = sorted(entries, key=lambda pair: pair[1].sort_key())
    for holding_id, entry in ordered:
        if entry.occurred_at > fy_end:
            continue
        queue = lots[holding_id]

        if entry.txn_type in ("buy", "sip"):
            qty = entry.units
            price = _lot_price(entry)
            if qty > 0 and price > 0:
                queue.append(TaxLot(qty, price, entry.occurred_at))
            continue

        if entry.txn_type != "sell":
            continue

        # Sells before the fiscal year leave the lots untouched.
        if entry.occurred_at < fy_start:
            continue
        sell_qty = entry.units
        if sell_qty <= 0:
            continue
        sale_price = entry.amount / sell_qty
        symbol = names.get(holding_id, "Holding")
        remaining = sell_qty

        while remaining > LOT_EPSILON and queue:
            lot = queue[0]
            take = min(remaining, lot.quantity)
            cost = take * lot.price
            sale_amount = take * sale_price
            days = max(0, elapsed_days(lot.acquired_at, entry.occurred_at))
            rows.append(
                RealizedSale(
                    holding_id=holding_id,
                    symbol=symbol,
                    sold_at=entry.occurred_at,
                    quantity=take,
                    sale_amount=sale_amount,
                    cost=cost,
                    gain=sale_amount - cost,
                    holding_days=days,
                    bucket="LTCG" if days >= LONG_TERM_DAYS else "STCG",
                )
            )
            remaining -= take
            lot.quantity -= take
            if lot.quantity <= LOT_EPSILON:
                queue.popleft()

        if remaining > LOT_EPSILON:
            sale_amount = remaining * sale_price
            rows.append(
                RealizedSale(
                    holding_id=holding_id,
                    symbol=symbol,
                    sold_at=entry.occurred_at,
                    quantity=remaining,
                    sale_amount=sale_amount,
                    cost=0.0,
                    gain=sale_amount,
                    holding_days=0,
                    bucket="STCG",
                    unmatched=True,
                )
            )

    return rows


def estimate_tax(rows: Iterable[RealizedSale], rules: TaxRules = DEFAULT_TAX_RULES) -> TaxEstimate:
    stcg = 0.0
    ltcg = 0.0
    for row in rows:
        if row.bucket == "LTCG":
            ltcg += row.gain
        else:
            stcg += row.gain
    taxable_ltcg = max(0.0, ltcg - rules.ltcg_exemption)
    return TaxEstimate(
        stcg_gain=stcg,
        ltcg_gain=ltcg,
        stcg_tax=max(0.0, stcg) * rules.stcg_rate,
        taxable_ltcg=taxable_ltcg,
        ltcg_tax=taxable_ltcg * rules.ltcg_rate,
    )


def monthly_realized(rows: Iterable[RealizedSale]) -> list[dict]:
    buckets: dict[str, dict[str, float]] = {}
    for row in rows:
        slot = buckets.setdefault(month_key(row.sold_at), {"STCG": 0.0, "LTCG": 0.0})
        slot[row.bucket] += row.gain
    return [
        {
            "month": month,
            "STCG": round(gains["STCG"], 2),
            "LTCG": round(gains["LTCG"], 2),
            "Net": round(gains["STCG"] + gains["LTCG"], 2),
        }
        for month, gains in sorted(buckets.items())
    ]


def harvest_candidates(rows: Iterable[RealizedSale], limit: int = HARVEST_LIMIT) -> list[RealizedSale]:
    losses = [row for row in rows if row.gain < 0]
    return sorted(losses, key=lambda row: row.gain)[:limit]


def build_tax_center(
    entries: Iterable[tuple[int, LedgerEntry]],
    fy_start_year: int,
    names: Optional[Mapping[int, str]] = None,
    rules: TaxRules = DEFAULT_TAX_RULES,
) -> dict:
    rows = match_tax_lots(entries, fy_start_year, names)
    estimate = estimate_tax(rows, rules)
    return {
        "fy": f"{fy_start_year}-{fy_start_year + 1}",
        "totals": estimate.to_dict(),
        "transactions": [
            row.to_dict() for row in sorted(rows, key=lambda r: r.sold_at, reverse=True)
        ],
        "monthly_realized": monthly_realized(rows),
        "harvest_candidates": [row.to_dict() for row in harvest_candidates(rows)],
        "tax_breakup": [
            {"name": "STCG Tax", "value": round(estimate.stcg_tax, 2)},
            {"name": "LTCG Tax", "value": round(estimate.ltcg_tax, 2)},
        ],
    }
