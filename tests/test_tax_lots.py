"""FIFO tax-lot matching and fiscal-year capital-gains estimates."""

from __future__ import annotations

from datetime import date, datetime

from tests.conftest import assert_float_equal
from wealthbook.services.ledger import LedgerEntry
from wealthbook.services.tax_lots import (
    RealizedSale,
    TaxRules,
    build_tax_center,
    current_fiscal_year,
    estimate_tax,
    fiscal_year_window,
    harvest_candidates,
    match_tax_lots,
)


def _buy(day: datetime, qty: float, price: float, entry_id: int) -> LedgerEntry:
    return LedgerEntry("buy", qty * price, day, quantity=qty, price=price, entry_id=entry_id)


def _sell(day: datetime, qty: float, price: float, entry_id: int) -> LedgerEntry:
    return LedgerEntry("sell", qty * price, day, quantity=qty, price=price, entry_id=entry_id)


def _sale(gain: float, bucket: str = "STCG", symbol: str = "X") -> RealizedSale:
    return RealizedSale(
        holding_id=1,
        symbol=symbol,
        sold_at=datetime(2024, 9, 1),
        quantity=1.0,
        sale_amount=max(gain, 0.0),
        cost=max(-gain, 0.0),
        gain=gain,
        holding_days=10,
        bucket=bucket,
    )


def test_fiscal_year_runs_april_to_march():
    start, end = fiscal_year_window(2024)

    assert start == datetime(2024, 4, 1)
    assert end.date() == date(2025, 3, 31)
    assert current_fiscal_year(date(2025, 3, 31)) == 2024
    assert current_fiscal_year(date(2025, 4, 1)) == 2025


def test_sell_consumes_oldest_lots_first():
    entries = [
        (1, _buy(datetime(2024, 1, 1), 100, 10.0, 1)),
        (1, _buy(datetime(2024, 6, 1), 100, 20.0, 2)),
        (1, _sell(datetime(2025, 2, 1), 150, 30.0, 3)),
    ]

    rows = match_tax_lots(entries, 2024, {1: "INFY"})

    assert [(row.bucket, row.quantity) for row in rows] == [("LTCG", 100), ("STCG", 50)]
    assert_float_equal(rows[0].gain, 2000.0)
    assert rows[0].holding_days >= 365
    assert_float_equal(rows[1].gain, 500.0)
    assert rows[1].holding_days == 245
    assert all(row.symbol == "INFY" for row in rows)


def test_sells_before_the_year_leave_lots_untouched():
    entries = [
        (1, _buy(datetime(2023, 1, 10), 100, 10.0, 1)),
        (1, _sell(datetime(2023, 6, 1), 50, 15.0, 2)),
        (1, _buy(datetime(2024, 6, 1), 100, 20.0, 3)),
        (1, _sell(datetime(2025, 2, 1), 100, 30.0, 4)),
    ]

    rows = match_tax_lots(entries, 2024)

    assert len(rows) == 1
    assert_float_equal(rows[0].quantity, 100.0)
    assert_float_equal(rows[0].cost, 1000.0)
    assert_float_equal(rows[0].gain, 2000.0)
    assert rows[0].bucket == "LTCG"


def test_sip_entry_without_quantity_opens_a_lot_from_its_price():
    entries = [
        (1, LedgerEntry("sip", 5000.0, datetime(2024, 4, 5), price=50.0, entry_id=1)),
        (1, _sell(datetime(2024, 9, 1), 100, 60.0, 2)),
    ]

    rows = match_tax_lots(entries, 2024)

    assert len(rows) == 1
    assert rows[0].unmatched is False
    assert_float_equal(rows[0].cost, 5000.0)
    assert_float_equal(rows[0].gain, 1000.0)


def test_lots_are_tracked_per_holding():
    entries = [
        (1, _buy(datetime(2024, 4, 10), 10, 100.0, 1)),
        (2, _buy(datetime(2024, 4, 11), 10, 500.0, 2)),
        (2, _sell(datetime(2024, 5, 1), 10, 400.0, 3)),
    ]

    rows = match_tax_lots(entries, 2024)

    assert len(rows) == 1
    assert rows[0].holding_id == 2
    assert_float_equal(rows[0].gain, -1000.0)


def test_oversold_remainder_becomes_zero_cost_short_term_row():
    entries = [
        (1, _buy(datetime(2024, 4, 10), 10, 100.0, 1)),
        (1, _sell(datetime(2024, 5, 1), 15, 120.0, 2)),
    ]

    rows = match_tax_lots(entries, 2024)

    assert len(rows) == 2
    gap = rows[1]
    assert gap.unmatched is True
    assert gap.bucket == "STCG"
    assert gap.cost == 0.0
    assert_float_equal(gap.quantity, 5.0)
    assert_float_equal(gap.gain, 600.0)


def test_ltcg_exemption_applies_before_rate():
    estimate = estimate_tax([_sale(150_000.0, "LTCG")])

    assert_float_equal(estimate.taxable_ltcg, 50_000.0)
    assert_float_equal(estimate.ltcg_tax, 5_000.0)
    assert estimate.stcg_tax == 0.0


def test_net_short_term_loss_is_not_taxed():
    estimate = estimate_tax([_sale(1000.0), _sale(-3000.0)])

    assert_float_equal(estimate.stcg_gain, -2000.0)
    assert estimate.stcg_tax == 0.0


def test_custom_rules_are_honoured():
    rules = TaxRules(stcg_rate=0.2, ltcg_rate=0.125, ltcg_exemption=125_000.0)

    estimate = estimate_tax([_sale(1000.0), _sale(225_000.0, "LTCG")], rules)

    assert_float_equal(estimate.stcg_tax, 200.0)
    assert_float_equal(estimate.ltcg_tax, 12_500.0)


def test_harvest_candidates_are_largest_losses_capped():
    rows = [_sale(-float(n), symbol=f"S{n}") for n in range(1, 12)] + [_sale(50.0)]

    picks = harvest_candidates(rows)

    assert len(picks) == 8
    assert picks[0].gain == -11.0
    assert all(row.gain < 0 for row in picks)


def test_tax_center_payload():
    entries = [
        (1, _buy(datetime(2024, 1, 1), 100, 10.0, 1)),
        (1, _buy(datetime(2024, 6, 1), 100, 20.0, 2)),
        (1, _sell(datetime(2025, 2, 1), 150, 30.0, 3)),
    ]

    payload = build_tax_center(entries, 2024, {1: "INFY"})

    assert payload["fy"] == "2024-2025"
    assert payload["totals"]["realized_gain"] == 2500.0
    assert payload["totals"]["stcg_tax"] == 75.0
    assert payload["totals"]["ltcg_tax"] == 0.0
    assert payload["monthly_realized"] == [{"month": "2025-02", "STCG": 500.0, "LTCG": 2000.0, "Net": 2500.0}]
    assert payload["harvest_candidates"] == []
    assert {item["name"] for item in payload["tax_breakup"]} == {"STCG Tax", "LTCG Tax"}
