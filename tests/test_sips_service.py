"""SIP lifecycle: creation, edits, manual installments, refresh and migration."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from tests.conftest import assert_float_equal
from wealthbook.errors import InvalidTransitionError, ReferenceMismatchError, ValidationError
from wealthbook.services.investments import NewHolding
from wealthbook.services.sips import InstallmentDraft, SipDraft


def _draft(**overrides) -> SipDraft:
    values = dict(
        name="Index SIP",
        fund_name="Nifty 50 Index Fund",
        amount=5000.0,
        start_date=date(2024, 1, 1),
        anchor_day=5,
        symbol="NIFTYBEES.NS",
    )
    values.update(overrides)
    return SipDraft(**values)


def test_create_books_opening_balance(sip_service, user):
    sip = sip_service.create_sip(_draft(total_invested=10000.0, units=200.0), user_id=user.id)

    assert sip.status == "active"
    assert_float_equal(sip.total_invested, 10000.0)
    assert_float_equal(sip.units, 200.0)

    details = sip_service.details(sip.id, user_id=user.id)
    assert [inst["note"] for inst in details["installments"]] == ["Opening balance"]
    assert [log["action"] for log in details["change_logs"]] == ["sip_created"]


def test_field_and_status_changes_are_logged(sip_service, user):
    sip = sip_service.create_sip(_draft(), user_id=user.id)

    sip_service.update_sip(sip.id, {"amount": 7500.0, "name": "Index SIP"}, user_id=user.id)
    paused = sip_service.update_sip(sip.id, {"status": "paused"}, user_id=user.id)

    assert paused.status == "paused"
    assert_float_equal(paused.amount, 7500.0)
    logs = sip_service.details(sip.id, user_id=user.id)["change_logs"]
    by_action = {(log["action"], log["field"]) for log in logs}
    assert ("field_updated", "amount") in by_action
    assert ("status_changed", "status") in by_action
    assert ("field_updated", "name") not in by_action


def test_closing_sets_end_date_and_freezes_edits(sip_service, user):
    sip = sip_service.create_sip(_draft(), user_id=user.id)

    closed = sip_service.update_sip(sip.id, {"status": "closed"}, user_id=user.id)
    assert closed.end_date is not None

    with pytest.raises(InvalidTransitionError):
        sip_service.update_sip(sip.id, {"status": "active"}, user_id=user.id)
    with pytest.raises(InvalidTransitionError):
        sip_service.update_sip(sip.id, {"amount": 1.0}, user_id=user.id)


def test_status_migrated_requires_migrate_operation(sip_service, user):
    sip = sip_service.create_sip(_draft(), user_id=user.id)

    with pytest.raises(ValidationError):
        sip_service.update_sip(sip.id, {"status": "migrated"}, user_id=user.id)


def test_manual_installments_recompute_totals(sip_service, user):
    sip = sip_service.create_sip(_draft(), user_id=user.id)

    installment, updated = sip_service.add_installment(
        sip.id, InstallmentDraft(due_date=date(2024, 1, 5), amount=5000.0, nav_or_price=50.0), user_id=user.id
    )
    assert_float_equal(installment.units, 100.0)
    assert_float_equal(updated.total_invested, 5000.0)
    assert updated.last_debit_date == datetime(2024, 1, 5)

    _, skipped = sip_service.update_installment(sip.id, installment.id, {"status": "skipped"}, user_id=user.id)
    assert_float_equal(skipped.total_invested, 0.0)
    assert_float_equal(skipped.units, 0.0)

    _, repriced = sip_service.update_installment(
        sip.id, installment.id, {"status": "paid", "nav_or_price": 40.0}, user_id=user.id
    )
    assert_float_equal(repriced.units, 125.0)
    assert_float_equal(repriced.current_value, 5000.0)


def test_editing_installment_keeps_entered_units(sip_service, user):
    sip = sip_service.create_sip(_draft(), user_id=user.id)
    installment, added = sip_service.add_installment(
        sip.id, InstallmentDraft(due_date=date(2024, 1, 5), amount=5000.0, units=40.0), user_id=user.id
    )
    assert_float_equal(added.units, 40.0)

    noted, after_note = sip_service.update_installment(
        sip.id, installment.id, {"note": "typo fix"}, user_id=user.id
    )
    assert_float_equal(noted.units, 40.0)
    assert_float_equal(after_note.units, 40.0)

    resized, after_amount = sip_service.update_installment(
        sip.id, installment.id, {"amount": 6000.0}, user_id=user.id
    )
    assert_float_equal(resized.units, 40.0)
    assert_float_equal(after_amount.total_invested, 6000.0)

    cleared, _ = sip_service.update_installment(
        sip.id, installment.id, {"nav_or_price": 100.0, "units": None}, user_id=user.id
    )
    assert_float_equal(cleared.units, 60.0)


def test_manual_installment_keeps_refreshed_price(sip_service, user):
    sip = sip_service.create_sip(_draft(), user_id=user.id)
    sip_service.add_installment(
        sip.id, InstallmentDraft(due_date=date(2024, 1, 5), amount=5000.0, nav_or_price=100.0), user_id=user.id
    )

    sip_service.refresh_prices(user_id=user.id)
    refreshed = sip_service.get_sip(sip.id, user_id=user.id)
    assert refreshed.last_price == 250.0
    assert refreshed.last_quote_at is not None

    _, after = sip_service.add_installment(
        sip.id, InstallmentDraft(due_date=date(2024, 2, 5), amount=5000.0, nav_or_price=125.0), user_id=user.id
    )

    assert_float_equal(after.units, 90.0)
    assert after.last_price == 250.0
    assert_float_equal(after.current_value, 90.0 * 250.0)


def test_refresh_prices_revalues_without_posting(sip_service, user, quote_provider):
    sip = sip_service.create_sip(_draft(total_invested=5000.0, units=100.0), user_id=user.id)
    sip_service.create_sip(_draft(name="Unmapped", symbol=None), user_id=user.id)

    result = sip_service.refresh_prices(user_id=user.id)

    assert result["scanned"] == 2
    assert result["updated"] == 1
    assert result["skipped"]["missingMapping"] == 1
    refreshed = sip_service.get_sip(sip.id, user_id=user.id)
    assert_float_equal(refreshed.current_value, 100.0 * 250.0)
    assert len(sip_service.list_installments(sip.id, user_id=user.id)) == 1


def test_migrate_creates_mutual_fund_holding(sip_service, ledger_service, user):
    sip = sip_service.create_sip(_draft(total_invested=10000.0, units=200.0), user_id=user.id)

    migrated, holding = sip_service.migrate_to_holding(sip.id, user_id=user.id, now=datetime(2024, 6, 1, 12))

    assert migrated.status == "migrated"
    assert migrated.linked_holding_id == holding.id
    assert migrated.end_date == date(2024, 6, 1)
    assert holding.asset_type == "mutual_fund"
    assert_float_equal(holding.quantity, 200.0)
    assert_float_equal(holding.avg_buy_price, 50.0)
    rows = ledger_service.list_transactions(holding.id, user_id=user.id)
    assert [row.txn_type for row in rows] == ["sip"]


def test_migrate_merges_into_existing_holding(sip_service, ledger_service, user):
    existing = ledger_service.create_holding(
        NewHolding(
            symbol="NIFTYBEES.NS",
            name="Nifty",
            asset_type="mutual_fund",
            quantity=100.0,
            price=100.0,
            occurred_at=datetime(2023, 1, 1),
        ),
        user_id=user.id,
    )
    sip = sip_service.create_sip(_draft(total_invested=10000.0, units=200.0), user_id=user.id)

    _, holding = sip_service.migrate_to_holding(sip.id, user_id=user.id, now=datetime(2024, 6, 1, 12))

    assert holding.id == existing.id
    assert_float_equal(holding.quantity, 300.0)
    assert_float_equal(holding.avg_buy_price, (100 * 100.0 + 10000.0) / 300.0)


def test_migrate_rejects_bad_states(sip_service, user):
    unmapped = sip_service.create_sip(_draft(symbol=None, total_invested=100.0, units=2.0), user_id=user.id)
    with pytest.raises(ReferenceMismatchError):
        sip_service.migrate_to_holding(unmapped.id, user_id=user.id)

    empty = sip_service.create_sip(_draft(), user_id=user.id)
    with pytest.raises(ValidationError):
        sip_service.migrate_to_holding(empty.id, user_id=user.id)

    funded = sip_service.create_sip(_draft(total_invested=100.0, units=2.0), user_id=user.id)
    sip_service.migrate_to_holding(funded.id, user_id=user.id)
    with pytest.raises(InvalidTransitionError):
        sip_service.migrate_to_holding(funded.id, user_id=user.id)
