"""Holding and investment-ledger persistence around :func:`recompute_position`."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlmodel import Session

from ..errors import NotFoundError, ValidationError
from ..domain.repositories import HoldingRepository, InvestmentTransactionRepository
from ..infra.database import SessionFactory
from ..infra.repositories import (
    SQLModelHoldingRepository,
    SQLModelInvestmentTransactionRepository,
)
from ..logging_config import get_logger
from ..models.portfolio import Holding, InvestmentTransaction
from .dates import DEFAULT_TIMEZONE, local_now
from .ledger import LedgerEntry, LedgerPosition, recompute_position
from .locks import KeyedLocks, holding_locks

logger = get_logger("investments")


@dataclass
class NewLedgerEntry:
    """Validated input for one ledger event."""

    txn_type: str
    amount: float
    occurred_at: datetime
    quantity: Optional[float] = None
    price: Optional[float] = None
    fees: float = 0.0
    taxes: float = 0.0
    note: str = ""


@dataclass
class NewHolding:
    """Validated input for opening a position."""

    symbol: str
    name: str
    asset_type: str
    quantity: float = 0.0
    price: float = 0.0
    occurred_at: Optional[datetime] = None
    currency: str = "INR"


class InvestmentLedgerService:
    """Ledger mutations that keep each holding's cached aggregate in step.

    Every mutation replays the candidate ledger before writing anything, then
    persists the entry change and the new aggregate inside one session while
    holding the per-holding lock.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        locks: KeyedLocks = holding_locks,
        tz_name: str = DEFAULT_TIMEZONE,
    ):
        self.session_factory = session_factory
        self.holdings: HoldingRepository = SQLModelHoldingRepository(session_factory)
        self.transactions: InvestmentTransactionRepository = SQLModelInvestmentTransactionRepository(
            session_factory
        )
        self.locks = locks
        self.tz_name = tz_name

    # Holdings

    def list_holdings(self, *, user_id: int) -> list[Holding]:
        return self.holdings.list_all(user_id=user_id)

    def get_holding(self, holding_id: int, *, user_id: int) -> Holding:
        holding = self.holdings.get_by_id(holding_id, user_id=user_id)
        if holding is None:
            raise NotFoundError("Holding not found")
        return holding

    def create_holding(self, data: NewHolding, *, user_id: int) -> Holding:
        """Open a position; a positive opening quantity is booked as the first buy."""

        holding = Holding(
            user_id=user_id,
            symbol=data.symbol,
            name=data.name,
            asset_type=data.asset_type,
            currency=data.currency,
            current_price=data.price or None,
        )
        with self.session_factory() as session:
            session.add(holding)
            session.flush()
            if data.quantity > 0:
                session.add(
                    InvestmentTransaction(
                        user_id=user_id,
                        holding_id=holding.id,
                        txn_type="buy",
                        quantity=data.quantity,
                        price=data.price,
                        amount=data.quantity * data.price,
                        note="Opening position",
                        occurred_at=data.occurred_at or local_now(self.tz_name),
                    )
                )
                holding.quantity = data.quantity
                holding.avg_buy_price = data.price
            holding.last_updated = local_now(self.tz_name)
            session.add(holding)
            session.flush()
            session.refresh(holding)
        logger.info(
            "Holding created", extra={"user_id": user_id, "holding_id": holding.id}
        )
        return holding

    def update_holding(self, holding_id: int, changes: dict, *, user_id: int) -> Holding:
        """Edit descriptive fields. Cached aggregates are ledger-owned once entries exist."""

        with self.locks.hold(holding_id), self.session_factory() as session:
            holding = self.holdings.lock_for_update(session, holding_id, user_id=user_id)
            if holding is None:
                raise NotFoundError("Holding not found")
            ledger = self.transactions.list_for_holding(holding_id, user_id=user_id, session=session)
            derived = {"quantity", "avg_buy_price"} & set(changes)
            if derived and ledger:
                raise ValidationError(
                    {
                        name: ["Derived from the transaction ledger; record a transaction instead."]
                        for name in sorted(derived)
                    }
                )
            for name in ("name", "asset_type", "current_price", "currency", "quantity", "avg_buy_price"):
                if name in changes:
                    setattr(holding, name, changes[name])
            holding.last_updated = local_now(self.tz_name)
            session.add(holding)
            return holding

    def delete_holding(self, holding_id: int, *, user_id: int) -> None:
        with self.locks.hold(holding_id):
            if not self.holdings.delete(holding_id, user_id=user_id):
                raise NotFoundError("Holding not found")
        logger.info("Holding deleted", extra={"user_id": user_id, "holding_id": holding_id})

    # Ledger

    def list_transactions(self, holding_id: int, *, user_id: int) -> list[InvestmentTransaction]:
        self.get_holding(holding_id, user_id=user_id)
        rows = self.transactions.list_for_holding(holding_id, user_id=user_id)
        return sorted(rows, key=lambda t: (t.occurred_at, t.id or 0), reverse=True)

    def position(self, holding_id: int, *, user_id: int) -> LedgerPosition:
        rows = self.transactions.list_for_holding(holding_id, user_id=user_id)
        return recompute_position(LedgerEntry.from_model(row) for row in rows)

    def add_transaction(
        self, holding_id: int, entry: NewLedgerEntry, *, user_id: int
    ) -> tuple[InvestmentTransaction, Holding]:
        with self.locks.hold(holding_id), self.session_factory() as session:
            holding = self._locked_holding(session, holding_id, user_id)
            txn = InvestmentTransaction(
                user_id=user_id,
                holding_id=holding_id,
                txn_type=entry.txn_type,
                quantity=entry.quantity,
                price=entry.price,
                amount=entry.amount,
                fees=entry.fees,
                taxes=entry.taxes,
                note=entry.note,
                occurred_at=entry.occurred_at,
            )
            self.append_entry(session, holding, txn)
            session.flush()
            session.refresh(txn)
        logger.info(
            "Ledger entry added",
            extra={"user_id": user_id, "holding_id": holding_id, "type": entry.txn_type},
        )
        return txn, holding

    def delete_transaction(self, holding_id: int, transaction_id: int, *, user_id: int) -> Holding:
        with self.locks.hold(holding_id), self.session_factory() as session:
            holding = self._locked_holding(session, holding_id, user_id)
            rows = self.transactions.list_for_holding(holding_id, user_id=user_id, session=session)
            target = next((row for row in rows if row.id == transaction_id), None)
            if target is None:
                raise NotFoundError("Transaction not found")
            remaining = [LedgerEntry.from_model(row) for row in rows if row.id != transaction_id]
            position = recompute_position(remaining)
            session.delete(target)
            self._apply(holding, position, None)
            session.add(holding)
        logger.info(
            "Ledger entry deleted",
            extra={"user_id": user_id, "holding_id": holding_id, "transaction_id": transaction_id},
        )
        return holding

    def recompute_holding(self, holding_id: int, *, user_id: int) -> Holding:
        """Rewrite the cached aggregate from the stored ledger."""

        with self.locks.hold(holding_id), self.session_factory() as session:
            holding = self._locked_holding(session, holding_id, user_id)
            rows = self.transactions.list_for_holding(holding_id, user_id=user_id, session=session)
            if rows:
                position = recompute_position(LedgerEntry.from_model(row) for row in rows)
                self._apply(holding, position, None)
                session.add(holding)
            return holding

    def append_entry(
        self, session: Session, holding: Holding, txn: InvestmentTransaction
    ) -> LedgerPosition:
        """Validate *txn* against the ledger in *session* and stage it with the new aggregate.

        The caller owns the session and must already hold the holding's lock.
        """

        rows = self.transactions.list_for_holding(holding.id, user_id=holding.user_id, session=session)
        position = recompute_position(
            [LedgerEntry.from_model(row) for row in rows] + [LedgerEntry.from_model(txn)]
        )
        session.add(txn)
        self._apply(holding, position, txn.price)
        session.add(holding)
        return position

    def _locked_holding(self, session: Session, holding_id: int, user_id: int) -> Holding:
        holding = self.holdings.lock_for_update(session, holding_id, user_id=user_id)
        if holding is None:
            raise NotFoundError("Holding not found")
        return holding

    def _apply(self, holding: Holding, position: LedgerPosition, price: Optional[float]) -> None:
        holding.quantity = position.quantity
        holding.avg_buy_price = position.avg_buy_price
        if price is not None and price > 0 and not holding.current_price:
            holding.current_price = price
        holding.last_updated = local_now(self.tz_name)
