"""Debt and liability entities."""

from __future__ import annotations

from datetime import date
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

LIABILITY_KINDS = ("loan", "emi", "credit_line")


class Liability(SQLModel, table=True):
    """A debt obligation. Outstanding balance is user/ledger maintained."""

    __tablename__: ClassVar[str] = "liability"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    name: str = Field(nullable=False, max_length=80, index=True)
    kind: str = Field(default="loan", nullable=False, max_length=16)
    principal: float = Field(nullable=False)
    outstanding: float = Field(nullable=False)
    interest_rate: float = Field(default=0.0, nullable=False)
    emi_amount: Optional[float] = Field(default=None)
    start_date: Optional[date] = Field(default=None)
    end_date: Optional[date] = Field(default=None)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "principal": self.principal,
            "outstanding": self.outstanding,
            "interest_rate": self.interest_rate,
            "emi_amount": self.emi_amount,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }
