"""Budgeting tables."""

from __future__ import annotations

from datetime import date
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


class Budget(SQLModel, table=True):
    """A time-boxed budget envelope group."""

    __tablename__: ClassVar[str] = "budget"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    period_start: date = Field(index=True, nullable=False)
    period_end: date = Field(index=True, nullable=False)
    label: str = Field(default="", max_length=64)


class BudgetLine(SQLModel, table=True):
    """Specific allocation to a category within a budget."""

    __tablename__: ClassVar[str] = "budget_line"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    budget_id: int = Field(foreign_key="budget.id", nullable=False)
    category_id: int = Field(foreign_key="category.id", nullable=False)
    planned_amount: float = Field(nullable=False)
