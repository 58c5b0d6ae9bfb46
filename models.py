from datetime import date, datetime
from enum import Enum

from sqlalchemy import CheckConstraint, Date, DateTime, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class FlowDirection(str, Enum):
    income = "Income"
    expense = "Expense"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )


class LedgerEntry(Base, TimestampMixin):
    """One imported income/expense row, owned by its ``year_month`` period."""

    __tablename__ = "household_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    record_date: Mapped[date] = mapped_column(Date, nullable=False)
    # Free text: unknown directions are kept as imported and never aggregated.
    income_expense: Mapped[str] = mapped_column(Text, nullable=False, default="")
    payment_method: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(Text, nullable=False)
    person: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    location: Mapped[str] = mapped_column(Text, nullable=False, default="")
    memo: Mapped[str] = mapped_column(Text, nullable=False, default="")
    year_month: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        Index("ix_household_records_year_month", "year_month"),
        Index(
            "ix_household_records_year_month_flow", "year_month", "income_expense"
        ),
        CheckConstraint("amount >= 0", name="ck_household_records_amount_positive"),
    )
