import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class _FinanceEntryMixin:
    """Columns shared by contributions, income and expenses."""

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    transaction_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str] = mapped_column(String, default="")
    payment_to: Mapped[str] = mapped_column(String, default="organization_bank")  # organization_bank, other_bank_account
    paid_to_user: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(String, default="cash")  # cash, bank_transfer, upi, cheque, card
    bank_reference: Mapped[str] = mapped_column(String, default="")
    evidence_url: Mapped[str] = mapped_column(String, default="")
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String, default="")
    recorded_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())


class Contribution(_FinanceEntryMixin, Base):
    __tablename__ = "contributions"

    contribution_type: Mapped[str] = mapped_column(String, default="investment")  # investment, capital, loan, other
    paid_by: Mapped[str] = mapped_column(String, default="")


class Income(_FinanceEntryMixin, Base):
    __tablename__ = "income"

    source: Mapped[str] = mapped_column(String, default="")
    income_type: Mapped[str] = mapped_column(String, default="other")  # sales, service, interest, other

    # Set when the entry was booked from an order payment
    order_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    order_payment_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)


class Expense(_FinanceEntryMixin, Base):
    __tablename__ = "expenses"

    vendor: Mapped[str] = mapped_column(String, default="")
    expense_type: Mapped[str] = mapped_column(String, default="operational")  # operational, salary, utilities, maintenance, raw_material, other
