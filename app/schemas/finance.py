from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

PAYMENT_METHODS = ("cash", "bank_transfer", "upi", "cheque", "card")


class _EntryCreate(BaseModel):
    amount: float
    reason: str = ""
    payment_to: str = "organization_bank"
    paid_to_user: str | None = None
    payment_date: date
    payment_method: str = "cash"
    bank_reference: str = ""
    evidence_url: str = ""
    description: str = ""
    category: str = ""

    @field_validator("amount")
    @classmethod
    def amount_positive(cls, v):
        if v <= 0:
            raise ValueError("Amount must be greater than 0")
        return v

    @field_validator("payment_method")
    @classmethod
    def known_method(cls, v):
        if v not in PAYMENT_METHODS:
            raise ValueError(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}")
        return v


class ContributionCreate(_EntryCreate):
    contribution_type: str = "investment"
    paid_by: str = ""


class IncomeCreate(_EntryCreate):
    source: str = ""
    income_type: str = "other"


class ExpenseCreate(_EntryCreate):
    vendor: str = ""
    expense_type: str = "operational"


class FinanceEntryUpdate(BaseModel):
    amount: Optional[float] = None
    reason: Optional[str] = None
    payment_to: Optional[str] = None
    paid_to_user: Optional[str] = None
    payment_date: Optional[date] = None
    payment_method: Optional[str] = None
    bank_reference: Optional[str] = None
    evidence_url: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    contribution_type: Optional[str] = None
    paid_by: Optional[str] = None
    source: Optional[str] = None
    income_type: Optional[str] = None
    vendor: Optional[str] = None
    expense_type: Optional[str] = None


class _EntryOut(BaseModel):
    id: str
    transaction_id: str
    amount: float
    reason: str
    payment_to: str
    paid_to_user: str | None = None
    payment_date: date
    payment_method: str
    bank_reference: str
    evidence_url: str
    description: str
    category: str
    recorded_by: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ContributionOut(_EntryOut):
    contribution_type: str
    paid_by: str


class IncomeOut(_EntryOut):
    source: str
    income_type: str
    order_id: str | None = None
    order_payment_id: str | None = None


class ExpenseOut(_EntryOut):
    vendor: str
    expense_type: str


class FinanceSummaryOut(BaseModel):
    total_contributions: float
    total_income: float
    total_expenses: float
    balance: float
    contribution_count: int
    income_count: int
    expense_count: int


class LedgerEntryOut(BaseModel):
    kind: str  # contribution, income, expense
    id: str
    transaction_id: str
    amount: float
    signed_amount: float
    payment_date: date
    payment_method: str
    reason: str
    description: str
    created_at: datetime
