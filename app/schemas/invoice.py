from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class InvoiceCreate(BaseModel):
    order_id: str
    invoice_date: date | None = None  # defaults to today
    notes: str = ""


class InvoiceUpdate(BaseModel):
    invoice_date: Optional[date] = None
    notes: Optional[str] = None


class InvoiceOut(BaseModel):
    id: str
    invoice_number: str
    order_id: str
    order_number: str
    customer_name: str
    invoice_date: date
    net_total: float
    total_paid: float
    outstanding_amount: float
    notes: str
    generated_by: str | None = None
    created_at: datetime
    updated_at: datetime
