from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class OrderItemCreate(BaseModel):
    processed_good_id: str
    quantity: float
    unit_price: float
    form: str = ""
    size: str = ""


class OrderItemUpdate(BaseModel):
    quantity: Optional[float] = None
    unit_price: Optional[float] = None
    form: Optional[str] = None
    size: Optional[str] = None


class OrderCreate(BaseModel):
    customer_id: str
    order_date: date
    sold_by: str | None = None
    notes: str = ""
    discount_amount: float = 0.0
    third_party_delivery_enabled: bool = False
    items: list[OrderItemCreate] = []


class OrderUpdate(BaseModel):
    order_date: Optional[date] = None
    sold_by: Optional[str] = None
    notes: Optional[str] = None


class HoldRequest(BaseModel):
    reason: str


class DiscountRequest(BaseModel):
    discount_amount: float


class UnlockRequest(BaseModel):
    reason: str


class PaymentCreate(BaseModel):
    payment_date: date
    payment_mode: str = "Cash"
    transaction_reference: str = ""
    evidence_url: str = ""
    amount_received: float
    notes: str = ""

    @field_validator("payment_mode")
    @classmethod
    def valid_mode(cls, v):
        if v not in ("Cash", "UPI", "Bank"):
            raise ValueError("Payment mode must be one of: Cash, UPI, Bank")
        return v


class OrderItemOut(BaseModel):
    id: str
    processed_good_id: str
    product_type: str
    form: str
    size: str
    quantity: float
    unit_price: float
    unit: str
    line_total: float

    model_config = {"from_attributes": True}


class PaymentOut(BaseModel):
    id: str
    payment_date: date
    payment_mode: str
    transaction_reference: str
    evidence_url: str
    amount_received: float
    notes: str
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderOut(BaseModel):
    id: str
    order_number: str
    customer_id: str
    customer_name: str
    order_date: date
    status: str
    payment_status: str
    sold_by: str | None = None
    notes: str
    total_amount: float
    discount_amount: float
    net_total: float
    total_paid: float
    outstanding_amount: float
    is_on_hold: bool
    hold_reason: str
    held_at: datetime | None = None
    completed_at: datetime | None = None
    is_locked: bool
    locked_at: datetime | None = None
    can_unlock_until: datetime | None = None
    third_party_delivery_enabled: bool
    items: list[OrderItemOut]
    payments: list[PaymentOut]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class LockStatusOut(BaseModel):
    order_id: str
    is_locked: bool
    locked_at: datetime | None = None
    locked_by: str | None = None
    can_unlock_until: datetime | None = None
    can_unlock: bool
    unlock_time_remaining_ms: int | None = None
    auto_lock_at: datetime | None = None
    auto_lock_remaining_seconds: float | None = None


class LockLogOut(BaseModel):
    id: str
    action: str
    performed_by: str | None = None
    performed_by_name: str
    performed_at: datetime
    unlock_reason: str

    model_config = {"from_attributes": True}


class AuditLogOut(BaseModel):
    id: str
    event_type: str
    performed_by: str | None = None
    performed_by_name: str
    performed_at: datetime
    event_data: str
    description: str

    model_config = {"from_attributes": True}
