from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

CUSTOMER_TYPES = ("Hotel", "Restaurant", "Retail", "Direct", "Other")


class CustomerCreate(BaseModel):
    name: str
    customer_type: str = "Direct"
    contact_person: str = ""
    phone: str = ""
    address: str = ""
    status: str = "Active"
    notes: str = ""

    @field_validator("customer_type")
    @classmethod
    def known_type(cls, v):
        if v not in CUSTOMER_TYPES:
            raise ValueError(f"Customer type must be one of: {', '.join(CUSTOMER_TYPES)}")
        return v


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    customer_type: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None


class CustomerOut(BaseModel):
    id: str
    name: str
    customer_type: str
    contact_person: str
    phone: str
    address: str
    status: str
    notes: str
    photo_url: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CustomerStatsOut(BaseModel):
    customer_id: str
    order_count: int
    total_sales: float
    total_paid: float
    outstanding_amount: float
    last_order_date: date | None = None
