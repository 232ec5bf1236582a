from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from app.models.lot import LotType


class SupplierCreate(BaseModel):
    name: str
    supplier_type: str = "raw_material"
    contact_details: str = ""
    notes: str = ""


class SupplierUpdate(BaseModel):
    name: Optional[str] = None
    supplier_type: Optional[str] = None
    contact_details: Optional[str] = None
    notes: Optional[str] = None


class SupplierOut(BaseModel):
    id: str
    name: str
    supplier_type: str
    contact_details: str
    notes: str
    created_at: datetime

    model_config = {"from_attributes": True}


class LotCreate(BaseModel):
    lot_type: LotType
    lot_id: str = ""  # generated from the name when empty
    name: str
    category: str = ""
    supplier_id: str | None = None
    quantity_received: float
    unit: str = "kg"
    condition: str = ""
    received_date: date
    storage_notes: str = ""
    handover_to: str | None = None
    amount_paid: float = 0.0

    @field_validator("quantity_received")
    @classmethod
    def quantity_positive(cls, v):
        if v <= 0:
            raise ValueError("Quantity received must be greater than 0")
        return v


class LotUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    supplier_id: Optional[str] = None
    quantity_received: Optional[float] = None
    condition: Optional[str] = None
    received_date: Optional[date] = None
    storage_notes: Optional[str] = None
    handover_to: Optional[str] = None
    amount_paid: Optional[float] = None


class LotOut(BaseModel):
    id: str
    lot_type: str
    lot_id: str
    name: str
    category: str
    supplier_id: str | None = None
    supplier_name: str = ""
    quantity_received: float
    quantity_available: float
    unit: str
    condition: str
    received_date: date
    storage_notes: str
    handover_to: str | None = None
    amount_paid: float
    is_archived: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class WasteCreate(BaseModel):
    quantity_wasted: float
    reason: str
    notes: str = ""
    waste_date: date


class WasteOut(BaseModel):
    id: str
    lot_type: str
    lot_id: str
    lot_identifier: str
    quantity_wasted: float
    unit: str
    reason: str
    notes: str
    waste_date: date
    created_by: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TransferCreate(BaseModel):
    from_lot_id: str
    to_lot_id: str
    quantity_transferred: float
    reason: str
    notes: str = ""
    transfer_date: date


class TransferOut(BaseModel):
    id: str
    lot_type: str
    from_lot_id: str
    from_lot_identifier: str
    to_lot_id: str
    to_lot_identifier: str
    quantity_transferred: float
    unit: str
    reason: str
    notes: str
    transfer_date: date
    created_by: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class MovementOut(BaseModel):
    id: str
    movement_type: str
    quantity: float
    signed_quantity: float
    unit: str
    effective_date: date
    reference_id: str
    reference_type: str
    notes: str
    created_at: datetime
    balance_after: float


class BatchUsageOut(BaseModel):
    batch_id: str
    batch_date: date
    quantity_consumed: float
    unit: str
    is_locked: bool
    qa_status: str


class HistoryEventOut(BaseModel):
    type: str  # waste, transfer_out, transfer_in, consumption
    event_id: str
    event_date: str
    quantity: float
    unit: str = ""
    reason: str = ""
    notes: str = ""
    from_lot_id: str | None = None
    to_lot_id: str | None = None
    from_lot_identifier: str | None = None
    to_lot_identifier: str | None = None
    created_at: datetime | None = None
    quantity_before: float
    quantity_after: float
    below_zero: bool = False


class LotHistoryOut(BaseModel):
    lot_id: str
    lot_identifier: str
    unit: str
    timeline: str  # baseline, merged
    quantity_received: float
    total_batch_consumption: float
    quantity_available: float
    reconstructed_balance: float
    drift: float
    events: list[HistoryEventOut]
    batch_usage: list[BatchUsageOut]
