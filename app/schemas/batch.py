from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel

from app.models.batch import QAStatus


class ConsumptionCreate(BaseModel):
    lot_id: str
    quantity_consumed: float


class BatchCreate(BaseModel):
    batch_date: date
    responsible_user_id: str | None = None
    notes: str = ""
    production_start_date: date | None = None
    consumptions: list[ConsumptionCreate] = []


class BatchUpdate(BaseModel):
    batch_date: Optional[date] = None
    responsible_user_id: Optional[str] = None
    notes: Optional[str] = None
    production_start_date: Optional[date] = None
    production_end_date: Optional[date] = None


class OutputCreate(BaseModel):
    output_name: str
    output_size: float | None = None
    output_size_unit: str = ""
    produced_quantity: float
    produced_unit: str


class BatchComplete(BaseModel):
    outputs: list[OutputCreate]
    production_end_date: date | None = None


class BatchApprove(BaseModel):
    qa_status: QAStatus


class ConsumptionOut(BaseModel):
    id: str
    lot_id: str
    lot_type: str
    lot_name: str
    lot_identifier: str
    quantity_consumed: float
    unit: str

    model_config = {"from_attributes": True}


class OutputOut(BaseModel):
    id: str
    output_name: str
    output_size: float | None = None
    output_size_unit: str
    produced_quantity: float
    produced_unit: str

    model_config = {"from_attributes": True}


class BatchOut(BaseModel):
    id: str
    batch_id: str
    batch_date: date
    responsible_user_id: str | None = None
    qa_status: str
    notes: str
    is_locked: bool
    production_start_date: date | None = None
    production_end_date: date | None = None
    consumptions: list[ConsumptionOut]
    outputs: list[OutputOut]
    created_at: datetime

    model_config = {"from_attributes": True}
