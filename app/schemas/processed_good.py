from datetime import date, datetime

from pydantic import BaseModel


class ProcessedGoodOut(BaseModel):
    id: str
    batch_id: str | None = None
    batch_reference: str
    product_type: str
    quantity_created: float
    quantity_available: float
    unit: str
    production_date: date
    qa_status: str
    output_size: float | None = None
    output_size_unit: str
    additional_information: str
    is_archived: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ProcessedGoodWasteCreate(BaseModel):
    quantity_wasted: float
    reason: str
    notes: str = ""
    waste_date: date


class ProcessedGoodWasteOut(BaseModel):
    id: str
    processed_good_id: str
    quantity_wasted: float
    unit: str
    reason: str
    notes: str
    waste_date: date
    created_at: datetime

    model_config = {"from_attributes": True}


class SaleRecordOut(BaseModel):
    order_id: str
    order_number: str
    order_date: date
    customer_name: str
    quantity: float
    unit_price: float
    line_total: float
    order_status: str
