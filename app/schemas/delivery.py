from datetime import datetime

from pydantic import BaseModel


class DeliveryUpdate(BaseModel):
    quantity_delivered: float | None = None
    delivery_partner_name: str = ""
    delivery_notes: str = ""


class DeliveryToggle(BaseModel):
    enabled: bool


class DeliveryDocumentOut(BaseModel):
    id: str
    document_url: str
    document_name: str
    document_type: str
    created_at: datetime

    model_config = {"from_attributes": True}


class DeliveryOut(BaseModel):
    id: str
    order_id: str
    quantity_delivered: float | None = None
    delivery_partner_name: str
    delivery_notes: str
    documents: list[DeliveryDocumentOut]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
