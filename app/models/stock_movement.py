import uuid
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import Date, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, utcnow


class MovementType(str, PyEnum):
    IN = "IN"
    CONSUMPTION = "CONSUMPTION"
    WASTE = "WASTE"
    TRANSFER_OUT = "TRANSFER_OUT"
    TRANSFER_IN = "TRANSFER_IN"


CREDIT_MOVEMENTS = {MovementType.IN.value, MovementType.TRANSFER_IN.value}
DEBIT_MOVEMENTS = {MovementType.CONSUMPTION.value, MovementType.WASTE.value, MovementType.TRANSFER_OUT.value}


class StockMovement(Base):
    """Append-only ledger of every quantity change on a lot."""

    __tablename__ = "stock_movements"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    lot_id: Mapped[str] = mapped_column(String, ForeignKey("lots.id"), nullable=False, index=True)
    lot_type: Mapped[str] = mapped_column(String, nullable=False)
    movement_type: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)  # always positive, sign comes from movement_type
    unit: Mapped[str] = mapped_column(String, default="")
    effective_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    reference_id: Mapped[str] = mapped_column(String, default="")  # waste/transfer record or batch id
    reference_type: Mapped[str] = mapped_column(String, default="")  # initial_intake, production_batch, waste_record, transfer_record
    notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    @property
    def signed_quantity(self) -> float:
        if self.movement_type in CREDIT_MOVEMENTS:
            return self.quantity
        if self.movement_type in DEBIT_MOVEMENTS:
            return -self.quantity
        return 0.0
