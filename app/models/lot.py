import uuid
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, utcnow


class LotType(str, PyEnum):
    RAW_MATERIAL = "raw_material"
    RECURRING_PRODUCT = "recurring_product"


class Supplier(Base):
    __tablename__ = "suppliers"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    supplier_type: Mapped[str] = mapped_column(String, default="raw_material")  # raw_material, recurring_product, machine, multiple
    contact_details: Mapped[str] = mapped_column(Text, default="")
    notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())


class Lot(Base):
    """A received lot of raw material or recurring product."""

    __tablename__ = "lots"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    lot_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    lot_id: Mapped[str] = mapped_column(String, unique=True, index=True)  # human identifier, e.g. RM-TEA-001
    name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, default="")
    supplier_id: Mapped[str | None] = mapped_column(String, ForeignKey("suppliers.id"), nullable=True)

    quantity_received: Mapped[float] = mapped_column(Float, default=0.0)
    quantity_available: Mapped[float] = mapped_column(Float, default=0.0)  # refreshed from stock_movements
    unit: Mapped[str] = mapped_column(String, default="kg")

    condition: Mapped[str] = mapped_column(String, default="")
    received_date: Mapped[date] = mapped_column(Date, nullable=False)
    storage_notes: Mapped[str] = mapped_column(Text, default="")
    handover_to: Mapped[str | None] = mapped_column(String, nullable=True)
    amount_paid: Mapped[float] = mapped_column(Float, default=0.0)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)

    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    supplier: Mapped["Supplier"] = relationship("Supplier")

    @property
    def supplier_name(self) -> str:
        return self.supplier.name if self.supplier else ""


class WasteRecord(Base):
    __tablename__ = "waste_records"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    lot_type: Mapped[str] = mapped_column(String, nullable=False)
    lot_id: Mapped[str] = mapped_column(String, ForeignKey("lots.id"), nullable=False, index=True)
    lot_identifier: Mapped[str] = mapped_column(String, default="")
    quantity_wasted: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String, default="")
    reason: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="")
    waste_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class TransferRecord(Base):
    __tablename__ = "transfer_records"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    lot_type: Mapped[str] = mapped_column(String, nullable=False)
    from_lot_id: Mapped[str] = mapped_column(String, ForeignKey("lots.id"), nullable=False, index=True)
    from_lot_identifier: Mapped[str] = mapped_column(String, default="")
    to_lot_id: Mapped[str] = mapped_column(String, ForeignKey("lots.id"), nullable=False, index=True)
    to_lot_identifier: Mapped[str] = mapped_column(String, default="")
    quantity_transferred: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String, default="")
    reason: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="")
    transfer_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
