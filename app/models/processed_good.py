import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, utcnow


class ProcessedGood(Base):
    """Finished stock produced by a completed batch, sold through orders."""

    __tablename__ = "processed_goods"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    batch_id: Mapped[str | None] = mapped_column(String, ForeignKey("production_batches.id"), nullable=True, index=True)
    batch_reference: Mapped[str] = mapped_column(String, default="")
    product_type: Mapped[str] = mapped_column(String, nullable=False)
    quantity_created: Mapped[float] = mapped_column(Float, default=0.0)
    quantity_available: Mapped[float] = mapped_column(Float, default=0.0)
    unit: Mapped[str] = mapped_column(String, default="")
    production_date: Mapped[date] = mapped_column(Date, nullable=False)
    qa_status: Mapped[str] = mapped_column(String, default="pending")
    output_size: Mapped[float | None] = mapped_column(Float, nullable=True)
    output_size_unit: Mapped[str] = mapped_column(String, default="")
    additional_information: Mapped[str] = mapped_column(Text, default="")
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class ProcessedGoodWaste(Base):
    __tablename__ = "processed_good_waste"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    processed_good_id: Mapped[str] = mapped_column(String, ForeignKey("processed_goods.id"), nullable=False, index=True)
    quantity_wasted: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String, default="")
    reason: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="")
    waste_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
