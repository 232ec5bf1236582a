import uuid
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, utcnow


class QAStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    HOLD = "hold"


class ProductionBatch(Base):
    __tablename__ = "production_batches"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    batch_id: Mapped[str] = mapped_column(String, unique=True, index=True)  # BATCH-0001
    batch_date: Mapped[date] = mapped_column(Date, nullable=False)
    responsible_user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    qa_status: Mapped[str] = mapped_column(String, default=QAStatus.PENDING.value)
    notes: Mapped[str] = mapped_column(Text, default="")
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False)
    production_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    production_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    consumptions: Mapped[list["BatchConsumption"]] = relationship(
        "BatchConsumption", back_populates="batch", cascade="all, delete-orphan"
    )
    outputs: Mapped[list["BatchOutput"]] = relationship(
        "BatchOutput", back_populates="batch", cascade="all, delete-orphan"
    )


class BatchConsumption(Base):
    """Quantity of a lot consumed by a production batch."""

    __tablename__ = "batch_consumptions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    batch_id: Mapped[str] = mapped_column(String, ForeignKey("production_batches.id"), nullable=False, index=True)
    lot_id: Mapped[str] = mapped_column(String, ForeignKey("lots.id"), nullable=False, index=True)
    lot_type: Mapped[str] = mapped_column(String, nullable=False)
    lot_name: Mapped[str] = mapped_column(String, default="")
    lot_identifier: Mapped[str] = mapped_column(String, default="")
    quantity_consumed: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    batch: Mapped["ProductionBatch"] = relationship("ProductionBatch", back_populates="consumptions")


class BatchOutput(Base):
    __tablename__ = "batch_outputs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    batch_id: Mapped[str] = mapped_column(String, ForeignKey("production_batches.id"), nullable=False, index=True)
    output_name: Mapped[str] = mapped_column(String, nullable=False)
    output_size: Mapped[float | None] = mapped_column(Float, nullable=True)
    output_size_unit: Mapped[str] = mapped_column(String, default="")
    produced_quantity: Mapped[float] = mapped_column(Float, nullable=False)
    produced_unit: Mapped[str] = mapped_column(String, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    batch: Mapped["ProductionBatch"] = relationship("ProductionBatch", back_populates="outputs")
