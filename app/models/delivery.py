import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class ThirdPartyDelivery(Base):
    """Delivery handed to an outside courier, one per order."""

    __tablename__ = "third_party_deliveries"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str] = mapped_column(String, ForeignKey("orders.id", ondelete="CASCADE"), unique=True, index=True)
    quantity_delivered: Mapped[float | None] = mapped_column(Float, nullable=True)
    delivery_partner_name: Mapped[str] = mapped_column(String, default="")
    delivery_notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    documents: Mapped[list["DeliveryDocument"]] = relationship(
        "DeliveryDocument", back_populates="delivery", cascade="all, delete-orphan"
    )


class DeliveryDocument(Base):
    __tablename__ = "delivery_documents"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    third_party_delivery_id: Mapped[str] = mapped_column(
        String, ForeignKey("third_party_deliveries.id"), nullable=False, index=True
    )
    document_url: Mapped[str] = mapped_column(String, nullable=False)
    document_path: Mapped[str] = mapped_column(String, nullable=False)
    document_name: Mapped[str] = mapped_column(String, default="")
    document_type: Mapped[str] = mapped_column(String, default="")
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    delivery: Mapped["ThirdPartyDelivery"] = relationship("ThirdPartyDelivery", back_populates="documents")
