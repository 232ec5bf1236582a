import uuid
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, utcnow


class OrderStatus(str, PyEnum):
    ORDER_CREATED = "ORDER_CREATED"
    READY_FOR_PAYMENT = "READY_FOR_PAYMENT"
    HOLD = "HOLD"
    ORDER_COMPLETED = "ORDER_COMPLETED"


class PaymentStatus(str, PyEnum):
    READY_FOR_PAYMENT = "READY_FOR_PAYMENT"
    PARTIAL_PAYMENT = "PARTIAL_PAYMENT"
    FULL_PAYMENT = "FULL_PAYMENT"


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_number: Mapped[str] = mapped_column(String, unique=True, index=True)
    customer_id: Mapped[str] = mapped_column(String, ForeignKey("customers.id"), nullable=False, index=True)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, default=OrderStatus.ORDER_CREATED.value)
    payment_status: Mapped[str] = mapped_column(String, default=PaymentStatus.READY_FOR_PAYMENT.value)
    sold_by: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="")

    # Pricing
    total_amount: Mapped[float] = mapped_column(Float, default=0.0)
    discount_amount: Mapped[float] = mapped_column(Float, default=0.0)

    # Hold
    is_on_hold: Mapped[bool] = mapped_column(Boolean, default=False)
    hold_reason: Mapped[str] = mapped_column(Text, default="")
    held_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    held_by: Mapped[str | None] = mapped_column(String, nullable=True)

    # Lock
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    locked_by: Mapped[str | None] = mapped_column(String, nullable=True)
    can_unlock_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    third_party_delivery_enabled: Mapped[bool] = mapped_column(Boolean, default=False)

    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    customer: Mapped["Customer"] = relationship("Customer", back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    payments: Mapped[list["OrderPayment"]] = relationship(
        "OrderPayment", back_populates="order", cascade="all, delete-orphan"
    )

    @property
    def net_total(self) -> float:
        return round((self.total_amount or 0.0) - (self.discount_amount or 0.0), 2)

    @property
    def total_paid(self) -> float:
        return round(sum(p.amount_received for p in self.payments), 2)

    @property
    def outstanding_amount(self) -> float:
        return round(max(0.0, self.net_total - self.total_paid), 2)

    @property
    def customer_name(self) -> str:
        return self.customer.name if self.customer else ""


class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str] = mapped_column(String, ForeignKey("orders.id"), nullable=False, index=True)
    processed_good_id: Mapped[str] = mapped_column(String, ForeignKey("processed_goods.id"), nullable=False, index=True)
    product_type: Mapped[str] = mapped_column(String, default="")
    form: Mapped[str] = mapped_column(String, default="")
    size: Mapped[str] = mapped_column(String, default="")
    quantity: Mapped[float] = mapped_column(Float, default=1.0)
    unit_price: Mapped[float] = mapped_column(Float, default=0.0)
    unit: Mapped[str] = mapped_column(String, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    @property
    def line_total(self) -> float:
        return round(self.quantity * self.unit_price, 2)


class OrderPayment(Base):
    __tablename__ = "order_payments"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str] = mapped_column(String, ForeignKey("orders.id"), nullable=False, index=True)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_mode: Mapped[str] = mapped_column(String, default="Cash")  # Cash, UPI, Bank
    transaction_reference: Mapped[str] = mapped_column(String, default="")
    evidence_url: Mapped[str] = mapped_column(String, default="")
    amount_received: Mapped[float] = mapped_column(Float, nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    order: Mapped["Order"] = relationship("Order", back_populates="payments")


class OrderLockLog(Base):
    __tablename__ = "order_lock_logs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str] = mapped_column(String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String, nullable=False)  # LOCK, UNLOCK
    performed_by: Mapped[str | None] = mapped_column(String, nullable=True)  # None for auto-lock
    performed_by_name: Mapped[str] = mapped_column(String, default="")
    performed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    unlock_reason: Mapped[str] = mapped_column(Text, default="")


class OrderAuditLog(Base):
    __tablename__ = "order_audit_logs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str] = mapped_column(String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String, nullable=False)  # ORDER_CREATED, ITEM_ADDED, PAYMENT_RECEIVED, ORDER_LOCKED, ...
    performed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    performed_by_name: Mapped[str] = mapped_column(String, default="")
    performed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    event_data: Mapped[str] = mapped_column(Text, default="{}")  # JSON
    description: Mapped[str] = mapped_column(Text, default="")


from app.models.customer import Customer  # noqa: E402, F401
