import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, utcnow


class ModuleId(str, PyEnum):
    FINANCE = "finance"
    ANALYTICS = "analytics"
    DOCUMENTS = "documents"
    OPERATIONS = "operations"
    SALES = "sales"


class AccessLevel(str, PyEnum):
    READ_WRITE = "read-write"
    READ_ONLY = "read-only"
    NO_ACCESS = "no-access"


MODULE_DEFINITIONS = [
    {"id": ModuleId.FINANCE, "name": "Finance", "description": "Contributions, income and expenses"},
    {"id": ModuleId.ANALYTICS, "name": "Analytics", "description": "Inventory and sales reports"},
    {"id": ModuleId.DOCUMENTS, "name": "Documents", "description": "Manage files and records"},
    {"id": ModuleId.OPERATIONS, "name": "Operations", "description": "Production and inventory management"},
    {"id": ModuleId.SALES, "name": "Sales", "description": "Orders, customers, and invoicing"},
]


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    username: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String, default="")
    email: Mapped[str] = mapped_column(String, default="")
    password_hash: Mapped[str] = mapped_column(String, nullable=False)
    role: Mapped[str] = mapped_column(String, default="staff")  # admin, staff
    active: Mapped[bool] = mapped_column(default=True)
    requires_password_change: Mapped[bool] = mapped_column(default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class ModuleAccess(Base):
    __tablename__ = "user_module_access"
    __table_args__ = (UniqueConstraint("user_id", "module_id", name="uq_user_module"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    module_id: Mapped[str] = mapped_column(String, nullable=False)
    access_level: Mapped[str] = mapped_column(String, default=AccessLevel.NO_ACCESS.value)
    assigned_by: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class NavigationState(Base):
    """Last view a user was on, restored on the next visit."""

    __tablename__ = "navigation_states"

    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, default=1)
    payload: Mapped[str] = mapped_column(Text, default="{}")
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    username: Mapped[str] = mapped_column(String, default="")
    action: Mapped[str] = mapped_column(String, nullable=False, index=True)  # e.g. login, create_order, lock_order, ...
    detail: Mapped[str] = mapped_column(Text, default="")
    ip_address: Mapped[str] = mapped_column(String, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
