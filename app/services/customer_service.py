import logging

from fastapi import UploadFile
from sqlalchemy.orm import Session

from app.models.customer import Customer
from app.models.order import Order
from app.schemas.customer import CUSTOMER_TYPES, CustomerCreate, CustomerUpdate
from app.services import upload_service

logger = logging.getLogger(__name__)

PHOTO_TYPES = {".png", ".jpg", ".jpeg", ".webp"}


def create_customer(db: Session, data: CustomerCreate, user_id: str | None = None) -> Customer:
    if not data.name.strip():
        raise ValueError("Customer name is required")
    customer = Customer(**data.model_dump(), created_by=user_id)
    customer.name = customer.name.strip()
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


def get_customer(db: Session, customer_id: str) -> Customer | None:
    return db.query(Customer).filter(Customer.id == customer_id).first()


def list_customers(
    db: Session, q: str = "", customer_type: str = "", status: str = "", skip: int = 0, limit: int = 100
) -> tuple[int, list[Customer]]:
    query = db.query(Customer)
    if q:
        query = query.filter(
            Customer.name.ilike(f"%{q}%")
            | Customer.contact_person.ilike(f"%{q}%")
            | Customer.phone.ilike(f"%{q}%")
        )
    if customer_type:
        query = query.filter(Customer.customer_type == customer_type)
    if status:
        query = query.filter(Customer.status == status)
    total = query.count()
    return total, query.order_by(Customer.name).offset(skip).limit(limit).all()


def update_customer(db: Session, customer_id: str, data: CustomerUpdate) -> Customer | None:
    customer = get_customer(db, customer_id)
    if not customer:
        return None
    changes = data.model_dump(exclude_unset=True)
    if "customer_type" in changes and changes["customer_type"] not in CUSTOMER_TYPES:
        raise ValueError(f"Customer type must be one of: {', '.join(CUSTOMER_TYPES)}")
    if "name" in changes and not (changes["name"] or "").strip():
        raise ValueError("Customer name is required")
    for field, val in changes.items():
        setattr(customer, field, val)
    db.commit()
    db.refresh(customer)
    return customer


def delete_customer(db: Session, customer_id: str) -> bool:
    customer = get_customer(db, customer_id)
    if not customer:
        return False
    if db.query(Order).filter(Order.customer_id == customer.id).count():
        raise ValueError("Cannot delete customer with existing orders")
    if customer.photo_url:
        _remove_photo(customer)
    db.delete(customer)
    db.commit()
    return True


def _remove_photo(customer: Customer) -> None:
    relative = customer.photo_url.removeprefix("/uploads/")
    upload_service.delete_file(str(upload_service.upload_root() / relative))


def set_photo(db: Session, customer_id: str, file: UploadFile) -> Customer | None:
    customer = get_customer(db, customer_id)
    if not customer:
        return None
    stored = upload_service.save_upload(file, "customers", allowed=PHOTO_TYPES)
    if customer.photo_url:
        _remove_photo(customer)
    customer.photo_url = stored["file_url"]
    db.commit()
    db.refresh(customer)
    return customer


def customer_stats(db: Session, customer_id: str) -> dict:
    orders = db.query(Order).filter(Order.customer_id == customer_id).all()
    return {
        "customer_id": customer_id,
        "order_count": len(orders),
        "total_sales": round(sum(o.net_total for o in orders), 2),
        "total_paid": round(sum(o.total_paid for o in orders), 2),
        "outstanding_amount": round(sum(o.outstanding_amount for o in orders), 2),
        "last_order_date": max((o.order_date for o in orders), default=None),
    }
