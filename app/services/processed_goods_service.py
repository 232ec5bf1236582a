import logging
from datetime import date

from sqlalchemy.orm import Session

from app.models.order import Order, OrderItem
from app.models.processed_good import ProcessedGood, ProcessedGoodWaste

logger = logging.getLogger(__name__)


def list_processed_goods(
    db: Session, include_archived: bool = False, product_type: str = "", in_stock: bool = False
) -> list[ProcessedGood]:
    q = db.query(ProcessedGood)
    if not include_archived:
        q = q.filter(ProcessedGood.is_archived == False)
    if product_type:
        q = q.filter(ProcessedGood.product_type.ilike(f"%{product_type}%"))
    if in_stock:
        q = q.filter(ProcessedGood.quantity_available > 0)
    return q.order_by(ProcessedGood.production_date.desc(), ProcessedGood.created_at.desc()).all()


def get_processed_good(db: Session, good_id: str) -> ProcessedGood | None:
    return db.query(ProcessedGood).filter(ProcessedGood.id == good_id).first()


def set_archived(db: Session, good_id: str, archived: bool) -> ProcessedGood | None:
    good = get_processed_good(db, good_id)
    if not good:
        return None
    good.is_archived = archived
    db.commit()
    db.refresh(good)
    return good


def record_waste(
    db: Session,
    good_id: str,
    quantity: float,
    reason: str,
    notes: str,
    waste_date: date,
    user_id: str | None = None,
) -> ProcessedGoodWaste:
    if quantity <= 0:
        raise ValueError("Waste quantity must be greater than 0")
    if not reason.strip():
        raise ValueError("Waste reason is required")
    good = get_processed_good(db, good_id)
    if not good:
        raise ValueError(f"Processed good {good_id} not found")
    if quantity > good.quantity_available:
        raise ValueError(f"Insufficient stock for {good.product_type}. Available: {good.quantity_available} {good.unit}")

    record = ProcessedGoodWaste(
        processed_good_id=good.id,
        quantity_wasted=quantity,
        unit=good.unit,
        reason=reason,
        notes=notes,
        waste_date=waste_date,
        created_by=user_id,
    )
    good.quantity_available = round(good.quantity_available - quantity, 6)
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("Recorded waste of %s %s on processed good %s", quantity, good.unit, good.product_type)
    return record


def list_waste(db: Session, good_id: str) -> list[ProcessedGoodWaste]:
    return (
        db.query(ProcessedGoodWaste)
        .filter(ProcessedGoodWaste.processed_good_id == good_id)
        .order_by(ProcessedGoodWaste.waste_date.desc(), ProcessedGoodWaste.created_at.desc())
        .all()
    )


def sales_history(db: Session, good_id: str) -> list[dict]:
    """Order lines that sold this processed good, newest order first."""
    rows = (
        db.query(OrderItem, Order)
        .join(Order, Order.id == OrderItem.order_id)
        .filter(OrderItem.processed_good_id == good_id)
        .order_by(Order.order_date.desc(), Order.created_at.desc())
        .all()
    )
    return [
        {
            "order_id": order.id,
            "order_number": order.order_number,
            "order_date": order.order_date,
            "customer_name": order.customer.name if order.customer else "",
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "line_total": item.line_total,
            "order_status": order.status,
        }
        for item, order in rows
    ]
