import json

from sqlalchemy.orm import Session

from app.models.order import Order, OrderAuditLog
from app.models.user import User


def log_event(
    db: Session,
    order: Order,
    event_type: str,
    user: User | None,
    description: str = "",
    data: dict | None = None,
) -> OrderAuditLog:
    """Append an audit row for the order. Does not commit."""
    entry = OrderAuditLog(
        order_id=order.id,
        event_type=event_type,
        performed_by=user.id if user else None,
        performed_by_name=(user.display_name or user.username) if user else "System",
        event_data=json.dumps(data or {}, default=str),
        description=description,
    )
    db.add(entry)
    return entry


def list_events(db: Session, order_id: str) -> list[OrderAuditLog]:
    return (
        db.query(OrderAuditLog)
        .filter(OrderAuditLog.order_id == order_id)
        .order_by(OrderAuditLog.performed_at.desc())
        .all()
    )
