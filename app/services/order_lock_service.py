"""Order locking.

A completed order locks automatically once ORDER_AUTO_LOCK_HOURS have passed
since it completed (or since it was last unlocked). Any lock, manual or
automatic, can be undone with a reason until ``can_unlock_until``, after which
the order is permanently locked.
"""

import logging
from datetime import datetime, timedelta
from typing import NamedTuple

from sqlalchemy.orm import Session

from app.config import settings
from app.database import utcnow
from app.models.order import Order, OrderLockLog, OrderStatus
from app.models.user import User
from app.services import order_audit_service

logger = logging.getLogger(__name__)

AUTO_LOCK_NAME = "System (auto-lock)"


class Countdown(NamedTuple):
    remaining_seconds: float | None
    expired: bool


def lock_countdown(reference_at: datetime | None, window: timedelta, now: datetime) -> Countdown:
    """Time left until ``reference_at + window``. No reference means no countdown."""
    if reference_at is None:
        return Countdown(None, False)
    remaining = (reference_at + window - now).total_seconds()
    return Countdown(max(0.0, remaining), remaining <= 0)


def auto_lock_window() -> timedelta:
    return timedelta(hours=settings.ORDER_AUTO_LOCK_HOURS)


def unlock_window() -> timedelta:
    return timedelta(days=settings.ORDER_UNLOCK_WINDOW_DAYS)


def can_unlock_order(order: Order, now: datetime | None = None) -> bool:
    if not order.is_locked or not order.can_unlock_until:
        return False
    return (now or utcnow()) <= order.can_unlock_until


def get_unlock_time_remaining(can_unlock_until: datetime | None, now: datetime | None = None) -> int | None:
    """Milliseconds left in the unlock window, or None when there is no window."""
    if can_unlock_until is None:
        return None
    remaining = (can_unlock_until - (now or utcnow())).total_seconds()
    return max(0, int(remaining * 1000))


def ensure_unlocked(order: Order) -> None:
    if order.is_locked:
        raise ValueError(f"Order {order.order_number} is locked and cannot be modified")


def _last_unlocked_at(db: Session, order: Order) -> datetime | None:
    entry = (
        db.query(OrderLockLog)
        .filter(OrderLockLog.order_id == order.id, OrderLockLog.action == "UNLOCK")
        .order_by(OrderLockLog.performed_at.desc())
        .first()
    )
    return entry.performed_at if entry else None


def auto_lock_reference(db: Session, order: Order) -> datetime | None:
    """Start of the auto-lock countdown: completion, or the last unlock if later."""
    if order.status != OrderStatus.ORDER_COMPLETED.value or order.completed_at is None:
        return None
    unlocked_at = _last_unlocked_at(db, order)
    if unlocked_at and unlocked_at > order.completed_at:
        return unlocked_at
    return order.completed_at


def _apply_lock(db: Session, order: Order, user: User | None, now: datetime) -> None:
    order.is_locked = True
    order.locked_at = now
    order.locked_by = user.id if user else None
    order.can_unlock_until = now + unlock_window()
    name = (user.display_name or user.username) if user else AUTO_LOCK_NAME
    db.add(OrderLockLog(order_id=order.id, action="LOCK", performed_by=order.locked_by, performed_by_name=name, performed_at=now))
    order_audit_service.log_event(
        db, order, "ORDER_LOCKED", user,
        description="Order locked automatically" if user is None else "Order locked",
        data={"can_unlock_until": order.can_unlock_until.isoformat()},
    )


def lock_order(db: Session, order_id: str, user: User | None, now: datetime | None = None) -> Order:
    now = now or utcnow()
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise ValueError("Order not found")
    if order.is_locked:
        raise ValueError("Order is already locked")
    if order.status != OrderStatus.ORDER_COMPLETED.value:
        raise ValueError("Only completed orders can be locked")
    _apply_lock(db, order, user, now)
    db.commit()
    db.refresh(order)
    logger.info("Order %s locked by %s", order.order_number, user.username if user else "system")
    return order


def unlock_order(db: Session, order_id: str, user: User, reason: str, now: datetime | None = None) -> Order:
    now = now or utcnow()
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise ValueError("Order not found")
    if not order.is_locked:
        raise ValueError("Order is not locked")
    if not can_unlock_order(order, now):
        raise ValueError("Unlock window has expired. Order is permanently locked.")
    if not reason or not reason.strip():
        raise ValueError("Unlock reason is required")

    order.is_locked = False
    order.locked_at = None
    order.locked_by = None
    order.can_unlock_until = None
    db.add(OrderLockLog(
        order_id=order.id,
        action="UNLOCK",
        performed_by=user.id,
        performed_by_name=user.display_name or user.username,
        performed_at=now,
        unlock_reason=reason.strip(),
    ))
    order_audit_service.log_event(
        db, order, "ORDER_UNLOCKED", user, description=f"Order unlocked: {reason.strip()}", data={"reason": reason.strip()}
    )
    db.commit()
    db.refresh(order)
    logger.info("Order %s unlocked by %s", order.order_number, user.username)
    return order


def auto_lock_completed_orders(db: Session, now: datetime | None = None, order_id: str | None = None) -> list[Order]:
    """Lock every completed order whose auto-lock countdown has run out."""
    now = now or utcnow()
    cutoff = now - auto_lock_window()
    q = db.query(Order).filter(
        Order.status == OrderStatus.ORDER_COMPLETED.value,
        Order.is_locked == False,
        Order.completed_at.is_not(None),
        Order.completed_at <= cutoff,
    )
    if order_id:
        q = q.filter(Order.id == order_id)

    locked = []
    for order in q.all():
        if lock_countdown(auto_lock_reference(db, order), auto_lock_window(), now).expired:
            _apply_lock(db, order, None, now)
            locked.append(order)
    if locked:
        db.commit()
        logger.info("Auto-locked %d completed orders: %s", len(locked), ", ".join(o.order_number for o in locked))
    return locked


def ensure_editable(db: Session, order: Order, now: datetime | None = None) -> None:
    """Refuse changes to a locked order, including one whose auto-lock window ran out unnoticed."""
    if not order.is_locked:
        auto_lock_completed_orders(db, now, order_id=order.id)
    ensure_unlocked(order)


def lock_status(db: Session, order_id: str, now: datetime | None = None) -> dict | None:
    """Lock state of an order and the countdowns that apply to it.

    An order whose auto-lock window has already elapsed is locked and
    committed here, so this read can write.
    """
    now = now or utcnow()
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        return None

    countdown = lock_countdown(auto_lock_reference(db, order), auto_lock_window(), now)
    if not order.is_locked and countdown.expired:
        auto_lock_completed_orders(db, now, order_id=order.id)
        db.refresh(order)
        countdown = Countdown(None, False)

    auto_lock_at = None
    if not order.is_locked and countdown.remaining_seconds is not None:
        auto_lock_at = now + timedelta(seconds=countdown.remaining_seconds)

    return {
        "order_id": order.id,
        "is_locked": order.is_locked,
        "locked_at": order.locked_at,
        "locked_by": order.locked_by,
        "can_unlock_until": order.can_unlock_until,
        "can_unlock": can_unlock_order(order, now),
        "unlock_time_remaining_ms": get_unlock_time_remaining(order.can_unlock_until, now) if order.is_locked else None,
        "auto_lock_at": auto_lock_at,
        "auto_lock_remaining_seconds": countdown.remaining_seconds if not order.is_locked else None,
    }


def lock_history(db: Session, order_id: str) -> list[OrderLockLog]:
    return (
        db.query(OrderLockLog)
        .filter(OrderLockLog.order_id == order_id)
        .order_by(OrderLockLog.performed_at.desc())
        .all()
    )
