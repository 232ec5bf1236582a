import logging
from collections import defaultdict

from sqlalchemy.orm import Session

from app.database import utcnow
from app.models.customer import Customer
from app.models.delivery import ThirdPartyDelivery
from app.models.invoice import Invoice
from app.models.order import Order, OrderAuditLog, OrderItem, OrderLockLog, OrderPayment, OrderStatus, PaymentStatus
from app.models.processed_good import ProcessedGood
from app.models.user import User
from app.schemas.order import OrderCreate, OrderItemCreate, OrderItemUpdate, OrderUpdate, PaymentCreate
from app.services import finance_service, order_audit_service
from app.services.order_lock_service import ensure_editable
from app.services.sequence import next_number

logger = logging.getLogger(__name__)

# Paid amounts within this of the net total count as paid in full
PAYMENT_TOLERANCE = 0.01


def _get_good(db: Session, good_id: str) -> ProcessedGood | None:
    return db.query(ProcessedGood).filter(ProcessedGood.id == good_id).first()


def _validate_items(db: Session, items: list[OrderItemCreate]) -> dict[str, ProcessedGood]:
    """Check every line against stock and report all problems at once."""
    errors = []
    goods = {}
    requested: dict[str, float] = defaultdict(float)
    for idx, item in enumerate(items, start=1):
        good = _get_good(db, item.processed_good_id)
        if not good:
            errors.append(f"Item {idx}: processed good {item.processed_good_id} not found")
            continue
        if item.quantity <= 0:
            errors.append(f"Item {idx}: quantity must be greater than 0")
        if item.unit_price < 0:
            errors.append(f"Item {idx}: unit price cannot be negative")
        goods[good.id] = good
        requested[good.id] += item.quantity

    for good_id, quantity in requested.items():
        good = goods[good_id]
        if quantity > good.quantity_available:
            errors.append(
                f"Insufficient stock for {good.product_type} ({good.batch_reference}). "
                f"Available: {good.quantity_available} {good.unit}, requested: {quantity}"
            )
    if errors:
        raise ValueError("; ".join(errors))
    return goods


def recompute_status(order: Order) -> None:
    """Derive totals, payment status and order status from items, payments and hold."""
    order.total_amount = round(sum(i.line_total for i in order.items), 2)
    net = order.net_total
    paid = order.total_paid

    if paid <= 0:
        order.payment_status = PaymentStatus.READY_FOR_PAYMENT.value
    elif net > 0 and paid >= net - PAYMENT_TOLERANCE:
        order.payment_status = PaymentStatus.FULL_PAYMENT.value
    else:
        order.payment_status = PaymentStatus.PARTIAL_PAYMENT.value

    if order.is_on_hold:
        order.status = OrderStatus.HOLD.value
    elif not order.items:
        order.status = OrderStatus.ORDER_CREATED.value
    elif net > 0 and paid >= net - PAYMENT_TOLERANCE:
        order.status = OrderStatus.ORDER_COMPLETED.value
    else:
        order.status = OrderStatus.READY_FOR_PAYMENT.value

    if order.status == OrderStatus.ORDER_COMPLETED.value and order.completed_at is None:
        order.completed_at = utcnow()


def _line(order: Order, good: ProcessedGood, item: OrderItemCreate) -> OrderItem:
    return OrderItem(
        order_id=order.id,
        processed_good_id=good.id,
        product_type=good.product_type,
        form=item.form,
        size=item.size or (f"{good.output_size:g}{good.output_size_unit}" if good.output_size else ""),
        quantity=item.quantity,
        unit_price=item.unit_price,
        unit=good.unit,
    )


def create_order(db: Session, data: OrderCreate, user: User | None = None) -> Order:
    customer = db.query(Customer).filter(Customer.id == data.customer_id).first()
    if not customer:
        raise ValueError(f"Customer {data.customer_id} not found")
    if data.discount_amount < 0:
        raise ValueError("Discount cannot be negative")
    goods = _validate_items(db, data.items)
    if data.discount_amount > round(sum(i.quantity * i.unit_price for i in data.items), 2):
        raise ValueError("Discount cannot exceed the order total")

    order = Order(
        order_number=next_number(db, Order.order_number, "ORD-", 6),
        customer_id=customer.id,
        order_date=data.order_date,
        sold_by=data.sold_by or (user.id if user else None),
        notes=data.notes,
        third_party_delivery_enabled=data.third_party_delivery_enabled,
        created_by=user.id if user else None,
    )
    db.add(order)
    db.flush()

    for item in data.items:
        good = goods[item.processed_good_id]
        order.items.append(_line(order, good, item))
        good.quantity_available = round(good.quantity_available - item.quantity, 6)

    order.discount_amount = data.discount_amount
    recompute_status(order)
    order_audit_service.log_event(
        db, order, "ORDER_CREATED", user,
        description=f"Order created with {len(order.items)} items",
        data={"total_amount": order.total_amount, "items": len(order.items)},
    )
    db.commit()
    db.refresh(order)
    logger.info("Created order %s for %s", order.order_number, customer.name)
    return order


def get_order(db: Session, order_id: str) -> Order | None:
    return db.query(Order).filter(Order.id == order_id).first()


def list_orders(
    db: Session,
    status: OrderStatus | None = None,
    payment_status: PaymentStatus | None = None,
    customer_id: str | None = None,
    q: str = "",
    skip: int = 0,
    limit: int = 100,
) -> list[Order]:
    query = db.query(Order)
    if status:
        query = query.filter(Order.status == status.value)
    if payment_status:
        query = query.filter(Order.payment_status == payment_status.value)
    if customer_id:
        query = query.filter(Order.customer_id == customer_id)
    if q:
        query = query.join(Customer).filter(Order.order_number.ilike(f"%{q}%") | Customer.name.ilike(f"%{q}%"))
    return query.order_by(Order.order_date.desc(), Order.created_at.desc()).offset(skip).limit(limit).all()


def _editable(db: Session, order_id: str) -> Order:
    order = get_order(db, order_id)
    if not order:
        raise ValueError("Order not found")
    ensure_editable(db, order)
    return order


def update_order(db: Session, order_id: str, data: OrderUpdate, user: User | None = None) -> Order:
    order = _editable(db, order_id)
    changes = data.model_dump(exclude_unset=True)
    for field, val in changes.items():
        setattr(order, field, val)
    order_audit_service.log_event(db, order, "ORDER_UPDATED", user, description="Order details updated", data=changes)
    db.commit()
    db.refresh(order)
    return order


# Items

def add_item(db: Session, order_id: str, item: OrderItemCreate, user: User | None = None) -> Order:
    order = _editable(db, order_id)
    good = _validate_items(db, [item])[item.processed_good_id]
    line = _line(order, good, item)
    order.items.append(line)
    good.quantity_available = round(good.quantity_available - item.quantity, 6)
    recompute_status(order)
    order_audit_service.log_event(
        db, order, "ITEM_ADDED", user,
        description=f"Added {item.quantity} {good.unit} of {good.product_type}",
        data={"processed_good_id": good.id, "quantity": item.quantity, "unit_price": item.unit_price},
    )
    db.commit()
    db.refresh(order)
    return order


def _order_item(order: Order, item_id: str) -> OrderItem:
    for i in order.items:
        if i.id == item_id:
            return i
    raise ValueError("Order item not found")


def update_item(db: Session, order_id: str, item_id: str, data: OrderItemUpdate, user: User | None = None) -> Order:
    order = _editable(db, order_id)
    line = _order_item(order, item_id)
    changes = data.model_dump(exclude_unset=True)

    quantity = changes.get("quantity", line.quantity)
    unit_price = changes.get("unit_price", line.unit_price)
    if quantity is None or quantity <= 0:
        raise ValueError("Quantity must be greater than 0")
    if unit_price is None or unit_price < 0:
        raise ValueError("Unit price cannot be negative")
    delta = quantity - line.quantity
    good = _get_good(db, line.processed_good_id)
    if good and delta > good.quantity_available:
        raise ValueError(
            f"Insufficient stock for {good.product_type}. Available: {good.quantity_available} {good.unit}"
        )
    projected_total = order.total_amount - line.line_total + quantity * unit_price
    if order.discount_amount > round(projected_total, 2):
        raise ValueError("Discount cannot exceed the order total")

    if good:
        good.quantity_available = round(good.quantity_available - delta, 6)
    for field, val in changes.items():
        setattr(line, field, val)
    recompute_status(order)
    order_audit_service.log_event(
        db, order, "ITEM_UPDATED", user, description=f"Updated {line.product_type}", data={"item_id": line.id, **changes}
    )
    db.commit()
    db.refresh(order)
    return order


def delete_item(db: Session, order_id: str, item_id: str, user: User | None = None) -> Order:
    order = _editable(db, order_id)
    line = _order_item(order, item_id)
    good = _get_good(db, line.processed_good_id)
    if good:
        good.quantity_available = round(good.quantity_available + line.quantity, 6)
    order.items.remove(line)
    recompute_status(order)
    if order.discount_amount > order.total_amount:
        order.discount_amount = order.total_amount
        recompute_status(order)
    order_audit_service.log_event(
        db, order, "ITEM_REMOVED", user,
        description=f"Removed {line.quantity} {line.unit} of {line.product_type}",
        data={"item_id": line.id, "quantity": line.quantity},
    )
    db.commit()
    db.refresh(order)
    return order


# Hold and discount

def set_hold(db: Session, order_id: str, reason: str, user: User | None = None) -> Order:
    order = _editable(db, order_id)
    if not reason or not reason.strip():
        raise ValueError("Hold reason is required")
    if order.is_on_hold:
        raise ValueError("Order is already on hold")
    order.is_on_hold = True
    order.hold_reason = reason.strip()
    order.held_at = utcnow()
    order.held_by = user.id if user else None
    recompute_status(order)
    order_audit_service.log_event(db, order, "ORDER_HELD", user, description=f"Order put on hold: {order.hold_reason}")
    db.commit()
    db.refresh(order)
    return order


def remove_hold(db: Session, order_id: str, user: User | None = None) -> Order:
    order = _editable(db, order_id)
    if not order.is_on_hold:
        raise ValueError("Order is not on hold")
    order.is_on_hold = False
    order.hold_reason = ""
    order.held_at = None
    order.held_by = None
    recompute_status(order)
    order_audit_service.log_event(db, order, "HOLD_REMOVED", user, description="Hold removed")
    db.commit()
    db.refresh(order)
    return order


def set_discount(db: Session, order_id: str, discount: float, user: User | None = None) -> Order:
    order = _editable(db, order_id)
    if discount < 0:
        raise ValueError("Discount cannot be negative")
    if discount > order.total_amount:
        raise ValueError("Discount cannot exceed the order total")
    previous = order.discount_amount
    order.discount_amount = discount
    recompute_status(order)
    order_audit_service.log_event(
        db, order, "DISCOUNT_APPLIED", user,
        description=f"Discount changed from {previous:.2f} to {discount:.2f}",
        data={"previous": previous, "discount_amount": discount},
    )
    db.commit()
    db.refresh(order)
    return order


# Payments

def add_payment(db: Session, order_id: str, data: PaymentCreate, user: User | None = None) -> Order:
    order = _editable(db, order_id)
    if data.amount_received <= 0:
        raise ValueError("Payment amount must be greater than 0")
    if not order.items:
        raise ValueError("Add items before recording a payment")
    if data.amount_received > order.outstanding_amount + PAYMENT_TOLERANCE:
        raise ValueError(f"Payment exceeds the outstanding amount of {order.outstanding_amount:.2f}")

    payment = OrderPayment(order_id=order.id, **data.model_dump(), created_by=user.id if user else None)
    order.payments.append(payment)
    db.flush()
    finance_service.book_order_payment(db, order, payment, user.id if user else None)
    recompute_status(order)
    order_audit_service.log_event(
        db, order, "PAYMENT_RECEIVED", user,
        description=f"{data.payment_mode} payment of {data.amount_received:.2f}",
        data={"payment_id": payment.id, "amount": data.amount_received, "mode": data.payment_mode},
    )
    db.commit()
    db.refresh(order)
    logger.info("Payment of %.2f recorded on order %s", data.amount_received, order.order_number)
    return order


def delete_payment(db: Session, order_id: str, payment_id: str, user: User | None = None) -> Order:
    order = _editable(db, order_id)
    payment = next((p for p in order.payments if p.id == payment_id), None)
    if not payment:
        raise ValueError("Payment not found")
    finance_service.remove_order_payment_income(db, payment.id)
    order.payments.remove(payment)
    recompute_status(order)
    order_audit_service.log_event(
        db, order, "PAYMENT_DELETED", user,
        description=f"Payment of {payment.amount_received:.2f} removed",
        data={"payment_id": payment.id, "amount": payment.amount_received},
    )
    db.commit()
    db.refresh(order)
    return order


def delete_order(db: Session, order_id: str, user: User | None = None) -> bool:
    order = get_order(db, order_id)
    if not order:
        return False
    ensure_editable(db, order)
    for line in order.items:
        good = _get_good(db, line.processed_good_id)
        if good:
            good.quantity_available = round(good.quantity_available + line.quantity, 6)
    for payment in order.payments:
        finance_service.remove_order_payment_income(db, payment.id)

    delivery = db.query(ThirdPartyDelivery).filter(ThirdPartyDelivery.order_id == order.id).first()
    if delivery:
        db.delete(delivery)
    db.query(Invoice).filter(Invoice.order_id == order.id).delete()
    db.query(OrderLockLog).filter(OrderLockLog.order_id == order.id).delete()
    db.query(OrderAuditLog).filter(OrderAuditLog.order_id == order.id).delete()
    number = order.order_number
    db.delete(order)
    db.commit()
    logger.info("Deleted order %s by %s", number, user.username if user else "system")
    return True
