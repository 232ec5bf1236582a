from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from app.api.auth import require_module
from app.database import get_db
from app.models.order import OrderStatus, PaymentStatus
from app.models.user import ModuleId, User
from app.schemas.delivery import DeliveryDocumentOut, DeliveryOut, DeliveryToggle, DeliveryUpdate
from app.schemas.order import (
    AuditLogOut,
    DiscountRequest,
    HoldRequest,
    LockLogOut,
    LockStatusOut,
    OrderCreate,
    OrderItemCreate,
    OrderItemUpdate,
    OrderOut,
    OrderUpdate,
    PaymentCreate,
    UnlockRequest,
)
from app.services import delivery_service, order_audit_service, order_lock_service, order_service, upload_service

router = APIRouter(prefix="/orders", tags=["Orders"])

can_read = require_module(ModuleId.SALES)
can_write = require_module(ModuleId.SALES, write=True)


def _error(e: ValueError) -> HTTPException:
    msg = str(e)
    return HTTPException(404 if msg.endswith("not found") else 400, msg)


@router.post("", response_model=OrderOut, status_code=201)
def create_order(data: OrderCreate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return order_service.create_order(db, data, user)
    except ValueError as e:
        raise _error(e)


@router.get("", response_model=list[OrderOut])
def list_orders(
    status: OrderStatus | None = None,
    payment_status: PaymentStatus | None = None,
    customer_id: str | None = None,
    q: str = "",
    skip: int = 0,
    limit: int = 100,
    user: User = Depends(can_read),
    db: Session = Depends(get_db),
):
    return order_service.list_orders(
        db, status=status, payment_status=payment_status, customer_id=customer_id, q=q, skip=skip, limit=limit
    )


@router.post("/payments/evidence")
def upload_payment_evidence(file: UploadFile = File(...), user: User = Depends(can_write)):
    try:
        return upload_service.save_upload(file, "payments", allowed=upload_service.ALLOWED_EVIDENCE_TYPES)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    order_lock_service.auto_lock_completed_orders(db, order_id=order_id)
    order = order_service.get_order(db, order_id)
    if not order:
        raise HTTPException(404, "Order not found")
    return order


@router.patch("/{order_id}", response_model=OrderOut)
def update_order(order_id: str, data: OrderUpdate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return order_service.update_order(db, order_id, data, user)
    except ValueError as e:
        raise _error(e)


@router.delete("/{order_id}", status_code=204)
def delete_order(order_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        deleted = order_service.delete_order(db, order_id, user)
    except ValueError as e:
        raise _error(e)
    if not deleted:
        raise HTTPException(404, "Order not found")


# Items

@router.post("/{order_id}/items", response_model=OrderOut, status_code=201)
def add_item(order_id: str, data: OrderItemCreate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return order_service.add_item(db, order_id, data, user)
    except ValueError as e:
        raise _error(e)


@router.patch("/{order_id}/items/{item_id}", response_model=OrderOut)
def update_item(
    order_id: str, item_id: str, data: OrderItemUpdate, user: User = Depends(can_write), db: Session = Depends(get_db)
):
    try:
        return order_service.update_item(db, order_id, item_id, data, user)
    except ValueError as e:
        raise _error(e)


@router.delete("/{order_id}/items/{item_id}", response_model=OrderOut)
def delete_item(order_id: str, item_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return order_service.delete_item(db, order_id, item_id, user)
    except ValueError as e:
        raise _error(e)


# Hold and discount

@router.post("/{order_id}/hold", response_model=OrderOut)
def hold_order(order_id: str, data: HoldRequest, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return order_service.set_hold(db, order_id, data.reason, user)
    except ValueError as e:
        raise _error(e)


@router.delete("/{order_id}/hold", response_model=OrderOut)
def remove_hold(order_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return order_service.remove_hold(db, order_id, user)
    except ValueError as e:
        raise _error(e)


@router.put("/{order_id}/discount", response_model=OrderOut)
def set_discount(order_id: str, data: DiscountRequest, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return order_service.set_discount(db, order_id, data.discount_amount, user)
    except ValueError as e:
        raise _error(e)


# Payments

@router.post("/{order_id}/payments", response_model=OrderOut, status_code=201)
def add_payment(order_id: str, data: PaymentCreate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return order_service.add_payment(db, order_id, data, user)
    except ValueError as e:
        raise _error(e)


@router.delete("/{order_id}/payments/{payment_id}", response_model=OrderOut)
def delete_payment(order_id: str, payment_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return order_service.delete_payment(db, order_id, payment_id, user)
    except ValueError as e:
        raise _error(e)


# Locking

@router.post("/{order_id}/lock", response_model=OrderOut)
def lock_order(order_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return order_lock_service.lock_order(db, order_id, user)
    except ValueError as e:
        raise _error(e)


@router.post("/{order_id}/unlock", response_model=OrderOut)
def unlock_order(order_id: str, data: UnlockRequest, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return order_lock_service.unlock_order(db, order_id, user, data.reason)
    except ValueError as e:
        raise _error(e)


@router.get("/{order_id}/lock-status", response_model=LockStatusOut)
def lock_status(order_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    status = order_lock_service.lock_status(db, order_id)
    if status is None:
        raise HTTPException(404, "Order not found")
    return status


@router.get("/{order_id}/lock-history", response_model=list[LockLogOut])
def lock_history(order_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    if not order_service.get_order(db, order_id):
        raise HTTPException(404, "Order not found")
    return order_lock_service.lock_history(db, order_id)


@router.get("/{order_id}/audit", response_model=list[AuditLogOut])
def audit_log(order_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    if not order_service.get_order(db, order_id):
        raise HTTPException(404, "Order not found")
    return order_audit_service.list_events(db, order_id)


# Third-party delivery

@router.put("/{order_id}/delivery/enabled", response_model=OrderOut)
def toggle_delivery(order_id: str, data: DeliveryToggle, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return delivery_service.set_enabled(db, order_id, data.enabled, user)
    except ValueError as e:
        raise _error(e)


@router.get("/{order_id}/delivery", response_model=DeliveryOut | None)
def get_delivery(order_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    if not order_service.get_order(db, order_id):
        raise HTTPException(404, "Order not found")
    return delivery_service.get_delivery(db, order_id)


@router.put("/{order_id}/delivery", response_model=DeliveryOut)
def save_delivery(order_id: str, data: DeliveryUpdate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return delivery_service.save_delivery(db, order_id, data, user)
    except ValueError as e:
        raise _error(e)


@router.post("/{order_id}/delivery/documents", response_model=DeliveryDocumentOut, status_code=201)
def upload_delivery_document(
    order_id: str, file: UploadFile = File(...), user: User = Depends(can_write), db: Session = Depends(get_db)
):
    try:
        return delivery_service.add_document(db, order_id, file, user)
    except ValueError as e:
        raise _error(e)


@router.delete("/{order_id}/delivery/documents/{document_id}", status_code=204)
def delete_delivery_document(order_id: str, document_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    if not delivery_service.delete_document(db, order_id, document_id):
        raise HTTPException(404, "Delivery document not found")
