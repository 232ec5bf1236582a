import logging

from fastapi import UploadFile
from sqlalchemy.orm import Session

from app.models.delivery import DeliveryDocument, ThirdPartyDelivery
from app.models.order import Order
from app.models.user import User
from app.schemas.delivery import DeliveryUpdate
from app.services import order_audit_service, upload_service
from app.services.order_lock_service import ensure_editable

logger = logging.getLogger(__name__)


def get_delivery(db: Session, order_id: str) -> ThirdPartyDelivery | None:
    return db.query(ThirdPartyDelivery).filter(ThirdPartyDelivery.order_id == order_id).first()


def _order(db: Session, order_id: str) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise ValueError("Order not found")
    return order


def set_enabled(db: Session, order_id: str, enabled: bool, user: User | None = None) -> Order:
    order = _order(db, order_id)
    ensure_editable(db, order)
    order.third_party_delivery_enabled = enabled
    order_audit_service.log_event(
        db, order, "DELIVERY_ENABLED" if enabled else "DELIVERY_DISABLED", user,
        description="Third-party delivery " + ("enabled" if enabled else "disabled"),
    )
    db.commit()
    db.refresh(order)
    return order


def save_delivery(db: Session, order_id: str, data: DeliveryUpdate, user: User | None = None) -> ThirdPartyDelivery:
    order = _order(db, order_id)
    if not order.third_party_delivery_enabled:
        raise ValueError("Third-party delivery is not enabled for this order")
    if data.quantity_delivered is not None and data.quantity_delivered < 0:
        raise ValueError("Delivered quantity cannot be negative")

    delivery = get_delivery(db, order.id)
    if not delivery:
        delivery = ThirdPartyDelivery(order_id=order.id, created_by=user.id if user else None)
        db.add(delivery)
    delivery.quantity_delivered = data.quantity_delivered
    delivery.delivery_partner_name = data.delivery_partner_name
    delivery.delivery_notes = data.delivery_notes
    order_audit_service.log_event(
        db, order, "DELIVERY_UPDATED", user,
        description=f"Delivery partner: {data.delivery_partner_name or '-'}",
        data=data.model_dump(),
    )
    db.commit()
    db.refresh(delivery)
    return delivery


def add_document(db: Session, order_id: str, file: UploadFile, user: User | None = None) -> DeliveryDocument:
    delivery = get_delivery(db, order_id)
    if not delivery:
        raise ValueError("Save the delivery details before uploading documents")
    stored = upload_service.save_upload(file, "delivery", allowed=upload_service.ALLOWED_EVIDENCE_TYPES)
    document = DeliveryDocument(
        third_party_delivery_id=delivery.id,
        document_url=stored["file_url"],
        document_path=stored["file_path"],
        document_name=stored["file_name"],
        document_type=stored["file_type"],
        created_by=user.id if user else None,
    )
    db.add(document)
    db.commit()
    db.refresh(document)
    return document


def delete_document(db: Session, order_id: str, document_id: str) -> bool:
    delivery = get_delivery(db, order_id)
    if not delivery:
        return False
    document = (
        db.query(DeliveryDocument)
        .filter(DeliveryDocument.id == document_id, DeliveryDocument.third_party_delivery_id == delivery.id)
        .first()
    )
    if not document:
        return False
    path = document.document_path
    db.delete(document)
    db.commit()
    upload_service.delete_file(path)
    return True
