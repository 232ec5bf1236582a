import logging
from datetime import date

from sqlalchemy.orm import Session

from app.models.invoice import Invoice
from app.models.order import Order
from app.schemas.invoice import InvoiceCreate, InvoiceUpdate
from app.services.sequence import next_number

logger = logging.getLogger(__name__)


def create_invoice(db: Session, data: InvoiceCreate, user_id: str | None = None) -> Invoice:
    order = db.query(Order).filter(Order.id == data.order_id).first()
    if not order:
        raise ValueError(f"Order {data.order_id} not found")
    if not order.items:
        raise ValueError("Cannot invoice an order without items")
    if db.query(Invoice).filter(Invoice.order_id == order.id).first():
        raise ValueError(f"Order {order.order_number} already has an invoice")

    invoice = Invoice(
        invoice_number=next_number(db, Invoice.invoice_number, "INV-", 4),
        order_id=order.id,
        invoice_date=data.invoice_date or date.today(),
        notes=data.notes,
        generated_by=user_id,
    )
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    logger.info("Generated invoice %s for order %s", invoice.invoice_number, order.order_number)
    return invoice


def get_invoice(db: Session, invoice_id: str) -> Invoice | None:
    return db.query(Invoice).filter(Invoice.id == invoice_id).first()


def get_invoice_for_order(db: Session, order_id: str) -> Invoice | None:
    return db.query(Invoice).filter(Invoice.order_id == order_id).first()


def list_invoices(db: Session, customer_id: str = "", skip: int = 0, limit: int = 50) -> tuple[int, list[Invoice]]:
    q = db.query(Invoice)
    if customer_id:
        q = q.join(Order, Order.id == Invoice.order_id).filter(Order.customer_id == customer_id)
    total = q.count()
    return total, q.order_by(Invoice.invoice_date.desc(), Invoice.created_at.desc()).offset(skip).limit(limit).all()


def update_invoice(db: Session, invoice_id: str, data: InvoiceUpdate) -> Invoice | None:
    invoice = get_invoice(db, invoice_id)
    if not invoice:
        return None
    for field, val in data.model_dump(exclude_unset=True).items():
        if val is not None:
            setattr(invoice, field, val)
    db.commit()
    db.refresh(invoice)
    return invoice


def delete_invoice(db: Session, invoice_id: str) -> bool:
    invoice = get_invoice(db, invoice_id)
    if not invoice:
        return False
    db.delete(invoice)
    db.commit()
    return True


def invoice_to_out(invoice: Invoice) -> dict:
    order = invoice.order
    return {
        "id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "order_id": invoice.order_id,
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "invoice_date": invoice.invoice_date,
        "net_total": order.net_total,
        "total_paid": order.total_paid,
        "outstanding_amount": order.outstanding_amount,
        "notes": invoice.notes,
        "generated_by": invoice.generated_by,
        "created_at": invoice.created_at,
        "updated_at": invoice.updated_at,
    }
