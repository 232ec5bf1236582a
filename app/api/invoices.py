from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.auth import require_module
from app.database import get_db
from app.models.user import ModuleId, User
from app.schemas.invoice import InvoiceCreate, InvoiceOut, InvoiceUpdate
from app.services import invoice_service, pdf_service

router = APIRouter(prefix="/invoices", tags=["Invoices"])

can_read = require_module(ModuleId.SALES)
can_write = require_module(ModuleId.SALES, write=True)


@router.post("", response_model=InvoiceOut, status_code=201)
def create_invoice(body: InvoiceCreate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        inv = invoice_service.create_invoice(db, body, user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return invoice_service.invoice_to_out(inv)


@router.get("")
def list_invoices(
    customer_id: str = "",
    skip: int = 0,
    limit: int = 50,
    user: User = Depends(can_read),
    db: Session = Depends(get_db),
):
    total, invoices = invoice_service.list_invoices(db, customer_id, skip, limit)
    return {"total": total, "invoices": [InvoiceOut(**invoice_service.invoice_to_out(i)) for i in invoices]}


@router.get("/by-order/{order_id}", response_model=InvoiceOut)
def get_invoice_for_order(order_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    inv = invoice_service.get_invoice_for_order(db, order_id)
    if not inv:
        raise HTTPException(404, "Invoice not found")
    return invoice_service.invoice_to_out(inv)


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(invoice_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    inv = invoice_service.get_invoice(db, invoice_id)
    if not inv:
        raise HTTPException(404, "Invoice not found")
    return invoice_service.invoice_to_out(inv)


@router.get("/{invoice_id}/pdf")
def download_invoice_pdf(invoice_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    inv = invoice_service.get_invoice(db, invoice_id)
    if not inv:
        raise HTTPException(404, "Invoice not found")
    return Response(
        content=pdf_service.render_invoice(inv),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={inv.invoice_number}.pdf"},
    )


@router.patch("/{invoice_id}", response_model=InvoiceOut)
def update_invoice(invoice_id: str, body: InvoiceUpdate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    inv = invoice_service.update_invoice(db, invoice_id, body)
    if not inv:
        raise HTTPException(404, "Invoice not found")
    return invoice_service.invoice_to_out(inv)


@router.delete("/{invoice_id}", status_code=204)
def delete_invoice(invoice_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    if not invoice_service.delete_invoice(db, invoice_id):
        raise HTTPException(404, "Invoice not found")
