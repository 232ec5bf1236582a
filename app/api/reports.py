from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.auth import require_module
from app.database import get_db
from app.models.user import ModuleId, User
from app.services import pdf_service, report_service

router = APIRouter(prefix="/reports", tags=["Reports"])

can_read = require_module(ModuleId.ANALYTICS)


@router.get("/inventory")
def inventory_report(include_archived: bool = False, user: User = Depends(can_read), db: Session = Depends(get_db)):
    return report_service.inventory_summary(db, include_archived=include_archived)


@router.get("/inventory/pdf")
def inventory_report_pdf(include_archived: bool = False, user: User = Depends(can_read), db: Session = Depends(get_db)):
    summary = report_service.inventory_summary(db, include_archived=include_archived)
    return Response(
        content=pdf_service.render_inventory_report(summary),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=inventory-{date.today().isoformat()}.pdf"},
    )


@router.get("/sales")
def sales_report(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    user: User = Depends(can_read),
    db: Session = Depends(get_db),
):
    return report_service.sales_summary(db, start_date=start_date, end_date=end_date)


@router.get("/top-products")
def top_products_report(limit: int = 10, user: User = Depends(can_read), db: Session = Depends(get_db)):
    return report_service.top_products(db, limit=limit)
