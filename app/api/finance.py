from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from app.api.auth import require_module
from app.database import get_db
from app.models.user import ModuleId, User
from app.schemas.finance import (
    ContributionCreate,
    ContributionOut,
    ExpenseCreate,
    ExpenseOut,
    FinanceEntryUpdate,
    FinanceSummaryOut,
    IncomeCreate,
    IncomeOut,
    LedgerEntryOut,
)
from app.services import finance_service, upload_service

router = APIRouter(prefix="/finance", tags=["Finance"])

can_read = require_module(ModuleId.FINANCE)
can_write = require_module(ModuleId.FINANCE, write=True)


@router.get("/summary", response_model=FinanceSummaryOut)
def finance_summary(
    month: int | None = None, year: int | None = None, user: User = Depends(can_read), db: Session = Depends(get_db)
):
    try:
        return finance_service.summary(db, month, year)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("/ledger", response_model=list[LedgerEntryOut])
def finance_ledger(
    month: int | None = None,
    year: int | None = None,
    limit: int = 200,
    user: User = Depends(can_read),
    db: Session = Depends(get_db),
):
    try:
        return finance_service.ledger(db, month, year, limit)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.post("/evidence")
def upload_evidence(file: UploadFile = File(...), user: User = Depends(can_write)):
    """Store a receipt or bank screenshot; the returned file_url goes into evidence_url."""
    try:
        return upload_service.save_upload(file, "finance", allowed=upload_service.ALLOWED_EVIDENCE_TYPES)
    except ValueError as e:
        raise HTTPException(400, str(e))


def _register(kind: str, path: str, create_schema, out_schema):
    """Add list/create/get/update/delete routes for one kind of finance entry."""
    label = kind.capitalize()

    @router.get(f"/{path}", response_model=list[out_schema], name=f"list_{path}")
    def list_entries(
        month: int | None = None, year: int | None = None, user: User = Depends(can_read), db: Session = Depends(get_db)
    ):
        try:
            return finance_service.list_entries(db, kind, month, year)
        except ValueError as e:
            raise HTTPException(400, str(e))

    @router.post(f"/{path}", response_model=out_schema, status_code=201, name=f"create_{kind}")
    def create_entry(data: create_schema, user: User = Depends(can_write), db: Session = Depends(get_db)):
        return finance_service.create_entry(db, kind, data.model_dump(), user.id)

    @router.get(f"/{path}/{{entry_id}}", response_model=out_schema, name=f"get_{kind}")
    def get_entry(entry_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
        entry = finance_service.get_entry(db, kind, entry_id)
        if not entry:
            raise HTTPException(404, f"{label} not found")
        return entry

    @router.patch(f"/{path}/{{entry_id}}", response_model=out_schema, name=f"update_{kind}")
    def update_entry(entry_id: str, data: FinanceEntryUpdate, user: User = Depends(can_write), db: Session = Depends(get_db)):
        try:
            entry = finance_service.update_entry(db, kind, entry_id, data)
        except ValueError as e:
            raise HTTPException(400, str(e))
        if not entry:
            raise HTTPException(404, f"{label} not found")
        return entry

    @router.delete(f"/{path}/{{entry_id}}", status_code=204, name=f"delete_{kind}")
    def delete_entry(entry_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
        try:
            deleted = finance_service.delete_entry(db, kind, entry_id)
        except ValueError as e:
            raise HTTPException(400, str(e))
        if not deleted:
            raise HTTPException(404, f"{label} not found")


_register("contribution", "contributions", ContributionCreate, ContributionOut)
_register("income", "income", IncomeCreate, IncomeOut)
_register("expense", "expenses", ExpenseCreate, ExpenseOut)
