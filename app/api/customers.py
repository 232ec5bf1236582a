from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from app.api.auth import require_module
from app.database import get_db
from app.models.user import ModuleId, User
from app.schemas.customer import CustomerCreate, CustomerOut, CustomerStatsOut, CustomerUpdate
from app.services import customer_service

router = APIRouter(prefix="/customers", tags=["Customers"])

can_read = require_module(ModuleId.SALES)
can_write = require_module(ModuleId.SALES, write=True)


@router.post("", response_model=CustomerOut, status_code=201)
def create_customer(body: CustomerCreate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return customer_service.create_customer(db, body, user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("")
def list_customers(
    q: str = "",
    customer_type: str = "",
    status: str = "",
    skip: int = 0,
    limit: int = 100,
    user: User = Depends(can_read),
    db: Session = Depends(get_db),
):
    total, customers = customer_service.list_customers(db, q, customer_type, status, skip, limit)
    return {"total": total, "customers": [CustomerOut.model_validate(c) for c in customers]}


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    c = customer_service.get_customer(db, customer_id)
    if not c:
        raise HTTPException(404, "Customer not found")
    return c


@router.get("/{customer_id}/stats", response_model=CustomerStatsOut)
def get_customer_stats(customer_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    if not customer_service.get_customer(db, customer_id):
        raise HTTPException(404, "Customer not found")
    return customer_service.customer_stats(db, customer_id)


@router.patch("/{customer_id}", response_model=CustomerOut)
def update_customer(
    customer_id: str,
    body: CustomerUpdate,
    user: User = Depends(can_write),
    db: Session = Depends(get_db),
):
    try:
        c = customer_service.update_customer(db, customer_id, body)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not c:
        raise HTTPException(404, "Customer not found")
    return c


@router.post("/{customer_id}/photo", response_model=CustomerOut)
def upload_customer_photo(
    customer_id: str, file: UploadFile = File(...), user: User = Depends(can_write), db: Session = Depends(get_db)
):
    try:
        c = customer_service.set_photo(db, customer_id, file)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not c:
        raise HTTPException(404, "Customer not found")
    return c


@router.delete("/{customer_id}", status_code=204)
def delete_customer(customer_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        deleted = customer_service.delete_customer(db, customer_id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not deleted:
        raise HTTPException(404, "Customer not found")
