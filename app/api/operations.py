from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.auth import require_module
from app.database import get_db
from app.models.lot import LotType
from app.models.user import ModuleId, User
from app.schemas.lot import (
    LotCreate,
    LotHistoryOut,
    LotOut,
    LotUpdate,
    MovementOut,
    SupplierCreate,
    SupplierOut,
    SupplierUpdate,
    TransferCreate,
    TransferOut,
    WasteCreate,
    WasteOut,
)
from app.services import lot_service

router = APIRouter(prefix="/operations", tags=["Operations"])

can_read = require_module(ModuleId.OPERATIONS)
can_write = require_module(ModuleId.OPERATIONS, write=True)


# Suppliers

@router.get("/suppliers", response_model=list[SupplierOut])
def list_suppliers(supplier_type: str | None = None, user: User = Depends(can_read), db: Session = Depends(get_db)):
    return lot_service.list_suppliers(db, supplier_type)


@router.post("/suppliers", response_model=SupplierOut, status_code=201)
def create_supplier(data: SupplierCreate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return lot_service.create_supplier(db, data, user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("/suppliers/{supplier_id}", response_model=SupplierOut)
def get_supplier(supplier_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    supplier = lot_service.get_supplier(db, supplier_id)
    if not supplier:
        raise HTTPException(404, "Supplier not found")
    return supplier


@router.patch("/suppliers/{supplier_id}", response_model=SupplierOut)
def update_supplier(supplier_id: str, data: SupplierUpdate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    supplier = lot_service.update_supplier(db, supplier_id, data)
    if not supplier:
        raise HTTPException(404, "Supplier not found")
    return supplier


@router.delete("/suppliers/{supplier_id}", status_code=204)
def delete_supplier(supplier_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        deleted = lot_service.delete_supplier(db, supplier_id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not deleted:
        raise HTTPException(404, "Supplier not found")


# Lots

@router.get("/lots", response_model=list[LotOut])
def list_lots(
    lot_type: LotType | None = None,
    include_archived: bool = False,
    q: str = "",
    user: User = Depends(can_read),
    db: Session = Depends(get_db),
):
    return lot_service.list_lots(db, lot_type=lot_type, include_archived=include_archived, q=q)


@router.post("/lots", response_model=LotOut, status_code=201)
def create_lot(data: LotCreate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return lot_service.create_lot(db, data, user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("/lots/{lot_id}", response_model=LotOut)
def get_lot(lot_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    lot = lot_service.get_lot(db, lot_id)
    if not lot:
        raise HTTPException(404, "Lot not found")
    return lot


@router.patch("/lots/{lot_id}", response_model=LotOut)
def update_lot(lot_id: str, data: LotUpdate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        lot = lot_service.update_lot(db, lot_id, data)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not lot:
        raise HTTPException(404, "Lot not found")
    return lot


@router.post("/lots/{lot_id}/archive", response_model=LotOut)
def archive_lot(lot_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    lot = lot_service.set_archived(db, lot_id, True)
    if not lot:
        raise HTTPException(404, "Lot not found")
    return lot


@router.post("/lots/{lot_id}/unarchive", response_model=LotOut)
def unarchive_lot(lot_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    lot = lot_service.set_archived(db, lot_id, False)
    if not lot:
        raise HTTPException(404, "Lot not found")
    return lot


@router.delete("/lots/{lot_id}", status_code=204)
def delete_lot(lot_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        deleted = lot_service.delete_lot(db, lot_id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not deleted:
        raise HTTPException(404, "Lot not found")


@router.get("/lots/{lot_id}/balance")
def lot_balance(lot_id: str, as_of: date | None = None, user: User = Depends(can_read), db: Session = Depends(get_db)):
    lot = lot_service.get_lot(db, lot_id)
    if not lot:
        raise HTTPException(404, "Lot not found")
    return {
        "lot_id": lot.id,
        "as_of": as_of.isoformat() if as_of else None,
        "balance": lot_service.calculate_stock_balance(db, lot.id, as_of),
        "unit": lot.unit,
    }


@router.get("/lots/{lot_id}/movements", response_model=list[MovementOut])
def lot_movements(lot_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    if not lot_service.get_lot(db, lot_id):
        raise HTTPException(404, "Lot not found")
    return lot_service.movement_history(db, lot_id)


@router.get("/lots/{lot_id}/history", response_model=LotHistoryOut)
def lot_history(
    lot_id: str,
    timeline: Literal["baseline", "merged"] = "baseline",
    user: User = Depends(can_read),
    db: Session = Depends(get_db),
):
    """Waste and transfer events newest first, with the lot quantity before and after each."""
    history = lot_service.lot_history(db, lot_id, merge_consumption=timeline == "merged")
    if history is None:
        raise HTTPException(404, "Lot not found")
    return history


@router.get("/lots/{lot_id}/batch-usage")
def lot_batch_usage(lot_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    if not lot_service.get_lot(db, lot_id):
        raise HTTPException(404, "Lot not found")
    return lot_service.fetch_batch_usage(db, lot_id)


@router.post("/lots/{lot_id}/waste", response_model=WasteOut, status_code=201)
def record_waste(lot_id: str, data: WasteCreate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    if not lot_service.get_lot(db, lot_id):
        raise HTTPException(404, "Lot not found")
    try:
        return lot_service.record_waste(
            db, lot_id, data.quantity_wasted, data.reason, data.notes, data.waste_date, user.id
        )
    except ValueError as e:
        raise HTTPException(400, str(e))


# Waste and transfers across lots

@router.get("/waste", response_model=list[WasteOut])
def list_waste(
    lot_type: LotType | None = None, lot_id: str | None = None, user: User = Depends(can_read), db: Session = Depends(get_db)
):
    return lot_service.list_waste(db, lot_type=lot_type, lot_id=lot_id)


@router.get("/transfers", response_model=list[TransferOut])
def list_transfers(
    lot_type: LotType | None = None, lot_id: str | None = None, user: User = Depends(can_read), db: Session = Depends(get_db)
):
    return lot_service.list_transfers(db, lot_type=lot_type, lot_id=lot_id)


@router.post("/transfers", response_model=TransferOut, status_code=201)
def create_transfer(data: TransferCreate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return lot_service.transfer_between_lots(
            db,
            data.from_lot_id,
            data.to_lot_id,
            data.quantity_transferred,
            data.reason,
            data.notes,
            data.transfer_date,
            user.id,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
