from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.auth import require_module
from app.database import get_db
from app.models.user import ModuleId, User
from app.schemas.batch import BatchApprove, BatchComplete, BatchCreate, BatchOut, BatchUpdate, ConsumptionCreate
from app.schemas.processed_good import (
    ProcessedGoodOut,
    ProcessedGoodWasteCreate,
    ProcessedGoodWasteOut,
    SaleRecordOut,
)
from app.services import batch_service, processed_goods_service

router = APIRouter(prefix="/operations", tags=["Production"])

can_read = require_module(ModuleId.OPERATIONS)
can_write = require_module(ModuleId.OPERATIONS, write=True)


# Production batches

@router.get("/batches", response_model=list[BatchOut])
def list_batches(
    qa_status: str | None = None, locked: bool | None = None, user: User = Depends(can_read), db: Session = Depends(get_db)
):
    return batch_service.list_batches(db, qa_status=qa_status, locked=locked)


@router.post("/batches", response_model=BatchOut, status_code=201)
def create_batch(data: BatchCreate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return batch_service.create_batch(db, data, user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("/batches/{batch_id}", response_model=BatchOut)
def get_batch(batch_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    batch = batch_service.get_batch(db, batch_id)
    if not batch:
        raise HTTPException(404, "Batch not found")
    return batch


@router.patch("/batches/{batch_id}", response_model=BatchOut)
def update_batch(batch_id: str, data: BatchUpdate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        batch = batch_service.update_batch(db, batch_id, data)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not batch:
        raise HTTPException(404, "Batch not found")
    return batch


@router.post("/batches/{batch_id}/consumptions", response_model=BatchOut, status_code=201)
def add_consumption(batch_id: str, data: ConsumptionCreate, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return batch_service.add_consumption(db, batch_id, data.lot_id, data.quantity_consumed, user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.delete("/batches/{batch_id}/consumptions/{consumption_id}", response_model=BatchOut)
def remove_consumption(batch_id: str, consumption_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return batch_service.remove_consumption(db, batch_id, consumption_id, user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.post("/batches/{batch_id}/complete", response_model=BatchOut)
def complete_batch(batch_id: str, data: BatchComplete, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        return batch_service.complete_batch(db, batch_id, data, user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.post("/batches/{batch_id}/qa", response_model=BatchOut)
def set_qa_status(batch_id: str, data: BatchApprove, user: User = Depends(can_write), db: Session = Depends(get_db)):
    batch = batch_service.approve_batch(db, batch_id, data.qa_status)
    if not batch:
        raise HTTPException(404, "Batch not found")
    return batch


@router.delete("/batches/{batch_id}", status_code=204)
def delete_batch(batch_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    try:
        deleted = batch_service.delete_batch(db, batch_id, user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not deleted:
        raise HTTPException(404, "Batch not found")


# Processed goods

@router.get("/processed-goods", response_model=list[ProcessedGoodOut])
def list_processed_goods(
    include_archived: bool = False,
    product_type: str = "",
    in_stock: bool = False,
    user: User = Depends(can_read),
    db: Session = Depends(get_db),
):
    return processed_goods_service.list_processed_goods(
        db, include_archived=include_archived, product_type=product_type, in_stock=in_stock
    )


@router.get("/processed-goods/{good_id}", response_model=ProcessedGoodOut)
def get_processed_good(good_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    good = processed_goods_service.get_processed_good(db, good_id)
    if not good:
        raise HTTPException(404, "Processed good not found")
    return good


@router.post("/processed-goods/{good_id}/archive", response_model=ProcessedGoodOut)
def archive_processed_good(good_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    good = processed_goods_service.set_archived(db, good_id, True)
    if not good:
        raise HTTPException(404, "Processed good not found")
    return good


@router.post("/processed-goods/{good_id}/unarchive", response_model=ProcessedGoodOut)
def unarchive_processed_good(good_id: str, user: User = Depends(can_write), db: Session = Depends(get_db)):
    good = processed_goods_service.set_archived(db, good_id, False)
    if not good:
        raise HTTPException(404, "Processed good not found")
    return good


@router.get("/processed-goods/{good_id}/waste", response_model=list[ProcessedGoodWasteOut])
def list_processed_good_waste(good_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    if not processed_goods_service.get_processed_good(db, good_id):
        raise HTTPException(404, "Processed good not found")
    return processed_goods_service.list_waste(db, good_id)


@router.post("/processed-goods/{good_id}/waste", response_model=ProcessedGoodWasteOut, status_code=201)
def record_processed_good_waste(
    good_id: str, data: ProcessedGoodWasteCreate, user: User = Depends(can_write), db: Session = Depends(get_db)
):
    if not processed_goods_service.get_processed_good(db, good_id):
        raise HTTPException(404, "Processed good not found")
    try:
        return processed_goods_service.record_waste(
            db, good_id, data.quantity_wasted, data.reason, data.notes, data.waste_date, user.id
        )
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("/processed-goods/{good_id}/sales", response_model=list[SaleRecordOut])
def processed_good_sales(good_id: str, user: User = Depends(can_read), db: Session = Depends(get_db)):
    if not processed_goods_service.get_processed_good(db, good_id):
        raise HTTPException(404, "Processed good not found")
    return processed_goods_service.sales_history(db, good_id)
