import logging
import re
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.batch import BatchConsumption, ProductionBatch
from app.models.lot import Lot, LotType, Supplier, TransferRecord, WasteRecord
from app.models.stock_movement import MovementType, StockMovement
from app.schemas.lot import LotCreate, LotUpdate, SupplierCreate, SupplierUpdate
from app.services import lot_history_service

logger = logging.getLogger(__name__)

LOT_PREFIX = {
    LotType.RAW_MATERIAL.value: "RM",
    LotType.RECURRING_PRODUCT.value: "RP",
}


# Suppliers

def create_supplier(db: Session, data: SupplierCreate, user_id: str | None = None) -> Supplier:
    if not data.name.strip():
        raise ValueError("Supplier name is required")
    supplier = Supplier(**data.model_dump(), created_by=user_id)
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier


def list_suppliers(db: Session, supplier_type: str | None = None) -> list[Supplier]:
    q = db.query(Supplier)
    if supplier_type:
        q = q.filter(Supplier.supplier_type.in_([supplier_type, "multiple"]))
    return q.order_by(Supplier.name).all()


def get_supplier(db: Session, supplier_id: str) -> Supplier | None:
    return db.query(Supplier).filter(Supplier.id == supplier_id).first()


def update_supplier(db: Session, supplier_id: str, data: SupplierUpdate) -> Supplier | None:
    supplier = get_supplier(db, supplier_id)
    if not supplier:
        return None
    for field, val in data.model_dump(exclude_unset=True).items():
        setattr(supplier, field, val)
    db.commit()
    db.refresh(supplier)
    return supplier


def delete_supplier(db: Session, supplier_id: str) -> bool:
    supplier = get_supplier(db, supplier_id)
    if not supplier:
        return False
    if db.query(Lot).filter(Lot.supplier_id == supplier_id).count():
        raise ValueError("Cannot delete supplier with existing lots")
    db.delete(supplier)
    db.commit()
    return True


# Stock ledger

def record_movement(
    db: Session,
    lot: Lot,
    movement_type: MovementType,
    quantity: float,
    effective_date: date,
    reference_id: str = "",
    reference_type: str = "",
    notes: str = "",
    user_id: str | None = None,
) -> StockMovement:
    """Append a movement and refresh the lot's cached available quantity. Does not commit."""
    movement = StockMovement(
        lot_id=lot.id,
        lot_type=lot.lot_type,
        movement_type=movement_type.value,
        quantity=quantity,
        unit=lot.unit,
        effective_date=effective_date,
        reference_id=reference_id,
        reference_type=reference_type,
        notes=notes,
        created_by=user_id,
    )
    db.add(movement)
    db.flush()
    refresh_available(db, lot)
    return movement


def calculate_stock_balance(db: Session, lot_id: str, as_of: date | None = None) -> float:
    q = db.query(StockMovement).filter(StockMovement.lot_id == lot_id)
    if as_of:
        q = q.filter(StockMovement.effective_date <= as_of)
    return round(sum(m.signed_quantity for m in q.all()), 6)


def refresh_available(db: Session, lot: Lot) -> float:
    lot.quantity_available = calculate_stock_balance(db, lot.id)
    return lot.quantity_available


def movement_history(db: Session, lot_id: str) -> list[dict]:
    movements = (
        db.query(StockMovement)
        .filter(StockMovement.lot_id == lot_id)
        .order_by(StockMovement.effective_date, StockMovement.created_at)
        .all()
    )
    balance = 0.0
    rows = []
    for m in movements:
        balance += m.signed_quantity
        rows.append({
            "id": m.id,
            "movement_type": m.movement_type,
            "quantity": m.quantity,
            "signed_quantity": m.signed_quantity,
            "unit": m.unit,
            "effective_date": m.effective_date,
            "reference_id": m.reference_id,
            "reference_type": m.reference_type,
            "notes": m.notes,
            "created_at": m.created_at,
            "balance_after": round(balance, 6),
        })
    return rows


# Lots

def _generate_lot_id(db: Session, lot_type: str, name: str) -> str:
    letters = re.sub(r"[^A-Za-z]", "", name).upper()[:3] or "LOT"
    prefix = f"{LOT_PREFIX.get(lot_type, 'LT')}-{letters}-"
    existing = db.query(Lot.lot_id).filter(Lot.lot_id.like(f"{prefix}%")).all()
    seq = 0
    for (lot_id,) in existing:
        try:
            seq = max(seq, int(lot_id.rsplit("-", 1)[1]))
        except (IndexError, ValueError):
            continue
    return f"{prefix}{seq + 1:03d}"


def create_lot(db: Session, data: LotCreate, user_id: str | None = None) -> Lot:
    if data.supplier_id and not get_supplier(db, data.supplier_id):
        raise ValueError(f"Supplier {data.supplier_id} not found")
    lot_identifier = data.lot_id.strip() or _generate_lot_id(db, data.lot_type.value, data.name)
    if db.query(Lot).filter(Lot.lot_id == lot_identifier).first():
        raise ValueError(f"Lot ID '{lot_identifier}' already exists")

    values = data.model_dump(exclude={"lot_type", "lot_id"})
    lot = Lot(**values, lot_type=data.lot_type.value, lot_id=lot_identifier, created_by=user_id)
    db.add(lot)
    db.flush()
    record_movement(
        db, lot, MovementType.IN, data.quantity_received, data.received_date,
        reference_id=lot.id, reference_type="initial_intake", notes="Initial intake", user_id=user_id,
    )
    db.commit()
    db.refresh(lot)
    logger.info("Created lot %s (%s %s)", lot.lot_id, lot.quantity_received, lot.unit)
    return lot


def list_lots(
    db: Session, lot_type: LotType | None = None, include_archived: bool = False, q: str = ""
) -> list[Lot]:
    query = db.query(Lot)
    if lot_type:
        query = query.filter(Lot.lot_type == lot_type.value)
    if not include_archived:
        query = query.filter(Lot.is_archived == False)
    if q:
        query = query.filter(Lot.name.ilike(f"%{q}%") | Lot.lot_id.ilike(f"%{q}%"))
    return query.order_by(Lot.received_date.desc(), Lot.created_at.desc()).all()


def get_lot(db: Session, lot_id: str) -> Lot | None:
    return db.query(Lot).filter(Lot.id == lot_id).first()


def _used_by_locked_batch(db: Session, lot_id: str) -> bool:
    return (
        db.query(BatchConsumption)
        .join(ProductionBatch, ProductionBatch.id == BatchConsumption.batch_id)
        .filter(BatchConsumption.lot_id == lot_id, ProductionBatch.is_locked == True)
        .count()
        > 0
    )


def _intake_movement(db: Session, lot_id: str) -> StockMovement | None:
    # Corrected in place, it is the record of what was received
    return (
        db.query(StockMovement)
        .filter(StockMovement.lot_id == lot_id, StockMovement.reference_type == "initial_intake")
        .first()
    )


def update_lot(db: Session, lot_id: str, data: LotUpdate) -> Lot | None:
    lot = get_lot(db, lot_id)
    if not lot:
        return None
    changes = data.model_dump(exclude_unset=True)
    if changes.get("supplier_id") and not get_supplier(db, changes["supplier_id"]):
        raise ValueError(f"Supplier {changes['supplier_id']} not found")

    new_date = changes.get("received_date")
    if new_date is not None and new_date != lot.received_date:
        first_use = (
            db.query(func.min(StockMovement.effective_date))
            .filter(StockMovement.lot_id == lot.id, StockMovement.reference_type != "initial_intake")
            .scalar()
        )
        if first_use is not None and new_date > first_use:
            raise ValueError(f"Received date cannot be after the first stock movement of the lot ({first_use})")

    new_received = changes.pop("quantity_received", None)
    if new_received is not None and new_received != lot.quantity_received:
        if _used_by_locked_batch(db, lot.id):
            raise ValueError("Cannot change quantity received: lot is used in a locked production batch")
        if new_received <= 0:
            raise ValueError("Quantity received must be greater than 0")
        delta = new_received - lot.quantity_received
        if lot.quantity_available + delta < 0:
            raise ValueError(
                f"Quantity received cannot be less than what has already been used "
                f"({lot.quantity_received - lot.quantity_available} {lot.unit})"
            )
        intake = _intake_movement(db, lot.id)
        if intake:
            intake.quantity = new_received
        lot.quantity_received = new_received

    if new_date is not None and new_date != lot.received_date:
        intake = _intake_movement(db, lot.id)
        if intake:
            intake.effective_date = new_date

    for field, val in changes.items():
        setattr(lot, field, val)
    db.flush()
    refresh_available(db, lot)
    db.commit()
    db.refresh(lot)
    return lot


def set_archived(db: Session, lot_id: str, archived: bool) -> Lot | None:
    lot = get_lot(db, lot_id)
    if not lot:
        return None
    lot.is_archived = archived
    db.commit()
    db.refresh(lot)
    return lot


def delete_lot(db: Session, lot_id: str) -> bool:
    lot = get_lot(db, lot_id)
    if not lot:
        return False
    in_use = (
        db.query(BatchConsumption).filter(BatchConsumption.lot_id == lot_id).count()
        or db.query(WasteRecord).filter(WasteRecord.lot_id == lot_id).count()
        or db.query(TransferRecord)
        .filter((TransferRecord.from_lot_id == lot_id) | (TransferRecord.to_lot_id == lot_id))
        .count()
    )
    if in_use:
        raise ValueError("Cannot delete a lot that has consumption, waste or transfer records. Archive it instead.")
    db.query(StockMovement).filter(StockMovement.lot_id == lot_id).delete()
    db.delete(lot)
    db.commit()
    return True


# Waste and transfers

def record_waste(
    db: Session,
    lot_id: str,
    quantity: float,
    reason: str,
    notes: str,
    waste_date: date,
    user_id: str | None = None,
) -> WasteRecord:
    if quantity <= 0:
        raise ValueError("Waste quantity must be greater than 0")
    if not reason.strip():
        raise ValueError("Waste reason is required")
    lot = get_lot(db, lot_id)
    if not lot:
        raise ValueError(f"Lot {lot_id} not found")

    available = min(calculate_stock_balance(db, lot.id, waste_date), lot.quantity_available)
    if quantity > available:
        raise ValueError(f"Insufficient stock in lot {lot.lot_id}. Available on {waste_date}: {available} {lot.unit}")

    record = WasteRecord(
        lot_type=lot.lot_type,
        lot_id=lot.id,
        lot_identifier=lot.lot_id,
        quantity_wasted=quantity,
        unit=lot.unit,
        reason=reason,
        notes=notes,
        waste_date=waste_date,
        created_by=user_id,
    )
    db.add(record)
    db.flush()
    record_movement(
        db, lot, MovementType.WASTE, quantity, waste_date,
        reference_id=record.id, reference_type="waste_record", notes=reason, user_id=user_id,
    )
    db.commit()
    db.refresh(record)
    logger.info("Recorded waste of %s %s on lot %s", quantity, lot.unit, lot.lot_id)
    return record


def transfer_between_lots(
    db: Session,
    from_lot_id: str,
    to_lot_id: str,
    quantity: float,
    reason: str,
    notes: str,
    transfer_date: date,
    user_id: str | None = None,
) -> TransferRecord:
    if from_lot_id == to_lot_id:
        raise ValueError("Cannot transfer a lot to itself")
    if quantity <= 0:
        raise ValueError("Transfer quantity must be greater than 0")
    if not reason.strip():
        raise ValueError("Transfer reason is required")
    source = get_lot(db, from_lot_id)
    if not source:
        raise ValueError(f"Lot {from_lot_id} not found")
    target = get_lot(db, to_lot_id)
    if not target:
        raise ValueError(f"Lot {to_lot_id} not found")
    if source.lot_type != target.lot_type:
        raise ValueError("Transfers are only allowed between lots of the same type")
    if source.unit != target.unit:
        raise ValueError(f"Unit mismatch: {source.lot_id} is in {source.unit}, {target.lot_id} is in {target.unit}")

    available = min(calculate_stock_balance(db, source.id, transfer_date), source.quantity_available)
    if quantity > available:
        raise ValueError(
            f"Insufficient stock in lot {source.lot_id}. Available on {transfer_date}: {available} {source.unit}"
        )

    record = TransferRecord(
        lot_type=source.lot_type,
        from_lot_id=source.id,
        from_lot_identifier=source.lot_id,
        to_lot_id=target.id,
        to_lot_identifier=target.lot_id,
        quantity_transferred=quantity,
        unit=source.unit,
        reason=reason,
        notes=notes,
        transfer_date=transfer_date,
        created_by=user_id,
    )
    db.add(record)
    db.flush()
    record_movement(
        db, source, MovementType.TRANSFER_OUT, quantity, transfer_date,
        reference_id=record.id, reference_type="transfer_record", notes=f"To {target.lot_id}", user_id=user_id,
    )
    record_movement(
        db, target, MovementType.TRANSFER_IN, quantity, transfer_date,
        reference_id=record.id, reference_type="transfer_record", notes=f"From {source.lot_id}", user_id=user_id,
    )
    db.commit()
    db.refresh(record)
    logger.info("Transferred %s %s from %s to %s", quantity, source.unit, source.lot_id, target.lot_id)
    return record


def list_waste(db: Session, lot_type: LotType | None = None, lot_id: str | None = None) -> list[WasteRecord]:
    q = db.query(WasteRecord)
    if lot_type:
        q = q.filter(WasteRecord.lot_type == lot_type.value)
    if lot_id:
        q = q.filter(WasteRecord.lot_id == lot_id)
    return q.order_by(WasteRecord.waste_date.desc(), WasteRecord.created_at.desc()).all()


def list_transfers(db: Session, lot_type: LotType | None = None, lot_id: str | None = None) -> list[TransferRecord]:
    q = db.query(TransferRecord)
    if lot_type:
        q = q.filter(TransferRecord.lot_type == lot_type.value)
    if lot_id:
        q = q.filter((TransferRecord.from_lot_id == lot_id) | (TransferRecord.to_lot_id == lot_id))
    return q.order_by(TransferRecord.transfer_date.desc(), TransferRecord.created_at.desc()).all()


# Lot history

def fetch_waste_transfer_history(db: Session, lot_id: str) -> dict:
    """Waste and transfer records of one lot, transfers tagged relative to it."""
    waste = [
        {
            "waste_id": w.id,
            "waste_date": w.waste_date,
            "quantity_wasted": w.quantity_wasted,
            "unit": w.unit,
            "reason": w.reason,
            "notes": w.notes,
            "created_at": w.created_at,
        }
        for w in db.query(WasteRecord).filter(WasteRecord.lot_id == lot_id).all()
    ]
    transfers = []
    for t in list_transfers(db, lot_id=lot_id):
        transfers.append({
            "transfer_id": t.id,
            "transfer_date": t.transfer_date,
            "quantity_transferred": t.quantity_transferred,
            "unit": t.unit,
            "reason": t.reason,
            "notes": t.notes,
            "from_lot_id": t.from_lot_id,
            "to_lot_id": t.to_lot_id,
            "from_lot_identifier": t.from_lot_identifier,
            "to_lot_identifier": t.to_lot_identifier,
            "created_at": t.created_at,
            "type": (
                lot_history_service.EVENT_TRANSFER_OUT
                if t.from_lot_id == lot_id
                else lot_history_service.EVENT_TRANSFER_IN
            ),
        })
    return {"waste": waste, "transfers": transfers}


def fetch_batch_usage(db: Session, lot_id: str) -> list[dict]:
    """One row per production batch that consumed from the lot."""
    rows = (
        db.query(
            ProductionBatch.batch_id,
            ProductionBatch.batch_date,
            ProductionBatch.is_locked,
            ProductionBatch.qa_status,
            func.sum(BatchConsumption.quantity_consumed),
            func.min(BatchConsumption.unit),
            func.min(BatchConsumption.created_at),
        )
        .join(BatchConsumption, BatchConsumption.batch_id == ProductionBatch.id)
        .filter(BatchConsumption.lot_id == lot_id)
        .group_by(
            ProductionBatch.id,
            ProductionBatch.batch_id,
            ProductionBatch.batch_date,
            ProductionBatch.is_locked,
            ProductionBatch.qa_status,
        )
        .order_by(ProductionBatch.batch_date.desc())
        .all()
    )
    return [
        {
            "batch_id": batch_id,
            "batch_date": batch_date,
            "quantity_consumed": quantity or 0.0,
            "unit": unit or "",
            "is_locked": is_locked,
            "qa_status": qa_status,
            "created_at": created_at,
        }
        for batch_id, batch_date, is_locked, qa_status, quantity, unit, created_at in rows
    ]


def lot_history(db: Session, lot_id: str, merge_consumption: bool = False) -> dict | None:
    lot = get_lot(db, lot_id)
    if not lot:
        return None
    usage = fetch_batch_usage(db, lot.id)
    records = fetch_waste_transfer_history(db, lot.id)
    events = lot_history_service.reconstruct_lot_history(
        lot.quantity_received, usage, records["waste"], records["transfers"], merge_consumption=merge_consumption
    )
    reconstructed = lot_history_service.closing_balance(
        lot.quantity_received, usage, records["waste"], records["transfers"]
    )
    drift = round(lot.quantity_available - reconstructed, 6)
    if drift:
        logger.warning("Lot %s stored quantity differs from its history by %s %s", lot.lot_id, drift, lot.unit)
    return {
        "lot_id": lot.id,
        "lot_identifier": lot.lot_id,
        "unit": lot.unit,
        "timeline": "merged" if merge_consumption else "baseline",
        "quantity_received": lot.quantity_received,
        "total_batch_consumption": lot_history_service.total_batch_consumption(usage),
        "quantity_available": lot.quantity_available,
        "reconstructed_balance": round(reconstructed, 6),
        "drift": drift,
        "events": events,
        "batch_usage": usage,
    }
