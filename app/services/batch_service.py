import logging
from datetime import date

from sqlalchemy.orm import Session

from app.models.batch import BatchConsumption, BatchOutput, ProductionBatch, QAStatus
from app.models.processed_good import ProcessedGood
from app.models.stock_movement import MovementType
from app.schemas.batch import BatchComplete, BatchCreate, BatchUpdate
from app.services import lot_service
from app.services.sequence import next_number

logger = logging.getLogger(__name__)


def get_batch(db: Session, batch_id: str) -> ProductionBatch | None:
    return db.query(ProductionBatch).filter(ProductionBatch.id == batch_id).first()


def list_batches(db: Session, qa_status: str | None = None, locked: bool | None = None) -> list[ProductionBatch]:
    q = db.query(ProductionBatch)
    if qa_status:
        q = q.filter(ProductionBatch.qa_status == qa_status)
    if locked is not None:
        q = q.filter(ProductionBatch.is_locked == locked)
    return q.order_by(ProductionBatch.batch_date.desc(), ProductionBatch.created_at.desc()).all()


def _require_unlocked(batch: ProductionBatch) -> None:
    if batch.is_locked:
        raise ValueError(f"Batch {batch.batch_id} is locked and cannot be modified")


def _consume(db: Session, batch: ProductionBatch, lot_id: str, quantity: float, user_id: str | None) -> BatchConsumption:
    if quantity <= 0:
        raise ValueError("Consumed quantity must be greater than 0")
    lot = lot_service.get_lot(db, lot_id)
    if not lot:
        raise ValueError(f"Lot {lot_id} not found")
    if lot.is_archived:
        raise ValueError(f"Lot {lot.lot_id} is archived")
    available = min(lot_service.calculate_stock_balance(db, lot.id, batch.batch_date), lot.quantity_available)
    if quantity > available:
        raise ValueError(f"Insufficient stock in lot {lot.lot_id}. Available: {available} {lot.unit}")

    consumption = BatchConsumption(
        batch_id=batch.id,
        lot_id=lot.id,
        lot_type=lot.lot_type,
        lot_name=lot.name,
        lot_identifier=lot.lot_id,
        quantity_consumed=quantity,
        unit=lot.unit,
    )
    db.add(consumption)
    db.flush()
    lot_service.record_movement(
        db, lot, MovementType.CONSUMPTION, quantity, batch.batch_date,
        reference_id=batch.id, reference_type="production_batch", notes=batch.batch_id, user_id=user_id,
    )
    return consumption


def _reverse(db: Session, batch: ProductionBatch, consumption: BatchConsumption, user_id: str | None) -> None:
    """Give the consumed quantity back to the lot. The consumption row is removed by the caller."""
    lot = lot_service.get_lot(db, consumption.lot_id)
    if lot:
        lot_service.record_movement(
            db, lot, MovementType.IN, consumption.quantity_consumed, batch.batch_date,
            reference_id=batch.id, reference_type="consumption_reversal",
            notes=f"Reversed from {batch.batch_id}", user_id=user_id,
        )


def create_batch(db: Session, data: BatchCreate, user_id: str | None = None) -> ProductionBatch:
    batch = ProductionBatch(
        batch_id=next_number(db, ProductionBatch.batch_id, "BATCH-", 4),
        batch_date=data.batch_date,
        responsible_user_id=data.responsible_user_id or user_id,
        notes=data.notes,
        production_start_date=data.production_start_date,
        created_by=user_id,
    )
    db.add(batch)
    db.flush()
    try:
        for c in data.consumptions:
            _consume(db, batch, c.lot_id, c.quantity_consumed, user_id)
    except ValueError:
        db.rollback()
        raise
    db.commit()
    db.refresh(batch)
    logger.info("Created production batch %s", batch.batch_id)
    return batch


def update_batch(db: Session, batch_id: str, data: BatchUpdate) -> ProductionBatch | None:
    batch = get_batch(db, batch_id)
    if not batch:
        return None
    _require_unlocked(batch)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("batch_date", batch.batch_date) != batch.batch_date and batch.consumptions:
        raise ValueError("Remove the lot consumption before changing the batch date")
    for field, val in changes.items():
        setattr(batch, field, val)
    db.commit()
    db.refresh(batch)
    return batch


def add_consumption(db: Session, batch_id: str, lot_id: str, quantity: float, user_id: str | None = None) -> ProductionBatch:
    batch = get_batch(db, batch_id)
    if not batch:
        raise ValueError("Batch not found")
    _require_unlocked(batch)
    _consume(db, batch, lot_id, quantity, user_id)
    db.commit()
    db.refresh(batch)
    return batch


def remove_consumption(db: Session, batch_id: str, consumption_id: str, user_id: str | None = None) -> ProductionBatch:
    batch = get_batch(db, batch_id)
    if not batch:
        raise ValueError("Batch not found")
    _require_unlocked(batch)
    consumption = (
        db.query(BatchConsumption)
        .filter(BatchConsumption.id == consumption_id, BatchConsumption.batch_id == batch.id)
        .first()
    )
    if not consumption:
        raise ValueError("Consumption not found in this batch")
    _reverse(db, batch, consumption, user_id)
    batch.consumptions.remove(consumption)
    db.commit()
    db.refresh(batch)
    return batch


def complete_batch(db: Session, batch_id: str, data: BatchComplete, user_id: str | None = None) -> ProductionBatch:
    """Record the batch outputs as processed goods and lock the batch."""
    batch = get_batch(db, batch_id)
    if not batch:
        raise ValueError("Batch not found")
    _require_unlocked(batch)
    if not batch.consumptions:
        raise ValueError("Add at least one lot consumption before completing the batch")
    if not data.outputs:
        raise ValueError("At least one output is required")

    end_date = data.production_end_date or date.today()
    for o in data.outputs:
        if not o.output_name.strip():
            raise ValueError("Output name is required")
        if o.produced_quantity <= 0:
            raise ValueError(f"Produced quantity for {o.output_name} must be greater than 0")
        db.add(BatchOutput(
            batch_id=batch.id,
            output_name=o.output_name,
            output_size=o.output_size,
            output_size_unit=o.output_size_unit,
            produced_quantity=o.produced_quantity,
            produced_unit=o.produced_unit,
        ))
        db.add(ProcessedGood(
            batch_id=batch.id,
            batch_reference=batch.batch_id,
            product_type=o.output_name,
            quantity_created=o.produced_quantity,
            quantity_available=o.produced_quantity,
            unit=o.produced_unit,
            production_date=end_date,
            qa_status=batch.qa_status,
            output_size=o.output_size,
            output_size_unit=o.output_size_unit,
        ))

    batch.production_end_date = end_date
    batch.is_locked = True
    db.commit()
    db.refresh(batch)
    logger.info("Completed production batch %s with %d outputs", batch.batch_id, len(data.outputs))
    return batch


def approve_batch(db: Session, batch_id: str, qa_status: QAStatus) -> ProductionBatch | None:
    batch = get_batch(db, batch_id)
    if not batch:
        return None
    batch.qa_status = qa_status.value
    for good in db.query(ProcessedGood).filter(ProcessedGood.batch_id == batch.id).all():
        good.qa_status = qa_status.value
    db.commit()
    db.refresh(batch)
    return batch


def delete_batch(db: Session, batch_id: str, user_id: str | None = None) -> bool:
    batch = get_batch(db, batch_id)
    if not batch:
        return False
    _require_unlocked(batch)
    number = batch.batch_id
    for consumption in batch.consumptions:
        _reverse(db, batch, consumption, user_id)
    db.delete(batch)  # consumptions go with it
    db.commit()
    logger.info("Deleted production batch %s", number)
    return True
