from collections import defaultdict
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import settings
from app.models.lot import Lot, LotType
from app.models.order import Order, OrderItem
from app.models.processed_good import ProcessedGood
from app.models.stock_movement import MovementType, StockMovement

LOT_TYPE_LABELS = {
    LotType.RAW_MATERIAL.value: "Raw materials",
    LotType.RECURRING_PRODUCT.value: "Recurring products",
}


def _empty_totals() -> dict:
    return {k: 0.0 for k in ("received", "consumed", "wasted", "transferred_out", "transferred_in", "available")}


def _movement_totals(db: Session) -> dict[str, dict]:
    rows = (
        db.query(StockMovement.lot_id, StockMovement.movement_type, StockMovement.reference_type, func.sum(StockMovement.quantity))
        .group_by(StockMovement.lot_id, StockMovement.movement_type, StockMovement.reference_type)
        .all()
    )
    per_lot: dict[str, dict] = defaultdict(_empty_totals)
    for lot_id, movement_type, reference_type, quantity in rows:
        t = per_lot[lot_id]
        quantity = quantity or 0.0
        if movement_type == MovementType.IN.value:
            # Reversed batch consumption comes back as IN
            if reference_type == "consumption_reversal":
                t["consumed"] -= quantity
            else:
                t["received"] += quantity
        elif movement_type == MovementType.CONSUMPTION.value:
            t["consumed"] += quantity
        elif movement_type == MovementType.WASTE.value:
            t["wasted"] += quantity
        elif movement_type == MovementType.TRANSFER_OUT.value:
            t["transferred_out"] += quantity
        elif movement_type == MovementType.TRANSFER_IN.value:
            t["transferred_in"] += quantity
    return per_lot


def inventory_summary(db: Session, include_archived: bool = False) -> dict:
    q = db.query(Lot)
    if not include_archived:
        q = q.filter(Lot.is_archived == False)
    lots = q.all()
    per_lot = _movement_totals(db)

    groups = {}
    for lot_type, label in LOT_TYPE_LABELS.items():
        groups[lot_type] = {"lot_type": lot_type, "label": label, "lot_count": 0, "by_unit": {}}
    for lot in lots:
        group = groups.setdefault(lot.lot_type, {"lot_type": lot.lot_type, "label": lot.lot_type, "lot_count": 0, "by_unit": {}})
        group["lot_count"] += 1
        totals = group["by_unit"].setdefault(lot.unit, _empty_totals())
        for key, value in per_lot[lot.id].items():
            totals[key] += value
        totals["available"] += lot.quantity_available
    for group in groups.values():
        for totals in group["by_unit"].values():
            for key in totals:
                totals[key] = round(totals[key], 2)

    threshold = settings.LOW_STOCK_THRESHOLD
    low_stock = sorted(
        (lot for lot in lots if lot.quantity_available <= threshold),
        key=lambda lot: lot.quantity_available,
    )

    return {
        "low_stock_threshold": threshold,
        "lot_types": list(groups.values()),
        "low_stock_count": len(low_stock),
        "low_stock": [
            {
                "id": lot.id,
                "lot_id": lot.lot_id,
                "name": lot.name,
                "lot_type": lot.lot_type,
                "quantity_available": lot.quantity_available,
                "unit": lot.unit,
            }
            for lot in low_stock
        ],
        "processed_goods": _processed_goods_totals(db, include_archived),
    }


def _processed_goods_totals(db: Session, include_archived: bool) -> dict:
    q = db.query(ProcessedGood)
    if not include_archived:
        q = q.filter(ProcessedGood.is_archived == False)
    goods = q.all()
    products: dict[tuple[str, str], dict] = {}
    for g in goods:
        key = (g.product_type, g.unit)
        if key not in products:
            products[key] = {"product_type": g.product_type, "unit": g.unit, "quantity_created": 0.0, "quantity_available": 0.0}
        products[key]["quantity_created"] += g.quantity_created
        products[key]["quantity_available"] += g.quantity_available
    for p in products.values():
        p["quantity_created"] = round(p["quantity_created"], 2)
        p["quantity_available"] = round(p["quantity_available"], 2)
    return {
        "count": len(goods),
        "by_product": sorted(products.values(), key=lambda p: p["product_type"]),
    }


def sales_summary(db: Session, start_date: date | None = None, end_date: date | None = None) -> dict:
    q = db.query(Order)
    if start_date:
        q = q.filter(Order.order_date >= start_date)
    if end_date:
        q = q.filter(Order.order_date <= end_date)

    orders = q.all()
    by_status: dict[str, int] = {}
    total_sales = 0.0
    total_paid = 0.0
    for o in orders:
        by_status[o.status] = by_status.get(o.status, 0) + 1
        total_sales += o.net_total
        total_paid += o.total_paid

    return {
        "total_orders": len(orders),
        "orders_by_status": by_status,
        "total_sales": round(total_sales, 2),
        "total_paid": round(total_paid, 2),
        "outstanding": round(total_sales - total_paid, 2),
        "date_range": {
            "start": start_date.isoformat() if start_date else None,
            "end": end_date.isoformat() if end_date else None,
        },
    }


def top_products(db: Session, limit: int = 10) -> list[dict]:
    results = (
        db.query(
            OrderItem.product_type,
            func.sum(OrderItem.quantity).label("total_sold"),
            func.sum(OrderItem.quantity * OrderItem.unit_price).label("revenue"),
        )
        .group_by(OrderItem.product_type)
        .order_by(func.sum(OrderItem.quantity * OrderItem.unit_price).desc())
        .limit(limit)
        .all()
    )
    return [
        {"product_type": r.product_type, "total_sold": r.total_sold or 0, "revenue": round(r.revenue or 0, 2)}
        for r in results
    ]
