import calendar
import logging
from datetime import date

from sqlalchemy.orm import Session

from app.models.finance import Contribution, Expense, Income
from app.models.order import Order, OrderPayment
from app.schemas.finance import FinanceEntryUpdate
from app.services.sequence import next_number

logger = logging.getLogger(__name__)

KINDS = {
    "contribution": (Contribution, "TXN-CNT-"),
    "income": (Income, "TXN-INC-"),
    "expense": (Expense, "TXN-EXP-"),
}


def _model(kind: str):
    if kind not in KINDS:
        raise ValueError(f"Unknown finance entry kind: {kind}")
    return KINDS[kind][0]


def next_transaction_id(db: Session, kind: str) -> str:
    model, prefix = KINDS[kind]
    return next_number(db, model.transaction_id, prefix, 3)


def _month_range(month: int | None, year: int | None) -> tuple[date, date] | None:
    if not year:
        return None
    if month:
        if not 1 <= month <= 12:
            raise ValueError("Month must be between 1 and 12")
        return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])
    return date(year, 1, 1), date(year, 12, 31)


def create_entry(db: Session, kind: str, data: dict, user_id: str | None = None):
    model = _model(kind)
    entry = model(**data, transaction_id=next_transaction_id(db, kind), recorded_by=user_id)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info("Recorded %s %s of %.2f", kind, entry.transaction_id, entry.amount)
    return entry


def list_entries(db: Session, kind: str, month: int | None = None, year: int | None = None) -> list:
    model = _model(kind)
    q = db.query(model)
    period = _month_range(month, year)
    if period:
        q = q.filter(model.payment_date >= period[0], model.payment_date <= period[1])
    return q.order_by(model.payment_date.desc(), model.created_at.desc()).all()


def get_entry(db: Session, kind: str, entry_id: str):
    model = _model(kind)
    return db.query(model).filter(model.id == entry_id).first()


def update_entry(db: Session, kind: str, entry_id: str, data: FinanceEntryUpdate):
    entry = get_entry(db, kind, entry_id)
    if not entry:
        return None
    if kind == "income" and entry.order_payment_id:
        raise ValueError("Income booked from an order payment can only be changed through the order")
    changes = data.model_dump(exclude_unset=True)
    if "amount" in changes and (changes["amount"] is None or changes["amount"] <= 0):
        raise ValueError("Amount must be greater than 0")
    for field, val in changes.items():
        if hasattr(entry, field):
            setattr(entry, field, val)
    db.commit()
    db.refresh(entry)
    return entry


def delete_entry(db: Session, kind: str, entry_id: str) -> bool:
    entry = get_entry(db, kind, entry_id)
    if not entry:
        return False
    if kind == "income" and entry.order_payment_id:
        raise ValueError("Income booked from an order payment is removed by deleting the payment")
    db.delete(entry)
    db.commit()
    return True


# Order payments

def book_order_payment(db: Session, order: Order, payment: OrderPayment, user_id: str | None = None) -> Income:
    """Mirror an order payment as a sales income entry. Does not commit."""
    income = Income(
        transaction_id=next_transaction_id(db, "income"),
        amount=payment.amount_received,
        reason=f"Payment for order {order.order_number}",
        payment_date=payment.payment_date,
        payment_method={"Cash": "cash", "UPI": "upi", "Bank": "bank_transfer"}.get(payment.payment_mode, "cash"),
        bank_reference=payment.transaction_reference,
        evidence_url=payment.evidence_url,
        source=order.customer_name,
        income_type="sales",
        category="sales",
        order_id=order.id,
        order_payment_id=payment.id,
        recorded_by=user_id,
    )
    db.add(income)
    db.flush()
    return income


def remove_order_payment_income(db: Session, payment_id: str) -> None:
    db.query(Income).filter(Income.order_payment_id == payment_id).delete()


# Summary and ledger

def summary(db: Session, month: int | None = None, year: int | None = None) -> dict:
    totals = {}
    for kind in KINDS:
        entries = list_entries(db, kind, month, year)
        totals[kind] = (round(sum(e.amount for e in entries), 2), len(entries))
    return {
        "total_contributions": totals["contribution"][0],
        "total_income": totals["income"][0],
        "total_expenses": totals["expense"][0],
        "balance": round(totals["contribution"][0] + totals["income"][0] - totals["expense"][0], 2),
        "contribution_count": totals["contribution"][1],
        "income_count": totals["income"][1],
        "expense_count": totals["expense"][1],
    }


def ledger(db: Session, month: int | None = None, year: int | None = None, limit: int = 200) -> list[dict]:
    rows = []
    for kind in KINDS:
        sign = -1 if kind == "expense" else 1
        for e in list_entries(db, kind, month, year):
            rows.append({
                "kind": kind,
                "id": e.id,
                "transaction_id": e.transaction_id,
                "amount": e.amount,
                "signed_amount": sign * e.amount,
                "payment_date": e.payment_date,
                "payment_method": e.payment_method,
                "reason": e.reason,
                "description": e.description,
                "created_at": e.created_at,
            })
    rows.sort(key=lambda r: (r["payment_date"], r["created_at"]), reverse=True)
    return rows[:limit]
