"""Reconstruct the quantity of a lot before and after each historical event.

The service layer fetches a lot's batch usage, waste records and transfer
records and hands them here as plain mappings. Nothing in this module touches
the database, so the same input always yields the same output.

Two timelines are supported:

* baseline (default): all batch consumption is subtracted from
  ``quantity_received`` up front, then waste and transfers are replayed in
  date order.
* merged: batch consumption is replayed as ``consumption`` events in the same
  timeline as waste and transfers, starting from ``quantity_received``.
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone

logger = logging.getLogger(__name__)

EVENT_WASTE = "waste"
EVENT_TRANSFER_OUT = "transfer_out"
EVENT_TRANSFER_IN = "transfer_in"
EVENT_CONSUMPTION = "consumption"

TRANSFER_DIRECTIONS = (EVENT_TRANSFER_OUT, EVENT_TRANSFER_IN)

# Where each event type keeps its business date and quantity
_DATE_FIELD = {
    EVENT_WASTE: "waste_date",
    EVENT_TRANSFER_OUT: "transfer_date",
    EVENT_TRANSFER_IN: "transfer_date",
    EVENT_CONSUMPTION: "batch_date",
}
_QUANTITY_FIELD = {
    EVENT_WASTE: "quantity_wasted",
    EVENT_TRANSFER_OUT: "quantity_transferred",
    EVENT_TRANSFER_IN: "quantity_transferred",
    EVENT_CONSUMPTION: "quantity_consumed",
}
_ID_FIELD = {
    EVENT_WASTE: "waste_id",
    EVENT_TRANSFER_OUT: "transfer_id",
    EVENT_TRANSFER_IN: "transfer_id",
    EVENT_CONSUMPTION: "batch_id",
}


def _quantity(value) -> float:
    return float(value or 0)


def _date_key(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _created_key(value) -> float:
    """Timestamp used to break same-day ties. Missing values sort first."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            logger.warning("Unparseable created_at %r, ordering it first among same-day events", value)
            return 0.0
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    return 0.0


def event_quantity(event: Mapping) -> float:
    return _quantity(event.get(_QUANTITY_FIELD[event["type"]]))


def event_date(event: Mapping) -> str:
    return _date_key(event.get(_DATE_FIELD[event["type"]]))


def merge_events(
    waste_records: Iterable[Mapping],
    transfer_records: Iterable[Mapping],
    batch_usage: Iterable[Mapping] = (),
) -> list[dict]:
    """Tag every record with its event type and return them in one list.

    Transfer records must already carry ``type`` (``transfer_out`` or
    ``transfer_in``) relative to the lot being viewed.
    """
    events = [{**w, "type": EVENT_WASTE} for w in waste_records]
    for t in transfer_records:
        direction = t.get("type")
        if direction not in TRANSFER_DIRECTIONS:
            raise ValueError(f"Transfer {t.get('transfer_id', '')} has no direction relative to this lot")
        events.append(dict(t))
    events.extend({**u, "type": EVENT_CONSUMPTION} for u in batch_usage)
    return events


def sort_chronologically(events: Iterable[Mapping]) -> list[dict]:
    """Oldest first by business date; same-day events in the order they were recorded."""
    return sorted(events, key=lambda e: (event_date(e), _created_key(e.get("created_at"))))


def total_batch_consumption(batch_usage: Iterable[Mapping]) -> float:
    return sum(_quantity(u.get("quantity_consumed")) for u in batch_usage)


def annotate(events: Iterable[Mapping], opening_quantity: float) -> list[dict]:
    """Walk chronologically ordered events and attach quantity_before / quantity_after."""
    running = opening_quantity
    annotated = []
    for e in events:
        qty = event_quantity(e)
        before = running
        if e["type"] == EVENT_TRANSFER_IN:
            after = before + qty
        else:
            after = before - qty
        running = after
        annotated.append({
            **e,
            "event_id": e.get(_ID_FIELD[e["type"]], ""),
            "event_date": event_date(e),
            "quantity": qty,
            "quantity_before": before,
            "quantity_after": after,
            "below_zero": after < 0,
        })
    negatives = [a["event_id"] for a in annotated if a["below_zero"]]
    if negatives:
        logger.warning("Reconstructed lot balance drops below zero at events %s", ", ".join(map(str, negatives)))
    return annotated


def reconstruct_lot_history(
    quantity_received: float,
    batch_usage: Iterable[Mapping],
    waste_records: Iterable[Mapping],
    transfer_records: Iterable[Mapping],
    merge_consumption: bool = False,
) -> list[dict]:
    """Return waste/transfer events newest first, each with the lot quantity around it."""
    batch_usage = list(batch_usage)
    received = _quantity(quantity_received)
    if merge_consumption:
        events = merge_events(waste_records, transfer_records, batch_usage)
        opening = received
    else:
        events = merge_events(waste_records, transfer_records)
        opening = received - total_batch_consumption(batch_usage)

    chronological = annotate(sort_chronologically(events), opening)
    chronological.reverse()
    return chronological


def closing_balance(
    quantity_received: float,
    batch_usage: Iterable[Mapping],
    waste_records: Iterable[Mapping],
    transfer_records: Iterable[Mapping],
) -> float:
    """received - consumption - waste - transfer_out + transfer_in."""
    balance = _quantity(quantity_received) - total_batch_consumption(batch_usage)
    for w in waste_records:
        balance -= _quantity(w.get("quantity_wasted"))
    for t in transfer_records:
        qty = _quantity(t.get("quantity_transferred"))
        balance += qty if t.get("type") == EVENT_TRANSFER_IN else -qty
    return balance
