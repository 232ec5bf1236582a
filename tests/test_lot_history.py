import random
from datetime import date, datetime

import pytest

from app.services.lot_history_service import (
    EVENT_CONSUMPTION,
    EVENT_TRANSFER_IN,
    EVENT_TRANSFER_OUT,
    EVENT_WASTE,
    closing_balance,
    merge_events,
    reconstruct_lot_history,
)


def waste(waste_id, day, qty, created=None):
    return {
        "waste_id": waste_id,
        "waste_date": date(2026, 3, day),
        "quantity_wasted": qty,
        "created_at": created or datetime(2026, 3, day, 9, 0),
    }


def transfer(transfer_id, day, qty, direction, created=None):
    return {
        "transfer_id": transfer_id,
        "transfer_date": date(2026, 3, day),
        "quantity_transferred": qty,
        "type": direction,
        "created_at": created or datetime(2026, 3, day, 9, 0),
    }


def usage(batch_id, day, qty):
    return {
        "batch_id": batch_id,
        "batch_date": date(2026, 3, day),
        "quantity_consumed": qty,
        "created_at": datetime(2026, 3, day, 8, 0),
    }


def test_single_waste_event():
    history = reconstruct_lot_history(100, [], [waste("w1", 2, 20)], [])

    assert len(history) == 1
    assert history[0]["type"] == EVENT_WASTE
    assert history[0]["quantity_before"] == 100
    assert history[0]["quantity_after"] == 80


def test_transfers_after_batch_consumption_baseline():
    history = reconstruct_lot_history(
        100,
        [usage("b1", 1, 20), usage("b2", 1, 10)],
        [],
        [transfer("t-out", 3, 10, EVENT_TRANSFER_OUT), transfer("t-in", 5, 5, EVENT_TRANSFER_IN)],
    )

    assert [(e["event_id"], e["quantity_before"], e["quantity_after"]) for e in history] == [
        ("t-in", 60, 65),
        ("t-out", 70, 60),
    ]


def test_same_day_events_ordered_by_creation_time():
    first = waste("w-early", 4, 5, created=datetime(2026, 3, 4, 8, 0))
    second = waste("w-late", 4, 7, created=datetime(2026, 3, 4, 17, 30))

    history = reconstruct_lot_history(50, [], [second, first], [])

    assert [e["event_id"] for e in history] == ["w-late", "w-early"]
    assert history[1]["quantity_before"] == 50
    assert history[1]["quantity_after"] == 45
    assert history[0]["quantity_before"] == 45
    assert history[0]["quantity_after"] == 38


def test_same_day_tie_break_accepts_utc_suffix_strings():
    first = waste("w-early", 4, 5, created="2026-03-04T08:00:00.123Z")
    second = waste("w-late", 4, 7, created="2026-03-04T17:30:00Z")

    history = reconstruct_lot_history(50, [], [second, first], [])

    assert [e["event_id"] for e in history] == ["w-late", "w-early"]


def test_unparseable_creation_time_is_logged(caplog):
    broken = waste("w-broken", 4, 5, created="yesterday")
    stamped = waste("w-stamped", 4, 7, created=datetime(2026, 3, 4, 8, 0))

    history = reconstruct_lot_history(50, [], [stamped, broken], [])

    assert [e["event_id"] for e in history] == ["w-stamped", "w-broken"]
    assert "Unparseable created_at" in caplog.text


def test_no_events_gives_empty_history():
    assert reconstruct_lot_history(100, [usage("b1", 1, 40)], [], []) == []


def test_overdrawn_lot_goes_negative_and_is_flagged(caplog):
    history = reconstruct_lot_history(10, [], [waste("w1", 2, 25)], [])

    assert history[0]["quantity_after"] == -15
    assert history[0]["below_zero"] is True
    assert "below zero" in caplog.text


def test_missing_quantity_counts_as_zero():
    record = waste("w1", 2, None)

    history = reconstruct_lot_history(30, [], [record], [])

    assert history[0]["quantity_before"] == history[0]["quantity_after"] == 30


def _sample():
    wastes = [waste("w1", 2, 3), waste("w2", 6, 4.5), waste("w3", 6, 1, created=datetime(2026, 3, 6, 18, 0))]
    transfers = [
        transfer("t1", 3, 10, EVENT_TRANSFER_OUT),
        transfer("t2", 5, 2.5, EVENT_TRANSFER_IN),
        transfer("t3", 9, 6, EVENT_TRANSFER_OUT),
    ]
    usage_rows = [usage("b1", 1, 12), usage("b2", 4, 8)]
    return wastes, transfers, usage_rows


def test_adjacent_events_chain():
    wastes, transfers, usage_rows = _sample()

    chronological = list(reversed(reconstruct_lot_history(200, usage_rows, wastes, transfers)))

    for earlier, later in zip(chronological, chronological[1:]):
        assert earlier["quantity_after"] == later["quantity_before"]


def test_final_quantity_matches_closing_balance():
    wastes, transfers, usage_rows = _sample()

    history = reconstruct_lot_history(200, usage_rows, wastes, transfers)

    expected = 200 - 20 - (3 + 4.5 + 1) - (10 + 6) + 2.5
    assert history[0]["quantity_after"] == pytest.approx(expected)
    assert closing_balance(200, usage_rows, wastes, transfers) == pytest.approx(expected)


def test_output_is_newest_first():
    wastes, transfers, usage_rows = _sample()

    history = reconstruct_lot_history(200, usage_rows, wastes, transfers)

    dates = [e["event_date"] for e in history]
    assert dates == sorted(dates, reverse=True)


def test_input_order_does_not_matter():
    wastes, transfers, usage_rows = _sample()
    expected = reconstruct_lot_history(200, usage_rows, wastes, transfers)

    shuffled_w, shuffled_t = wastes[:], transfers[:]
    rng = random.Random(7)
    for _ in range(5):
        rng.shuffle(shuffled_w)
        rng.shuffle(shuffled_t)
        assert reconstruct_lot_history(200, usage_rows, shuffled_w, shuffled_t) == expected


def test_inputs_are_not_mutated():
    wastes, transfers, usage_rows = _sample()
    snapshot = [dict(w) for w in wastes]

    reconstruct_lot_history(200, usage_rows, wastes, transfers)

    assert wastes == snapshot


def test_merged_timeline_interleaves_consumption():
    wastes = [waste("w1", 2, 5)]
    usage_rows = [usage("b1", 1, 20), usage("b2", 4, 10)]

    history = reconstruct_lot_history(100, usage_rows, wastes, [], merge_consumption=True)

    assert [(e["type"], e["quantity_before"], e["quantity_after"]) for e in history] == [
        (EVENT_CONSUMPTION, 75, 65),
        (EVENT_WASTE, 80, 75),
        (EVENT_CONSUMPTION, 100, 80),
    ]


def test_merged_and_baseline_agree_on_final_quantity():
    wastes, transfers, usage_rows = _sample()

    baseline = reconstruct_lot_history(200, usage_rows, wastes, transfers)
    merged = reconstruct_lot_history(200, usage_rows, wastes, transfers, merge_consumption=True)

    assert merged[0]["quantity_after"] == pytest.approx(baseline[0]["quantity_after"])


def test_transfer_without_direction_is_rejected():
    record = transfer("t1", 3, 10, EVENT_TRANSFER_OUT)
    del record["type"]

    with pytest.raises(ValueError, match="no direction"):
        merge_events([], [record])
