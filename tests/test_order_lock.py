from datetime import datetime, timedelta

import pytest
from helpers import create_customer, create_order, pay, produce_goods

from app.database import utcnow
from app.models.order import Order
from app.services import order_lock_service
from app.services.order_lock_service import AUTO_LOCK_NAME, get_unlock_time_remaining, lock_countdown

ORDERS = "/api/v1/orders"


def test_countdown_before_and_after_window():
    start = datetime(2026, 5, 1, 12, 0)
    window = timedelta(hours=48)

    running = lock_countdown(start, window, start + timedelta(hours=47))
    assert running.remaining_seconds == 3600
    assert running.expired is False

    done = lock_countdown(start, window, start + timedelta(hours=48, seconds=1))
    assert done.remaining_seconds == 0
    assert done.expired is True


def test_countdown_without_reference():
    countdown = lock_countdown(None, timedelta(hours=48), datetime(2026, 5, 1))
    assert countdown.remaining_seconds is None
    assert countdown.expired is False


def test_unlock_time_remaining_in_milliseconds():
    until = datetime(2026, 5, 8, 12, 0)
    assert get_unlock_time_remaining(until, until - timedelta(seconds=90)) == 90_000
    assert get_unlock_time_remaining(until, until + timedelta(days=1)) == 0
    assert get_unlock_time_remaining(None) is None


@pytest.fixture
def completed_order(client, admin_headers):
    good = produce_goods(client, admin_headers, quantity=10)
    customer = create_customer(client, admin_headers)
    order = create_order(client, admin_headers, customer["id"], good["id"], quantity=1, unit_price=100)
    order = pay(client, admin_headers, order["id"], 100).json()
    assert order["status"] == "ORDER_COMPLETED"
    return order


def test_only_completed_orders_can_be_locked(client, admin_headers):
    good = produce_goods(client, admin_headers, quantity=10)
    customer = create_customer(client, admin_headers)
    order = create_order(client, admin_headers, customer["id"], good["id"])

    r = client.post(f"{ORDERS}/{order['id']}/lock", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Only completed orders can be locked"


def test_lock_blocks_edits_until_unlocked(client, admin_headers, completed_order):
    order_id = completed_order["id"]

    r = client.post(f"{ORDERS}/{order_id}/lock", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["is_locked"] is True
    assert r.json()["can_unlock_until"] is not None

    r = client.post(f"{ORDERS}/{order_id}/hold", headers=admin_headers, json={"reason": "Check"})
    assert r.status_code == 400
    assert "locked" in r.json()["detail"]

    r = client.post(f"{ORDERS}/{order_id}/unlock", headers=admin_headers, json={"reason": " "})
    assert r.json()["detail"] == "Unlock reason is required"

    r = client.post(f"{ORDERS}/{order_id}/unlock", headers=admin_headers, json={"reason": "Wrong price"})
    assert r.status_code == 200
    assert r.json()["is_locked"] is False

    history = client.get(f"{ORDERS}/{order_id}/lock-history", headers=admin_headers).json()
    assert [h["action"] for h in history] == ["UNLOCK", "LOCK"]
    assert history[0]["unlock_reason"] == "Wrong price"


def test_unlocking_an_unlocked_order_fails(client, admin_headers, completed_order):
    r = client.post(f"{ORDERS}/{completed_order['id']}/unlock", headers=admin_headers, json={"reason": "x"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Order is not locked"


def test_lock_status_shows_auto_lock_countdown(client, admin_headers, completed_order):
    status = client.get(f"{ORDERS}/{completed_order['id']}/lock-status", headers=admin_headers).json()

    assert status["is_locked"] is False
    assert status["can_unlock"] is False
    assert 47 * 3600 < status["auto_lock_remaining_seconds"] <= 48 * 3600


def test_unlock_window_expires(db, admin, completed_order):
    now = utcnow()
    order_lock_service.lock_order(db, completed_order["id"], admin, now=now)

    with pytest.raises(ValueError, match="permanently locked"):
        order_lock_service.unlock_order(db, completed_order["id"], admin, "Late fix", now=now + timedelta(days=8))

    order = order_lock_service.unlock_order(db, completed_order["id"], admin, "In time", now=now + timedelta(days=6))
    assert order.is_locked is False


def test_auto_lock_after_window(db, admin, completed_order):
    now = utcnow()

    assert order_lock_service.auto_lock_completed_orders(db, now=now + timedelta(hours=47)) == []

    locked = order_lock_service.auto_lock_completed_orders(db, now=now + timedelta(hours=49))
    assert [o.id for o in locked] == [completed_order["id"]]
    assert locked[0].locked_by is None

    history = order_lock_service.lock_history(db, completed_order["id"])
    assert history[0].performed_by_name == AUTO_LOCK_NAME


def test_unlocked_order_gets_a_fresh_auto_lock_window(db, admin, completed_order):
    now = utcnow()
    order_lock_service.auto_lock_completed_orders(db, now=now + timedelta(hours=49))
    order_lock_service.unlock_order(db, completed_order["id"], admin, "Correction", now=now + timedelta(hours=50))

    assert order_lock_service.auto_lock_completed_orders(db, now=now + timedelta(hours=60)) == []
    relocked = order_lock_service.auto_lock_completed_orders(db, now=now + timedelta(hours=99))
    assert [o.id for o in relocked] == [completed_order["id"]]


def test_auto_lock_can_be_undone_within_unlock_window(db, admin, completed_order):
    now = utcnow()
    order_lock_service.auto_lock_completed_orders(db, now=now + timedelta(hours=49))

    status = order_lock_service.lock_status(db, completed_order["id"], now=now + timedelta(days=3))
    assert status["is_locked"] is True
    assert status["can_unlock"] is True
    assert status["unlock_time_remaining_ms"] > 0


def test_mutations_after_auto_lock_window_are_rejected(client, db, admin_headers, completed_order):
    order_id = completed_order["id"]
    order = db.query(Order).filter(Order.id == order_id).first()
    order.completed_at = utcnow() - timedelta(hours=72)
    db.commit()
    good_id = completed_order["items"][0]["processed_good_id"]

    r = client.post(f"{ORDERS}/{order_id}/items", headers=admin_headers, json={
        "processed_good_id": good_id, "quantity": 1, "unit_price": 10,
    })
    assert r.status_code == 400
    assert "locked" in r.json()["detail"]

    r = pay(client, admin_headers, order_id, 1)
    assert r.status_code == 400
    assert "locked" in r.json()["detail"]

    r = client.delete(f"{ORDERS}/{order_id}", headers=admin_headers)
    assert r.status_code == 400
    assert "locked" in r.json()["detail"]

    history = order_lock_service.lock_history(db, order_id)
    assert [(h.action, h.performed_by_name) for h in history] == [("LOCK", AUTO_LOCK_NAME)]


def test_lock_status_persists_an_elapsed_auto_lock(db, admin, completed_order):
    now = utcnow() + timedelta(hours=49)

    status = order_lock_service.lock_status(db, completed_order["id"], now=now)
    assert status["is_locked"] is True

    db.expire_all()
    order = db.query(Order).filter(Order.id == completed_order["id"]).first()
    assert order.is_locked is True
    assert order.locked_at == now
