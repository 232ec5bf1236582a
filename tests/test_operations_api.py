from datetime import date

from helpers import create_lot, produce_goods

LOTS = "/api/v1/operations/lots"


def test_create_lot_generates_identifier_and_intake(client, admin_headers):
    lot = create_lot(client, admin_headers, name="Black Tea", quantity=100)

    assert lot["lot_id"] == "RM-BLA-001"
    assert lot["quantity_available"] == 100

    second = create_lot(client, admin_headers, name="Black Tea", quantity=10)
    assert second["lot_id"] == "RM-BLA-002"

    movements = client.get(f"{LOTS}/{lot['id']}/movements", headers=admin_headers).json()
    assert len(movements) == 1
    assert movements[0]["reference_type"] == "initial_intake"
    assert movements[0]["balance_after"] == 100


def test_lot_quantity_must_be_positive(client, admin_headers):
    r = client.post(LOTS, headers=admin_headers, json={
        "lot_type": "raw_material", "name": "Rice", "quantity_received": 0, "received_date": "2026-01-01",
    })
    assert r.status_code == 422


def test_waste_reduces_available_and_rejects_overdraw(client, admin_headers):
    lot = create_lot(client, admin_headers, quantity=50)

    r = client.post(f"{LOTS}/{lot['id']}/waste", headers=admin_headers, json={
        "quantity_wasted": 20, "reason": "Moisture", "waste_date": "2026-01-02",
    })
    assert r.status_code == 201, r.text
    assert client.get(f"{LOTS}/{lot['id']}", headers=admin_headers).json()["quantity_available"] == 30

    r = client.post(f"{LOTS}/{lot['id']}/waste", headers=admin_headers, json={
        "quantity_wasted": 31, "reason": "Spill", "waste_date": "2026-01-03",
    })
    assert r.status_code == 400
    assert "Insufficient stock" in r.json()["detail"]


def test_transfer_moves_quantity_between_lots(client, admin_headers):
    source = create_lot(client, admin_headers, name="Joha Rice", quantity=40)
    target = create_lot(client, admin_headers, name="Joha Rice", quantity=5)

    r = client.post("/api/v1/operations/transfers", headers=admin_headers, json={
        "from_lot_id": source["id"],
        "to_lot_id": target["id"],
        "quantity_transferred": 15,
        "reason": "Consolidation",
        "transfer_date": "2026-01-04",
    })
    assert r.status_code == 201, r.text
    assert r.json()["from_lot_identifier"] == source["lot_id"]

    assert client.get(f"{LOTS}/{source['id']}", headers=admin_headers).json()["quantity_available"] == 25
    assert client.get(f"{LOTS}/{target['id']}", headers=admin_headers).json()["quantity_available"] == 20


def test_transfer_validation(client, admin_headers):
    kg = create_lot(client, admin_headers, name="Tea", quantity=10, unit="kg")
    litres = create_lot(client, admin_headers, name="Oil", quantity=10, unit="l")
    bottles = create_lot(client, admin_headers, name="Bottles", quantity=10, unit="kg", lot_type="recurring_product")

    def attempt(from_id, to_id, qty=1, reason="Move"):
        return client.post("/api/v1/operations/transfers", headers=admin_headers, json={
            "from_lot_id": from_id, "to_lot_id": to_id, "quantity_transferred": qty,
            "reason": reason, "transfer_date": "2026-01-05",
        })

    assert "itself" in attempt(kg["id"], kg["id"]).json()["detail"]
    assert "greater than 0" in attempt(kg["id"], litres["id"], qty=0).json()["detail"]
    assert "reason" in attempt(kg["id"], litres["id"], reason=" ").json()["detail"]
    assert "same type" in attempt(kg["id"], bottles["id"]).json()["detail"]
    assert "Unit mismatch" in attempt(kg["id"], litres["id"]).json()["detail"]


def test_history_endpoint_reconstructs_running_quantity(client, admin_headers):
    source = create_lot(client, admin_headers, name="Black Tea", quantity=100)
    other = create_lot(client, admin_headers, name="Black Tea", quantity=10)

    r = client.post("/api/v1/operations/batches", headers=admin_headers, json={
        "batch_date": "2026-01-02",
        "consumptions": [{"lot_id": source["id"], "quantity_consumed": 30}],
    })
    assert r.status_code == 201, r.text
    client.post("/api/v1/operations/transfers", headers=admin_headers, json={
        "from_lot_id": source["id"], "to_lot_id": other["id"], "quantity_transferred": 10,
        "reason": "Rebalance", "transfer_date": "2026-01-03",
    })
    client.post("/api/v1/operations/transfers", headers=admin_headers, json={
        "from_lot_id": other["id"], "to_lot_id": source["id"], "quantity_transferred": 5,
        "reason": "Return", "transfer_date": "2026-01-05",
    })

    r = client.get(f"{LOTS}/{source['id']}/history", headers=admin_headers)
    assert r.status_code == 200, r.text
    history = r.json()
    assert history["timeline"] == "baseline"
    assert history["total_batch_consumption"] == 30
    assert [(e["type"], e["quantity_before"], e["quantity_after"]) for e in history["events"]] == [
        ("transfer_in", 60, 65),
        ("transfer_out", 70, 60),
    ]
    assert history["quantity_available"] == 65
    assert history["drift"] == 0

    merged = client.get(f"{LOTS}/{source['id']}/history?timeline=merged", headers=admin_headers).json()
    assert [e["type"] for e in merged["events"]] == ["transfer_in", "transfer_out", "consumption"]
    assert merged["events"][-1]["quantity_before"] == 100


def test_history_of_unknown_lot_is_404(client, admin_headers):
    assert client.get(f"{LOTS}/missing/history", headers=admin_headers).status_code == 404


def test_balance_as_of_date(client, admin_headers):
    lot = create_lot(client, admin_headers, quantity=50)
    client.post(f"{LOTS}/{lot['id']}/waste", headers=admin_headers, json={
        "quantity_wasted": 10, "reason": "Damage", "waste_date": "2026-02-01",
    })

    before = client.get(f"{LOTS}/{lot['id']}/balance?as_of=2026-01-15", headers=admin_headers).json()
    after = client.get(f"{LOTS}/{lot['id']}/balance", headers=admin_headers).json()
    assert before["balance"] == 50
    assert after["balance"] == 40


def test_moving_received_date_moves_the_intake(client, admin_headers):
    lot = create_lot(client, admin_headers, quantity=20, received=date(2026, 1, 10))

    r = client.patch(f"{LOTS}/{lot['id']}", headers=admin_headers, json={"received_date": "2026-01-01"})
    assert r.status_code == 200, r.text

    movements = client.get(f"{LOTS}/{lot['id']}/movements", headers=admin_headers).json()
    assert movements[0]["effective_date"] == "2026-01-01"
    assert client.get(f"{LOTS}/{lot['id']}/balance?as_of=2026-01-05", headers=admin_headers).json()["balance"] == 20

    r = client.post(f"{LOTS}/{lot['id']}/waste", headers=admin_headers, json={
        "quantity_wasted": 5, "reason": "Moisture", "waste_date": "2026-01-05",
    })
    assert r.status_code == 201, r.text


def test_received_date_cannot_pass_first_movement(client, admin_headers):
    lot = create_lot(client, admin_headers, quantity=20)
    client.post(f"{LOTS}/{lot['id']}/waste", headers=admin_headers, json={
        "quantity_wasted": 2, "reason": "Moisture", "waste_date": "2026-01-05",
    })

    r = client.patch(f"{LOTS}/{lot['id']}", headers=admin_headers, json={"received_date": "2026-01-06", "quantity_received": 30})
    assert r.status_code == 400
    assert "first stock movement" in r.json()["detail"]

    lot = client.get(f"{LOTS}/{lot['id']}", headers=admin_headers).json()
    assert lot["received_date"] == "2026-01-01"
    assert lot["quantity_received"] == 20


def test_lot_with_records_cannot_be_deleted_but_can_be_archived(client, admin_headers):
    lot = create_lot(client, admin_headers, quantity=50)
    client.post(f"{LOTS}/{lot['id']}/waste", headers=admin_headers, json={
        "quantity_wasted": 1, "reason": "Sample", "waste_date": "2026-01-02",
    })

    assert client.delete(f"{LOTS}/{lot['id']}", headers=admin_headers).status_code == 400

    assert client.post(f"{LOTS}/{lot['id']}/archive", headers=admin_headers).json()["is_archived"] is True
    listed = client.get(LOTS, headers=admin_headers).json()
    assert lot["id"] not in [l["id"] for l in listed]
    listed = client.get(f"{LOTS}?include_archived=true", headers=admin_headers).json()
    assert lot["id"] in [l["id"] for l in listed]


def test_completed_batch_creates_processed_goods_and_locks(client, admin_headers):
    good = produce_goods(client, admin_headers, quantity=40, name="Khar")

    assert good["quantity_available"] == 40
    assert good["qa_status"] == "pending"

    batch = client.get(f"/api/v1/operations/batches/{good['batch_id']}", headers=admin_headers).json()
    assert batch["is_locked"] is True
    r = client.delete(f"/api/v1/operations/batches/{batch['id']}", headers=admin_headers)
    assert r.status_code == 400

    r = client.post(f"/api/v1/operations/batches/{batch['id']}/qa", headers=admin_headers, json={"qa_status": "approved"})
    assert r.status_code == 200
    good = client.get(f"/api/v1/operations/processed-goods/{good['id']}", headers=admin_headers).json()
    assert good["qa_status"] == "approved"


def test_removing_consumption_returns_stock(client, admin_headers):
    lot = create_lot(client, admin_headers, quantity=60)
    batch = client.post("/api/v1/operations/batches", headers=admin_headers, json={
        "batch_date": "2026-01-03",
        "consumptions": [{"lot_id": lot["id"], "quantity_consumed": 25}],
    }).json()
    assert client.get(f"{LOTS}/{lot['id']}", headers=admin_headers).json()["quantity_available"] == 35

    consumption_id = batch["consumptions"][0]["id"]
    r = client.delete(f"/api/v1/operations/batches/{batch['id']}/consumptions/{consumption_id}", headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["consumptions"] == []

    assert client.get(f"{LOTS}/{lot['id']}", headers=admin_headers).json()["quantity_available"] == 60
    movements = client.get(f"{LOTS}/{lot['id']}/movements", headers=admin_headers).json()
    assert movements[-1]["reference_type"] == "consumption_reversal"


def test_batch_cannot_overdraw_lot(client, admin_headers):
    lot = create_lot(client, admin_headers, quantity=10)
    r = client.post("/api/v1/operations/batches", headers=admin_headers, json={
        "batch_date": "2026-01-03",
        "consumptions": [{"lot_id": lot["id"], "quantity_consumed": 11}],
    })
    assert r.status_code == 400
    assert client.get("/api/v1/operations/batches", headers=admin_headers).json() == []


def test_processed_good_waste(client, admin_headers):
    good = produce_goods(client, admin_headers, quantity=20)

    r = client.post(f"/api/v1/operations/processed-goods/{good['id']}/waste", headers=admin_headers, json={
        "quantity_wasted": 3, "reason": "Broken bottle", "waste_date": "2026-01-07",
    })
    assert r.status_code == 201, r.text
    good = client.get(f"/api/v1/operations/processed-goods/{good['id']}", headers=admin_headers).json()
    assert good["quantity_available"] == 17
