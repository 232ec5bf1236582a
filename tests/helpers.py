from datetime import date

from app.services import auth_service


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {auth_service.create_access_token(user.id, user.username)}"}


def create_lot(client, headers, name="Black Tea", quantity=100.0, lot_type="raw_material", unit="kg", received=None):
    r = client.post("/api/v1/operations/lots", headers=headers, json={
        "lot_type": lot_type,
        "name": name,
        "quantity_received": quantity,
        "unit": unit,
        "received_date": (received or date(2026, 1, 1)).isoformat(),
    })
    assert r.status_code == 201, r.text
    return r.json()


def create_customer(client, headers, name="Hotel Brahmaputra"):
    r = client.post("/api/v1/customers", headers=headers, json={"name": name, "customer_type": "Hotel"})
    assert r.status_code == 201, r.text
    return r.json()


def produce_goods(client, headers, quantity=50.0, name="Khar"):
    """Run one lot through a batch and return the resulting processed good."""
    lot = create_lot(client, headers, name=f"{name} raw", quantity=quantity * 2)
    r = client.post("/api/v1/operations/batches", headers=headers, json={
        "batch_date": "2026-01-05",
        "consumptions": [{"lot_id": lot["id"], "quantity_consumed": quantity}],
    })
    assert r.status_code == 201, r.text
    batch = r.json()
    r = client.post(f"/api/v1/operations/batches/{batch['id']}/complete", headers=headers, json={
        "outputs": [{"output_name": name, "produced_quantity": quantity, "produced_unit": "bottles"}],
        "production_end_date": "2026-01-06",
    })
    assert r.status_code == 200, r.text
    goods = client.get("/api/v1/operations/processed-goods", headers=headers).json()
    return next(g for g in goods if g["batch_id"] == batch["id"])


def create_order(client, headers, customer_id, good_id, quantity=2, unit_price=150.0, order_date="2026-01-10"):
    r = client.post("/api/v1/orders", headers=headers, json={
        "customer_id": customer_id,
        "order_date": order_date,
        "items": [{"processed_good_id": good_id, "quantity": quantity, "unit_price": unit_price}],
    })
    assert r.status_code == 201, r.text
    return r.json()


def pay(client, headers, order_id, amount, mode="Cash"):
    return client.post(f"/api/v1/orders/{order_id}/payments", headers=headers, json={
        "payment_date": "2026-01-11",
        "payment_mode": mode,
        "amount_received": amount,
    })
