from helpers import create_customer, create_order, pay, produce_goods


ORDERS = "/api/v1/orders"


def _setup(client, headers, quantity=20):
    good = produce_goods(client, headers, quantity=quantity)
    customer = create_customer(client, headers)
    return good, customer


def test_create_order_reserves_stock(client, admin_headers):
    good, customer = _setup(client, admin_headers)

    order = create_order(client, admin_headers, customer["id"], good["id"], quantity=3, unit_price=100)

    assert order["order_number"] == "ORD-000001"
    assert order["customer_name"] == customer["name"]
    assert order["total_amount"] == 300
    assert order["status"] == "READY_FOR_PAYMENT"
    assert order["payment_status"] == "READY_FOR_PAYMENT"
    good = client.get(f"/api/v1/operations/processed-goods/{good['id']}", headers=admin_headers).json()
    assert good["quantity_available"] == 17


def test_order_reports_every_item_problem(client, admin_headers):
    good, customer = _setup(client, admin_headers, quantity=5)

    r = client.post(ORDERS, headers=admin_headers, json={
        "customer_id": customer["id"],
        "order_date": "2026-01-10",
        "items": [
            {"processed_good_id": good["id"], "quantity": 10, "unit_price": 10},
            {"processed_good_id": "missing", "quantity": 1, "unit_price": 10},
        ],
    })
    assert r.status_code == 400
    detail = r.json()["detail"]
    assert "Insufficient stock" in detail
    assert "missing not found" in detail


def test_payments_move_order_to_completed(client, admin_headers):
    good, customer = _setup(client, admin_headers)
    order = create_order(client, admin_headers, customer["id"], good["id"], quantity=2, unit_price=150)

    r = pay(client, admin_headers, order["id"], 100)
    assert r.status_code == 201, r.text
    assert r.json()["payment_status"] == "PARTIAL_PAYMENT"
    assert r.json()["outstanding_amount"] == 200

    r = pay(client, admin_headers, order["id"], 200, mode="UPI")
    body = r.json()
    assert body["payment_status"] == "FULL_PAYMENT"
    assert body["status"] == "ORDER_COMPLETED"
    assert body["completed_at"] is not None

    income = client.get("/api/v1/finance/income", headers=admin_headers).json()
    assert sorted(i["amount"] for i in income) == [100, 200]
    assert all(i["order_id"] == order["id"] for i in income)


def test_overpayment_is_rejected(client, admin_headers):
    good, customer = _setup(client, admin_headers)
    order = create_order(client, admin_headers, customer["id"], good["id"], quantity=1, unit_price=50)

    r = pay(client, admin_headers, order["id"], 50.5)
    assert r.status_code == 400
    assert "outstanding" in r.json()["detail"]


def test_unknown_payment_mode_is_rejected(client, admin_headers):
    good, customer = _setup(client, admin_headers)
    order = create_order(client, admin_headers, customer["id"], good["id"])

    assert pay(client, admin_headers, order["id"], 10, mode="Barter").status_code == 422


def test_deleting_payment_removes_income(client, admin_headers):
    good, customer = _setup(client, admin_headers)
    order = create_order(client, admin_headers, customer["id"], good["id"], quantity=1, unit_price=80)
    order = pay(client, admin_headers, order["id"], 30).json()

    payment_id = order["payments"][0]["id"]
    r = client.delete(f"{ORDERS}/{order['id']}/payments/{payment_id}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["payment_status"] == "READY_FOR_PAYMENT"
    assert client.get("/api/v1/finance/income", headers=admin_headers).json() == []


def test_payment_income_cannot_be_edited_from_finance(client, admin_headers):
    good, customer = _setup(client, admin_headers)
    order = create_order(client, admin_headers, customer["id"], good["id"], quantity=1, unit_price=80)
    pay(client, admin_headers, order["id"], 30)
    income = client.get("/api/v1/finance/income", headers=admin_headers).json()[0]

    r = client.delete(f"/api/v1/finance/income/{income['id']}", headers=admin_headers)
    assert r.status_code == 400


def test_hold_and_discount(client, admin_headers):
    good, customer = _setup(client, admin_headers)
    order = create_order(client, admin_headers, customer["id"], good["id"], quantity=2, unit_price=100)

    r = client.put(f"{ORDERS}/{order['id']}/discount", headers=admin_headers, json={"discount_amount": 250})
    assert r.status_code == 400
    r = client.put(f"{ORDERS}/{order['id']}/discount", headers=admin_headers, json={"discount_amount": 20})
    assert r.json()["net_total"] == 180

    r = client.post(f"{ORDERS}/{order['id']}/hold", headers=admin_headers, json={"reason": "Awaiting address"})
    assert r.json()["status"] == "HOLD"
    r = client.delete(f"{ORDERS}/{order['id']}/hold", headers=admin_headers)
    assert r.json()["status"] == "READY_FOR_PAYMENT"

    events = [e["event_type"] for e in client.get(f"{ORDERS}/{order['id']}/audit", headers=admin_headers).json()]
    assert {"ORDER_CREATED", "DISCOUNT_APPLIED", "ORDER_HELD", "HOLD_REMOVED"} <= set(events)


def test_item_update_keeps_discount_within_total(client, admin_headers):
    good, customer = _setup(client, admin_headers)
    order = create_order(client, admin_headers, customer["id"], good["id"], quantity=2, unit_price=100)
    client.put(f"{ORDERS}/{order['id']}/discount", headers=admin_headers, json={"discount_amount": 150})

    item_id = order["items"][0]["id"]
    r = client.patch(f"{ORDERS}/{order['id']}/items/{item_id}", headers=admin_headers, json={"quantity": 1})
    assert r.status_code == 400

    order = client.get(f"{ORDERS}/{order['id']}", headers=admin_headers).json()
    assert order["items"][0]["quantity"] == 2
    good = client.get(f"/api/v1/operations/processed-goods/{good['id']}", headers=admin_headers).json()
    assert good["quantity_available"] == 18


def test_delete_order_restores_stock(client, admin_headers):
    good, customer = _setup(client, admin_headers)
    order = create_order(client, admin_headers, customer["id"], good["id"], quantity=4, unit_price=10)
    pay(client, admin_headers, order["id"], 10)

    assert client.delete(f"{ORDERS}/{order['id']}", headers=admin_headers).status_code == 204

    good = client.get(f"/api/v1/operations/processed-goods/{good['id']}", headers=admin_headers).json()
    assert good["quantity_available"] == 20
    assert client.get("/api/v1/finance/income", headers=admin_headers).json() == []
    assert client.get(f"{ORDERS}/{order['id']}", headers=admin_headers).status_code == 404


def test_sales_history_of_processed_good(client, admin_headers):
    good, customer = _setup(client, admin_headers)
    create_order(client, admin_headers, customer["id"], good["id"], quantity=2, unit_price=25)

    sales = client.get(f"/api/v1/operations/processed-goods/{good['id']}/sales", headers=admin_headers).json()
    assert len(sales) == 1
    assert sales[0]["customer_name"] == customer["name"]
    assert sales[0]["line_total"] == 50


def test_invoice_and_pdf(client, admin_headers):
    good, customer = _setup(client, admin_headers)
    order = create_order(client, admin_headers, customer["id"], good["id"], quantity=2, unit_price=120)

    r = client.post("/api/v1/invoices", headers=admin_headers, json={"order_id": order["id"], "invoice_date": "2026-01-12"})
    assert r.status_code == 201, r.text
    invoice = r.json()
    assert invoice["invoice_number"] == "INV-0001"
    assert invoice["outstanding_amount"] == 240

    r = client.post("/api/v1/invoices", headers=admin_headers, json={"order_id": order["id"]})
    assert r.status_code == 400

    r = client.get(f"/api/v1/invoices/{invoice['id']}/pdf", headers=admin_headers)
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert r.content.startswith(b"%PDF")


def test_third_party_delivery(client, admin_headers):
    good, customer = _setup(client, admin_headers)
    order = create_order(client, admin_headers, customer["id"], good["id"])

    r = client.put(f"{ORDERS}/{order['id']}/delivery", headers=admin_headers, json={"delivery_partner_name": "Blue Dart"})
    assert r.status_code == 400

    r = client.put(f"{ORDERS}/{order['id']}/delivery/enabled", headers=admin_headers, json={"enabled": True})
    assert r.json()["third_party_delivery_enabled"] is True
    r = client.put(f"{ORDERS}/{order['id']}/delivery", headers=admin_headers, json={
        "delivery_partner_name": "Blue Dart", "quantity_delivered": 2,
    })
    assert r.status_code == 200, r.text

    r = client.post(
        f"{ORDERS}/{order['id']}/delivery/documents",
        headers=admin_headers,
        files={"file": ("receipt.pdf", b"%PDF-1.4 receipt", "application/pdf")},
    )
    assert r.status_code == 201, r.text
    assert r.json()["document_url"].startswith("/uploads/delivery/")


def test_finance_summary_includes_sales(client, admin_headers):
    good, customer = _setup(client, admin_headers)
    order = create_order(client, admin_headers, customer["id"], good["id"], quantity=1, unit_price=500)
    pay(client, admin_headers, order["id"], 500)
    client.post("/api/v1/finance/expenses", headers=admin_headers, json={
        "amount": 120, "payment_date": "2026-01-15", "reason": "Packaging", "vendor": "Box Co",
    })

    summary = client.get("/api/v1/finance/summary?year=2026&month=1", headers=admin_headers).json()
    assert summary["total_income"] == 500
    assert summary["total_expenses"] == 120
    assert summary["balance"] == 380
