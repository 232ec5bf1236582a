from helpers import create_customer, create_lot, create_order, pay, produce_goods

FINANCE = "/api/v1/finance"


def _contribution(client, headers, amount, day="2026-02-03"):
    r = client.post(f"{FINANCE}/contributions", headers=headers, json={
        "amount": amount, "payment_date": day, "paid_by": "Founder", "reason": "Working capital",
    })
    assert r.status_code == 201, r.text
    return r.json()


def test_transaction_ids_are_sequential_per_kind(client, admin_headers):
    first = _contribution(client, admin_headers, 1000)
    second = _contribution(client, admin_headers, 500)
    r = client.post(f"{FINANCE}/expenses", headers=admin_headers, json={"amount": 80, "payment_date": "2026-02-04"})

    assert first["transaction_id"] == "TXN-CNT-001"
    assert second["transaction_id"] == "TXN-CNT-002"
    assert r.json()["transaction_id"] == "TXN-EXP-001"


def test_amount_and_method_are_validated(client, admin_headers):
    r = client.post(f"{FINANCE}/expenses", headers=admin_headers, json={"amount": 0, "payment_date": "2026-02-04"})
    assert r.status_code == 422
    r = client.post(f"{FINANCE}/expenses", headers=admin_headers, json={
        "amount": 10, "payment_date": "2026-02-04", "payment_method": "barter",
    })
    assert r.status_code == 422


def test_update_and_delete_entry(client, admin_headers):
    entry = _contribution(client, admin_headers, 1000)

    r = client.patch(f"{FINANCE}/contributions/{entry['id']}", headers=admin_headers, json={"amount": 1200})
    assert r.json()["amount"] == 1200
    r = client.patch(f"{FINANCE}/contributions/{entry['id']}", headers=admin_headers, json={"amount": -5})
    assert r.status_code == 400

    assert client.delete(f"{FINANCE}/contributions/{entry['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"{FINANCE}/contributions/{entry['id']}", headers=admin_headers).status_code == 404


def test_month_filter_and_ledger(client, admin_headers):
    _contribution(client, admin_headers, 1000, day="2026-02-03")
    _contribution(client, admin_headers, 300, day="2026-03-10")
    client.post(f"{FINANCE}/expenses", headers=admin_headers, json={"amount": 200, "payment_date": "2026-02-20"})

    february = client.get(f"{FINANCE}/contributions?year=2026&month=2", headers=admin_headers).json()
    assert [c["amount"] for c in february] == [1000]

    ledger = client.get(f"{FINANCE}/ledger?year=2026&month=2", headers=admin_headers).json()
    assert [(row["kind"], row["signed_amount"]) for row in ledger] == [("expense", -200), ("contribution", 1000)]

    assert client.get(f"{FINANCE}/summary?year=2026&month=13", headers=admin_headers).status_code == 400


def test_evidence_upload_checks_file_type(client, admin_headers):
    ok = client.post(f"{FINANCE}/evidence", headers=admin_headers, files={"file": ("bill.png", b"\x89PNG data", "image/png")})
    assert ok.status_code == 200
    assert ok.json()["file_url"].startswith("/uploads/finance/")

    bad = client.post(f"{FINANCE}/evidence", headers=admin_headers, files={"file": ("run.exe", b"MZ", "application/octet-stream")})
    assert bad.status_code == 400


# Customers

def test_customer_search_and_stats(client, admin_headers):
    hotel = create_customer(client, admin_headers, name="Hotel Brahmaputra")
    create_customer(client, admin_headers, name="Guwahati Retail")
    good = produce_goods(client, admin_headers, quantity=10)
    order = create_order(client, admin_headers, hotel["id"], good["id"], quantity=2, unit_price=100)
    pay(client, admin_headers, order["id"], 50)

    found = client.get("/api/v1/customers?q=brahma", headers=admin_headers).json()
    assert found["total"] == 1
    assert found["customers"][0]["id"] == hotel["id"]

    stats = client.get(f"/api/v1/customers/{hotel['id']}/stats", headers=admin_headers).json()
    assert stats["order_count"] == 1
    assert stats["total_sales"] == 200
    assert stats["outstanding_amount"] == 150

    assert client.delete(f"/api/v1/customers/{hotel['id']}", headers=admin_headers).status_code == 400


def test_customer_type_is_validated(client, admin_headers):
    r = client.post("/api/v1/customers", headers=admin_headers, json={"name": "X", "customer_type": "Alien"})
    assert r.status_code == 422


def test_customer_photo_upload(client, admin_headers):
    customer = create_customer(client, admin_headers)
    r = client.post(
        f"/api/v1/customers/{customer['id']}/photo",
        headers=admin_headers,
        files={"file": ("front.jpg", b"\xff\xd8\xff jpeg", "image/jpeg")},
    )
    assert r.status_code == 200, r.text
    assert r.json()["photo_url"].startswith("/uploads/customers/")


# Reports

def test_inventory_report_flags_low_stock(client, admin_headers):
    create_lot(client, admin_headers, name="Cardamom", quantity=2)
    create_lot(client, admin_headers, name="Black Tea", quantity=80)

    report = client.get("/api/v1/reports/inventory", headers=admin_headers).json()
    raw = next(t for t in report["lot_types"] if t["lot_type"] == "raw_material")
    assert raw["lot_count"] == 2
    assert report["low_stock_count"] == 1
    assert report["low_stock"][0]["name"] == "Cardamom"


def test_inventory_report_pdf(client, admin_headers):
    create_lot(client, admin_headers, name="Cardamom", quantity=2)

    r = client.get("/api/v1/reports/inventory/pdf", headers=admin_headers)
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert r.content.startswith(b"%PDF")


def test_sales_report_and_top_products(client, admin_headers):
    customer = create_customer(client, admin_headers)
    good = produce_goods(client, admin_headers, quantity=10, name="Khar")
    order = create_order(client, admin_headers, customer["id"], good["id"], quantity=3, unit_price=40)
    pay(client, admin_headers, order["id"], 120)

    sales = client.get("/api/v1/reports/sales", headers=admin_headers).json()
    assert sales["total_orders"] == 1
    assert sales["total_sales"] == 120
    assert sales["orders_by_status"] == {"ORDER_COMPLETED": 1}

    top = client.get("/api/v1/reports/top-products", headers=admin_headers).json()
    assert top == [{"product_type": "Khar", "total_sold": 3, "revenue": 120}]


def test_reports_need_analytics_access(client, make_staff):
    _, headers = make_staff(modules={"sales": "read-write"})
    assert client.get("/api/v1/reports/sales", headers=headers).status_code == 403
