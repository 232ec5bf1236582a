import json

from app.models.user import NavigationState
from app.services import navigation_service


def test_login_returns_token_usable_as_bearer(client, admin):
    r = client.post("/api/v1/auth/login", json={"username": "admin", "password": "admin-pass"})
    assert r.status_code == 200
    token = r.json()["token"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["user"]["username"] == "admin"
    assert set(me["modules"].values()) == {"read-write"}


def test_login_with_wrong_password(client, admin):
    r = client.post("/api/v1/auth/login", json={"username": "admin", "password": "nope"})
    assert r.status_code == 401


def test_requests_without_token_are_rejected(client):
    assert client.get("/api/v1/operations/lots").status_code == 401


def test_module_levels_gate_reads_and_writes(client, make_staff):
    _, headers = make_staff(modules={"operations": "read-only"})

    assert client.get("/api/v1/operations/lots", headers=headers).status_code == 200
    r = client.post("/api/v1/operations/lots", headers=headers, json={
        "lot_type": "raw_material", "name": "Tea", "quantity_received": 5, "received_date": "2026-01-01",
    })
    assert r.status_code == 403
    assert client.get("/api/v1/finance/summary", headers=headers).status_code == 403


def test_admin_assigns_module_access(client, admin_headers, make_staff):
    staff, headers = make_staff()
    assert client.get("/api/v1/finance/summary", headers=headers).status_code == 403

    r = client.put(f"/api/v1/auth/users/{staff.id}/modules", headers=admin_headers, json={"modules": {"finance": "read-write"}})
    assert r.status_code == 200
    assert r.json()["finance"] == "read-write"
    assert r.json()["sales"] == "no-access"
    assert client.get("/api/v1/finance/summary", headers=headers).status_code == 200

    r = client.put(f"/api/v1/auth/users/{staff.id}/modules", headers=admin_headers, json={"modules": {"finance": "owner"}})
    assert r.status_code == 400


def test_staff_cannot_manage_users(client, make_staff):
    _, headers = make_staff()
    assert client.get("/api/v1/auth/users", headers=headers).status_code == 403


def test_activity_log_records_admin_actions(client, admin_headers):
    r = client.post("/api/v1/auth/users", headers=admin_headers, json={"username": "ravi", "password": "secret1"})
    assert r.status_code == 201
    assert r.json()["requires_password_change"] is True

    actions = [a["action"] for a in client.get("/api/v1/auth/activity", headers=admin_headers).json()]
    assert "create_user" in actions


# Navigation state

def test_navigation_round_trip(client, admin_headers):
    assert client.get("/api/v1/navigation", headers=admin_headers).json()["page"] == "dashboard"

    r = client.put("/api/v1/navigation", headers=admin_headers, json={
        "page": "operations", "section": "lots", "filters": {"lot_type": "raw_material"},
    })
    assert r.status_code == 200

    state = client.get("/api/v1/navigation", headers=admin_headers).json()
    assert state["version"] == navigation_service.CURRENT_VERSION
    assert state["section"] == "lots"
    assert state["filters"] == {"lot_type": "raw_material"}

    assert client.delete("/api/v1/navigation", headers=admin_headers).status_code == 204
    assert client.get("/api/v1/navigation", headers=admin_headers).json()["page"] == "dashboard"


def test_navigation_rejects_unknown_or_forbidden_pages(client, make_staff):
    _, headers = make_staff(modules={"sales": "read-only"})

    assert client.put("/api/v1/navigation", headers=headers, json={"page": "warehouse"}).status_code == 400
    assert client.put("/api/v1/navigation", headers=headers, json={"page": "finance"}).status_code == 400
    assert client.put("/api/v1/navigation", headers=headers, json={"page": "sales"}).status_code == 200


def test_version_one_state_is_migrated():
    state = navigation_service.parse_state(json.dumps({"currentPage": "sales", "subPage": "orders"}))

    assert state.version == navigation_service.CURRENT_VERSION
    assert state.page == "sales"
    assert state.section == "orders"


def test_garbage_state_falls_back_to_default():
    for payload in ("not json", "[1, 2]", json.dumps({"version": 99, "page": "sales"}), json.dumps({"version": 2, "page": "nowhere"})):
        assert navigation_service.parse_state(payload).page == "dashboard"


def test_saved_page_without_access_falls_back(client, db, admin_headers, make_staff):
    staff, headers = make_staff(modules={"finance": "read-only"})
    client.put("/api/v1/navigation", headers=headers, json={"page": "finance"})

    client.put(f"/api/v1/auth/users/{staff.id}/modules", headers=admin_headers, json={"modules": {"finance": "no-access"}})

    assert db.query(NavigationState).filter(NavigationState.user_id == staff.id).count() == 1
    assert client.get("/api/v1/navigation", headers=headers).json()["page"] == "dashboard"


# Documents

def test_folder_access_controls_documents(client, admin_headers, make_staff):
    reader, reader_headers = make_staff("reader", modules={"documents": "read-only"})
    outsider, outsider_headers = make_staff("outsider", modules={"documents": "read-only"})

    folder = client.post("/api/v1/documents/folders", headers=admin_headers, json={"name": "Licences"}).json()
    assert folder["access_level"] == "admin"

    r = client.post(
        f"/api/v1/documents/folders/{folder['id']}/documents",
        headers=admin_headers,
        files={"file": ("fssai.pdf", b"%PDF-1.4 licence", "application/pdf")},
        data={"name": "FSSAI licence"},
    )
    assert r.status_code == 201, r.text
    document = r.json()
    assert document["name"] == "FSSAI licence"
    assert document["file_size"] == len(b"%PDF-1.4 licence")

    r = client.put(f"/api/v1/documents/folders/{folder['id']}/access", headers=admin_headers, json={
        "user_id": reader.id, "access_level": "read-only",
    })
    assert r.status_code == 200, r.text

    assert [f["id"] for f in client.get("/api/v1/documents/folders", headers=reader_headers).json()] == [folder["id"]]
    assert client.get("/api/v1/documents/folders", headers=outsider_headers).json() == []

    docs = client.get(f"/api/v1/documents/folders/{folder['id']}/documents", headers=reader_headers)
    assert docs.status_code == 200
    assert len(docs.json()) == 1
    assert client.get(f"/api/v1/documents/folders/{folder['id']}/documents", headers=outsider_headers).status_code == 403

    r = client.get(f"/api/v1/documents/{document['id']}/download", headers=reader_headers)
    assert r.status_code == 200
    assert r.content == b"%PDF-1.4 licence"
    assert client.get(f"/api/v1/documents/{document['id']}/download", headers=outsider_headers).status_code == 403

    r = client.delete(f"/api/v1/documents/{document['id']}", headers=reader_headers)
    assert r.status_code == 403

    assert client.post("/api/v1/documents/folders", headers=reader_headers, json={"name": "Mine"}).status_code == 403
