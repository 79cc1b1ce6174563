"""
API tests for ledger endpoints (TestClient, SQLite, overridden auth)
"""
from io import BytesIO

import openpyxl


def _create_widget(client):
    response = client.post("/api/v1/products", json={"name": "Widget", "product_type": "Cigar"})
    assert response.status_code == 200
    return response.json()["id"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.text == "ok"


def test_ready_checks_database(client, db_engine, monkeypatch):
    from smoketrackr.infrastructure.db import session

    monkeypatch.setattr(session, "_engine", db_engine)
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.text == "ok"


def test_ready_is_503_when_database_unreachable(client, monkeypatch):
    from smoketrackr.infrastructure.db import session

    monkeypatch.setattr(session, "_engine", session.build_engine("sqlite:////nonexistent-dir/ledger.db"))
    response = client.get("/ready")
    assert response.status_code == 503
    assert response.text == "database unavailable"


def test_requires_login_without_override(db_session):
    from fastapi.testclient import TestClient
    from smoketrackr.api.deps import get_db
    from smoketrackr.main import app

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    try:
        response = TestClient(app).get("/api/v1/products")
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 401


def test_product_crud(client):
    product_id = _create_widget(client)

    response = client.put(
        f"/api/v1/products/{product_id}",
        json={"name": "Widget XL", "product_type": "Snus", "flavor_detail": "mint"},
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Widget XL"

    assert [p["name"] for p in client.get("/api/v1/products").json()] == ["Widget XL"]

    assert client.delete(f"/api/v1/products/{product_id}").status_code == 200
    assert client.delete(f"/api/v1/products/{product_id}").status_code == 404


def test_invalid_product_type_is_422(client):
    response = client.post("/api/v1/products", json={"name": "Pipe", "product_type": "Pipe"})
    assert response.status_code == 422


def test_widget_flow(client):
    product_id = _create_widget(client)

    purchase = client.post(
        "/api/v1/purchases",
        json={"product_id": product_id, "quantity": 10, "price_per_item": "5,00"},
    )
    assert purchase.status_code == 200
    assert purchase.json()["total_cost"] == "50.00"

    for quantity in ("3", "2"):
        response = client.post("/api/v1/consumption", json={"product_id": product_id, "quantity": quantity})
        assert response.status_code == 200

    inventory = client.get(f"/api/v1/products/{product_id}/inventory").json()
    assert float(inventory["stock"]) == 5
    assert float(inventory["avg_cost"]) == 5
    assert float(inventory["consumed_value"]) == 25

    rejected = client.post("/api/v1/giveaways", json={"product_id": product_id, "quantity": "10"})
    assert rejected.status_code == 400
    assert "available stock" in rejected.json()["detail"]
    assert client.get("/api/v1/giveaways").json() == []

    stats = client.get("/api/v1/dashboard/stats", params={"date_range": "all"}).json()
    assert float(stats["total_consumed"]) == 5


def test_unknown_product_in_purchase_is_400(client):
    response = client.post(
        "/api/v1/purchases",
        json={"product_id": 12345, "quantity": 1, "price_per_item": "1"},
    )
    assert response.status_code == 400


def test_fractional_purchase_quantity_is_422(client):
    product_id = _create_widget(client)
    response = client.post(
        "/api/v1/purchases",
        json={"product_id": product_id, "quantity": 1.5, "price_per_item": "1"},
    )
    assert response.status_code == 422


def test_bad_window_is_422(client):
    assert client.get("/api/v1/dashboard/stats", params={"date_range": "decade"}).status_code == 422


def test_report_endpoints_respond(client):
    _create_widget(client)
    assert client.get("/api/v1/inventory").status_code == 200
    assert client.get("/api/v1/history", params={"period": "month", "grain": "weekly"}).status_code == 200
    assert client.get("/api/v1/analytics/costs").status_code == 200
    heatmap = client.get("/api/v1/history/heatmap", params={"year": 2024, "month": 2})
    assert len(heatmap.json()["days"]) == 29
    assert client.get("/api/v1/history/heatmap", params={"year": 2024}).status_code == 400


def test_consumption_update_and_missing(client):
    product_id = _create_widget(client)
    entry = client.post("/api/v1/consumption", json={"product_id": product_id, "quantity": "1"}).json()

    response = client.put(
        f"/api/v1/consumption/{entry['id']}",
        json={"product_id": product_id, "quantity": "0.5", "consumption_date": "2025-03-01T08:00:00"},
    )
    assert response.status_code == 200
    assert response.json()["quantity"] == "0.50"

    assert client.delete("/api/v1/consumption/9999").status_code == 404


def test_settings(client):
    assert client.get("/api/v1/settings").json()["monthly_budget"] == "500.00"

    response = client.put("/api/v1/settings", json={"monthly_budget": "750", "currency": "eur"})
    assert response.status_code == 200
    assert response.json()["currency"] == "EUR"
    assert response.json()["monthly_budget"] == "750.00"


def test_export_then_import_workbook(client):
    product_id = _create_widget(client)
    client.post("/api/v1/purchases", json={"product_id": product_id, "quantity": 4, "price_per_item": "2"})
    client.post("/api/v1/consumption", json={"product_id": product_id, "quantity": "1"})

    exported = client.get("/api/v1/export")
    assert exported.status_code == 200
    assert "SmokeTrackr_Export_" in exported.headers["content-disposition"]
    assert openpyxl.load_workbook(BytesIO(exported.content)).sheetnames[0] == "Inventory"

    response = client.post(
        "/api/v1/import",
        files={"file": ("backup.xlsx", exported.content, "application/octet-stream")},
    )
    assert response.status_code == 200
    report = response.json()
    assert report["purchases_duplicates"] == 1
    assert report["consumption_duplicates"] == 1
    assert report["products_created"] == 0


def test_import_garbage_file_is_400(client):
    response = client.post(
        "/api/v1/import",
        files={"file": ("notes.xlsx", b"definitely not a zip", "application/octet-stream")},
    )
    assert response.status_code == 400


def test_import_json(client):
    response = client.post("/api/v1/import/json", json={
        "products": [{"name": "Club", "product_type": "Cigarillo"}],
        "consumption": [{"product_name": "Club", "consumption_date": 45000, "time": 0.5, "quantity": 2}],
    })
    assert response.status_code == 200
    assert response.json()["consumption_imported"] == 1

    exported = client.get("/api/v1/export/json").json()
    assert exported["consumption"][0]["consumption_date"] == "2023-03-15T12:00:00"


def test_import_json_row_without_product_is_skipped(client):
    response = client.post("/api/v1/import/json", json={
        "consumption": [
            {"consumption_date": "2025-03-02", "quantity": 1},
            {"product_name": "Club", "consumption_date": "2025-03-02", "quantity": 1},
            {"product_name": "Club", "quantity": 2},
        ],
    })
    assert response.status_code == 200
    report = response.json()
    assert report["consumption_imported"] == 1
    assert report["skipped"] == 1
    assert report["invalid"] == 1


def test_import_workbook_over_row_limit_is_400(client, monkeypatch):
    from smoketrackr.config import get_settings

    monkeypatch.setattr(get_settings(), "IMPORT_MAX_ROWS", 2)
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Consumption"
    ws.append(["Date", "Product", "Quantity"])
    for day in range(1, 4):
        ws.append([f"2025-03-0{day}", "Widget", 1])
    buffer = BytesIO()
    wb.save(buffer)

    response = client.post(
        "/api/v1/import",
        files={"file": ("big.xlsx", buffer.getvalue(), "application/octet-stream")},
    )
    assert response.status_code == 400
    assert "more than 2 data rows" in response.json()["detail"]
    assert client.get("/api/v1/consumption").json() == []
