from __future__ import annotations

import csv
import io

from openpyxl import load_workbook


def _seed(store, **overrides):
    row = {
        "customer_name": "Jan Jansen",
        "customer_email": "jan@example.nl",
        "customer_phone": "0687654321",
        "brand": "Apple",
        "model": "iPhone 12",
        "color": "Blauw",
        "issue": "Laadpoort",
        "price_text": "€ 59",
        "preferred_date": "2026-10-23",
        "preferred_time": "09:00",
        "status": "pending",
        "notes": None,
    }
    row.update(overrides)
    return store.seed("repair_requests", **row)


def test_update_request_applies_only_whitelisted_fields(client, store):
    record = _seed(store)
    before = dict(store.tables["repair_requests"][record["id"]])
    resp = client.post(
        "/api/update-request",
        json={
            "id": record["id"],
            "patch": {
                "price_text": "€ 69",
                "notes": "Klant belt terug",
                "status": "approved",
                "customer_email": "other@example.nl",
            },
        },
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["data"] == {
        "id": record["id"],
        "price_text": "€ 69",
        "preferred_date": "2026-10-23",
        "preferred_time": "09:00",
        "notes": "Klant belt terug",
        "status": "pending",
    }

    after = store.tables["repair_requests"][record["id"]]
    changed = {k for k in after if after[k] != before.get(k)}
    assert changed == {"price_text", "notes"}


def test_update_request_coerces_values_to_text_or_null(client, store):
    record = _seed(store, notes="oud")
    resp = client.post(
        "/api/update-request",
        json={"id": record["id"], "patch": {"price_text": 120, "notes": None, "preferred_time": "11:15"}},
    )
    assert resp.status_code == 200
    stored = store.tables["repair_requests"][record["id"]]
    assert stored["price_text"] == "120"
    assert stored["notes"] is None
    assert stored["preferred_time"] == "11:15"


def test_update_request_validation(client, store):
    record = _seed(store)
    assert client.post("/api/update-request", json={"patch": {"notes": "x"}}).json()["detail"] == "Missing id/patch"
    assert client.post("/api/update-request", json={"id": record["id"]}).status_code == 400
    assert client.post("/api/update-request", json={"id": record["id"], "patch": "notes"}).status_code == 400

    resp = client.post("/api/update-request", json={"id": record["id"], "patch": {"status": "approved"}})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "No allowed fields"
    assert store.tables["repair_requests"][record["id"]]["status"] == "pending"
    assert store.count("update") == 0


def test_update_request_unknown_id(client):
    resp = client.post("/api/update-request", json={"id": "missing", "patch": {"notes": "x"}})
    assert resp.status_code == 404


def test_list_requests_newest_first_with_newness(client, store):
    older = _seed(store, condition="Gebruikt, lichte krassen")
    newer = _seed(store, status="approved", quality="Nieuw in doos")
    _seed(store, status="rejected")

    resp = client.get("/api/requests")
    assert resp.status_code == 200
    rows = resp.json()
    assert [r["status"] for r in rows] == ["rejected", "approved", "pending"]
    by_id = {r["id"]: r for r in rows}
    assert by_id[older["id"]]["newness"] == "used"
    assert by_id[newer["id"]]["newness"] == "new"

    pending = client.get("/api/requests", params={"status": "pending"}).json()
    assert [r["id"] for r in pending] == [older["id"]]

    assert client.get("/api/requests", params={"status": "archived"}).status_code == 400


def test_get_request_by_id(client, store):
    record = _seed(store, warranty="3 maanden")
    resp = client.get(f"/api/requests/{record['id']}")
    assert resp.status_code == 200
    assert resp.json()["customer_name"] == "Jan Jansen"
    assert resp.json()["newness"] == "unknown"
    assert client.get("/api/requests/unknown").status_code == 404


def test_export_csv(client, store):
    _seed(store)
    _seed(store, customer_name="Piet", status="approved")
    resp = client.get("/api/requests/export.csv", params={"status": "approved"})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    rows = list(csv.DictReader(io.StringIO(resp.text)))
    assert len(rows) == 1
    assert rows[0]["customer_name"] == "Piet"
    assert rows[0]["newness"] == "unknown"


def test_export_xlsx(client, store):
    _seed(store)
    resp = client.get("/api/requests/export.xlsx")
    assert resp.status_code == 200
    wb = load_workbook(io.BytesIO(resp.content))
    ws = wb.active
    assert ws.title == "aanvragen"
    header = [cell.value for cell in ws[1]]
    assert header[:3] == ["id", "created_at", "status"]
    assert ws.max_row == 2
