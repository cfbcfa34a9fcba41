from __future__ import annotations

from repair_desk.schemas import parse_price


def _seed(store, **row):
    entry = {"brand": "Apple", "model": "iPhone 14", "color": "Zwart", "repair_type": "Scherm", "quality": "Origineel", "price": 249.0}
    entry.update(row)
    return store.seed("repair_catalog", **entry)


def test_create_entry_normalizes_fields(client, store):
    resp = client.post(
        "/api/catalog",
        json={
            "brand": " apple ",
            "model": "galaxy <S23>",
            "color": "zwart",
            "repair_type": "scherm",
            "price": "79,95",
        },
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    row = store.tables["repair_catalog"][body["id"]]
    assert row["brand"] == "Apple"
    assert row["model"] == "Galaxy S23"
    assert row["color"] == "Zwart"
    assert row["repair_type"] == "Scherm"
    assert row["quality"] == "Standaard"
    assert row["price"] == 79.95


def test_create_entry_unparseable_price_becomes_null(client, store):
    resp = client.post(
        "/api/catalog",
        json={"brand": "Apple", "model": "iPhone 11", "color": "Wit", "repair_type": "Accu", "price": "op aanvraag"},
    )
    assert resp.status_code == 200
    assert store.tables["repair_catalog"][resp.json()["id"]]["price"] is None


def test_create_entry_requires_core_fields(client, store):
    resp = client.post("/api/catalog", json={"brand": "Apple", "model": "iPhone 11", "repair_type": "Accu"})
    assert resp.status_code == 400
    assert store.tables["repair_catalog"] == {}
    assert store.count("insert") == 0


def test_parse_price():
    assert parse_price("12,50") == 12.5
    assert parse_price(89) == 89.0
    assert parse_price("") is None
    assert parse_price(None) is None
    assert parse_price("abc") is None
    assert parse_price("0") is None
    assert parse_price("inf") is None


def test_list_catalog_orders_and_filters(client, store):
    _seed(store, brand="Samsung", model="Galaxy S23", repair_type="Accu")
    _seed(store, model="iPhone 14", repair_type="Scherm", quality="Standaard")
    _seed(store, model="iPhone 13", repair_type="Accu")
    _seed(store, model="iPhone 14", repair_type="Accu")

    rows = client.get("/api/catalog").json()
    assert [(r["brand"], r["model"], r["repair_type"]) for r in rows] == [
        ("Apple", "iPhone 13", "Accu"),
        ("Apple", "iPhone 14", "Accu"),
        ("Apple", "iPhone 14", "Scherm"),
        ("Samsung", "Galaxy S23", "Accu"),
    ]
    assert set(rows[0]) == {"id", "brand", "model", "color", "repair_type", "quality", "price"}

    apple_14 = client.get("/api/catalog", params={"brand": "Apple", "model": "iPhone 14"}).json()
    assert len(apple_14) == 2

    search = client.get("/api/catalog", params={"q": "GALAXY"}).json()
    assert [r["brand"] for r in search] == ["Samsung"]

    by_type = client.get("/api/catalog", params={"q": "scherm"}).json()
    assert [r["model"] for r in by_type] == ["iPhone 14"]


def test_list_brands(client, store):
    _seed(store, brand="Samsung")
    _seed(store, brand="Apple")
    _seed(store, brand="Apple", model="iPhone 13")
    resp = client.get("/api/catalog", params={"brands": "1"})
    assert resp.status_code == 200
    assert resp.json() == ["Apple", "Samsung"]


def test_update_entry(client, store):
    entry = _seed(store)
    resp = client.patch("/api/catalog", json={"id": entry["id"], "price": "199,00", "repair_type": "achterkant"})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    stored = store.tables["repair_catalog"][entry["id"]]
    assert stored["price"] == 199.0
    assert stored["repair_type"] == "Achterkant"
    assert stored["brand"] == "Apple"
    assert stored["quality"] == "Origineel"


def test_update_entry_blank_quality_falls_back_to_default(client, store):
    entry = _seed(store)
    assert client.patch("/api/catalog", json={"id": entry["id"], "quality": "", "price": None}).status_code == 200
    stored = store.tables["repair_catalog"][entry["id"]]
    assert stored["quality"] == "Standaard"
    assert stored["price"] is None


def test_update_entry_validation(client, store):
    entry = _seed(store)
    assert client.patch("/api/catalog", json={"price": 10}).status_code == 400
    assert client.patch("/api/catalog", json={"id": entry["id"]}).status_code == 400
    assert client.patch("/api/catalog", json={"id": entry["id"], "brand": " "}).status_code == 400
    assert client.patch("/api/catalog", json={"id": "missing", "price": 10}).status_code == 404
    assert store.tables["repair_catalog"][entry["id"]]["brand"] == "Apple"


def test_delete_entry(client, store):
    entry = _seed(store)
    assert client.request("DELETE", "/api/catalog", json={}).status_code == 400
    resp = client.request("DELETE", "/api/catalog", json={"id": entry["id"]})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    assert store.tables["repair_catalog"] == {}
    assert client.request("DELETE", "/api/catalog", json={"id": entry["id"]}).status_code == 404


def test_catalog_store_error(client, store):
    store.fail_with = "relation does not exist"
    resp = client.get("/api/catalog")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Database error", "detail": "relation does not exist"}
