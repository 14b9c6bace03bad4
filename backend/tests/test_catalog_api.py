"""HTTP tests for /api/products, /api/categories and /api/health."""

from chemflo.models import Inventory, Product, StockMovement


def _new_product(**overrides):
    payload = {
        "name": "Methanol",
        "casNumber": "67-56-1",
        "unit": "LITRE",
        "description": "Industrial solvent",
        "lowStockThreshold": 100,
    }
    payload.update(overrides)
    return payload


def test_health(client, db_session):
    resp = client.get("/api/health")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "OK"
    assert body["checks"]["database"]["status"] == "healthy"
    assert body["timestamp"].endswith("Z")


def test_cors_header_for_allowed_origin(client, db_session):
    resp = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
    assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    resp = client.get("/api/health", headers={"Origin": "http://evil.example"})
    assert "Access-Control-Allow-Origin" not in resp.headers


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def test_create_product_opens_ledger_with_initial_stock(client, db_session, acids):
    resp = client.post("/api/products", json=_new_product(categoryId=acids.id, initialStock=600))

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["casNumber"] == "67-56-1"
    assert body["category"]["name"] == "Acids"
    assert body["inventory"]["currentStock"] == 600

    movements = db_session.query(StockMovement).filter_by(product_id=body["id"]).all()
    assert [(m.type, m.quantity, m.notes) for m in movements] == [("IN", 600, "Initial stock")]


def test_create_product_without_initial_stock(client, db_session):
    resp = client.post("/api/products", json=_new_product(unit="kg"))

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["unit"] == "KG"
    assert body["inventory"]["currentStock"] == 0
    assert db_session.query(StockMovement).count() == 0


def test_create_product_defaults_threshold(client, db_session):
    payload = _new_product()
    del payload["lowStockThreshold"]

    resp = client.post("/api/products", json=payload)

    assert resp.status_code == 201
    assert resp.get_json()["lowStockThreshold"] == 10


def test_create_product_validation(client, db_session):
    resp = client.post("/api/products", json={"name": "X"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Missing required fields: casNumber, unit"

    resp = client.post("/api/products", json=_new_product(casNumber="67561"))
    assert resp.status_code == 400
    assert "CAS Number" in resp.get_json()["error"]

    resp = client.post("/api/products", json=_new_product(unit="GALLON"))
    assert resp.status_code == 400

    resp = client.post("/api/products", json=_new_product(name="M"))
    assert resp.status_code == 400

    resp = client.post("/api/products", json=_new_product(lowStockThreshold=-1))
    assert resp.status_code == 400

    resp = client.post("/api/products", json=_new_product(initialStock=-5))
    assert resp.status_code == 400

    resp = client.post("/api/products", json=_new_product(categoryId=9999))
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid category ID"

    assert db_session.query(Product).count() == 0
    assert db_session.query(Inventory).count() == 0


def test_create_product_duplicate_cas_conflicts(client, sulfuric_acid):
    resp = client.post("/api/products", json=_new_product(casNumber="7664-93-9"))

    assert resp.status_code == 409
    assert resp.get_json()["error"] == "Product with this CAS Number already exists"


def test_get_product(client, sulfuric_acid):
    resp = client.get(f"/api/products/{sulfuric_acid.id}")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["name"] == "Sulfuric Acid"
    assert body["inventory"]["currentStock"] == 500

    assert client.get("/api/products/9999").status_code == 404


def test_list_products_paginated_newest_first(client, sulfuric_acid, hydrogen_peroxide, acids):
    resp = client.get("/api/products?limit=1")
    body = resp.get_json()

    assert resp.status_code == 200
    assert body["items"][0]["id"] == hydrogen_peroxide.id
    assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "totalPages": 2}

    resp = client.get(f"/api/products?categoryId={acids.id}")
    assert [p["id"] for p in resp.get_json()["items"]] == [sulfuric_acid.id]


def test_low_stock_products_endpoint(client, sulfuric_acid, hydrogen_peroxide):
    resp = client.get("/api/products/low-stock")

    assert resp.status_code == 200
    items = resp.get_json()
    assert [p["id"] for p in items] == [hydrogen_peroxide.id]
    assert items[0]["status"] == "CRITICAL"
    assert items[0]["inventory"]["currentStock"] == 25


def test_update_product_fields(client, sulfuric_acid):
    resp = client.put(
        f"/api/products/{sulfuric_acid.id}",
        json={"lowStockThreshold": 600, "categoryId": None, "description": "Battery acid"},
    )

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["lowStockThreshold"] == 600
    assert body["categoryId"] is None
    assert body["description"] == "Battery acid"
    assert body["inventory"]["currentStock"] == 500

    resp = client.get(f"/api/inventory/{sulfuric_acid.id}")
    assert resp.get_json()["isLowStock"] is True


def test_update_product_cannot_touch_stock(client, sulfuric_acid):
    resp = client.put(f"/api/products/{sulfuric_acid.id}", json={"currentStock": 0})

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Field not allowed: currentStock"


def test_update_product_cas_conflict_and_missing(client, sulfuric_acid, hydrogen_peroxide):
    resp = client.put(f"/api/products/{hydrogen_peroxide.id}", json={"casNumber": "7664-93-9"})
    assert resp.status_code == 409

    resp = client.put(f"/api/products/{sulfuric_acid.id}", json={"casNumber": "7664-93-9"})
    assert resp.status_code == 200

    assert client.put("/api/products/9999", json={"name": "Ghost"}).status_code == 404


def test_delete_product_removes_ledger_and_history(client, db_session, sulfuric_acid):
    client.post(f"/api/inventory/{sulfuric_acid.id}/stock", json={"type": "OUT", "quantity": 5})
    product_id = sulfuric_acid.id

    resp = client.delete(f"/api/products/{product_id}")

    assert resp.status_code == 200
    assert client.get(f"/api/products/{product_id}").status_code == 404
    assert db_session.query(Inventory).filter_by(product_id=product_id).count() == 0
    assert db_session.query(StockMovement).filter_by(product_id=product_id).count() == 0

    assert client.delete(f"/api/products/{product_id}").status_code == 404


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def test_create_category_with_default_color(client, db_session):
    resp = client.post("/api/categories", json={"name": "Catalysts"})

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["color"] == "#6366f1"
    assert body["productCount"] == 0


def test_create_category_validation_and_conflict(client, acids):
    assert client.post("/api/categories", json={}).status_code == 400
    assert client.post("/api/categories", json={"name": "Salts", "color": "red"}).status_code == 400

    resp = client.post("/api/categories", json={"name": "Acids"})
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "Category with this name already exists"


def test_list_categories_with_counts(client, sulfuric_acid, hydrogen_peroxide, acids):
    client.post("/api/products", json=_new_product(name="Nitric Acid", casNumber="7697-37-2", categoryId=acids.id))

    resp = client.get("/api/categories")

    assert resp.status_code == 200
    counts = {c["name"]: c["productCount"] for c in resp.get_json()}
    assert counts == {"Acids": 2, "Oxidizers": 1}
    assert [c["name"] for c in resp.get_json()] == ["Acids", "Oxidizers"]


def test_update_category(client, acids, oxidizers):
    resp = client.put(f"/api/categories/{acids.id}", json={"color": "#000000"})
    assert resp.status_code == 200
    assert resp.get_json()["color"] == "#000000"

    resp = client.put(f"/api/categories/{acids.id}", json={"name": "Oxidizers"})
    assert resp.status_code == 409

    assert client.put("/api/categories/9999", json={"name": "Ghost"}).status_code == 404


def test_delete_category_keeps_products(client, sulfuric_acid, acids):
    resp = client.delete(f"/api/categories/{acids.id}")

    assert resp.status_code == 200
    assert client.get(f"/api/categories/{acids.id}").status_code == 404

    product = client.get(f"/api/products/{sulfuric_acid.id}").get_json()
    assert product["categoryId"] is None
    assert product["category"] is None
    assert product["inventory"]["currentStock"] == 500
