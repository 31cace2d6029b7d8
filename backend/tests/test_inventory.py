"""
Inventory tests: manual stock movements, the log listing and low-stock view.
"""

import pytest

from app.extensions import db
from app.models import InventoryLog, Product
from app.services import inventory_service
from app.services.inventory_service import InventoryAdjustmentError
from app.validation import ValidationError


class TestAdjustStockService:
    def test_purchase_increases_stock(self, db_session, admin_user, product_a):
        log = inventory_service.adjust_stock(
            product_id=product_a.id,
            quantity_delta=5,
            log_type="PURCHASE",
            reference="PO-1",
            user_id=admin_user.id,
        )
        assert log.quantity == 5
        assert log.type == "PURCHASE"
        assert db.session.get(Product, product_a.id).quantity == 15

    def test_negative_adjustment(self, db_session, product_a):
        inventory_service.adjust_stock(product_id=product_a.id, quantity_delta=-4)
        assert db.session.get(Product, product_a.id).quantity == 6

    def test_cannot_go_negative(self, db_session, product_a):
        with pytest.raises(InventoryAdjustmentError, match="Insufficient stock for product Product A. Available: 10"):
            inventory_service.adjust_stock(product_id=product_a.id, quantity_delta=-11)

        assert db.session.get(Product, product_a.id).quantity == 10
        assert db.session.query(InventoryLog).count() == 0

    @pytest.mark.parametrize("log_type,delta", [
        ("PURCHASE", -1),
        ("RETURN", -1),
        ("WRITE_OFF", 1),
        ("ADJUSTMENT", 0),
        ("SALE", -1),
        ("GIFT", 1),
        (5, 1),
    ])
    def test_sign_and_type_rules(self, db_session, product_a, log_type, delta):
        with pytest.raises(ValidationError):
            inventory_service.adjust_stock(product_id=product_a.id, quantity_delta=delta, log_type=log_type)

    def test_missing_product(self, db_session):
        with pytest.raises(inventory_service.ProductNotFoundError):
            inventory_service.adjust_stock(product_id=999999, quantity_delta=1)


class TestInventoryRoutes:
    def test_adjust(self, client, manager_headers, manager_user, product_a):
        resp = client.post("/api/inventory/adjust", json={
            "product_id": product_a.id,
            "quantity": -2,
            "type": "write_off",
            "notes": "Damaged in transit",
        }, headers=manager_headers)

        assert resp.status_code == 201, resp.json
        assert resp.json["type"] == "WRITE_OFF"
        assert resp.json["quantity"] == -2
        assert resp.json["product_quantity"] == 8
        assert resp.json["user_id"] == manager_user.id
        assert resp.json["product"] == {"name": "Product A", "sku": "PROD-A-001"}

    def test_adjust_insufficient_stock(self, client, manager_headers, product_b):
        resp = client.post("/api/inventory/adjust", json={
            "product_id": product_b.id, "quantity": -10,
        }, headers=manager_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Insufficient stock for product Product B. Available: 3"

    def test_adjust_missing_product(self, client, manager_headers):
        resp = client.post("/api/inventory/adjust", json={"product_id": 999999, "quantity": 1}, headers=manager_headers)
        assert resp.status_code == 404

    @pytest.mark.parametrize("payload", [
        {"quantity": 1},
        {"product_id": 1},
        {"product_id": "x", "quantity": 1},
        {"product_id": 1, "quantity": 1, "type": 5},
        {"product_id": 1, "quantity": 1, "type": ["PURCHASE"]},
    ])
    def test_adjust_bad_payload(self, client, manager_headers, payload):
        resp = client.post("/api/inventory/adjust", json=payload, headers=manager_headers)
        assert resp.status_code == 400

    def test_list_logs(self, client, admin_headers, product_a, product_b):
        client.post("/api/inventory/adjust", json={"product_id": product_a.id, "quantity": 1}, headers=admin_headers)
        client.post("/api/inventory/adjust", json={
            "product_id": product_b.id, "quantity": 2, "type": "PURCHASE",
        }, headers=admin_headers)
        client.post("/api/sales", json={"items": [{"product_id": product_a.id, "quantity": 1}]}, headers=admin_headers)

        resp = client.get("/api/inventory", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 3
        # newest first
        assert resp.json["items"][0]["type"] == "SALE"

        by_product = client.get(f"/api/inventory?product_id={product_b.id}", headers=admin_headers)
        assert [log["quantity"] for log in by_product.json["items"]] == [2]

        by_type = client.get("/api/inventory?type=sale", headers=admin_headers)
        assert [log["reference"] for log in by_type.json["items"]] == ["INV-00001"]

        limited = client.get("/api/inventory?limit=1", headers=admin_headers)
        assert limited.json["count"] == 1

    @pytest.mark.parametrize("query", ["limit=0", "limit=5000", "type=BOGUS", "product_id=abc"])
    def test_list_logs_bad_query(self, client, admin_headers, query):
        resp = client.get(f"/api/inventory?{query}", headers=admin_headers)
        assert resp.status_code == 400

    def test_low_stock(self, client, staff_headers, db_session, product_a, product_b):
        inactive = Product(sku="OLD-1", name="Discontinued", price_cents=100, quantity=0, is_active=False)
        db_session.add(inactive)
        db_session.commit()

        resp = client.get("/api/inventory/low-stock", headers=staff_headers)
        assert resp.status_code == 200
        assert [p["sku"] for p in resp.json["items"]] == ["PROD-B-001"]
