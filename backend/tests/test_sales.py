"""
Sale recording tests.

Verifies:
- Totals (discount then tax, half-up per component) and invoice numbering
- Stock decrement and SALE inventory logs written with the sale
- All-or-nothing behavior when any line fails validation
- Inline customer creation
- Status rules on update and restock on delete
"""

import pytest

from app.extensions import db
from app.models import Customer, InventoryLog, Product, Sale, SaleItem
from app.services import sales_service
from app.services.sales_service import SaleTotals, compute_totals
from app.validation import ValidationError, percent_to_bps


def _sale_logs(invoice_number):
    return db.session.query(InventoryLog).filter_by(reference=invoice_number, type="SALE").all()


# =============================================================================
# TOTALS
# =============================================================================


class TestTotals:
    def test_discount_applies_before_tax(self):
        assert compute_totals(6000, 1000, 500) == SaleTotals(
            subtotal_cents=6000,
            discount_cents=600,
            tax_cents=270,
            total_amount_cents=5670,
        )

    def test_components_round_half_up(self):
        # 15% of 333 cents = 49.95 -> 50
        totals = compute_totals(333, 0, 1500)
        assert totals.tax_cents == 50
        assert totals.total_amount_cents == 383

        # 0.5% of 1005 cents = 5.025 -> 5
        assert compute_totals(1005, 50, 0).discount_cents == 5

    def test_zero_rates(self):
        assert compute_totals(1234, 0, 0).total_amount_cents == 1234

    @pytest.mark.parametrize("value,expected", [
        (None, 0),
        (0, 0),
        (10, 1000),
        ("7.5", 750),
        (12.25, 1225),
        (100, 10000),
    ])
    def test_percent_to_bps(self, value, expected):
        assert percent_to_bps("tax", value) == expected

    @pytest.mark.parametrize("value", [-1, 100.01, "7.555", "abc", True])
    def test_percent_to_bps_rejects(self, value):
        with pytest.raises(ValidationError):
            percent_to_bps("tax", value)


# =============================================================================
# CREATE
# =============================================================================


class TestCreateSale:
    def test_records_sale_with_totals(self, client, admin_headers, product_a):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 3}],
            "discount": 10,
            "tax": 5,
        }, headers=admin_headers)

        assert resp.status_code == 201, resp.json
        sale = resp.json
        assert sale["invoice_number"] == "INV-00001"
        assert sale["subtotal_cents"] == 6000
        assert sale["discount_bps"] == 1000
        assert sale["discount_cents"] == 600
        assert sale["tax_bps"] == 500
        assert sale["tax_cents"] == 270
        assert sale["total_amount_cents"] == 5670
        assert sale["status"] == "PENDING"
        assert sale["payment_method"] == "CASH"
        assert sale["customer"] is None

        assert len(sale["items"]) == 1
        item = sale["items"][0]
        assert item["unit_price_cents"] == 2000
        assert item["line_total_cents"] == 6000

    def test_decrements_stock_and_logs(self, client, admin_headers, admin_user, product_a, product_b):
        resp = client.post("/api/sales", json={
            "items": [
                {"product_id": product_a.id, "quantity": 4},
                {"product_id": product_b.id, "quantity": 1},
            ],
        }, headers=admin_headers)
        assert resp.status_code == 201

        assert db.session.get(Product, product_a.id).quantity == 6
        assert db.session.get(Product, product_b.id).quantity == 2

        logs = _sale_logs("INV-00001")
        assert sorted(log.quantity for log in logs) == [-4, -1]
        assert all(log.notes == "Sale to Unknown Customer" for log in logs)
        assert all(log.user_id == admin_user.id for log in logs)

    def test_sale_logs_sum_to_item_quantity(self, client, staff_headers, product_a):
        resp = client.post("/api/sales", json={
            "items": [
                {"product_id": product_a.id, "quantity": 2},
                {"product_id": product_a.id, "quantity": 5},
            ],
        }, headers=staff_headers)
        assert resp.status_code == 201

        total_items = sum(item["quantity"] for item in resp.json["items"])
        assert sum(log.quantity for log in _sale_logs(resp.json["invoice_number"])) == -total_items
        assert db.session.get(Product, product_a.id).quantity == 3

    def test_invoice_numbers_are_sequential(self, client, admin_headers, product_a):
        numbers = []
        for _ in range(3):
            resp = client.post("/api/sales", json={
                "items": [{"product_id": product_a.id, "quantity": 1}],
            }, headers=admin_headers)
            assert resp.status_code == 201
            numbers.append(resp.json["invoice_number"])

        assert numbers == ["INV-00001", "INV-00002", "INV-00003"]

    def test_price_override(self, client, admin_headers, product_a):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 2, "price_cents": 1500}],
        }, headers=admin_headers)

        assert resp.status_code == 201
        assert resp.json["items"][0]["unit_price_cents"] == 1500
        assert resp.json["subtotal_cents"] == 3000

    def test_price_as_currency_amount(self, client, admin_headers, product_a):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 3, "price": 15.00}],
        }, headers=admin_headers)

        assert resp.status_code == 201, resp.json
        assert resp.json["items"][0]["unit_price_cents"] == 1500
        assert resp.json["items"][0]["line_total_cents"] == 4500
        assert resp.json["subtotal_cents"] == 4500

    def test_price_rounds_half_up(self, client, admin_headers, product_a):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 1, "price": "19.995"}],
        }, headers=admin_headers)

        assert resp.status_code == 201
        assert resp.json["items"][0]["unit_price_cents"] == 2000

    def test_explicit_fields(self, client, admin_headers, product_a):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "date": "2026-03-01T10:00:00Z",
            "payment_method": "card",
            "status": "COMPLETED",
        }, headers=admin_headers)

        assert resp.status_code == 201
        assert resp.json["date"] == "2026-03-01T10:00:00Z"
        assert resp.json["payment_method"] == "CARD"
        assert resp.json["status"] == "COMPLETED"

    def test_existing_customer(self, client, admin_headers, product_a, customer):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "customer_id": customer.id,
        }, headers=admin_headers)

        assert resp.status_code == 201
        assert resp.json["customer_id"] == customer.id
        assert _sale_logs(resp.json["invoice_number"])[0].notes == "Sale to Ada Lovelace"

    def test_new_customer_created_inline(self, client, admin_headers, product_a):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "new_customer": {"name": "Grace Hopper", "phone": "555-0101", "email": "Grace@Example.com"},
        }, headers=admin_headers)

        assert resp.status_code == 201
        created = db.session.query(Customer).filter_by(name="Grace Hopper").one()
        assert created.email == "grace@example.com"
        assert resp.json["customer_id"] == created.id
        assert _sale_logs(resp.json["invoice_number"])[0].notes == "Sale to Grace Hopper"

    def test_new_customer_wins_over_customer_id(self, client, admin_headers, product_a, customer):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "customer_id": customer.id,
            "new_customer": {"name": "Walk-in Buyer"},
        }, headers=admin_headers)

        assert resp.status_code == 201
        assert resp.json["customer"]["name"] == "Walk-in Buyer"

    def test_blank_new_customer_is_ignored(self, client, admin_headers, product_a, customer):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "customer_id": customer.id,
            "new_customer": {"name": "  "},
        }, headers=admin_headers)

        assert resp.status_code == 201
        assert resp.json["customer_id"] == customer.id


# =============================================================================
# CREATE FAILURES (nothing written)
# =============================================================================


class TestCreateSaleFailures:
    def _assert_nothing_written(self, product_quantities):
        assert db.session.query(Sale).count() == 0
        assert db.session.query(InventoryLog).count() == 0
        for product_id, quantity in product_quantities.items():
            assert db.session.get(Product, product_id).quantity == quantity

    def test_requires_items(self, client, admin_headers):
        resp = client.post("/api/sales", json={"items": []}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "At least one item is required"

    def test_missing_body(self, client, admin_headers):
        resp = client.post("/api/sales", headers=admin_headers)
        assert resp.status_code == 400

    def test_unknown_product(self, client, admin_headers, product_a):
        resp = client.post("/api/sales", json={
            "items": [
                {"product_id": product_a.id, "quantity": 1},
                {"product_id": 999999, "quantity": 1},
            ],
        }, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["error"] == "Product with ID 999999 not found"
        self._assert_nothing_written({product_a.id: 10})

    @pytest.mark.parametrize("quantity", [0, -2, "abc"])
    def test_invalid_quantity(self, client, admin_headers, product_a, quantity):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": quantity}],
        }, headers=admin_headers)
        assert resp.status_code == 400
        self._assert_nothing_written({product_a.id: 10})

    def test_insufficient_stock_rolls_back_every_line(self, client, admin_headers, product_a, product_b):
        resp = client.post("/api/sales", json={
            "items": [
                {"product_id": product_a.id, "quantity": 2},
                {"product_id": product_b.id, "quantity": 4},
            ],
        }, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["error"] == "Insufficient stock for product Product B. Available: 3"
        self._assert_nothing_written({product_a.id: 10, product_b.id: 3})

    def test_repeated_lines_are_checked_together(self, client, admin_headers, product_b):
        resp = client.post("/api/sales", json={
            "items": [
                {"product_id": product_b.id, "quantity": 2},
                {"product_id": product_b.id, "quantity": 2},
            ],
        }, headers=admin_headers)

        assert resp.status_code == 400
        assert "Insufficient stock" in resp.json["error"]
        self._assert_nothing_written({product_b.id: 3})

    def test_inactive_product(self, client, admin_headers, db_session, product_a):
        product_a.is_active = False
        db_session.commit()

        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
        }, headers=admin_headers)
        assert resp.status_code == 400
        assert "inactive" in resp.json["error"]

    def test_unknown_customer(self, client, admin_headers, product_a):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "customer_id": 999999,
        }, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["error"] == "Customer with ID 999999 not found"
        self._assert_nothing_written({product_a.id: 10})

    def test_duplicate_new_customer_email(self, client, admin_headers, product_a, customer):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "new_customer": {"name": "Someone Else", "email": customer.email},
        }, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["error"] == "new_customer: A customer with this email already exists"
        self._assert_nothing_written({product_a.id: 10})
        assert db.session.query(Customer).count() == 1

    @pytest.mark.parametrize("item", [
        {"quantity": 1, "unit_price": 15},
        {"quantity": 1, "price": 15, "price_cents": 1500},
        {"quantity": 1, "price": "cheap"},
        {"quantity": 1, "price": -1},
    ])
    def test_invalid_item_price_fields(self, client, admin_headers, product_a, item):
        item["product_id"] = product_a.id
        resp = client.post("/api/sales", json={"items": [item]}, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["error"].startswith("Item 1:")
        self._assert_nothing_written({product_a.id: 10})

    @pytest.mark.parametrize("field,value", [
        ("discount", 150),
        ("tax", -1),
        ("payment_method", "BARTER"),
        ("status", "SHIPPED"),
        ("date", "not-a-date"),
    ])
    def test_invalid_header_fields(self, client, admin_headers, product_a, field, value):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
            field: value,
        }, headers=admin_headers)
        assert resp.status_code == 400
        self._assert_nothing_written({product_a.id: 10})

    def test_failure_does_not_consume_invoice_number(self, client, admin_headers, product_a):
        failed = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 50}],
        }, headers=admin_headers)
        assert failed.status_code == 400

        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
        }, headers=admin_headers)
        assert resp.json["invoice_number"] == "INV-00001"

    def test_write_failure_rolls_back_everything(self, client, admin_headers, monkeypatch, product_a, product_b):
        real_record_movement = sales_service.record_movement
        calls = []

        def failing_record_movement(product, **kwargs):
            calls.append(product.id)
            if len(calls) == 2:
                raise RuntimeError("disk full")
            return real_record_movement(product, **kwargs)

        monkeypatch.setattr(sales_service, "record_movement", failing_record_movement)

        resp = client.post("/api/sales", json={
            "items": [
                {"product_id": product_a.id, "quantity": 2},
                {"product_id": product_b.id, "quantity": 1},
            ],
        }, headers=admin_headers)

        assert resp.status_code == 500
        assert resp.json == {"error": "Error creating sale"}
        assert len(calls) == 2
        self._assert_nothing_written({product_a.id: 10, product_b.id: 3})
        assert db.session.query(SaleItem).count() == 0

        monkeypatch.undo()
        resp = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["invoice_number"] == "INV-00001"


# =============================================================================
# READ
# =============================================================================


class TestListSales:
    def _create(self, client, headers, product_id, **extra):
        payload = {"items": [{"product_id": product_id, "quantity": 1}]}
        payload.update(extra)
        resp = client.post("/api/sales", json=payload, headers=headers)
        assert resp.status_code == 201
        return resp.json

    def test_pagination(self, client, admin_headers, product_a):
        for _ in range(3):
            self._create(client, admin_headers, product_a.id)

        resp = client.get("/api/sales?page=1&limit=2", headers=admin_headers)
        assert resp.status_code == 200
        assert len(resp.json["sales"]) == 2
        assert resp.json["pagination"] == {"total": 3, "page": 1, "limit": 2, "total_pages": 2}
        # newest first
        assert resp.json["sales"][0]["invoice_number"] == "INV-00003"

    def test_filters(self, client, admin_headers, product_a, customer):
        self._create(client, admin_headers, product_a.id, customer_id=customer.id, date="2026-03-01T09:00:00Z")
        self._create(client, admin_headers, product_a.id, status="COMPLETED", date="2026-03-02T09:00:00Z")

        by_name = client.get("/api/sales?query=lovelace", headers=admin_headers)
        assert [s["invoice_number"] for s in by_name.json["sales"]] == ["INV-00001"]

        by_invoice = client.get("/api/sales?query=INV-00002", headers=admin_headers)
        assert [s["invoice_number"] for s in by_invoice.json["sales"]] == ["INV-00002"]

        by_status = client.get("/api/sales?status=completed", headers=admin_headers)
        assert [s["invoice_number"] for s in by_status.json["sales"]] == ["INV-00002"]

        by_date = client.get("/api/sales?date=2026-03-01", headers=admin_headers)
        assert [s["invoice_number"] for s in by_date.json["sales"]] == ["INV-00001"]

    def test_bad_date_filter(self, client, admin_headers):
        resp = client.get("/api/sales?date=yesterday", headers=admin_headers)
        assert resp.status_code == 400

    def test_get_sale(self, client, admin_headers, product_a):
        created = self._create(client, admin_headers, product_a.id)

        resp = client.get(f"/api/sales/{created['id']}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["invoice_number"] == created["invoice_number"]
        assert resp.json["items"][0]["product"]["sku"] == "PROD-A-001"

    def test_get_missing_sale(self, client, admin_headers):
        resp = client.get("/api/sales/999999", headers=admin_headers)
        assert resp.status_code == 404


# =============================================================================
# UPDATE / DELETE
# =============================================================================


class TestUpdateSale:
    def _create(self, client, headers, product_id, **extra):
        payload = {"items": [{"product_id": product_id, "quantity": 3}]}
        payload.update(extra)
        return client.post("/api/sales", json=payload, headers=headers).json

    def test_recomputes_totals(self, client, admin_headers, product_a):
        sale = self._create(client, admin_headers, product_a.id)

        resp = client.put(f"/api/sales/{sale['id']}", json={"discount": 10, "tax": 5}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["total_amount_cents"] == 5670
        assert len(resp.json["items"]) == 1

    def test_complete_then_cancel(self, client, admin_headers, product_a):
        sale = self._create(client, admin_headers, product_a.id)

        completed = client.put(f"/api/sales/{sale['id']}", json={"status": "COMPLETED"}, headers=admin_headers)
        assert completed.json["status"] == "COMPLETED"

        edit = client.put(f"/api/sales/{sale['id']}", json={"payment_method": "CARD"}, headers=admin_headers)
        assert edit.status_code == 400
        assert db.session.get(Sale, sale["id"]).payment_method == "CASH"

        cancelled = client.put(f"/api/sales/{sale['id']}", json={"status": "CANCELLED"}, headers=admin_headers)
        assert cancelled.status_code == 200
        assert cancelled.json["status"] == "CANCELLED"

        reopened = client.put(f"/api/sales/{sale['id']}", json={"status": "PENDING"}, headers=admin_headers)
        assert reopened.status_code == 400

        # Cancelling does not restock
        assert db.session.get(Product, product_a.id).quantity == 7

    def test_items_are_immutable(self, client, admin_headers, product_a):
        sale = self._create(client, admin_headers, product_a.id)
        resp = client.put(f"/api/sales/{sale['id']}", json={"items": []}, headers=admin_headers)
        assert resp.status_code == 400

    def test_update_missing_sale(self, client, admin_headers):
        resp = client.put("/api/sales/999999", json={"status": "COMPLETED"}, headers=admin_headers)
        assert resp.status_code == 404


class TestDeleteSale:
    def test_pending_sale_restocks(self, client, admin_headers, product_a):
        sale = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 4}],
        }, headers=admin_headers).json
        assert db.session.get(Product, product_a.id).quantity == 6

        resp = client.delete(f"/api/sales/{sale['id']}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["message"] == "Sale deleted successfully"

        assert db.session.get(Product, product_a.id).quantity == 10
        assert db.session.get(Sale, sale["id"]) is None

        restock = db.session.query(InventoryLog).filter_by(reference="DELETE-INV-00001").one()
        assert restock.type == "ADJUSTMENT"
        assert restock.quantity == 4
        assert restock.notes == "Restored due to sale deletion: INV-00001"

    def test_completed_sale_cannot_be_deleted(self, client, admin_headers, product_a):
        sale = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "status": "COMPLETED",
        }, headers=admin_headers).json

        resp = client.delete(f"/api/sales/{sale['id']}", headers=admin_headers)
        assert resp.status_code == 400
        assert db.session.get(Sale, sale["id"]) is not None

    def test_cancelled_sale_deleted_without_restock(self, client, admin_headers, product_a):
        sale = client.post("/api/sales", json={
            "items": [{"product_id": product_a.id, "quantity": 2}],
            "status": "CANCELLED",
        }, headers=admin_headers).json

        resp = client.delete(f"/api/sales/{sale['id']}", headers=admin_headers)
        assert resp.status_code == 200
        assert db.session.get(Product, product_a.id).quantity == 8
        assert db.session.query(InventoryLog).filter_by(type="ADJUSTMENT").count() == 0

    def test_delete_missing_sale(self, client, admin_headers):
        resp = client.delete("/api/sales/999999", headers=admin_headers)
        assert resp.status_code == 404
