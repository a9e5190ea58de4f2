"""
HTTP tests for /api/products.
"""

import pytest

from conftest import reload
from supplytrack.domain import ProductStatus as S, Role
from supplytrack.extensions import db
from supplytrack.models import Transaction


NEW_PRODUCT = {
    "name": "Torque Wrench",
    "category": "Tools & Equipment",
    "sub_category": "Hand Tools",
    "current_location": "Plant 9",
    "quantity": 12,
    "price_cents": 8999,
    "specifications": {"size": "1/2 in"},
    "manufacturing_date": "2026-01-15T08:00:00Z",
}


class TestCreate:

    def test_manufacturer_creates(self, client, headers, users):
        resp = client.post("/api/products", json=NEW_PRODUCT, headers=headers[Role.MANUFACTURER])
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["status"] == "manufactured"
        assert body["tracking_number"].startswith("TLS-")
        assert body["manufacturer_id"] == users[Role.MANUFACTURER].id
        assert body["manufacturing_date"] == "2026-01-15T08:00:00Z"
        assert len(body["timeline"]) == 1
        assert body["timeline"][0]["handler"] == "Manufacturer Co"

    def test_supplier_creates_in_supply(self, client, headers):
        resp = client.post("/api/products", json=NEW_PRODUCT, headers=headers[Role.SUPPLIER])
        assert resp.status_code == 201
        assert resp.get_json()["status"] == "in-supply"

    @pytest.mark.parametrize("role", [Role.DISTRIBUTOR, Role.CUSTOMER, Role.QUALITY_INSPECTOR])
    def test_other_roles_forbidden(self, client, headers, role):
        resp = client.post("/api/products", json=NEW_PRODUCT, headers=headers[role])
        assert resp.status_code == 403
        assert resp.get_json()["role"] == role.value

    def test_missing_fields(self, client, headers):
        resp = client.post("/api/products", json={"name": "x"}, headers=headers[Role.ADMIN])
        assert resp.status_code == 400
        assert "Missing required fields" in resp.get_json()["error"]

    @pytest.mark.parametrize("field,value", [
        ("status", "delivered"),
        ("current_owner_id", 1),
        ("timeline", []),
    ])
    def test_lifecycle_fields_not_writable(self, client, headers, field, value):
        resp = client.post("/api/products", json={**NEW_PRODUCT, field: value}, headers=headers[Role.ADMIN])
        assert resp.status_code == 400
        assert resp.get_json()["error"] == f"Field not allowed: {field}"

    @pytest.mark.parametrize("field,value", [
        ("category", "Snacks"),
        ("price_cents", -1),
        ("price_cents", 10.5),
        ("quantity", -3),
        ("specifications", "steel"),
        ("tracking_number", "777"),
    ])
    def test_invalid_values(self, client, headers, field, value):
        resp = client.post("/api/products", json={**NEW_PRODUCT, field: value}, headers=headers[Role.ADMIN])
        assert resp.status_code == 400


class TestRead:

    def test_get_by_id_and_tracking_number(self, client, headers, make_product):
        product = make_product()
        for ref in (product.id, product.tracking_number):
            resp = client.get(f"/api/products/{ref}", headers=headers[Role.CUSTOMER])
            assert resp.status_code == 200
            assert resp.get_json()["tracking_number"] == product.tracking_number

    def test_not_found(self, client, headers):
        resp = client.get("/api/products/FAS-NOPE", headers=headers[Role.ADMIN])
        assert resp.status_code == 404
        assert resp.get_json()["entity"] == "Product"

    def test_timeline(self, client, headers, make_product):
        product = make_product()
        resp = client.get(f"/api/products/{product.id}/timeline", headers=headers[Role.ADMIN])
        assert resp.status_code == 200
        assert [e["title"] for e in resp.get_json()] == ["Product Manufactured"]

    def test_track_includes_transactions(self, client, headers, make_product):
        product = make_product(status=S.MANUFACTURED, price_cents=450)
        client.patch(
            f"/api/products/{product.id}/status",
            json={"status": "in-supply", "location": "Warehouse A"},
            headers=headers[Role.SUPPLIER],
        )

        resp = client.get(f"/api/products/track/{product.tracking_number}", headers=headers[Role.CUSTOMER])
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "in-supply"
        assert len(body["transactions"]) == 1
        assert body["transactions"][0]["amount_cents"] == 450

    def test_track_matches_tracking_numbers_only(self, client, headers, make_product):
        product = make_product()
        resp = client.get(f"/api/products/track/{product.id}", headers=headers[Role.CUSTOMER])
        assert resp.status_code == 404
        resp = client.get(f"/api/products/track/{product.tracking_number}", headers=headers[Role.CUSTOMER])
        assert resp.status_code == 200
        assert resp.get_json()["id"] == product.id

    def test_numeric_tracking_number_wins_over_id(self, client, headers, make_product):
        first = make_product()
        second = make_product()
        second.tracking_number = str(first.id)
        db.session.commit()

        resp = client.get(f"/api/products/{first.id}", headers=headers[Role.ADMIN])
        assert resp.status_code == 200
        assert resp.get_json()["id"] == second.id

    def test_categories(self, client, headers, make_product):
        make_product(category="Fasteners")
        make_product(category="Hardware")
        resp = client.get("/api/products/categories", headers=headers[Role.CUSTOMER])
        assert resp.status_code == 200
        body = resp.get_json()
        assert [c["category"] for c in body] == ["Fasteners", "Hardware"]
        assert [c["total_count"] for c in body] == [1, 1]

    def test_materials(self, client, headers, make_product):
        make_product()
        resp = client.get("/api/products/materials", headers=headers[Role.DISTRIBUTOR])
        assert resp.status_code == 200
        assert resp.get_json() == ["steel"]

    def test_product_transactions(self, client, headers, make_product):
        product = make_product()
        resp = client.get(f"/api/products/{product.id}/transactions", headers=headers[Role.ADMIN])
        assert resp.status_code == 200
        assert resp.get_json() == []

    def test_list_scoped_by_role(self, client, headers, make_product):
        for status in S:
            make_product(status=status)
        resp = client.get("/api/products", headers=headers[Role.DISTRIBUTOR])
        assert resp.status_code == 200
        body = resp.get_json()
        assert [p["status"] for p in body["items"]] == ["in-distribution"]

    def test_list_page_size_capped(self, client, headers, make_product):
        make_product()
        resp = client.get("/api/products?per_page=1000", headers=headers[Role.ADMIN])
        assert resp.get_json()["pagination"]["per_page"] == 100

    def test_list_bad_page(self, client, headers):
        resp = client.get("/api/products?page=-1", headers=headers[Role.ADMIN])
        assert resp.status_code == 400


class TestUpdateDetails:

    def test_supplier_edits(self, client, headers, make_product):
        product = make_product()
        resp = client.patch(
            f"/api/products/{product.id}", json={"description": "Zinc plated"}, headers=headers[Role.SUPPLIER],
        )
        assert resp.status_code == 200
        assert resp.get_json()["description"] == "Zinc plated"

    def test_status_not_editable(self, client, headers, make_product):
        product = make_product()
        resp = client.patch(f"/api/products/{product.id}", json={"status": "delivered"}, headers=headers[Role.ADMIN])
        assert resp.status_code == 400
        assert reload(product).status == "manufactured"

    def test_distributor_forbidden(self, client, headers, make_product):
        product = make_product()
        resp = client.patch(f"/api/products/{product.id}", json={"name": "x"}, headers=headers[Role.DISTRIBUTOR])
        assert resp.status_code == 403


class TestChangeStatus:

    def test_valid_transition(self, client, headers, users, make_product):
        product = make_product(status=S.IN_SUPPLY)
        resp = client.patch(
            f"/api/products/{product.tracking_number}/status",
            json={"status": "in-distribution", "location": "DC-NY", "notes": "Picked up"},
            headers=headers[Role.DISTRIBUTOR],
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "in-distribution"
        assert body["current_owner_id"] == users[Role.DISTRIBUTOR].id
        assert body["timeline"][-1]["description"] == "Picked up"

    def test_forbidden_transition_body(self, client, headers, make_product):
        product = make_product(status=S.QUALITY_CHECK)
        resp = client.patch(
            f"/api/products/{product.id}/status",
            json={"status": "in-distribution", "location": "DC-NY"},
            headers=headers[Role.DISTRIBUTOR],
        )
        assert resp.status_code == 403
        body = resp.get_json()
        assert body["role"] == "distributor"
        assert body["from"] == "quality-check"
        assert body["to"] == "in-distribution"
        assert reload(product).status == "quality-check"

    @pytest.mark.parametrize("role", [Role.MANUFACTURER, Role.CUSTOMER])
    def test_roles_without_transitions(self, client, headers, make_product, role):
        product = make_product()
        resp = client.patch(
            f"/api/products/{product.id}/status",
            json={"status": "in-supply", "location": "X"},
            headers=headers[role],
        )
        assert resp.status_code == 403

    @pytest.mark.parametrize("payload", [
        {"location": "X"},
        {"status": "in-supply"},
        {"status": "in-supply", "location": "   "},
        {"status": "in-supply", "location": "X", "expected_version": "one"},
    ])
    def test_bad_payload(self, client, headers, make_product, payload):
        product = make_product()
        resp = client.patch(f"/api/products/{product.id}/status", json=payload, headers=headers[Role.SUPPLIER])
        assert resp.status_code == 400

    def test_stale_expected_version(self, client, headers, make_product):
        product = make_product()
        resp = client.patch(
            f"/api/products/{product.id}/status",
            json={"status": "in-supply", "location": "X", "expected_version": product.version_id + 5},
            headers=headers[Role.SUPPLIER],
        )
        assert resp.status_code == 409
        assert reload(product).status == "manufactured"
        assert db.session.query(Transaction).count() == 0


class TestQualityCheck:

    def test_inspector_passes(self, client, headers, make_product):
        product = make_product(status=S.QUALITY_CHECK)
        resp = client.post(
            f"/api/products/{product.id}/quality-check",
            json={"check_details": {"visual": "ok"}},
            headers=headers[Role.QUALITY_INSPECTOR],
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "in-supply"
        assert body["timeline"][-1]["metadata"] == {"visual": "ok"}

    def test_check_details_must_be_object(self, client, headers, make_product):
        product = make_product()
        resp = client.post(
            f"/api/products/{product.id}/quality-check",
            json={"check_details": "fine"},
            headers=headers[Role.ADMIN],
        )
        assert resp.status_code == 400

    def test_distributor_forbidden(self, client, headers, make_product):
        product = make_product()
        resp = client.post(f"/api/products/{product.id}/quality-check", headers=headers[Role.DISTRIBUTOR])
        assert resp.status_code == 403


class TestTransfer:

    def test_transfer(self, client, headers, users, make_product):
        product = make_product(status=S.DELIVERED)
        resp = client.post(
            f"/api/products/{product.id}/transfer",
            json={"destination_user_id": users[Role.CUSTOMER].id, "location": "Customer Dock"},
            headers=headers[Role.DISTRIBUTOR],
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["current_owner_id"] == users[Role.CUSTOMER].id
        assert body["status"] == "delivered"
        assert db.session.query(Transaction).filter_by(label="transfer").count() == 1

    @pytest.mark.parametrize("role", [Role.MANUFACTURER, Role.CUSTOMER, Role.QUALITY_INSPECTOR])
    def test_roles_outside_allowlist(self, client, headers, users, make_product, role):
        product = make_product()
        resp = client.post(
            f"/api/products/{product.id}/transfer",
            json={"destination_user_id": users[Role.CUSTOMER].id, "location": "X"},
            headers=headers[role],
        )
        assert resp.status_code == 403

    def test_unknown_destination(self, client, headers, make_product):
        product = make_product()
        resp = client.post(
            f"/api/products/{product.id}/transfer",
            json={"destination_user_id": 99999, "location": "X"},
            headers=headers[Role.ADMIN],
        )
        assert resp.status_code == 404

    def test_destination_required(self, client, headers, make_product):
        product = make_product()
        resp = client.post(f"/api/products/{product.id}/transfer", json={"location": "X"}, headers=headers[Role.ADMIN])
        assert resp.status_code == 400
