"""
HTTP-level tests for the inventory, sales and returns blueprints.

These go through the Flask test client so they cover payload parsing,
the actor header and the error-to-status mapping.
"""

from imeipos.models import InventoryUnit

IMEI_A = "123456789012345"
IMEI_B = "123456789012346"


def actor_headers(actor_id="staff-001"):
    return {"X-Actor-Id": actor_id, "X-Actor-Name": "Test Staff"}


def _intake_body(variant, imeis, unit_cost=30_000_000, **extra):
    body = {
        "supplier_name": "FPT Trading",
        "lines": [{
            "product_id": variant.product_id,
            "variant_id": variant.id,
            "unit_cost": unit_cost,
            "imeis": imeis,
        }],
    }
    body.update(extra)
    return body


def _unit_id(session, imei):
    return session.query(InventoryUnit).filter_by(imei=imei).one().id


def test_health(client, db_session):
    response = client.get("/api/health")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "healthy"
    assert data["checks"]["database"]["status"] == "healthy"
    assert data["checks"]["stock_ledger"]["status"] == "healthy"


class TestInventoryRoutes:
    def test_intake_created(self, client, db_session, variant):
        response = client.post(
            "/api/inventory/intake", json=_intake_body(variant, [IMEI_A, IMEI_B]), headers=actor_headers()
        )

        assert response.status_code == 201
        po = response.get_json()["purchase_order"]
        assert po["order_number"].startswith("PO-")
        assert po["total_items"] == 2
        assert po["lines"][0]["received_imeis"] == [IMEI_A, IMEI_B]

    def test_intake_requires_actor(self, client, db_session, variant):
        response = client.post("/api/inventory/intake", json=_intake_body(variant, [IMEI_A]))

        assert response.status_code == 401
        assert response.get_json()["code"] == "ACTOR_REQUIRED"
        assert db_session.query(InventoryUnit).count() == 0

    def test_intake_existing_imei(self, client, db_session, variant):
        client.post("/api/inventory/intake", json=_intake_body(variant, [IMEI_A]), headers=actor_headers())

        response = client.post(
            "/api/inventory/intake", json=_intake_body(variant, [IMEI_A, IMEI_B]), headers=actor_headers()
        )

        assert response.status_code == 409
        data = response.get_json()
        assert data["code"] == "IMEI_ALREADY_EXISTS"
        assert data["details"]["imeis"] == [IMEI_A]

    def test_intake_format_errors(self, client, db_session, variant):
        bad_imei = client.post(
            "/api/inventory/intake", json=_intake_body(variant, ["123"]), headers=actor_headers()
        )
        no_lines = client.post(
            "/api/inventory/intake", json={"supplier_name": "FPT Trading"}, headers=actor_headers()
        )
        string_cost = client.post(
            "/api/inventory/intake", json=_intake_body(variant, [IMEI_A], unit_cost="abc"), headers=actor_headers()
        )

        assert bad_imei.status_code == 400
        assert bad_imei.get_json()["code"] == "IMEI_FORMAT"
        assert no_lines.status_code == 400
        assert no_lines.get_json()["code"] == "INVALID_PAYLOAD"
        assert string_cost.status_code == 400

    def test_intake_unknown_variant(self, client, db_session, variant):
        body = _intake_body(variant, [IMEI_A])
        body["lines"][0]["variant_id"] = 9999

        response = client.post("/api/inventory/intake", json=body, headers=actor_headers())

        assert response.status_code == 404
        assert response.get_json()["code"] == "CATALOG_ENTRY_NOT_FOUND"

    def test_validate_imeis(self, client, db_session, variant):
        client.post("/api/inventory/intake", json=_intake_body(variant, [IMEI_A]), headers=actor_headers())

        response = client.post("/api/inventory/imeis/validate", json={"imeis": [IMEI_A, IMEI_B, "1"]})

        assert response.status_code == 200
        data = response.get_json()
        assert [r["classification"] for r in data["results"]] == ["exists_blocking", "valid_new", "malformed"]
        assert data["summary"]["valid_new"] == 1

    def test_unit_lookups(self, client, db_session, variant):
        client.post("/api/inventory/intake", json=_intake_body(variant, [IMEI_A]), headers=actor_headers())
        unit_id = _unit_id(db_session, IMEI_A)

        by_id = client.get(f"/api/inventory/units/{unit_id}")
        by_imei = client.get(f"/api/inventory/units/by-imei/{IMEI_A}")
        movements = client.get(f"/api/inventory/units/{unit_id}/movements")
        missing = client.get(f"/api/inventory/units/by-imei/{IMEI_B}")

        assert by_id.status_code == 200
        assert by_imei.get_json()["unit"]["id"] == unit_id
        assert [m["movement_type"] for m in movements.get_json()["movements"]] == ["intake"]
        assert missing.status_code == 404

    def test_ledger_view(self, client, db_session, variant):
        client.post("/api/inventory/intake", json=_intake_body(variant, [IMEI_A]), headers=actor_headers())

        data = client.get(f"/api/inventory/ledger/{IMEI_A}").get_json()

        assert data["status"] == "in_stock"
        assert data["ledger_presence"] == 1
        assert data["reconciled"] is True

    def test_available_stock(self, client, db_session, variant):
        client.post("/api/inventory/intake", json=_intake_body(variant, [IMEI_A, IMEI_B]), headers=actor_headers())

        products = client.get("/api/inventory/available").get_json()["products"]

        assert len(products) == 1
        assert products[0]["available_count"] == 2
        assert [u["imei"] for u in products[0]["variants"][0]["units"]] == [IMEI_A, IMEI_B]

    def test_invalid_status_filter(self, client, db_session):
        response = client.get("/api/inventory/units?status=lost")
        assert response.status_code == 400


class TestSaleAndReturnRoutes:
    def _stock(self, client, variant, imeis):
        client.post("/api/inventory/intake", json=_intake_body(variant, imeis), headers=actor_headers())

    def test_sale_then_resale_conflict(self, client, db_session, variant):
        self._stock(client, variant, [IMEI_A])
        body = {
            "items": [{"inventory_unit_id": _unit_id(db_session, IMEI_A), "imei": IMEI_A}],
            "payment_method": "cash",
            "tax_rate_bps": 1000,
            "amount_received": 40_000_000,
        }

        first = client.post("/api/sales/", json=body, headers=actor_headers())
        second = client.post("/api/sales/", json=body, headers=actor_headers())

        assert first.status_code == 201
        order = first.get_json()["order"]
        assert order["total_amount"] == 38_500_000
        assert order["change_given"] == 1_500_000
        assert order["staff_name"] == "Test Staff"
        assert order["lines"][0]["imei"] == IMEI_A
        assert second.status_code == 409
        assert second.get_json()["code"] == "UNIT_STATUS_CONFLICT"

        fetched = client.get(f"/api/sales/{order['id']}")
        assert fetched.get_json()["order"]["order_number"] == order["order_number"]

    def test_sale_bad_payload(self, client, db_session):
        response = client.post("/api/sales/", json={"items": "nope", "payment_method": "cash"},
                               headers=actor_headers())
        assert response.status_code == 400

    def test_return_round_trip(self, client, db_session, variant, customer):
        self._stock(client, variant, [IMEI_A])
        client.post("/api/sales/", json={
            "items": [{"inventory_unit_id": _unit_id(db_session, IMEI_A), "imei": IMEI_A}],
            "payment_method": "bank_transfer",
            "customer_id": customer.id,
        }, headers=actor_headers())

        lookup = client.get(f"/api/returns/lookup/{IMEI_A}")
        assert lookup.status_code == 200
        assert lookup.get_json()["sold_unit"]["customer_name"] == "Nguyen Van A"

        created = client.post("/api/returns/", json={"imei": IMEI_A, "reason": "Screen defect"},
                              headers=actor_headers())
        assert created.status_code == 201
        request_id = created.get_json()["return_request"]["id"]

        duplicate = client.post("/api/returns/", json={"imei": IMEI_A}, headers=actor_headers())
        assert duplicate.status_code == 409
        assert duplicate.get_json()["code"] == "DUPLICATE_PENDING_RETURN"

        approved = client.post(f"/api/returns/{request_id}/approve", json={"note": "OK"},
                               headers=actor_headers("manager-001"))
        assert approved.status_code == 200
        assert approved.get_json()["return_request"]["status"] == "approved"

        again = client.post(f"/api/returns/{request_id}/reject", json={}, headers=actor_headers("manager-001"))
        assert again.status_code == 409

        history = client.get(f"/api/returns/customer/{customer.id}/history").get_json()
        assert len(history["return_history"]) == 1

        unit = client.get(f"/api/inventory/units/by-imei/{IMEI_A}").get_json()["unit"]
        assert unit["status"] == "in_stock"

    def test_return_lookup_not_sold(self, client, db_session, variant):
        self._stock(client, variant, [IMEI_A])

        response = client.get(f"/api/returns/lookup/{IMEI_A}")

        assert response.status_code == 409

    def test_process_unknown_action(self, client, db_session):
        response = client.post("/api/returns/1/process", json={"action": "refund"}, headers=actor_headers())
        assert response.status_code == 400
