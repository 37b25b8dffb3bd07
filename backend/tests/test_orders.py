"""Order endpoint tests: totals are derived on create, read and update."""

from datetime import date

import pytest

from conftest import order_payload


@pytest.mark.api
@pytest.mark.asyncio
class TestCreateOrder:

    async def test_totals_computed_from_line_items(self, client, admin_headers, clinic, patient):
        response = await client.post(
            "/api/orders/", json=order_payload(clinic.id, patient.id), headers=admin_headers
        )

        assert response.status_code == 201
        data = response.json()
        assert data["totals"]["subtotal"] == 220.0
        assert data["totals"]["tax_amount"] == 0.0
        assert data["totals"]["total"] == 220.0
        assert data["totals"]["total_display"] == "$220.00"
        assert [li["subtotal"] for li in data["line_items"]] == [90.0, 130.0]
        assert data["payment"] == {
            "total_amount": 220.0,
            "total_paid": 0.0,
            "total_owed": 220.0,
            "status": "unpaid",
            "status_label": "Unpaid",
        }

    async def test_generated_numbers(self, client, admin_headers, clinic, patient):
        today = date.today().strftime("%Y%m%d")
        first = await client.post(
            "/api/orders/", json=order_payload(clinic.id, patient.id), headers=admin_headers
        )
        second = await client.post(
            "/api/orders/", json=order_payload(clinic.id, patient.id), headers=admin_headers
        )

        assert first.json()["order_number"] == f"ORD-{today}-001"
        assert first.json()["invoice_number"] == f"INV-{today}-001"
        assert second.json()["order_number"] == f"ORD-{today}-002"

    async def test_default_tax_rate_applies_without_clinic_rate(
        self, client, admin_headers, clinic, patient
    ):
        payload = order_payload(clinic.id, patient.id, line_items=[
            {"product_name": "Assessment", "quantity": 1, "unit_price": 100},
        ])
        del payload["tax_rate_pct"]

        response = await client.post("/api/orders/", json=payload, headers=admin_headers)

        totals = response.json()["totals"]
        assert totals["tax_rate_pct"] == 13.0
        assert totals["tax_amount"] == 13.0
        assert totals["total"] == 113.0

    async def test_explicit_tax_rate_wins(self, client, admin_headers, clinic, patient):
        payload = order_payload(clinic.id, patient.id, tax_rate_pct="5")

        response = await client.post("/api/orders/", json=payload, headers=admin_headers)

        totals = response.json()["totals"]
        assert totals["tax_amount"] == 11.0
        assert totals["total"] == 231.0

    async def test_product_prefills_name_and_price(
        self, client, admin_headers, clinic, patient, product
    ):
        payload = order_payload(clinic.id, patient.id, line_items=[
            {"product_id": product.id, "quantity": 2},
        ])

        response = await client.post("/api/orders/", json=payload, headers=admin_headers)

        assert response.status_code == 201
        line = response.json()["line_items"][0]
        assert line["product_name"] == "Physiotherapy session (60 min)"
        assert line["product_code"] == "PHYSIO-60"
        assert line["unit_price"] == 90.0
        assert line["subtotal"] == 180.0

    async def test_referring_md_defaults_to_client(self, client, admin_headers, clinic, patient):
        response = await client.post(
            "/api/orders/", json=order_payload(clinic.id, patient.id), headers=admin_headers
        )
        assert response.json()["referring_md"] == "Dr. House"


@pytest.mark.api
@pytest.mark.asyncio
class TestOrderValidation:

    @pytest.mark.parametrize("quantity", ["abc", 0, -2, "1.5", ""])
    async def test_bad_quantity_rejected(self, client, admin_headers, clinic, patient, quantity):
        payload = order_payload(clinic.id, patient.id, line_items=[
            {"product_name": "Assessment", "quantity": quantity, "unit_price": "90"},
        ])

        response = await client.post("/api/orders/", json=payload, headers=admin_headers)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.parametrize("price", ["ninety", "-1", "", "33.333"])
    async def test_bad_unit_price_rejected(self, client, admin_headers, clinic, patient, price):
        payload = order_payload(clinic.id, patient.id, line_items=[
            {"product_name": "Assessment", "quantity": 1, "unit_price": price},
        ])

        response = await client.post("/api/orders/", json=payload, headers=admin_headers)

        assert response.status_code == 422

    async def test_tax_rate_over_100_rejected(self, client, admin_headers, clinic, patient):
        payload = order_payload(clinic.id, patient.id, tax_rate_pct=150)
        response = await client.post("/api/orders/", json=payload, headers=admin_headers)
        assert response.status_code == 422

    async def test_fractional_tax_percent_rejected(self, client, admin_headers, clinic, patient):
        payload = order_payload(clinic.id, patient.id, tax_rate_pct="13.125")
        response = await client.post("/api/orders/", json=payload, headers=admin_headers)
        assert response.status_code == 422

    async def test_line_items_required(self, client, admin_headers, clinic, patient):
        payload = order_payload(clinic.id, patient.id, line_items=[])
        response = await client.post("/api/orders/", json=payload, headers=admin_headers)
        assert response.status_code == 422

    async def test_unpriced_item_without_product_rejected(
        self, client, admin_headers, clinic, patient
    ):
        payload = order_payload(clinic.id, patient.id, line_items=[
            {"product_name": "Mystery", "quantity": 1},
        ])
        response = await client.post("/api/orders/", json=payload, headers=admin_headers)
        assert response.status_code == 422

    async def test_unknown_product(self, client, admin_headers, clinic, patient):
        payload = order_payload(clinic.id, patient.id, line_items=[
            {"product_id": "missing", "quantity": 1},
        ])
        response = await client.post("/api/orders/", json=payload, headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    async def test_client_from_another_clinic(
        self, client, admin_headers, other_clinic, patient
    ):
        response = await client.post(
            "/api/orders/", json=order_payload(other_clinic.id, patient.id), headers=admin_headers
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "CLIENT_CLINIC_MISMATCH"


@pytest.mark.api
@pytest.mark.asyncio
class TestQuote:

    async def test_quote_recomputes_without_saving(self, client, admin_headers, clinic):
        body = {
            "clinic_id": clinic.id,
            "line_items": [
                {"product_name": "Assessment", "quantity": 1, "unit_price": "100.00"},
            ],
        }
        response = await client.post("/api/orders/quote", json=body, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["totals"]["total"] == 113.0

        listing = await client.get("/api/orders/", headers=admin_headers)
        assert listing.json()["total"] == 0

    async def test_quote_each_edit(self, client, admin_headers):
        items = [{"product_name": "A", "quantity": 1, "unit_price": "90"}]
        first = await client.post(
            "/api/orders/quote", json={"line_items": items, "tax_rate_pct": 0}, headers=admin_headers
        )
        items.append({"product_name": "B", "quantity": 2, "unit_price": "65"})
        second = await client.post(
            "/api/orders/quote", json={"line_items": items, "tax_rate_pct": 0}, headers=admin_headers
        )

        assert first.json()["totals"]["subtotal"] == 90.0
        assert second.json()["totals"]["subtotal"] == 220.0

    async def test_empty_quote_is_zero(self, client, admin_headers):
        response = await client.post("/api/orders/quote", json={}, headers=admin_headers)

        totals = response.json()["totals"]
        assert totals["subtotal"] == 0.0
        assert totals["total"] == 0.0
        assert totals["total_display"] == "$0.00"


@pytest.mark.api
@pytest.mark.asyncio
class TestUpdateOrder:

    async def test_replacing_line_items_recomputes_totals(self, client, admin_headers, order):
        response = await client.patch(
            f"/api/orders/{order['id']}",
            json={"line_items": [{"product_name": "Assessment", "quantity": 1, "unit_price": "100"}]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["totals"]["total"] == 100.0
        assert len(response.json()["line_items"]) == 1

        fetched = await client.get(f"/api/orders/{order['id']}", headers=admin_headers)
        assert fetched.json()["totals"]["total"] == 100.0
        assert fetched.json()["payment"]["total_owed"] == 100.0

    async def test_tax_rate_change_recomputes(self, client, admin_headers, order):
        response = await client.patch(
            f"/api/orders/{order['id']}", json={"tax_rate_pct": 13}, headers=admin_headers
        )

        totals = response.json()["totals"]
        assert totals["tax_amount"] == 28.6
        assert totals["total"] == 248.6

    async def test_status_update(self, client, admin_headers, order):
        response = await client.patch(
            f"/api/orders/{order['id']}", json={"status": "completed"}, headers=admin_headers
        )
        assert response.json()["status"] == "completed"

        bad = await client.patch(
            f"/api/orders/{order['id']}", json={"status": "shipped"}, headers=admin_headers
        )
        assert bad.status_code == 422

    async def test_soft_delete(self, client, admin_headers, order):
        response = await client.delete(f"/api/orders/{order['id']}", headers=admin_headers)
        assert response.status_code == 204

        fetched = await client.get(f"/api/orders/{order['id']}", headers=admin_headers)
        assert fetched.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestListAndInvoice:

    async def test_filter_by_payment_status(self, client, admin_headers, clinic, patient, order):
        second = await client.post(
            "/api/orders/", json=order_payload(clinic.id, patient.id), headers=admin_headers
        )
        await client.post(
            "/api/payments/",
            json={"order_id": second.json()["id"], "amount": "100", "method": "cash"},
            headers=admin_headers,
        )

        unpaid = await client.get("/api/orders/?payment_status=Unpaid", headers=admin_headers)
        partial = await client.get("/api/orders/?payment_status=partial", headers=admin_headers)

        assert [o["id"] for o in unpaid.json()["items"]] == [order["id"]]
        assert [o["id"] for o in partial.json()["items"]] == [second.json()["id"]]
        assert partial.json()["items"][0]["total_owed"] == 120.0

    async def test_unknown_payment_status_filter(self, client, admin_headers):
        response = await client.get("/api/orders/?payment_status=overdue", headers=admin_headers)
        assert response.status_code == 400

    async def test_invoice(self, client, admin_headers, order):
        await client.post(
            "/api/payments/",
            json={"order_id": order["id"], "amount": "100.00", "method": "insurance_primary"},
            headers=admin_headers,
        )

        response = await client.get(f"/api/orders/{order['id']}/invoice", headers=admin_headers)

        assert response.status_code == 200
        invoice = response.json()
        assert invoice["invoice_number"] == order["invoice_number"]
        assert invoice["clinic"]["name"] == "BodyBliss Physiotherapy"
        assert invoice["client"]["name"] == "Jane Doe"
        assert invoice["insurance"]["primary"]["company_name"] == "Sun Life"
        assert invoice["totals"]["total"] == 220.0
        assert invoice["payment"]["status"] == "partially_paid"
        assert invoice["amount_paid_display"] == "$100.00"
        assert invoice["amount_due_display"] == "$120.00"
        assert len(invoice["payments"]) == 1


@pytest.mark.api
@pytest.mark.asyncio
class TestStoredTotalsStable:

    async def test_quote_create_and_read_agree(self, client, admin_headers, clinic, patient):
        payload = order_payload(clinic.id, patient.id, tax_rate_pct="13.12", line_items=[
            {"product_name": "Orthotic fitting", "quantity": 3, "unit_price": "33.33"},
        ])
        quoted = await client.post("/api/orders/quote", json=payload, headers=admin_headers)
        created = await client.post("/api/orders/", json=payload, headers=admin_headers)
        fetched = await client.get(f"/api/orders/{created.json()['id']}", headers=admin_headers)

        assert created.status_code == 201
        expected = {"subtotal": 99.99, "tax_amount": 13.12, "total": 113.11}
        for response in (quoted, created, fetched):
            totals = response.json()["totals"]
            assert {k: totals[k] for k in expected} == expected
        assert fetched.json()["totals"]["tax_rate_pct"] == 13.12
