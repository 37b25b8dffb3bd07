"""Clients, products, appointments and the activity feed."""

from datetime import datetime, timedelta

import pytest

from clinicdesk.models.client import Client
from clinicdesk.models.clinic import Clinic
from clinicdesk.models.order import Order
from clinicdesk.utils.activity import describe_entity


@pytest.mark.api
@pytest.mark.asyncio
class TestClients:

    async def test_create_with_insurance(self, client, admin_headers, clinic):
        response = await client.post(
            "/api/clients/",
            json={
                "clinic_id": clinic.id,
                "first_name": "John",
                "last_name": "Smith",
                "phone": "(416) 555-0142",
                "insurance": {
                    "primary": {"company_name": "Manulife", "policy_number": "M-1", "coverage_pct": 80},
                    "secondary": {"company_name": "Blue Cross", "policy_number": "B-2"},
                },
            },
            headers=admin_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["full_name"] == "John Smith"
        assert data["phone"] == "4165550142"
        assert data["insurance"]["primary"]["coverage_pct"] == 80
        assert data["insurance"]["secondary"]["company_name"] == "Blue Cross"

    async def test_invalid_coverage(self, client, admin_headers, clinic):
        response = await client.post(
            "/api/clients/",
            json={
                "clinic_id": clinic.id,
                "first_name": "A",
                "last_name": "B",
                "insurance": {"primary": {"company_name": "X", "policy_number": "1", "coverage_pct": 120}},
            },
            headers=admin_headers,
        )
        assert response.status_code == 422

    async def test_search(self, client, admin_headers, patient):
        hit = await client.get("/api/clients/?search=doe", headers=admin_headers)
        miss = await client.get("/api/clients/?search=zzz", headers=admin_headers)

        assert hit.json()["total"] == 1
        assert hit.json()["items"][0]["id"] == patient.id
        assert miss.json()["total"] == 0

    async def test_toggle_active(self, client, admin_headers, patient):
        off = await client.delete(f"/api/clients/{patient.id}", headers=admin_headers)
        assert off.json()["is_active"] is False

        listing = await client.get("/api/clients/", headers=admin_headers)
        assert listing.json()["total"] == 0

        on = await client.delete(f"/api/clients/{patient.id}", headers=admin_headers)
        assert on.json()["is_active"] is True

    async def test_update(self, client, admin_headers, patient):
        response = await client.patch(
            f"/api/clients/{patient.id}", json={"referring_md": "Dr. Grey"}, headers=admin_headers
        )
        assert response.json()["referring_md"] == "Dr. Grey"


@pytest.mark.api
@pytest.mark.asyncio
class TestProducts:

    async def test_create_and_list(self, client, admin_headers):
        response = await client.post(
            "/api/products/",
            json={"code": "MASSAGE-30", "name": "Massage (30 min)", "unit_price": "$65.00"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["unit_price"] == 65.0

        listing = await client.get("/api/products/", headers=admin_headers)
        assert [p["code"] for p in listing.json()] == ["MASSAGE-30"]

    async def test_negative_price_rejected(self, client, admin_headers):
        response = await client.post(
            "/api/products/",
            json={"code": "BAD", "name": "Bad", "unit_price": "-5"},
            headers=admin_headers,
        )
        assert response.status_code == 422

    async def test_price_change_does_not_touch_existing_orders(
        self, client, admin_headers, clinic, patient, product
    ):
        created = await client.post(
            "/api/orders/",
            json={
                "clinic_id": clinic.id,
                "client_id": patient.id,
                "tax_rate_pct": 0,
                "line_items": [{"product_id": product.id}],
            },
            headers=admin_headers,
        )
        await client.patch(
            f"/api/products/{product.id}", json={"unit_price": "120"}, headers=admin_headers
        )

        fetched = await client.get(f"/api/orders/{created.json()['id']}", headers=admin_headers)
        assert fetched.json()["totals"]["total"] == 90.0


@pytest.mark.api
@pytest.mark.asyncio
class TestAppointments:

    async def _book(self, client, headers, clinic, patient, **overrides):
        start = datetime(2026, 3, 2, 9, 0)
        body = {
            "clinic_id": clinic.id,
            "client_id": patient.id,
            "start_at": start.isoformat(),
            "end_at": (start + timedelta(minutes=45)).isoformat(),
            "practitioner": "Sam Lee",
            **overrides,
        }
        return await client.post("/api/appointments/", json=body, headers=headers)

    async def test_book(self, client, admin_headers, clinic, patient):
        response = await self._book(client, admin_headers, clinic, patient)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "scheduled"
        assert data["duration_minutes"] == 45
        assert data["client_name"] == "Jane Doe"

    async def test_end_before_start_rejected(self, client, admin_headers, clinic, patient):
        response = await self._book(
            client, admin_headers, clinic, patient, end_at="2026-03-02T08:00:00"
        )
        assert response.status_code == 422

    async def test_cancel(self, client, admin_headers, clinic, patient):
        booked = await self._book(client, admin_headers, clinic, patient)
        appt_id = booked.json()["id"]

        cancelled = await client.delete(f"/api/appointments/{appt_id}", headers=admin_headers)
        again = await client.delete(f"/api/appointments/{appt_id}", headers=admin_headers)

        assert cancelled.json()["status"] == "cancelled"
        assert again.status_code == 422
        assert again.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"

    async def test_list_by_date(self, client, admin_headers, clinic, patient):
        await self._book(client, admin_headers, clinic, patient)

        same_day = await client.get("/api/appointments/?date_from=2026-03-02&date_to=2026-03-02", headers=admin_headers)
        next_day = await client.get("/api/appointments/?date_from=2026-03-03", headers=admin_headers)

        assert len(same_day.json()) == 1
        assert next_day.json() == []

    async def test_order_linked_to_appointment(self, client, admin_headers, clinic, patient):
        booked = await self._book(client, admin_headers, clinic, patient)

        response = await client.post(
            "/api/orders/",
            json={
                "clinic_id": clinic.id,
                "client_id": patient.id,
                "appointment_id": booked.json()["id"],
                "line_items": [{"product_name": "Assessment", "unit_price": "90"}],
            },
            headers=admin_headers,
        )

        assert response.status_code == 201
        assert response.json()["appointment_id"] == booked.json()["id"]

    async def test_offset_times_stored_as_utc(self, client, admin_headers, clinic, patient):
        response = await self._book(
            client, admin_headers, clinic, patient,
            start_at="2026-03-02T09:00:00-05:00",
            end_at="2026-03-02T14:45:00",
        )

        assert response.status_code == 201
        assert response.json()["start_at"] == "2026-03-02T14:00:00"
        assert response.json()["duration_minutes"] == 45

    async def test_reschedule_with_offset_time(self, client, admin_headers, clinic, patient):
        booked = await self._book(client, admin_headers, clinic, patient)

        response = await client.patch(
            f"/api/appointments/{booked.json()['id']}",
            json={"end_at": "2026-03-02T10:00:00Z"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["end_at"] == "2026-03-02T10:00:00"
        assert response.json()["duration_minutes"] == 60


@pytest.mark.api
@pytest.mark.asyncio
class TestPractitionerAvailability:

    async def _book(self, client, headers, clinic, patient, start, end, **overrides):
        body = {
            "clinic_id": clinic.id,
            "client_id": patient.id,
            "start_at": start,
            "end_at": end,
            "practitioner": "Sam Lee",
            **overrides,
        }
        return await client.post("/api/appointments/", json=body, headers=headers)

    async def test_double_booking_rejected(self, client, admin_headers, clinic, patient):
        first = await self._book(
            client, admin_headers, clinic, patient, "2026-03-02T09:00:00", "2026-03-02T10:00:00"
        )
        clash = await self._book(
            client, admin_headers, clinic, patient, "2026-03-02T09:30:00", "2026-03-02T10:30:00",
            practitioner="sam  LEE",
        )

        assert clash.status_code == 422
        error = clash.json()["error"]
        assert error["code"] == "PRACTITIONER_CONFLICT"
        assert [c["appointment_id"] for c in error["details"]["conflicts"]] == [first.json()["id"]]
        assert error["details"]["conflicts"][0]["client_name"] == "Jane Doe"

    async def test_back_to_back_allowed(self, client, admin_headers, clinic, patient):
        await self._book(
            client, admin_headers, clinic, patient, "2026-03-02T09:00:00", "2026-03-02T10:00:00"
        )
        response = await self._book(
            client, admin_headers, clinic, patient, "2026-03-02T10:00:00", "2026-03-02T11:00:00"
        )
        assert response.status_code == 201

    async def test_other_practitioner_unaffected(self, client, admin_headers, clinic, patient):
        await self._book(
            client, admin_headers, clinic, patient, "2026-03-02T09:00:00", "2026-03-02T10:00:00"
        )
        response = await self._book(
            client, admin_headers, clinic, patient, "2026-03-02T09:00:00", "2026-03-02T10:00:00",
            practitioner="Alex Kim",
        )
        assert response.status_code == 201

    async def test_cancelled_slot_can_be_rebooked(self, client, admin_headers, clinic, patient):
        first = await self._book(
            client, admin_headers, clinic, patient, "2026-03-02T09:00:00", "2026-03-02T10:00:00"
        )
        await client.delete(f"/api/appointments/{first.json()['id']}", headers=admin_headers)

        response = await self._book(
            client, admin_headers, clinic, patient, "2026-03-02T09:00:00", "2026-03-02T10:00:00"
        )
        assert response.status_code == 201

    async def test_reschedule_into_conflict_rejected(self, client, admin_headers, clinic, patient):
        await self._book(
            client, admin_headers, clinic, patient, "2026-03-02T09:00:00", "2026-03-02T10:00:00"
        )
        later = await self._book(
            client, admin_headers, clinic, patient, "2026-03-02T11:00:00", "2026-03-02T12:00:00"
        )

        moved = await client.patch(
            f"/api/appointments/{later.json()['id']}",
            json={"start_at": "2026-03-02T09:45:00"},
            headers=admin_headers,
        )
        extended = await client.patch(
            f"/api/appointments/{later.json()['id']}",
            json={"end_at": "2026-03-02T12:30:00"},
            headers=admin_headers,
        )

        assert moved.status_code == 422
        assert moved.json()["error"]["code"] == "PRACTITIONER_CONFLICT"
        assert extended.status_code == 200

    async def test_conflict_across_clinics_hides_client(
        self, client, db_session, admin_headers, front_desk_headers, clinic, other_clinic, patient
    ):
        outside = Client(clinic_id=other_clinic.id, first_name="Max", last_name="Roe", is_active=True)
        db_session.add(outside)
        await db_session.commit()
        await self._book(
            client, admin_headers, other_clinic, outside, "2026-03-02T09:00:00", "2026-03-02T10:00:00"
        )

        response = await self._book(
            client, front_desk_headers, clinic, patient, "2026-03-02T09:15:00", "2026-03-02T09:45:00"
        )

        assert response.status_code == 422
        conflict = response.json()["error"]["details"]["conflicts"][0]
        assert conflict["client_name"] is None
        assert conflict["reason"] is None

    async def test_conflict_check_endpoint(self, client, admin_headers, clinic, patient):
        booked = await self._book(
            client, admin_headers, clinic, patient, "2026-03-02T09:00:00", "2026-03-02T10:00:00"
        )
        params = {
            "practitioner": "Sam Lee",
            "start_at": "2026-03-02T09:30:00",
            "end_at": "2026-03-02T10:30:00",
        }

        busy = await client.get("/api/appointments/conflicts", params=params, headers=admin_headers)
        own = await client.get(
            "/api/appointments/conflicts",
            params={**params, "exclude": booked.json()["id"]},
            headers=admin_headers,
        )
        backwards = await client.get(
            "/api/appointments/conflicts",
            params={**params, "end_at": "2026-03-02T09:00:00"},
            headers=admin_headers,
        )

        assert busy.json()["has_conflict"] is True
        assert own.json() == {"has_conflict": False, "conflicts": []}
        assert backwards.status_code == 422
        assert backwards.json()["error"]["code"] == "INVALID_TIME_RANGE"

    async def test_practitioner_directory(self, client, admin_headers, clinic, patient):
        await self._book(
            client, admin_headers, clinic, patient, "2099-03-02T09:00:00", "2099-03-02T10:00:00"
        )
        await self._book(
            client, admin_headers, clinic, patient, "2099-03-03T09:00:00", "2099-03-03T10:00:00",
            practitioner="sam lee",
        )
        await self._book(
            client, admin_headers, clinic, patient, "2020-03-02T09:00:00", "2020-03-02T10:00:00",
            practitioner="Alex Kim",
        )

        response = await client.get("/api/appointments/practitioners", headers=admin_headers)

        assert response.status_code == 200
        by_name = {p["name"].lower(): p for p in response.json()}
        assert set(by_name) == {"sam lee", "alex kim"}
        assert by_name["sam lee"]["upcoming_appointments"] == 2
        assert by_name["sam lee"]["clinic_ids"] == [clinic.id]
        assert by_name["alex kim"]["upcoming_appointments"] == 0


@pytest.mark.api
@pytest.mark.asyncio
class TestActivityFeed:

    async def test_writes_are_logged(self, client, admin_headers, order):
        await client.post(
            "/api/payments/",
            json={"order_id": order["id"], "amount": "50", "method": "cash"},
            headers=admin_headers,
        )

        response = await client.get("/api/activity/", headers=admin_headers)

        entries = response.json()
        types = {(e["entity_type"], e["action"]) for e in entries}
        assert ("order", "created") in types
        assert ("payment", "created") in types
        order_entry = next(e for e in entries if e["entity_type"] == "order")
        assert order_entry["entity_code"] == order["order_number"]
        assert "$220.00" in order_entry["summary"]

    async def test_front_desk_has_no_activity_access(self, client, front_desk_headers):
        response = await client.get("/api/activity/", headers=front_desk_headers)
        assert response.status_code == 403


class TestDescribeEntity:

    def test_order_code_and_clinic(self):
        order = Order(id="o-1", order_number="ORD-20260302-001", clinic_id="c-1")

        assert describe_entity(order) == {
            "entity_type": "order",
            "entity_id": "o-1",
            "entity_code": "ORD-20260302-001",
            "clinic_id": "c-1",
        }

    def test_clinic_is_its_own_scope(self):
        clinic = Clinic(id="c-9", name="downtown", display_name="Downtown")

        described = describe_entity(clinic)
        assert described["entity_code"] == "downtown"
        assert described["clinic_id"] == "c-9"
