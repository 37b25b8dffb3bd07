"""Tests for authentication, user administration and clinic scoping."""

import pytest

from clinicdesk.auth.jwt import create_refresh_token, decode_token
from clinicdesk.auth.permissions import ROLE_DEFAULTS, resolve_permissions
from clinicdesk.models import UserRole
from conftest import auth_headers, make_user


@pytest.mark.auth
@pytest.mark.asyncio
class TestAuthentication:

    async def test_register_bootstraps_first_admin(self, client):
        response = await client.post(
            "/api/auth/register",
            json={
                "email": "owner@clinic.test",
                "password": "SecurePassword123!",
                "full_name": "Clinic Owner",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["role"] == "administrator"
        assert "payment.write" in data["user"]["permissions"]
        assert decode_token(data["access_token"])["type"] == "access"

    async def test_register_closed_once_users_exist(self, client, admin_user):
        response = await client.post(
            "/api/auth/register",
            json={"email": "intruder@clinic.test", "password": "Password123!", "full_name": "X"},
        )

        assert response.status_code == 403

    async def test_login_success(self, client, admin_user):
        response = await client.post(
            "/api/auth/login",
            json={"email": "admin@clinic.test", "password": "Password123!"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == "admin@clinic.test"

    async def test_login_wrong_password(self, client, admin_user):
        response = await client.post(
            "/api/auth/login",
            json={"email": "admin@clinic.test", "password": "WrongPassword"},
        )

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid credentials"

    async def test_login_deactivated(self, client, db_session):
        user = await make_user(db_session, email="gone@clinic.test", role=UserRole.FRONT_DESK)
        user.is_active = False
        await db_session.commit()

        response = await client.post(
            "/api/auth/login",
            json={"email": "gone@clinic.test", "password": "Password123!"},
        )

        assert response.status_code == 403

    async def test_me(self, client, admin_headers):
        response = await client.get("/api/auth/me", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["email"] == "admin@clinic.test"

    async def test_missing_token(self, client):
        response = await client.get("/api/orders/")
        assert response.status_code == 401

    async def test_invalid_token(self, client):
        response = await client.get(
            "/api/orders/", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    async def test_refresh(self, client, admin_user):
        token = create_refresh_token(admin_user.id, admin_user.role.value)

        response = await client.post("/api/auth/refresh", json={"refresh_token": token})

        assert response.status_code == 200
        assert response.json()["user"]["id"] == admin_user.id

    async def test_refresh_rejects_access_token(self, client, admin_headers):
        access = admin_headers["Authorization"].split(" ", 1)[1]

        response = await client.post("/api/auth/refresh", json={"refresh_token": access})

        assert response.status_code == 401


@pytest.mark.auth
class TestPermissions:

    def test_role_defaults(self):
        assert "users.write" in resolve_permissions("administrator")
        assert "payment.write" in resolve_permissions("front_desk")
        assert "payment.write" not in resolve_permissions("practitioner")
        assert "reports.read" not in resolve_permissions("front_desk")

    def test_custom_overrides(self):
        perms = resolve_permissions(
            "practitioner", {"payment.write": True, "client.write": False, "bogus.perm": True}
        )
        assert "payment.write" in perms
        assert "client.write" not in perms
        assert "bogus.perm" not in perms

    def test_unknown_role_has_nothing(self):
        assert resolve_permissions("janitor") == []

    def test_administrator_holds_every_permission(self):
        for perms in ROLE_DEFAULTS.values():
            assert perms <= ROLE_DEFAULTS["administrator"]


@pytest.mark.auth
@pytest.mark.asyncio
class TestUserAdministration:

    async def test_create_and_list_users(self, client, admin_headers, clinic):
        response = await client.post(
            "/api/users/",
            json={
                "email": "desk@clinic.test",
                "password": "Password123!",
                "full_name": "Front Desk",
                "role": "front_desk",
                "assigned_clinics": [clinic.id],
            },
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["assigned_clinics"] == [clinic.id]

        listing = await client.get("/api/users/?role=front_desk", headers=admin_headers)
        assert [u["email"] for u in listing.json()] == ["desk@clinic.test"]

    async def test_duplicate_email(self, client, admin_headers):
        body = {"email": "admin@clinic.test", "password": "Password123!", "full_name": "Again"}
        response = await client.post("/api/users/", json=body, headers=admin_headers)
        assert response.status_code == 400

    async def test_invalid_role(self, client, admin_headers):
        body = {
            "email": "x@clinic.test", "password": "Password123!",
            "full_name": "X", "role": "superuser",
        }
        response = await client.post("/api/users/", json=body, headers=admin_headers)
        assert response.status_code == 422

    async def test_stats(self, client, admin_headers, front_desk_user):
        response = await client.get("/api/users/stats", headers=admin_headers)

        data = response.json()
        assert data["total"] == 2
        assert data["active"] == 2
        assert data["by_role"]["administrator"] == 1
        assert data["by_role"]["front_desk"] == 1

    async def test_permission_override(self, client, admin_headers, front_desk_user):
        response = await client.patch(
            f"/api/users/{front_desk_user.id}",
            json={"custom_permissions": {"reports.read": True}},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert "reports.read" in response.json()["permissions"]

    async def test_deactivate(self, client, admin_headers, front_desk_user):
        response = await client.delete(f"/api/users/{front_desk_user.id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["is_active"] is False

    async def test_cannot_deactivate_self(self, client, admin_headers, admin_user):
        response = await client.delete(f"/api/users/{admin_user.id}", headers=admin_headers)
        assert response.status_code == 400

    async def test_front_desk_cannot_manage_users(self, client, front_desk_headers):
        response = await client.get("/api/users/", headers=front_desk_headers)

        assert response.status_code == 403
        assert "users.read" in response.json()["error"]["message"]


@pytest.mark.auth
@pytest.mark.asyncio
class TestClinicScoping:

    async def test_scoped_user_sees_only_assigned_clinics(
        self, client, front_desk_headers, clinic, other_clinic
    ):
        response = await client.get("/api/clinics/", headers=front_desk_headers)
        assert [c["id"] for c in response.json()] == [clinic.id]

    async def test_scoped_user_blocked_from_other_clinic(
        self, client, front_desk_headers, other_clinic
    ):
        response = await client.get(f"/api/clinics/{other_clinic.id}", headers=front_desk_headers)

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "No access to this clinic"

    async def test_scoped_user_cannot_see_other_clinic_orders(
        self, client, db_session, admin_headers, other_clinic, order
    ):
        outsider = await make_user(
            db_session, email="other@clinic.test", role=UserRole.FRONT_DESK,
            assigned_clinics=[other_clinic.id],
        )
        headers = auth_headers(outsider)

        detail = await client.get(f"/api/orders/{order['id']}", headers=headers)
        listing = await client.get("/api/orders/", headers=headers)

        assert detail.status_code == 403
        assert listing.json()["total"] == 0

    async def test_login_token_carries_clinic_claim(
        self, client, admin_user, front_desk_user, clinic
    ):
        scoped = await client.post(
            "/api/auth/login",
            json={"email": "front.desk@clinic.test", "password": "Password123!"},
        )
        admin = await client.post(
            "/api/auth/login",
            json={"email": "admin@clinic.test", "password": "Password123!"},
        )

        assert decode_token(scoped.json()["access_token"])["clinics"] == [clinic.id]
        assert "clinics" not in decode_token(admin.json()["access_token"])

    async def test_scope_follows_token_until_refresh(
        self, client, db_session, front_desk_user, front_desk_headers, clinic, other_clinic
    ):
        # Reassigned after the token was issued
        front_desk_user.assigned_clinics = [other_clinic.id]
        await db_session.commit()

        response = await client.get("/api/clinics/", headers=front_desk_headers)
        fresh = await client.get("/api/clinics/", headers=auth_headers(front_desk_user))

        assert [c["id"] for c in response.json()] == [clinic.id]
        assert [c["id"] for c in fresh.json()] == [other_clinic.id]


@pytest.mark.api
@pytest.mark.asyncio
class TestClinics:

    async def test_effective_tax_rate(self, client, admin_headers, clinic, other_clinic):
        default = await client.get(f"/api/clinics/{clinic.name}", headers=admin_headers)
        own = await client.get(f"/api/clinics/{other_clinic.id}", headers=admin_headers)

        assert default.json()["tax_rate_pct"] == 13.0
        assert default.json()["uses_default_tax_rate"] is True
        assert own.json()["tax_rate_pct"] == 5.0
        assert own.json()["uses_default_tax_rate"] is False

    async def test_clinic_rate_used_for_new_orders(
        self, client, admin_headers, clinic, patient
    ):
        await client.patch(
            f"/api/clinics/{clinic.id}", json={"tax_rate_pct": "15"}, headers=admin_headers
        )
        response = await client.post(
            "/api/orders/",
            json={
                "clinic_id": clinic.id,
                "client_id": patient.id,
                "line_items": [{"product_name": "Assessment", "unit_price": "100"}],
            },
            headers=admin_headers,
        )

        assert response.json()["totals"]["total"] == 115.0

    async def test_create_clinic_validates_tax(self, client, admin_headers):
        response = await client.post(
            "/api/clinics/",
            json={"name": "new-clinic", "display_name": "New", "tax_rate_pct": "101"},
            headers=admin_headers,
        )
        assert response.status_code == 422
