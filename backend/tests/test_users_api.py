"""
Accounts: registration, login, profile, role requests and admin user management.
"""

import pytest

from conftest import auth_headers, reload
from rebates.extensions import db
from rebates.models import AuditLogEntry, CapabilityGrant, Contract, Order, RoleRequest, User
from rebates.services import token_service


# =============================================================================
# REGISTRATION / LOGIN
# =============================================================================


class TestRegistration:

    def test_register_creates_plain_user(self, client, db_session):
        resp = client.post("/api/users/register", json={
            "email": "New.Person@Example.com",
            "password": "secret123",
            "full_name": "New Person",
        })

        assert resp.status_code == 201
        assert resp.json["user"]["email"] == "new.person@example.com"
        assert resp.json["user"]["role"] == "user"
        assert "password_hash" not in resp.json["user"]
        assert "role_request" not in resp.json

    def test_requested_role_opens_role_request(self, client, db_session):
        resp = client.post("/api/users/register", json={
            "email": "wannabe@example.com",
            "password": "secret123",
            "full_name": "Wanna Be",
            "requested_role": "admin",
        })

        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "user"
        assert resp.json["role_request"]["requested_role"] == "admin"
        assert resp.json["role_request"]["status"] == "pending"

    def test_duplicate_email(self, client, customer):
        resp = client.post("/api/users/register", json={
            "email": "CUSTOMER@example.com",
            "password": "secret123",
            "full_name": "Dup",
        })

        assert resp.status_code == 400

    @pytest.mark.parametrize(
        "body",
        [
            {"email": "bad", "password": "secret123", "full_name": "Bad Email"},
            {"email": "a@example.com", "password": "123", "full_name": "Short Password"},
            {"email": "a@example.com", "password": "secret123", "full_name": "X"},
            {"email": "a@example.com", "password": "secret123", "full_name": "Bad Role", "requested_role": "god"},
        ],
    )
    def test_invalid_registration(self, client, db_session, body):
        resp = client.post("/api/users/register", json=body)

        assert resp.status_code == 400


class TestLogin:

    def test_login_returns_token(self, app, client, customer):
        resp = client.post("/api/users/login", json={"email": "customer@example.com", "password": "password123"})

        assert resp.status_code == 200
        claims = token_service.decode_token(resp.json["token"])
        assert claims.user_id == customer.id
        assert claims.role == "user"
        assert reload(User, customer.id).last_login_at is not None

    def test_wrong_password(self, client, customer):
        resp = client.post("/api/users/login", json={"email": "customer@example.com", "password": "nope-nope"})

        assert resp.status_code == 401

    def test_deactivated_account(self, client, db_session, customer):
        customer.is_active = False
        db_session.commit()

        resp = client.post("/api/users/login", json={"email": "customer@example.com", "password": "password123"})

        assert resp.status_code == 403


# =============================================================================
# SELF SERVICE
# =============================================================================


class TestSelfService:

    def test_me(self, client, staff):
        resp = client.get("/api/users/me", headers=auth_headers(staff))

        assert resp.json["user"]["id"] == staff.id
        assert resp.json["user"]["role"] == "staff"

    def test_update_profile(self, client, customer):
        resp = client.put("/api/users/me", json={"full_name": "Carol C.", "phone": "+1 555-987-6543"},
                          headers=auth_headers(customer))

        assert resp.status_code == 200
        assert resp.json["user"]["full_name"] == "Carol C."
        assert resp.json["user"]["phone"] == "+1 555-987-6543"

    def test_profile_cannot_change_role(self, client, customer):
        resp = client.put("/api/users/me", json={"role": "admin"}, headers=auth_headers(customer))

        assert resp.status_code == 400
        assert reload(User, customer.id).role == "user"

    def test_change_password(self, client, customer):
        resp = client.post("/api/users/change-password",
                           json={"current_password": "password123", "new_password": "brandnew1"},
                           headers=auth_headers(customer))

        assert resp.status_code == 200
        login = client.post("/api/users/login", json={"email": "customer@example.com", "password": "brandnew1"})
        assert login.status_code == 200

    @pytest.mark.parametrize(
        "body",
        [
            {"current_password": "wrong-one", "new_password": "brandnew1"},
            {"current_password": "password123", "new_password": "password123"},
            {"current_password": "password123"},
        ],
    )
    def test_change_password_errors(self, client, customer, body):
        resp = client.post("/api/users/change-password", json=body, headers=auth_headers(customer))

        assert resp.status_code == 400


# =============================================================================
# ROLE REQUESTS
# =============================================================================


class TestRoleRequests:

    @pytest.fixture
    def pending_request(self, db_session, make_user):
        user = make_user("user", email="applicant@example.com")
        role_request = RoleRequest(user_id=user.id, requested_role="staff")
        db_session.add(role_request)
        db_session.commit()
        return role_request

    def test_manager_lists_pending(self, client, manager, pending_request):
        resp = client.get("/api/users/role-requests", headers=auth_headers(manager))

        assert resp.status_code == 200
        assert [r["id"] for r in resp.json["requests"]] == [pending_request.id]

    def test_staff_cannot_list(self, client, staff, pending_request):
        resp = client.get("/api/users/role-requests", headers=auth_headers(staff))

        assert resp.status_code == 403

    def test_approve_elevates_role(self, client, manager, pending_request):
        resp = client.post(f"/api/users/role-requests/{pending_request.id}/review",
                           json={"action": "approve", "comment": "welcome"},
                           headers=auth_headers(manager))

        assert resp.status_code == 200
        assert resp.json["role_request"]["status"] == "approved"
        assert reload(User, pending_request.user_id).role == "staff"

    def test_reject_keeps_role(self, client, admin, pending_request):
        client.post(f"/api/users/role-requests/{pending_request.id}/review",
                    json={"action": "reject"}, headers=auth_headers(admin))

        assert reload(User, pending_request.user_id).role == "user"
        assert reload(RoleRequest, pending_request.id).status == "rejected"

    def test_double_review_rejected(self, client, admin, pending_request):
        client.post(f"/api/users/role-requests/{pending_request.id}/review",
                    json={"action": "reject"}, headers=auth_headers(admin))

        resp = client.post(f"/api/users/role-requests/{pending_request.id}/review",
                           json={"action": "approve"}, headers=auth_headers(admin))

        assert resp.status_code == 400
        assert reload(User, pending_request.user_id).role == "user"

    def test_invalid_action(self, client, admin, pending_request):
        resp = client.post(f"/api/users/role-requests/{pending_request.id}/review",
                           json={"action": "maybe"}, headers=auth_headers(admin))

        assert resp.status_code == 400

    def test_my_role_request(self, client, pending_request):
        applicant = db.session.get(User, pending_request.user_id)

        resp = client.get("/api/users/my-role-request", headers=auth_headers(applicant))

        assert resp.json["role_request"]["requested_role"] == "staff"


# =============================================================================
# DIRECTORY AND ADMIN ACTIONS
# =============================================================================


class TestUserAdministration:

    def test_directory_filters_by_role(self, client, staff, customer, other_customer):
        resp = client.get("/api/users/list?role=user", headers=auth_headers(staff))

        assert resp.status_code == 200
        assert {u["id"] for u in resp.json["users"]} == {customer.id, other_customer.id}

    def test_customer_cannot_browse_directory(self, client, customer):
        resp = client.get("/api/users/list", headers=auth_headers(customer))

        assert resp.status_code == 403

    def test_admin_changes_role(self, client, admin, customer):
        resp = client.put(f"/api/users/{customer.id}/role", json={"role": "staff"}, headers=auth_headers(admin))

        assert resp.status_code == 200
        assert resp.json["user"]["role"] == "staff"
        assert db.session.query(AuditLogEntry).filter_by(action="update_user_role").count() == 1

    def test_manager_cannot_change_roles(self, client, manager, customer):
        resp = client.put(f"/api/users/{customer.id}/role", json={"role": "admin"}, headers=auth_headers(manager))

        assert resp.status_code == 403

    def test_last_admin_cannot_be_demoted(self, client, admin):
        resp = client.put(f"/api/users/{admin.id}/role", json={"role": "user"}, headers=auth_headers(admin))

        assert resp.status_code == 400
        assert reload(User, admin.id).role == "admin"

    def test_deactivate_and_reactivate(self, client, admin, customer):
        off = client.put(f"/api/admin/users/{customer.id}/active", json={"is_active": False},
                         headers=auth_headers(admin))
        assert off.status_code == 200
        assert client.get("/api/users/me", headers=auth_headers(customer)).status_code == 401

        on = client.put(f"/api/admin/users/{customer.id}/active", json={"is_active": True},
                        headers=auth_headers(admin))
        assert on.json["user"]["is_active"] is True

    def test_cannot_deactivate_self(self, client, admin):
        resp = client.put(f"/api/admin/users/{admin.id}/active", json={"is_active": False},
                          headers=auth_headers(admin))

        assert resp.status_code == 400

    def test_delete_user_removes_their_records(self, client, admin, customer, make_order, make_contract):
        order = make_order(customer)
        contract = make_contract(customer)

        resp = client.delete(f"/api/users/{customer.id}", headers=auth_headers(admin))

        assert resp.status_code == 200
        assert reload(User, customer.id) is None
        assert reload(Order, order.id) is None
        assert reload(Contract, contract.id) is None

    def test_delete_keeps_orders_entered_by_staff(self, client, admin, staff, customer, make_order):
        order = make_order(customer, created_by=staff)

        client.delete(f"/api/users/{staff.id}", headers=auth_headers(admin))

        assert reload(Order, order.id).created_by is None

    def test_cannot_delete_self(self, client, admin):
        resp = client.delete(f"/api/users/{admin.id}", headers=auth_headers(admin))

        assert resp.status_code == 400

    def test_missing_user(self, client, admin):
        resp = client.delete("/api/users/8080", headers=auth_headers(admin))

        assert resp.status_code == 404


class TestCapabilities:

    def test_grant_and_revoke(self, client, admin, staff):
        granted = client.post(f"/api/users/{staff.id}/capabilities", json={"capability": "approve_contracts"},
                              headers=auth_headers(admin))
        assert granted.status_code == 201
        assert reload(User, staff.id).capability_codes() == {"approve_contracts"}

        revoked = client.delete(f"/api/users/{staff.id}/capabilities/approve_contracts",
                                headers=auth_headers(admin))
        assert revoked.status_code == 200
        assert db.session.query(CapabilityGrant).count() == 0

    def test_grant_is_idempotent(self, client, admin, approver_staff):
        resp = client.post(f"/api/users/{approver_staff.id}/capabilities", json={"capability": "approve_contracts"},
                           headers=auth_headers(admin))

        assert resp.status_code == 201
        assert db.session.query(CapabilityGrant).filter_by(user_id=approver_staff.id).count() == 1

    def test_unknown_capability(self, client, admin, staff):
        resp = client.post(f"/api/users/{staff.id}/capabilities", json={"capability": "launch_rockets"},
                           headers=auth_headers(admin))

        assert resp.status_code == 400

    def test_revoke_missing_grant(self, client, admin, staff):
        resp = client.delete(f"/api/users/{staff.id}/capabilities/approve_contracts", headers=auth_headers(admin))

        assert resp.status_code == 404

    def test_manager_cannot_grant(self, client, manager, staff):
        resp = client.post(f"/api/users/{staff.id}/capabilities", json={"capability": "approve_contracts"},
                           headers=auth_headers(manager))

        assert resp.status_code == 403
