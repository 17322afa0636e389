"""
Contract workflow and field-level permissions.

Verifies:
- One live contract per customer (service check and partial unique index)
- Customers create only pending / pending_approval contracts for themselves
- Managers and approver staff may only send approval fields
- Fields sent as null are treated as absent
- Admin edits, end > start, deletion detaching orders
"""

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import auth_headers, reload
from rebates.extensions import db
from rebates.models import AuditLogEntry, Contract, Order
from rebates.services.contract_service import ONE_CONTRACT_MESSAGE


def contract_payload(customer_id, **overrides) -> dict:
    payload = {
        "customer_id": customer_id,
        "start_date": "2030-01-01",
        "end_date": "2031-01-01",
    }
    payload.update(overrides)
    return payload


# =============================================================================
# CREATION
# =============================================================================


class TestCreateContract:

    def test_customer_creates_own_contract(self, client, customer):
        resp = client.post("/api/contracts", json=contract_payload(customer.id, rebate_percentage=4),
                           headers=auth_headers(customer))

        assert resp.status_code == 201
        assert resp.json["status"] == "pending"
        assert resp.json["rebate_percentage"] == pytest.approx(4.0)
        assert resp.json["contract_number"].startswith("CNT-")
        assert resp.json["created_by"] == customer.id

    def test_default_percentage_from_settings(self, client, staff, customer):
        resp = client.post("/api/contracts", json=contract_payload(customer.id), headers=auth_headers(staff))

        assert resp.status_code == 201
        assert resp.json["rebate_percentage"] == pytest.approx(1.0)

    def test_second_live_contract_rejected(self, client, customer):
        client.post("/api/contracts", json=contract_payload(customer.id), headers=auth_headers(customer))

        resp = client.post("/api/contracts", json=contract_payload(customer.id), headers=auth_headers(customer))

        assert resp.status_code == 400
        assert resp.json["error"] == ONE_CONTRACT_MESSAGE
        assert db.session.query(Contract).filter_by(customer_id=customer.id).count() == 1

    def test_staff_also_bound_by_one_contract_rule(self, client, staff, customer, make_contract):
        make_contract(customer, status="active")

        resp = client.post("/api/contracts", json=contract_payload(customer.id), headers=auth_headers(staff))

        assert resp.status_code == 400

    def test_rejected_contract_does_not_block(self, client, customer, make_contract):
        make_contract(customer, status="rejected")

        resp = client.post("/api/contracts", json=contract_payload(customer.id), headers=auth_headers(customer))

        assert resp.status_code == 201

    def test_customer_cannot_self_approve(self, client, customer):
        resp = client.post("/api/contracts", json=contract_payload(customer.id, status="approved"),
                           headers=auth_headers(customer))

        assert resp.status_code == 403

    def test_customer_may_submit_for_approval(self, client, customer):
        resp = client.post("/api/contracts", json=contract_payload(customer.id, status="pending_approval"),
                           headers=auth_headers(customer))

        assert resp.status_code == 201
        assert resp.json["status"] == "pending_approval"

    def test_customer_cannot_send_manager_fields(self, client, customer):
        resp = client.post("/api/contracts", json=contract_payload(customer.id, manager_name="Me"),
                           headers=auth_headers(customer))

        assert resp.status_code == 403

    def test_customer_cannot_create_for_someone_else(self, client, customer, other_customer):
        resp = client.post("/api/contracts", json=contract_payload(other_customer.id),
                           headers=auth_headers(customer))

        assert resp.status_code == 403

    def test_end_must_follow_start(self, client, admin, customer):
        resp = client.post("/api/contracts",
                           json=contract_payload(customer.id, start_date="2030-06-01", end_date="2030-06-01"),
                           headers=auth_headers(admin))

        assert resp.status_code == 400

    @pytest.mark.parametrize("pct", [-1, 100.01, "lots"])
    def test_percentage_bounds(self, client, admin, customer, pct):
        resp = client.post("/api/contracts", json=contract_payload(customer.id, rebate_percentage=pct),
                           headers=auth_headers(admin))

        assert resp.status_code == 400

    def test_missing_required_fields(self, client, admin, customer):
        resp = client.post("/api/contracts", json={"customer_id": customer.id}, headers=auth_headers(admin))

        assert resp.status_code == 400

    def test_unique_index_is_authoritative(self, db_session, customer, make_contract):
        make_contract(customer, status="pending")

        with pytest.raises(IntegrityError):
            make_contract(customer, status="approved")
        db_session.rollback()

        # Non-live statuses are outside the index
        make_contract(customer, status="expired")
        make_contract(customer, status="rejected")


# =============================================================================
# MANAGER / APPROVER UPDATES
# =============================================================================


class TestApproverUpdates:

    @pytest.mark.parametrize("status", ["pending", "pending_approval", "approved", "active", "rejected"])
    def test_manager_cannot_touch_start_date(self, client, manager, customer, make_contract, status):
        contract = make_contract(customer, status=status)

        resp = client.put(f"/api/contracts/{contract.id}", json={"start_date": "2029-01-01"},
                          headers=auth_headers(manager))

        assert resp.status_code == 403

    def test_manager_mixed_payload_rejected_outright(self, client, manager, customer, make_contract):
        contract = make_contract(customer, status="pending_approval")

        resp = client.put(f"/api/contracts/{contract.id}",
                          json={"status": "approved", "rebate_percentage": 50},
                          headers=auth_headers(manager))

        assert resp.status_code == 403
        assert reload(Contract, contract.id).status == "pending_approval"

    def test_null_field_counts_as_absent(self, client, manager, customer, make_contract):
        contract = make_contract(customer, status="pending_approval")

        resp = client.put(f"/api/contracts/{contract.id}",
                          json={"status": "approved", "start_date": None, "rebate_percentage": None},
                          headers=auth_headers(manager))

        assert resp.status_code == 200
        assert resp.json["status"] == "approved"

    def test_manager_approves_with_signature(self, client, manager, customer, make_contract):
        contract = make_contract(customer, status="pending_approval")

        resp = client.put(
            f"/api/contracts/{contract.id}",
            json={
                "status": "approved",
                "manager_name": "Mia Manager",
                "manager_position": "Sales lead",
                "manager_signature_data_url": "data:image/png;base64,AAAA",
            },
            headers=auth_headers(manager),
        )

        assert resp.status_code == 200
        assert resp.json["approved_by"] == manager.id
        assert resp.json["approved_date"] is not None
        assert resp.json["manager_name"] == "Mia Manager"
        actions = [row.action for row in db.session.query(AuditLogEntry).filter_by(entity_id=contract.id)]
        assert actions == ["approve_contract"]

    def test_manager_rejects(self, client, manager, customer, make_contract):
        contract = make_contract(customer, status="pending_approval")

        resp = client.put(f"/api/contracts/{contract.id}", json={"status": "rejected"},
                          headers=auth_headers(manager))

        assert resp.status_code == 200
        assert resp.json["status"] == "rejected"
        assert resp.json["approved_by"] is None
        assert db.session.query(AuditLogEntry).filter_by(action="reject_contract").count() == 1

    def test_only_pending_approval_can_be_decided(self, client, manager, customer, make_contract):
        contract = make_contract(customer, status="pending")

        resp = client.put(f"/api/contracts/{contract.id}", json={"status": "approved"},
                          headers=auth_headers(manager))

        assert resp.status_code == 400
        assert reload(Contract, contract.id).status == "pending"

    @pytest.mark.parametrize("status", ["pending", "pending_approval", "expired"])
    def test_manager_target_statuses_limited(self, client, manager, customer, make_contract, status):
        contract = make_contract(customer, status="pending_approval")

        resp = client.put(f"/api/contracts/{contract.id}", json={"status": status},
                          headers=auth_headers(manager))

        assert resp.status_code == 403

    def test_manager_empty_payload(self, client, manager, customer, make_contract):
        contract = make_contract(customer, status="pending_approval")

        resp = client.put(f"/api/contracts/{contract.id}", json={"status": None},
                          headers=auth_headers(manager))

        assert resp.status_code == 400

    def test_staff_without_capability_forbidden(self, client, staff, customer, make_contract):
        contract = make_contract(customer, status="pending_approval")

        resp = client.put(f"/api/contracts/{contract.id}", json={"status": "approved"},
                          headers=auth_headers(staff))

        assert resp.status_code == 403

    def test_approver_staff_can_approve(self, client, approver_staff, customer, make_contract):
        contract = make_contract(customer, status="pending_approval")

        resp = client.put(f"/api/contracts/{contract.id}", json={"status": "active"},
                          headers=auth_headers(approver_staff))

        assert resp.status_code == 200
        assert resp.json["status"] == "active"
        assert resp.json["approved_by"] == approver_staff.id

    def test_approver_staff_field_restrictions(self, client, approver_staff, customer, make_contract):
        contract = make_contract(customer, status="pending_approval")

        resp = client.put(f"/api/contracts/{contract.id}",
                          json={"status": "approved", "end_date": "2040-01-01"},
                          headers=auth_headers(approver_staff))

        assert resp.status_code == 403

    def test_customer_cannot_update_own_contract(self, client, customer, make_contract):
        contract = make_contract(customer, status="pending_approval")

        resp = client.put(f"/api/contracts/{contract.id}", json={"status": "approved"},
                          headers=auth_headers(customer))

        assert resp.status_code == 403


# =============================================================================
# ADMIN UPDATES
# =============================================================================


class TestAdminUpdates:

    def test_admin_edits_any_field(self, client, admin, customer, make_contract):
        contract = make_contract(customer, status="pending")

        resp = client.put(
            f"/api/contracts/{contract.id}",
            json={"rebate_percentage": 7.5, "signed_contract_url": "https://files.example/c.pdf"},
            headers=auth_headers(admin),
        )

        assert resp.status_code == 200
        assert resp.json["rebate_percentage"] == pytest.approx(7.5)
        assert resp.json["signed_contract_url"] == "https://files.example/c.pdf"

    def test_admin_end_date_checked_against_stored_start(self, client, admin, customer, make_contract):
        contract = make_contract(customer)

        resp = client.put(f"/api/contracts/{contract.id}", json={"end_date": "2000-01-01"},
                          headers=auth_headers(admin))

        assert resp.status_code == 400

    def test_admin_status_change_audited(self, client, admin, customer, make_contract):
        contract = make_contract(customer, status="pending")

        client.put(f"/api/contracts/{contract.id}", json={"status": "approved"}, headers=auth_headers(admin))

        actions = sorted(row.action for row in db.session.query(AuditLogEntry).filter_by(entity_id=contract.id))
        assert actions == ["approve_contract", "update_contract"]

    def test_admin_cannot_revive_second_live_contract(self, client, admin, customer, make_contract):
        make_contract(customer, status="active")
        old = make_contract(customer, status="rejected")

        resp = client.put(f"/api/contracts/{old.id}", json={"status": "pending"}, headers=auth_headers(admin))

        assert resp.status_code == 400
        assert resp.json["error"] == ONE_CONTRACT_MESSAGE

    def test_invalid_status(self, client, admin, customer, make_contract):
        contract = make_contract(customer)

        resp = client.put(f"/api/contracts/{contract.id}", json={"status": "archived"},
                          headers=auth_headers(admin))

        assert resp.status_code == 400

    def test_missing_contract(self, client, manager):
        resp = client.put("/api/contracts/31337", json={"status": "approved"}, headers=auth_headers(manager))

        assert resp.status_code == 404


# =============================================================================
# READS AND DELETE
# =============================================================================


class TestReadsAndDelete:

    def test_customer_lists_own_contracts(self, client, customer, other_customer, make_contract):
        mine = make_contract(customer)
        make_contract(other_customer)

        resp = client.get("/api/contracts", headers=auth_headers(customer))

        assert [row["id"] for row in resp.json["data"]] == [mine.id]
        assert resp.json["pagination"]["total"] == 1

    def test_staff_default_and_include_all(self, client, staff, customer, other_customer, make_contract):
        own = make_contract(customer, created_by=staff)
        make_contract(other_customer)

        default = client.get("/api/contracts", headers=auth_headers(staff))
        everything = client.get("/api/contracts?include_all=true", headers=auth_headers(staff))

        assert [row["id"] for row in default.json["data"]] == [own.id]
        assert everything.json["pagination"]["total"] == 2

    def test_customer_cannot_read_foreign_contract(self, client, customer, other_customer, make_contract):
        contract = make_contract(other_customer)

        resp = client.get(f"/api/contracts/{contract.id}", headers=auth_headers(customer))

        assert resp.status_code == 403

    def test_missing_contract_is_404(self, client, customer):
        resp = client.get("/api/contracts/999", headers=auth_headers(customer))

        assert resp.status_code == 404

    def test_admin_delete_detaches_orders(self, client, admin, customer, make_contract, make_order):
        contract = make_contract(customer, status="active")
        order = make_order(customer, contract=contract)

        resp = client.delete(f"/api/contracts/{contract.id}", headers=auth_headers(admin))

        assert resp.status_code == 200
        assert reload(Contract, contract.id) is None
        assert reload(Order, order.id).contract_id is None

    def test_manager_cannot_delete(self, client, manager, customer, make_contract):
        contract = make_contract(customer)

        resp = client.delete(f"/api/contracts/{contract.id}", headers=auth_headers(manager))

        assert resp.status_code == 403
