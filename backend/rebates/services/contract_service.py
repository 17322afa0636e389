# Overview: Contract creation, approval workflow, role-scoped reads and deletion.

"""
Contract Workflow

    pending -> pending_approval -> approved | active | rejected

Admins may change every field. Managers, and staff holding the
approve_contracts capability, act only as approvers: they may send
status / manager signature / manager name and position / approved_by and
nothing else, and may only move a pending_approval contract to approved,
active or rejected.

A customer holds at most one live contract (pending, pending_approval,
approved or active). The partial unique index enforces it; the existence
check below only gives a readable error first.
"""

from __future__ import annotations

import secrets
import time

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Contract, LIVE_CONTRACT_STATUSES, Order, User
from ..pagination import order_by_sort_key, paginate
from ..permissions import ROLE_STAFF, Scope
from ..time_utils import utcnow
from ..validation import (
    CONTRACT_STATUSES,
    MAX_NAME_LENGTH,
    MAX_SIGNATURE_LENGTH,
    MAX_URL_LENGTH,
    parse_datetime_field,
    parse_int,
    parse_optional_text,
    parse_percentage,
    present,
    sanitize_sort_by,
)
from . import audit_service, permission_service
from .concurrency import atomic
from .permission_service import ResourceRef


CONTRACT_SORT_FIELDS = ("created_at", "start_date", "end_date")
DEFAULT_CONTRACT_SORT = "created_at"

APPROVER_FIELDS = (
    "status",
    "manager_signature_data_url",
    "manager_name",
    "manager_position",
    "approved_by",
)
APPROVAL_TARGET_STATUSES = ("approved", "active", "rejected")
CUSTOMER_CREATE_STATUSES = ("pending", "pending_approval")

ONE_CONTRACT_MESSAGE = "Customer already has a contract. Only one contract is allowed at a time"

# field -> (max length, sanitize)
_TEXT_FIELDS = {
    "signed_contract_url": (MAX_URL_LENGTH, False),
    "customer_signature_data_url": (MAX_SIGNATURE_LENGTH, False),
    "manager_signature_data_url": (MAX_SIGNATURE_LENGTH, False),
    "manager_name": (MAX_NAME_LENGTH, True),
    "manager_position": (MAX_NAME_LENGTH, True),
}


def generate_contract_number() -> str:
    return f"CNT-{int(time.time() * 1000)}-{secrets.token_hex(2).upper()}"


def _parse_text(payload: dict, field: str) -> str | None:
    max_length, sanitize = _TEXT_FIELDS[field]
    return parse_optional_text(payload[field], field, max_length, sanitize=sanitize)


def _get_existing(contract_id: int) -> Contract:
    contract = db.session.get(Contract, contract_id)
    if contract is None:
        raise NotFoundError("Contract not found")
    return contract


def _has_live_contract(customer_id: int, *, exclude_id: int | None = None) -> bool:
    query = db.session.query(Contract.id).filter(
        Contract.customer_id == customer_id,
        Contract.status.in_(LIVE_CONTRACT_STATUSES),
    )
    if exclude_id is not None:
        query = query.filter(Contract.id != exclude_id)
    return query.first() is not None


# -- Reads -------------------------------------------------------------------

def list_contracts(
    user: User,
    *,
    page=None,
    page_size=None,
    sort_by: str | None = None,
    customer_id=None,
    status: str | None = None,
    include_all: bool = False,
) -> dict:
    """
    Paginated contract list.

    Customers see their own contracts. Staff default to contracts they
    created or approved unless include_all is set.
    """
    permission_service.require(user, "VIEW_CONTRACTS")
    sort_key = sanitize_sort_by(sort_by, CONTRACT_SORT_FIELDS, DEFAULT_CONTRACT_SORT)

    query = db.session.query(Contract)
    clause = permission_service.contract_visibility_clause(user)
    if clause is not None:
        query = query.filter(clause)
    else:
        if user.role == ROLE_STAFF and not include_all:
            query = query.filter(or_(Contract.created_by == user.id, Contract.approved_by == user.id))
        if customer_id not in (None, ""):
            query = query.filter(Contract.customer_id == parse_int(customer_id, "customer_id", minimum=1))
    if status:
        if status not in CONTRACT_STATUSES:
            raise ValidationError("Invalid contract status")
        query = query.filter(Contract.status == status)

    return paginate(order_by_sort_key(query, Contract, sort_key), page, page_size)


def get_contract(user: User, contract_id: int) -> Contract:
    contract = _get_existing(contract_id)
    permission_service.require(user, "VIEW_CONTRACTS", contract)
    return contract


# -- Create ------------------------------------------------------------------

def create_contract(user: User, payload: dict, settings) -> Contract:
    for field in ("customer_id", "start_date", "end_date"):
        if not present(payload, field):
            raise ValidationError("Customer ID, start date, and end date are required")

    customer_id = parse_int(payload["customer_id"], "customer_id", minimum=1)
    permission_service.require(user, "CREATE_CONTRACT", ResourceRef(customer_id=customer_id))

    start_date = parse_datetime_field(payload["start_date"], "start_date")
    end_date = parse_datetime_field(payload["end_date"], "end_date")
    if end_date <= start_date:
        raise ValidationError("End date must be after start date")

    percentage = settings.default_rebate_percentage
    if present(payload, "rebate_percentage"):
        percentage = parse_percentage(payload["rebate_percentage"])

    status = payload["status"] if present(payload, "status") else "pending"
    if status not in CONTRACT_STATUSES:
        raise ValidationError("Invalid contract status")
    if permission_service.has_scope(user, "CREATE_CONTRACT", Scope.CUSTOMER):
        if status not in CUSTOMER_CREATE_STATUSES:
            raise AuthorizationError()
        if any(present(payload, field) for field in APPROVER_FIELDS if field != "status"):
            raise AuthorizationError()

    texts = {field: _parse_text(payload, field) for field in _TEXT_FIELDS if field in payload}

    try:
        with atomic():
            if db.session.get(User, customer_id) is None:
                raise ValidationError("Customer not found")
            if status in LIVE_CONTRACT_STATUSES and _has_live_contract(customer_id):
                raise ConflictError(ONE_CONTRACT_MESSAGE)

            contract = Contract(
                customer_id=customer_id,
                created_by=user.id,
                contract_number=generate_contract_number(),
                start_date=start_date,
                end_date=end_date,
                rebate_percentage=percentage,
                status=status,
                **texts,
            )
            db.session.add(contract)
            db.session.flush()
            audit_service.log(
                user_id=user.id,
                action="create_contract",
                entity_type="contract",
                entity_id=contract.id,
                details={"customer_id": customer_id, "status": status},
            )
    except IntegrityError:
        raise ConflictError(ONE_CONTRACT_MESSAGE)
    return contract


# -- Update ------------------------------------------------------------------

def _parse_approved_by(payload: dict) -> int:
    approver_id = parse_int(payload["approved_by"], "approved_by", minimum=1)
    if db.session.get(User, approver_id) is None:
        raise ValidationError("Approver not found")
    return approver_id


def _record_status_change(user: User, contract: Contract, previous_status: str) -> None:
    if contract.status == previous_status:
        return
    if contract.status in ("approved", "active"):
        action = "approve_contract"
    elif contract.status == "rejected":
        action = "reject_contract"
    else:
        action = "update_contract_status"
    audit_service.log(
        user_id=user.id,
        action=action,
        entity_type="contract",
        entity_id=contract.id,
        details={"previous_status": previous_status, "new_status": contract.status},
    )


def _update_as_admin(user: User, contract: Contract, payload: dict) -> None:
    changes = {}
    if present(payload, "start_date"):
        changes["start_date"] = parse_datetime_field(payload["start_date"], "start_date")
    if present(payload, "end_date"):
        changes["end_date"] = parse_datetime_field(payload["end_date"], "end_date")
    if present(payload, "rebate_percentage"):
        changes["rebate_percentage"] = parse_percentage(payload["rebate_percentage"])
    if present(payload, "status"):
        if payload["status"] not in CONTRACT_STATUSES:
            raise ValidationError("Invalid contract status")
        changes["status"] = payload["status"]
    for field in _TEXT_FIELDS:
        if field in payload:
            changes[field] = _parse_text(payload, field)
    if present(payload, "approved_by"):
        changes["approved_by"] = _parse_approved_by(payload)

    if not changes:
        raise ValidationError("No fields to update")

    start = changes.get("start_date", contract.start_date)
    end = changes.get("end_date", contract.end_date)
    if end <= start:
        raise ValidationError("End date must be after start date")

    new_status = changes.get("status", contract.status)
    if (
        new_status in LIVE_CONTRACT_STATUSES
        and contract.status not in LIVE_CONTRACT_STATUSES
        and _has_live_contract(contract.customer_id, exclude_id=contract.id)
    ):
        raise ConflictError(ONE_CONTRACT_MESSAGE)

    previous_status = contract.status
    with atomic():
        for field, value in changes.items():
            setattr(contract, field, value)
        if "approved_by" in changes:
            contract.approved_date = utcnow()
        _record_status_change(user, contract, previous_status)
        audit_service.log(
            user_id=user.id,
            action="update_contract",
            entity_type="contract",
            entity_id=contract.id,
            details={"fields": sorted(changes)},
        )


def _update_as_approver(user: User, contract: Contract, payload: dict) -> None:
    """Approval-only edit for managers and approver staff."""
    if any(present(payload, key) for key in payload if key not in APPROVER_FIELDS):
        raise AuthorizationError()
    supplied = [key for key in APPROVER_FIELDS if present(payload, key)]
    if not supplied:
        raise ValidationError("No fields to update")

    status = None
    if present(payload, "status"):
        status = payload["status"]
        if status not in APPROVAL_TARGET_STATUSES:
            raise AuthorizationError()
        if contract.status != "pending_approval":
            raise ConflictError("Only contracts awaiting approval can be approved or rejected")

    texts = {field: _parse_text(payload, field) for field in supplied if field in _TEXT_FIELDS}
    approved_by = _parse_approved_by(payload) if present(payload, "approved_by") else None
    if approved_by is None and status in ("approved", "active"):
        approved_by = user.id

    previous_status = contract.status
    with atomic():
        for field, value in texts.items():
            setattr(contract, field, value)
        if status is not None:
            contract.status = status
        if approved_by is not None:
            contract.approved_by = approved_by
            contract.approved_date = utcnow()
        _record_status_change(user, contract, previous_status)

    if status is not None:
        current_app.logger.info("Contract %s moved to %s by user %s", contract.id, status, user.id)


def update_contract(user: User, contract_id: int, payload: dict) -> Contract:
    """
    Partial update; 404 before 403.

    Fields sent as null count as absent when deciding which fields a caller
    tried to change.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    contract = _get_existing(contract_id)

    try:
        if permission_service.can(user, "EDIT_CONTRACT", contract):
            _update_as_admin(user, contract, payload)
        elif permission_service.can(user, "APPROVE_CONTRACT", contract):
            _update_as_approver(user, contract, payload)
        else:
            permission_service.require(user, "APPROVE_CONTRACT", contract)
    except IntegrityError:
        raise ConflictError(ONE_CONTRACT_MESSAGE)
    return contract


# -- Delete ------------------------------------------------------------------

def delete_contract(user: User, contract_id: int) -> None:
    """Admin only. Orders referencing the contract are kept and detached."""
    contract = _get_existing(contract_id)
    permission_service.require(user, "DELETE_CONTRACT", contract)
    with atomic():
        detached = (
            db.session.query(Order)
            .filter(Order.contract_id == contract.id)
            .update({Order.contract_id: None}, synchronize_session=False)
        )
        audit_service.log(
            user_id=user.id,
            action="delete_contract",
            entity_type="contract",
            entity_id=contract.id,
            details={"contract_number": contract.contract_number, "detached_orders": detached},
        )
        db.session.delete(contract)
