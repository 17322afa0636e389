# Overview: User administration: profile, directory, role requests, roles, capabilities.

from __future__ import annotations

from flask import current_app

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import CapabilityGrant, Contract, Order, RoleRequest, User, VerificationCode
from ..permissions import CAPABILITIES, ROLE_ADMIN, ROLES
from ..time_utils import utcnow
from ..validation import parse_optional_text
from . import audit_service, auth_service, permission_service
from .concurrency import atomic


ROLE_REQUEST_STATUSES = ("pending", "approved", "rejected")
MAX_REVIEW_COMMENT_LENGTH = 500


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _admin_count(*, active_only: bool = False) -> int:
    query = db.session.query(User).filter(User.role == ROLE_ADMIN)
    if active_only:
        query = query.filter(User.is_active.is_(True))
    return query.count()


# -- Profile -----------------------------------------------------------------

def update_profile(user: User, payload: dict) -> User:
    changed = False
    if payload.get("full_name") is not None:
        user.full_name = auth_service.clean_full_name(payload["full_name"])
        changed = True
    if "phone" in payload:
        user.phone = auth_service.clean_phone(payload["phone"])
        changed = True
    if not changed:
        raise ValidationError("Nothing to update")
    db.session.commit()
    return user


def list_directory(actor: User, *, role: str | None = None) -> list[User]:
    """Active users for customer pickers, optionally narrowed to one role."""
    permission_service.require(actor, "VIEW_USER_DIRECTORY")
    query = db.session.query(User).filter(User.is_active.is_(True))
    if role:
        if role not in ROLES:
            raise ValidationError("Invalid role")
        query = query.filter(User.role == role)
    return query.order_by(User.full_name.asc(), User.id.asc()).all()


# -- Role requests -----------------------------------------------------------

def list_role_requests(actor: User, *, status: str | None = "pending") -> list[RoleRequest]:
    permission_service.require(actor, "REVIEW_ROLE_REQUESTS")
    query = db.session.query(RoleRequest)
    if status:
        if status not in ROLE_REQUEST_STATUSES:
            raise ValidationError("Invalid status. Must be pending, approved, or rejected")
        query = query.filter(RoleRequest.status == status)
    return query.order_by(RoleRequest.created_at.desc(), RoleRequest.id.desc()).all()


def get_my_role_request(user: User) -> RoleRequest | None:
    return (
        db.session.query(RoleRequest)
        .filter(RoleRequest.user_id == user.id)
        .order_by(RoleRequest.created_at.desc(), RoleRequest.id.desc())
        .first()
    )


def review_role_request(actor: User, request_id: int, action, comment=None) -> RoleRequest:
    permission_service.require(actor, "REVIEW_ROLE_REQUESTS")
    if action not in ("approve", "reject"):
        raise ValidationError('Invalid action. Use "approve" or "reject"')
    comment = parse_optional_text(comment, "comment", MAX_REVIEW_COMMENT_LENGTH, sanitize=True)

    role_request = db.session.get(RoleRequest, request_id)
    if role_request is None:
        raise NotFoundError("Role request not found")
    if role_request.status != "pending":
        raise ConflictError("Role request has already been reviewed")

    with atomic():
        role_request.status = "approved" if action == "approve" else "rejected"
        role_request.reviewed_by = actor.id
        role_request.reviewed_at = utcnow()
        role_request.review_comment = comment
        if action == "approve":
            role_request.user.role = role_request.requested_role
        audit_service.log(
            user_id=actor.id,
            action="review_role_request",
            entity_type="user",
            entity_id=role_request.user_id,
            details={"request_id": role_request.id, "decision": role_request.status,
                     "requested_role": role_request.requested_role},
        )
    return role_request


# -- Admin actions -----------------------------------------------------------

def update_role(actor: User, user_id: int, role) -> User:
    permission_service.require(actor, "MANAGE_USERS")
    if role not in ROLES:
        raise ValidationError("Invalid role")
    target = _get_user(user_id)
    previous = target.role
    if previous == ROLE_ADMIN and role != ROLE_ADMIN and _admin_count() <= 1:
        raise ConflictError("Cannot remove the last admin. Promote another admin first")

    with atomic():
        target.role = role
        audit_service.log(
            user_id=actor.id,
            action="update_user_role",
            entity_type="user",
            entity_id=target.id,
            details={"previous_role": previous, "new_role": role},
        )
    return target


def delete_user(actor: User, user_id: int) -> None:
    """Hard delete. The user's own orders, contracts and role requests go with them."""
    permission_service.require(actor, "MANAGE_USERS")
    if actor.id == user_id:
        raise ValidationError("You cannot delete your own account")
    target = _get_user(user_id)
    if target.role == ROLE_ADMIN and _admin_count() <= 1:
        raise ConflictError("Cannot delete the last admin. Promote another admin first")

    with atomic():
        for order in db.session.query(Order).filter(Order.customer_id == target.id).all():
            db.session.delete(order)
        db.session.query(Order).filter(Order.created_by == target.id).update(
            {Order.created_by: None}, synchronize_session=False
        )
        contract_ids = [cid for (cid,) in db.session.query(Contract.id).filter(Contract.customer_id == target.id)]
        if contract_ids:
            db.session.query(Order).filter(Order.contract_id.in_(contract_ids)).update(
                {Order.contract_id: None}, synchronize_session=False
            )
            db.session.query(Contract).filter(Contract.id.in_(contract_ids)).delete(synchronize_session=False)
        db.session.query(Contract).filter(Contract.created_by == target.id).update(
            {Contract.created_by: None}, synchronize_session=False
        )
        db.session.query(Contract).filter(Contract.approved_by == target.id).update(
            {Contract.approved_by: None}, synchronize_session=False
        )
        db.session.query(RoleRequest).filter(RoleRequest.reviewed_by == target.id).update(
            {RoleRequest.reviewed_by: None}, synchronize_session=False
        )
        db.session.query(RoleRequest).filter(RoleRequest.user_id == target.id).delete(synchronize_session=False)
        db.session.query(VerificationCode).filter(VerificationCode.destination == target.email).delete(
            synchronize_session=False
        )
        audit_service.log(
            user_id=actor.id,
            action="delete_user",
            entity_type="user",
            entity_id=target.id,
            details={"email": target.email, "role": target.role},
        )
        db.session.delete(target)
    current_app.logger.info("User %s deleted by admin %s", user_id, actor.id)


def set_active(actor: User, user_id: int, is_active) -> User:
    permission_service.require(actor, "MANAGE_USERS")
    if not isinstance(is_active, bool):
        raise ValidationError("is_active must be a boolean")
    if actor.id == user_id:
        raise ValidationError("You cannot change your own active status")
    target = _get_user(user_id)
    if not is_active and target.role == ROLE_ADMIN and target.is_active and _admin_count(active_only=True) <= 1:
        raise ConflictError("Cannot deactivate the last active admin")

    with atomic():
        target.is_active = is_active
        audit_service.log(
            user_id=actor.id,
            action="activate_user" if is_active else "deactivate_user",
            entity_type="user",
            entity_id=target.id,
        )
    return target


def grant_capability(actor: User, user_id: int, capability) -> CapabilityGrant:
    permission_service.require(actor, "MANAGE_USERS")
    if capability not in CAPABILITIES:
        raise ValidationError(f"Unknown capability. Must be one of: {', '.join(CAPABILITIES)}")
    target = _get_user(user_id)
    existing = next((g for g in target.capability_grants if g.capability == capability), None)
    if existing is not None:
        return existing

    with atomic():
        grant = CapabilityGrant(user_id=target.id, capability=capability, granted_by=actor.id)
        target.capability_grants.append(grant)
        audit_service.log(
            user_id=actor.id,
            action="grant_capability",
            entity_type="user",
            entity_id=target.id,
            details={"capability": capability},
        )
    return grant


def revoke_capability(actor: User, user_id: int, capability: str) -> None:
    permission_service.require(actor, "MANAGE_USERS")
    target = _get_user(user_id)
    grant = next((g for g in target.capability_grants if g.capability == capability), None)
    if grant is None:
        raise NotFoundError("Capability not granted")

    with atomic():
        target.capability_grants.remove(grant)
        audit_service.log(
            user_id=actor.id,
            action="revoke_capability",
            entity_type="user",
            entity_id=target.id,
            details={"capability": capability},
        )
