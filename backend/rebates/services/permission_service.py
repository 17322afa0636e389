# Overview: Evaluates the role policy table against a principal and a resource.

"""
Every authorization decision in the service layer goes through this module:
the (role, action) pair is looked up in ROLE_POLICY and the resulting scope is
checked against the resource's ownership fields. Denials are logged at
WARNING; grants are not logged.

Fail closed: unknown roles, unknown actions and missing grants all deny.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app, has_request_context, request
from sqlalchemy import or_

from ..errors import AuthorizationError
from ..models import Contract, Order
from ..permissions import CAPABILITY_FOR_ACTION, Scope, scope_for


@dataclass(frozen=True)
class ResourceRef:
    """Ownership fields of a record that does not exist yet (e.g., an order being created)."""
    customer_id: int | None = None
    created_by: int | None = None
    customer_status: str | None = None


def _has_capability(user, action: str) -> bool:
    capability = CAPABILITY_FOR_ACTION.get(action)
    return capability is not None and capability in user.capability_codes()


def _in_scope(user, scope: str, action: str, resource) -> bool:
    if scope == Scope.ANY:
        return True
    if scope == Scope.CAPABILITY:
        return _has_capability(user, action)
    if scope == Scope.NONE:
        return False
    # Ownership scopes: without a concrete resource the role holds a (narrowed) grant
    if resource is None:
        return True
    if scope == Scope.CUSTOMER:
        return getattr(resource, "customer_id", None) == user.id
    if scope == Scope.CREATOR_OR_DISPUTED:
        return (
            getattr(resource, "created_by", None) == user.id
            or getattr(resource, "customer_status", None) == "disputed"
        )
    return False


def can(user, action: str, resource=None) -> bool:
    """
    True when user may perform action.

    With resource=None only the role-level grant is checked; callers listing
    records must narrow the query themselves (see order_visibility_clause).
    """
    if user is None or not user.is_active:
        return False
    return _in_scope(user, scope_for(user.role, action), action, resource)


def require(user, action: str, resource=None) -> None:
    """Raise AuthorizationError with the generic message when can() is False."""
    if can(user, action, resource):
        return
    current_app.logger.warning(
        "Permission denied: user_id=%s role=%s action=%s path=%s",
        getattr(user, "id", None),
        getattr(user, "role", None),
        action,
        request.path if has_request_context() else None,
    )
    raise AuthorizationError()


def has_scope(user, action: str, scope: str) -> bool:
    return scope_for(user.role, action) == scope


def order_visibility_clause(user):
    """
    SQL filter restricting Order rows to those the user may view.

    Returns None when the user may see every order.
    """
    scope = scope_for(user.role, "VIEW_ORDERS")
    if scope == Scope.ANY:
        return None
    if scope == Scope.CUSTOMER:
        return Order.customer_id == user.id
    if scope == Scope.CREATOR_OR_DISPUTED:
        return or_(Order.created_by == user.id, Order.customer_status == "disputed")
    return Order.id.is_(None)


def contract_visibility_clause(user):
    """SQL filter restricting Contract rows for VIEW_CONTRACTS; None means unrestricted."""
    scope = scope_for(user.role, "VIEW_CONTRACTS")
    if scope == Scope.ANY:
        return None
    if scope == Scope.CUSTOMER:
        return Contract.customer_id == user.id
    return Contract.id.is_(None)
