# Overview: Order lifecycle: auto-lock, role-scoped reads, creation, updates and deletion.

"""
Order Lifecycle

State is customer_status x is_locked:

    pending/unlocked --customer confirm--> confirmed (soft-terminal)
    pending/unlocked --customer dispute--> disputed (needs a comment)
    pending/unlocked --auto-lock---------> pending/locked
    pending/locked   --admin/manager-----> pending/unlocked (manually_unlocked=True, never relocks)
    any              --admin/manager-----> locked

Auto-lock is applied lazily: every read path (and the update path) runs a
conditional bulk UPDATE for orders whose order_date is older than
auto_lock_days before returning data. `flask orders lock-sweep` runs the same
update for all orders on demand.

Creation and updates run inside one atomic() unit of work; an item insert
failure rolls back the whole order.

Single-record lookups check existence first (404) and access second (403).
"""

from __future__ import annotations

import secrets
import time
from decimal import Decimal

from flask import current_app

from ..errors import AuthorizationError, ConflictError, NotFoundError, OrderLockedError, ValidationError
from ..extensions import db
from ..models import Contract, Order, OrderItem, User
from ..pagination import order_by_sort_key, paginate
from ..permissions import Scope
from ..time_utils import days_before, utcnow
from ..validation import (
    MAX_COMMENT_LENGTH,
    MAX_TOTAL_AMOUNT,
    ORDER_STATUSES,
    parse_datetime_field,
    parse_decimal,
    parse_int,
    parse_optional_text,
    parse_percentage,
    present,
    sanitize_sort_by,
    validate_items,
)
from . import audit_service, permission_service, rebate_service
from .concurrency import atomic, lock_for_update
from .permission_service import ResourceRef


ORDER_SORT_FIELDS = ("order_date", "created_at", "total_amount")
DEFAULT_ORDER_SORT = "order_date"

# Fields only staff roles may send on update
STAFF_ONLY_FIELDS = ("order_date", "items", "total_amount", "is_locked")
CUSTOMER_TARGET_STATUSES = ("confirmed", "disputed")


def generate_order_number() -> str:
    return f"ORD-{int(time.time() * 1000)}-{secrets.token_hex(2).upper()}"


# -- Auto-lock ---------------------------------------------------------------

def apply_auto_lock(settings, *, order_id: int | None = None) -> int:
    """
    Lock pending orders older than settings.auto_lock_days.

    Orders an admin or manager unlocked (manually_unlocked) are exempt.
    Returns the number of orders locked.
    """
    now = utcnow()
    cutoff = days_before(settings.auto_lock_days, now)
    query = db.session.query(Order).filter(
        Order.customer_status == "pending",
        Order.order_date < cutoff,
        Order.is_locked.is_(False),
        Order.manually_unlocked.is_(False),
    )
    if order_id is not None:
        query = query.filter(Order.id == order_id)

    locked = query.update({Order.is_locked: True, Order.locked_date: now}, synchronize_session=False)
    db.session.commit()
    if locked:
        current_app.logger.info("Auto-locked %s order(s) older than %s day(s)", locked, settings.auto_lock_days)
    return locked


# -- Reads -------------------------------------------------------------------

def list_orders(
    user: User,
    settings,
    *,
    page=None,
    page_size=None,
    sort_by: str | None = None,
    customer_id=None,
    customer_status: str | None = None,
) -> dict:
    """Role-filtered, paginated order list in the {data, pagination} envelope."""
    permission_service.require(user, "VIEW_ORDERS")
    apply_auto_lock(settings)

    sort_key = sanitize_sort_by(sort_by, ORDER_SORT_FIELDS, DEFAULT_ORDER_SORT)

    query = db.session.query(Order)
    clause = permission_service.order_visibility_clause(user)
    if clause is not None:
        query = query.filter(clause)
    elif customer_id not in (None, ""):
        # Only callers who see every order may filter by customer
        query = query.filter(Order.customer_id == parse_int(customer_id, "customer_id", minimum=1))
    if customer_status:
        if customer_status not in ORDER_STATUSES:
            raise ValidationError("Invalid order status")
        query = query.filter(Order.customer_status == customer_status)

    return paginate(order_by_sort_key(query, Order, sort_key), page, page_size)


def _get_existing(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


def get_order(user: User, order_id: int, settings) -> Order:
    apply_auto_lock(settings, order_id=order_id)
    order = _get_existing(order_id)
    permission_service.require(user, "VIEW_ORDERS", order)
    return order


# -- Create ------------------------------------------------------------------

def create_order(user: User, payload: dict, settings) -> Order:
    """
    Create an order with its items.

    total_amount defaults to the item sum. The rebate percentage is the
    explicit request value, else the contract's, else the system default.
    A customer's first order against a pending contract activates it.
    """
    if not present(payload, "customer_id"):
        raise ValidationError("customer_id is required")
    customer_id = parse_int(payload["customer_id"], "customer_id", minimum=1)
    permission_service.require(user, "CREATE_ORDER", ResourceRef(customer_id=customer_id))

    if not present(payload, "order_date"):
        raise ValidationError("order_date is required")
    order_date = parse_datetime_field(payload["order_date"], "order_date")

    if not present(payload, "items"):
        raise ValidationError("At least one item is required")
    items = validate_items(payload["items"])

    explicit_total = None
    if present(payload, "total_amount"):
        explicit_total = parse_decimal(
            payload["total_amount"], "total_amount", minimum=Decimal("0"), maximum=MAX_TOTAL_AMOUNT
        )
    explicit_percentage = None
    if present(payload, "rebate_percentage"):
        explicit_percentage = parse_percentage(payload["rebate_percentage"])
    contract_id = None
    if present(payload, "contract_id"):
        contract_id = parse_int(payload["contract_id"], "contract_id", minimum=1)

    with atomic():
        if db.session.get(User, customer_id) is None:
            raise ValidationError("Customer not found")

        contract = None
        if contract_id is not None:
            # Row lock serializes first-order activation between concurrent creates
            contract = lock_for_update(db.session.query(Contract).filter(Contract.id == contract_id)).first()
            if contract is None or contract.customer_id != customer_id:
                raise ValidationError("Contract not found for this customer")

        has_prior_orders = (
            db.session.query(Order.id).filter(Order.customer_id == customer_id).first() is not None
        )

        total = rebate_service.quantize_money(explicit_total) if explicit_total is not None \
            else rebate_service.items_total(items)
        percentage = rebate_service.effective_percentage(
            explicit_percentage, contract, settings.default_rebate_percentage
        )

        order = Order(
            order_number=generate_order_number(),
            customer_id=customer_id,
            contract_id=contract_id,
            created_by=None if permission_service.has_scope(user, "CREATE_ORDER", Scope.CUSTOMER) else user.id,
            order_date=order_date,
            total_amount=total,
            rebate_percentage=percentage,
            rebate_amount=rebate_service.compute_rebate(total, percentage),
            customer_status="pending",
            is_locked=False,
            manually_unlocked=False,
        )
        for item in items:
            order.items.append(OrderItem(
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=rebate_service.quantize_money(item.total_price),
            ))
        db.session.add(order)
        db.session.flush()

        if contract is not None and contract.status == "pending" and not has_prior_orders:
            contract.status = "active"
            audit_service.log(
                user_id=user.id,
                action="auto_activate_contract",
                entity_type="contract",
                entity_id=contract.id,
                details={"order_id": order.id, "previous_status": "pending"},
            )
            current_app.logger.info("Contract %s activated by first order %s", contract.id, order.id)

    return order


# -- Update ------------------------------------------------------------------

def _parse_comment(payload: dict) -> str | None:
    return parse_optional_text(
        payload["customer_comment"], "customer_comment", MAX_COMMENT_LENGTH, sanitize=True
    )


def _respond_as_customer(user: User, order: Order, payload: dict) -> None:
    """Confirm or dispute an order as its customer."""
    permission_service.require(user, "RESPOND_TO_ORDER", order)
    if any(present(payload, field) for field in STAFF_ONLY_FIELDS):
        raise AuthorizationError()
    if order.is_locked:
        raise OrderLockedError()
    if order.customer_status != "pending":
        raise ConflictError("Order has already been confirmed or disputed")

    status = payload["customer_status"] if present(payload, "customer_status") else None
    has_comment = "customer_comment" in payload
    if status is None and not has_comment:
        raise ValidationError("No fields to update")
    if status is not None and status not in CUSTOMER_TARGET_STATUSES:
        raise ValidationError("Invalid order status")

    comment = _parse_comment(payload) if has_comment else order.customer_comment
    if status == "disputed" and not comment:
        raise ValidationError("A comment is required when disputing an order")

    with atomic():
        if status is not None:
            order.customer_status = status
            if status == "confirmed":
                order.customer_confirmed_date = utcnow()
        if has_comment:
            order.customer_comment = comment


def _update_as_staff(user: User, order: Order, payload: dict, settings) -> None:
    permission_service.require(user, "EDIT_ORDER", order)
    if present(payload, "is_locked"):
        permission_service.require(user, "LOCK_ORDER", order)

    order_date = None
    if present(payload, "order_date"):
        order_date = parse_datetime_field(payload["order_date"], "order_date")
    status = None
    if present(payload, "customer_status"):
        status = payload["customer_status"]
        if status not in ORDER_STATUSES:
            raise ValidationError("Invalid order status")
    has_comment = "customer_comment" in payload
    comment = _parse_comment(payload) if has_comment else None
    total = None
    if present(payload, "total_amount"):
        total = parse_decimal(payload["total_amount"], "total_amount", minimum=Decimal("0"), maximum=MAX_TOTAL_AMOUNT)
    items = validate_items(payload["items"]) if present(payload, "items") else None
    lock = None
    if present(payload, "is_locked"):
        lock = payload["is_locked"]
        if not isinstance(lock, bool):
            raise ValidationError("is_locked must be a boolean")

    if order_date is None and status is None and not has_comment and total is None and items is None and lock is None:
        raise ValidationError("No fields to update")
    if order.customer_status == "confirmed" and status != "confirmed":
        raise ConflictError("Cannot edit a confirmed order")

    percentage = settings.default_rebate_percentage
    with atomic():
        if order_date is not None:
            order.order_date = order_date
        if total is not None:
            order.total_amount = rebate_service.quantize_money(total)
            order.rebate_percentage = percentage
            order.rebate_amount = rebate_service.compute_rebate(order.total_amount, percentage)
        if status is not None:
            if status == "confirmed" and order.customer_status != "confirmed":
                order.customer_confirmed_date = utcnow()
            order.customer_status = status
        if has_comment:
            order.customer_comment = comment
        if lock is not None:
            _set_lock(user, order, lock)
        if items is not None:
            # Replace the full item set; item totals win over an explicit total_amount
            order.items.clear()
            db.session.flush()
            for item in items:
                order.items.append(OrderItem(
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=rebate_service.quantize_money(item.total_price),
                ))
            new_total = rebate_service.items_total(items)
            order.total_amount = new_total
            order.rebate_percentage = percentage
            order.rebate_amount = rebate_service.compute_rebate(new_total, percentage)


def _set_lock(user: User, order: Order, lock: bool) -> None:
    previous = bool(order.is_locked)
    if lock:
        order.is_locked = True
        order.locked_date = utcnow()
        action = "lock_order"
    else:
        # Unlocking is idempotent and exempts the order from future auto-lock
        order.is_locked = False
        order.locked_date = None
        order.manually_unlocked = True
        action = "unlock_order"
    audit_service.log(
        user_id=user.id,
        action=action,
        entity_type="order",
        entity_id=order.id,
        details={"previous_locked": previous},
    )


def update_order(user: User, order_id: int, payload: dict, settings) -> Order:
    """
    Partial update.

    Customers may only confirm or dispute (and comment on) their own unlocked
    pending orders. Staff roles edit dates, items, totals, status and comment
    within their scope; only admin and manager may send is_locked.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    apply_auto_lock(settings, order_id=order_id)
    order = _get_existing(order_id)

    if permission_service.can(user, "EDIT_ORDER"):
        _update_as_staff(user, order, payload, settings)
    elif permission_service.can(user, "RESPOND_TO_ORDER"):
        _respond_as_customer(user, order, payload)
    else:
        permission_service.require(user, "EDIT_ORDER", order)
    return order


# -- Delete ------------------------------------------------------------------

def delete_order(user: User, order_id: int) -> None:
    order = _get_existing(order_id)
    permission_service.require(user, "DELETE_ORDER", order)
    with atomic():
        audit_service.log(
            user_id=user.id,
            action="delete_order",
            entity_type="order",
            entity_id=order.id,
            details={"order_number": order.order_number, "customer_id": order.customer_id},
        )
        db.session.delete(order)
