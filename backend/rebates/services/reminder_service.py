# Overview: Reminders to customers about orders still awaiting confirmation.

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Order, User
from ..time_utils import days_before, utcnow
from . import audit_service
from .notifications import get_notifier


def due_orders(settings) -> list[Order]:
    """
    Pending, unlocked orders at least order_reminder_days old whose customer is
    active and has not been reminded about them within the same window.
    """
    cutoff = days_before(settings.order_reminder_days)
    return (
        db.session.query(Order)
        .join(User, Order.customer_id == User.id)
        .filter(
            Order.customer_status == "pending",
            Order.is_locked.is_(False),
            Order.order_date <= cutoff,
            User.is_active.is_(True),
            or_(Order.last_reminder_sent.is_(None), Order.last_reminder_sent <= cutoff),
        )
        .order_by(Order.order_date.asc(), Order.id.asc())
        .all()
    )


def _reminder_body(order: Order) -> str:
    name = order.customer.full_name or "Valued Customer"
    return (
        f"Hello {name}, order {order.order_number} from {order.order_date:%Y-%m-%d} "
        f"(total {order.total_amount}, rebate {order.rebate_amount}) is waiting for your "
        f"confirmation. Please confirm or dispute it before it locks."
    )


def _record_run(actor_id: int | None, result: dict) -> None:
    if actor_id is None:
        return
    audit_service.log(
        user_id=actor_id,
        action="trigger_order_reminders",
        entity_type="system",
        details={"emails_sent": result["emails_sent"], "errors": result["errors"]},
    )
    db.session.commit()


def send_order_reminders(settings, *, actor_id: int | None = None) -> dict:
    """
    Notify each due order's customer and stamp last_reminder_sent.

    A delivery failure is logged and counted; the remaining orders are still
    processed. When actor_id is given the run is recorded in the audit log.
    """
    orders = due_orders(settings)
    if not orders:
        result = {
            "success": True,
            "emails_sent": 0,
            "errors": 0,
            "message": "No orders require reminders at this time.",
        }
        _record_run(actor_id, result)
        return result

    notifier = get_notifier()
    sent = 0
    errors = 0
    for order in orders:
        try:
            notifier.send(order.customer.email, f"Reminder: order {order.order_number} awaits confirmation",
                          _reminder_body(order))
        except Exception:
            current_app.logger.exception("Failed to send reminder for order %s", order.order_number)
            errors += 1
            continue
        order.last_reminder_sent = utcnow()
        db.session.commit()
        sent += 1

    message = f"Order reminder job completed. Sent {sent} reminders, {errors} errors."
    current_app.logger.info(message)
    result = {"success": errors == 0, "emails_sent": sent, "errors": errors, "message": message}
    _record_run(actor_id, result)
    return result
