from __future__ import annotations

from ..extensions import db
from rebates.time_utils import to_utc_z


def _money(value):
    return float(value) if value is not None else None


class Order(db.Model):
    """
    Customer order that earns a rebate.

    State is customer_status x is_locked:
    - pending/unlocked: customer may confirm or dispute
    - pending/locked: auto-lock elapsed (or admin locked it); customer edits refused
    - confirmed: soft-terminal
    - disputed: re-opened for staff handling

    manually_unlocked permanently exempts the order from auto-lock.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_customer_date", "customer_id", "order_date"),
        db.Index("ix_orders_lock_scan", "customer_status", "is_locked", "manually_unlocked", "order_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    contract_id = db.Column(db.Integer, db.ForeignKey("contracts.id"), nullable=True, index=True)
    # Staff/manager/admin who entered the order; None for self-service orders
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # Human-readable number (e.g., "ORD-1760832000000-9B1C")
    order_number = db.Column(db.String(64), nullable=False, unique=True)
    order_date = db.Column(db.DateTime(timezone=True), nullable=False)

    total_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    rebate_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    rebate_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    customer_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    customer_comment = db.Column(db.String(1000), nullable=True)
    customer_confirmed_date = db.Column(db.DateTime(timezone=True), nullable=True)

    is_locked = db.Column(db.Boolean, nullable=False, default=False)
    locked_date = db.Column(db.DateTime(timezone=True), nullable=True)
    manually_unlocked = db.Column(db.Boolean, nullable=False, default=False)

    last_reminder_sent = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    customer = db.relationship("User", foreign_keys=[customer_id], backref=db.backref("orders", lazy=True))
    creator = db.relationship("User", foreign_keys=[created_by])
    contract = db.relationship("Contract", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.full_name if self.customer else None,
            "customer_email": self.customer.email if self.customer else None,
            "contract_id": self.contract_id,
            "contract_number": self.contract.contract_number if self.contract else None,
            "created_by": self.created_by,
            "creator_name": self.creator.full_name if self.creator else None,
            "order_date": to_utc_z(self.order_date),
            "total_amount": _money(self.total_amount),
            "rebate_percentage": _money(self.rebate_percentage),
            "rebate_amount": _money(self.rebate_amount),
            "customer_status": self.customer_status,
            "customer_comment": self.customer_comment,
            "customer_confirmed_date": to_utc_z(self.customer_confirmed_date) if self.customer_confirmed_date else None,
            "is_locked": self.is_locked,
            "locked_date": to_utc_z(self.locked_date) if self.locked_date else None,
            "manually_unlocked": self.manually_unlocked,
            "last_reminder_sent": to_utc_z(self.last_reminder_sent) if self.last_reminder_sent else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Line item; replaced wholesale whenever the order's items are edited."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(18, 2), nullable=False)
    total_price = db.Column(db.Numeric(18, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": _money(self.unit_price),
            "total_price": _money(self.total_price),
        }
