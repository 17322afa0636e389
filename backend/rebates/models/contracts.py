from __future__ import annotations

from ..extensions import db
from rebates.time_utils import to_utc_z


# Statuses that count as "holding" a contract for the one-contract-per-customer rule
LIVE_CONTRACT_STATUSES = ("pending", "pending_approval", "approved", "active")

_LIVE_PREDICATE = "status IN ('pending', 'pending_approval', 'approved', 'active')"


class Contract(db.Model):
    """
    Rebate contract between the business and one customer.

    Lifecycle: pending -> pending_approval -> approved | active | rejected.
    expired is set by date-based housekeeping, not by this workflow.

    The partial unique index is the authoritative guard for "one live contract
    per customer"; the service-level existence check only produces a nicer error.
    """
    __tablename__ = "contracts"
    __table_args__ = (
        db.Index(
            "uq_contracts_live_customer",
            "customer_id",
            unique=True,
            sqlite_where=db.text(_LIVE_PREDICATE),
            postgresql_where=db.text(_LIVE_PREDICATE),
        ),
        db.Index("ix_contracts_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # Human-readable number (e.g., "CNT-1760832000000-3F2A")
    contract_number = db.Column(db.String(64), nullable=False, unique=True)

    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=False)
    rebate_percentage = db.Column(db.Numeric(5, 2), nullable=False)
    status = db.Column(db.String(32), nullable=False, default="pending", index=True)

    signed_contract_url = db.Column(db.String(2048), nullable=True)
    customer_signature_data_url = db.Column(db.Text, nullable=True)

    # Approval fields
    manager_signature_data_url = db.Column(db.Text, nullable=True)
    manager_name = db.Column(db.String(200), nullable=True)
    manager_position = db.Column(db.String(200), nullable=True)
    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    approved_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    customer = db.relationship("User", foreign_keys=[customer_id], backref=db.backref("contracts", lazy=True))
    creator = db.relationship("User", foreign_keys=[created_by])
    approver = db.relationship("User", foreign_keys=[approved_by])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.full_name if self.customer else None,
            "customer_email": self.customer.email if self.customer else None,
            "customer_phone": self.customer.phone if self.customer else None,
            "created_by": self.created_by,
            "creator_name": self.creator.full_name if self.creator else None,
            "contract_number": self.contract_number,
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "rebate_percentage": float(self.rebate_percentage) if self.rebate_percentage is not None else None,
            "status": self.status,
            "signed_contract_url": self.signed_contract_url,
            "customer_signature_data_url": self.customer_signature_data_url,
            "manager_signature_data_url": self.manager_signature_data_url,
            "manager_name": self.manager_name,
            "manager_position": self.manager_position,
            "approved_by": self.approved_by,
            "approver_name": self.approver.full_name if self.approver else None,
            "approved_date": to_utc_z(self.approved_date) if self.approved_date else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
