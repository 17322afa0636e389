from __future__ import annotations

from ..extensions import db


class VerificationCode(db.Model):
    """
    One-time code sent to an email address or phone number.

    Only the SHA-256 hash of the code is stored. A code is usable until it
    expires, is verified, or exhausts its attempts.
    """
    __tablename__ = "verification_codes"
    __table_args__ = (
        db.Index("ix_verification_codes_lookup", "destination", "purpose", "verified"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    destination = db.Column(db.String(255), nullable=False)
    purpose = db.Column(db.String(32), nullable=False)  # registration, password_reset
    code_hash = db.Column(db.String(64), nullable=False)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    verified = db.Column(db.Boolean, nullable=False, default=False)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
