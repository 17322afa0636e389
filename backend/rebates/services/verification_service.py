# Overview: One-time verification codes for registration and password reset.

"""
Codes are six random digits. Only a SHA-256 hash is stored; a code expires
after CODE_TTL_MINUTES and allows MAX_ATTEMPTS wrong guesses. Sending a new
code for the same destination and purpose removes earlier unverified codes.

Both operations return {"success": bool, "message": str}; delivery problems
propagate from the notifier.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import timedelta

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import VerificationCode
from ..time_utils import utcnow
from ..validation import is_valid_email, is_valid_phone
from .concurrency import atomic
from .notifications import get_notifier


PURPOSES = ("registration", "password_reset")
CODE_TTL_MINUTES = 10
MAX_ATTEMPTS = 5
RECENT_VERIFICATION_MINUTES = 30


def _hash(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def normalize_destination(destination) -> str:
    if not isinstance(destination, str) or not destination.strip():
        raise ValidationError("Destination is required")
    value = destination.strip()
    if "@" in value:
        value = value.lower()
        if not is_valid_email(value):
            raise ValidationError("Invalid email format")
        return value
    if not is_valid_phone(value):
        raise ValidationError("Invalid phone number format")
    return value


def _check_purpose(purpose: str) -> None:
    if purpose not in PURPOSES:
        raise ValidationError(f"Invalid purpose. Must be one of: {', '.join(PURPOSES)}")


def send_code(destination, purpose: str) -> dict:
    destination = normalize_destination(destination)
    _check_purpose(purpose)

    code = f"{secrets.randbelow(1_000_000):06d}"
    with atomic():
        (
            db.session.query(VerificationCode)
            .filter_by(destination=destination, purpose=purpose, verified=False)
            .delete(synchronize_session=False)
        )
        db.session.add(VerificationCode(
            destination=destination,
            purpose=purpose,
            code_hash=_hash(code),
            expires_at=utcnow() + timedelta(minutes=CODE_TTL_MINUTES),
        ))

    get_notifier().send(
        destination,
        "Your verification code",
        f"Your verification code is {code}. It expires in {CODE_TTL_MINUTES} minutes.",
    )
    current_app.logger.info("Sent %s verification code to %s", purpose, destination)
    return {"success": True, "message": "Verification code sent"}


def verify_code(destination, code, purpose: str) -> dict:
    destination = normalize_destination(destination)
    _check_purpose(purpose)
    if not isinstance(code, str) or not code.strip():
        raise ValidationError("Verification code is required")

    with atomic():
        row = (
            db.session.query(VerificationCode)
            .filter_by(destination=destination, purpose=purpose, verified=False)
            .order_by(VerificationCode.id.desc())
            .first()
        )
        if row is None:
            return {"success": False, "message": "No verification code found. Request a new one"}
        if row.expires_at < utcnow():
            return {"success": False, "message": "Verification code has expired"}
        if row.attempts >= MAX_ATTEMPTS:
            return {"success": False, "message": "Too many attempts. Request a new code"}

        if not hmac.compare_digest(row.code_hash, _hash(code.strip())):
            row.attempts += 1
            return {"success": False, "message": "Invalid verification code"}

        row.verified = True
        row.verified_at = utcnow()
    return {"success": True, "message": "Verification successful"}


def has_recent_verification(destination, purpose: str, within_minutes: int = RECENT_VERIFICATION_MINUTES) -> bool:
    """True when destination verified a code for purpose within the window."""
    destination = normalize_destination(destination)
    cutoff = utcnow() - timedelta(minutes=within_minutes)
    return (
        db.session.query(VerificationCode.id)
        .filter(
            VerificationCode.destination == destination,
            VerificationCode.purpose == purpose,
            VerificationCode.verified.is_(True),
            VerificationCode.verified_at >= cutoff,
        )
        .first()
        is not None
    )
