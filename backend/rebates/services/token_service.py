# Overview: Signed bearer tokens (JWT) carrying the principal's id, email and role.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from flask import current_app
from jose import JWTError, jwt


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    email: str
    role: str


def issue_token(user) -> str:
    """Create a signed token for user, valid for JWT_EXPIRES_HOURS."""
    expires = datetime.now(timezone.utc) + timedelta(hours=current_app.config["JWT_EXPIRES_HOURS"])
    payload = {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "exp": expires,
    }
    return jwt.encode(payload, current_app.config["JWT_SECRET"], algorithm=current_app.config["JWT_ALGORITHM"])


def decode_token(token: str) -> TokenClaims | None:
    """
    Validate signature and expiry.

    Returns None for any invalid, expired or malformed token. The role in the
    claims is informational; authorization always uses the role stored on the
    user record.
    """
    try:
        payload = jwt.decode(
            token,
            current_app.config["JWT_SECRET"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
        )
    except JWTError as exc:
        current_app.logger.info("Rejected bearer token: %s", exc)
        return None

    user_id = payload.get("id")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        return None
    return TokenClaims(user_id=user_id, email=payload.get("email", ""), role=payload.get("role", ""))
