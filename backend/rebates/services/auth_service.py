# Overview: Password hashing, registration and login.

"""
Passwords are hashed with bcrypt (cost BCRYPT_ROUNDS). New accounts always
start as role=user; a requested elevated role becomes a pending RoleRequest
that an admin or manager reviews.
"""

import bcrypt
from flask import current_app

from ..errors import AuthenticationError, AuthorizationError, ConflictError, ValidationError
from ..extensions import db
from ..models import RoleRequest, User
from ..permissions import ROLE_USER, ROLES
from ..time_utils import utcnow
from ..validation import is_valid_email, is_valid_phone, present, sanitize_string
from . import token_service, verification_service
from .concurrency import atomic


MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 100
REQUESTABLE_ROLES = ("staff", "manager", "admin")


def validate_password(password) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if len(password) > MAX_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_LENGTH} characters long")


def hash_password(password: str) -> str:
    validate_password(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not isinstance(password, str) or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def normalize_email(email) -> str:
    if not isinstance(email, str) or not email.strip():
        raise ValidationError("Email is required")
    value = email.strip().lower()
    if not is_valid_email(value):
        raise ValidationError("Invalid email format")
    return value


def clean_full_name(full_name) -> str:
    name = sanitize_string(full_name, MAX_NAME_LENGTH + 1)
    if len(name) < MIN_NAME_LENGTH or len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Full name must be between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters")
    return name


def clean_phone(phone) -> str | None:
    if phone is None or phone == "":
        return None
    if not isinstance(phone, str) or not is_valid_phone(phone.strip()):
        raise ValidationError("Invalid phone number format")
    return phone.strip()


def create_user(*, email: str, password: str, full_name: str, role: str = ROLE_USER,
                phone: str | None = None, email_verified: bool = False) -> User:
    """Insert a user without the registration workflow (CLI bootstrap, tests)."""
    if role not in ROLES:
        raise ValidationError(f"Invalid role. Must be one of: {', '.join(ROLES)}")
    email = normalize_email(email)
    if db.session.query(User.id).filter_by(email=email).first():
        raise ConflictError("User with this email already exists")
    user = User(
        email=email,
        password_hash=hash_password(password),
        full_name=clean_full_name(full_name),
        phone=clean_phone(phone),
        role=role,
        email_verified=email_verified,
    )
    db.session.add(user)
    db.session.flush()
    return user


def register(payload: dict, settings) -> tuple[User, RoleRequest | None]:
    """
    Self-service registration.

    When require_email_verification is on, the payload must carry a valid
    registration code, or the address must have verified one recently.
    """
    email = normalize_email(payload.get("email"))
    validate_password(payload.get("password"))
    full_name = clean_full_name(payload.get("full_name"))
    phone = clean_phone(payload.get("phone"))

    requested_role = payload.get("requested_role") if present(payload, "requested_role") else None
    if requested_role == ROLE_USER:
        requested_role = None
    if requested_role is not None and requested_role not in REQUESTABLE_ROLES:
        raise ValidationError(f"Invalid requested role. Must be one of: {', '.join(REQUESTABLE_ROLES)}")

    if db.session.query(User.id).filter_by(email=email).first():
        raise ConflictError("User with this email already exists")

    email_verified = False
    if settings.require_email_verification:
        code = payload.get("verification_code")
        if code:
            result = verification_service.verify_code(email, str(code), "registration")
            if not result["success"]:
                raise ValidationError(result["message"])
        elif not verification_service.has_recent_verification(email, "registration"):
            raise ValidationError("Email verification is required")
        email_verified = True

    with atomic():
        user = create_user(
            email=email,
            password=payload["password"],
            full_name=full_name,
            phone=phone,
            email_verified=email_verified,
        )
        role_request = None
        if requested_role:
            role_request = RoleRequest(user_id=user.id, requested_role=requested_role)
            db.session.add(role_request)

    current_app.logger.info("Registered user %s (requested role: %s)", user.id, requested_role or "none")
    return user, role_request


def authenticate(email, password) -> tuple[User, str]:
    """Return (user, bearer token). Deactivated accounts are refused with 403."""
    if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
        raise ValidationError("Email and password are required")

    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthorizationError("Account is deactivated. Contact an administrator")

    user.last_login_at = utcnow()
    db.session.commit()
    return user, token_service.issue_token(user)


def change_password(user: User, current_password, new_password) -> None:
    if not current_password or not new_password:
        raise ValidationError("Current and new passwords are required")
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    if current_password == new_password:
        raise ValidationError("New password must be different from current password")
    user.password_hash = hash_password(new_password)
    db.session.commit()
