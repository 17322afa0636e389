# Overview: Domain error taxonomy and JSON error translation for routes.

"""
Every business-rule violation raised by the service layer is one of these
classes. Routes catch them at the request boundary and turn them into
``({"error": message}, status)`` via ``json_error``. Anything that is not a
DomainError is an unexpected failure: it is logged with a stack trace and the
client only sees a generic 500.
"""

from __future__ import annotations

from flask import jsonify


GENERIC_FORBIDDEN = "Insufficient permissions"


class DomainError(Exception):
    """Base class for errors that map to a client-visible HTTP status."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(DomainError):
    """Malformed or out-of-range input."""
    status_code = 400


class ConflictError(DomainError):
    """Business invariant violation (duplicate contract, confirmed order, ...)."""
    status_code = 400


class AuthenticationError(DomainError):
    """Missing, expired or invalid bearer token."""
    status_code = 401


class AuthorizationError(DomainError):
    """Role or ownership violation."""
    status_code = 403

    def __init__(self, message: str = GENERIC_FORBIDDEN, details: dict | None = None):
        super().__init__(message, details)


class OrderLockedError(AuthorizationError):
    """Customer tried to change a locked order. Distinct so the client can show a locked state."""

    def __init__(self, message: str = "Order is locked and can no longer be changed"):
        super().__init__(message)

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["locked"] = True
        return body


class NotFoundError(DomainError):
    status_code = 404


class InternalError(DomainError):
    status_code = 500

    def __init__(self, message: str = "Internal server error", details: dict | None = None):
        super().__init__(message, details)


def json_error(exc: DomainError):
    """Translate a domain error into a Flask JSON response tuple."""
    return jsonify(exc.to_dict()), exc.status_code
