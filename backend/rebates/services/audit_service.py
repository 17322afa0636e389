# Overview: Append-only audit log for privileged mutations.

from __future__ import annotations

from flask import has_request_context, request

from ..extensions import db
from ..models import AuditLogEntry


MAX_PAGE_SIZE = 500


def _client_ip() -> str | None:
    if not has_request_context():
        return None
    return request.remote_addr


def log(
    *,
    user_id: int | None,
    action: str,
    entity_type: str,
    entity_id: int | None = None,
    details: dict | None = None,
    ip_address: str | None = None,
) -> AuditLogEntry:
    """
    Add an audit entry to the current session.

    The entry is flushed but not committed: it becomes durable together with
    the mutation it describes, or disappears with it on rollback.
    """
    entry = AuditLogEntry(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        ip_address=ip_address or _client_ip(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_entries(*, limit: int = 100, offset: int = 0, entity_type: str | None = None) -> tuple[list[AuditLogEntry], int]:
    """Newest first. Returns (rows, total matching)."""
    query = db.session.query(AuditLogEntry)
    if entity_type:
        query = query.filter(AuditLogEntry.entity_type == entity_type)
    total = query.count()
    rows = (
        query.order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc())
        .offset(max(offset, 0))
        .limit(min(max(limit, 1), MAX_PAGE_SIZE))
        .all()
    )
    return rows, total
