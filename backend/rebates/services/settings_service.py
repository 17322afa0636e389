# Overview: Runtime system settings with per-request resolution and a TTL cache.

"""
Settings live in the system_settings table as strings and are typed by
SETTINGS_CATALOG. Request handlers resolve them once into an immutable
RebateSettings (stored on flask.g) and pass that object into services.

Resolution is backed by a per-app cache with a TTL of SETTINGS_CACHE_SECONDS;
every write invalidates it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from flask import current_app, g, has_app_context

from ..errors import ValidationError
from ..extensions import db
from ..models import SystemSetting
from ..settings_catalog import SETTINGS_CATALOG, CATALOG_BY_KEY
from ..validation import parse_decimal, parse_int
from . import audit_service
from .concurrency import atomic


_CACHE_KEY = "rebate_settings_cache"
_G_KEY = "rebate_settings"


@dataclass(frozen=True)
class RebateSettings:
    auto_lock_days: int = 3
    default_rebate_percentage: Decimal = Decimal("1.00")
    order_reminder_days: int = 7
    require_email_verification: bool = False


_CONVERTERS = {
    "int": int,
    "decimal": Decimal,
    "bool": lambda raw: raw.strip().lower() == "true",
}


def _coerce(key: str, raw: str) -> Any:
    """Typed value from the stored string. Malformed stored values fall back to the catalog default."""
    entry = CATALOG_BY_KEY[key]
    convert = _CONVERTERS[entry["type"]]
    try:
        return convert(raw)
    except (ValueError, ArithmeticError):
        current_app.logger.warning("Ignoring malformed setting %s=%r", key, raw)
        return convert(entry["default"])


def normalize_value(key: str, value: Any) -> str:
    """Validate a client-supplied value for key and return its storage string."""
    entry = CATALOG_BY_KEY.get(key)
    if entry is None:
        raise ValidationError(f"Unknown setting: {key}")
    kind = entry["type"]
    if kind == "int":
        number = parse_int(value, key, minimum=entry["min"], maximum=entry["max"])
        return str(number)
    if kind == "decimal":
        number = parse_decimal(value, key, minimum=Decimal(entry["min"]), maximum=Decimal(entry["max"]))
        return str(number.quantize(Decimal("0.01")))
    if kind == "bool":
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower()
        raise ValidationError(f"{key} must be true or false")
    raise ValidationError(f"Unsupported setting type for {key}")


def _stored_values() -> dict[str, str]:
    rows = db.session.query(SystemSetting.key, SystemSetting.value).all()
    return {key: value for key, value in rows}


def _build(stored: dict[str, str]) -> RebateSettings:
    values = {}
    for entry in SETTINGS_CATALOG:
        values[entry["key"]] = _coerce(entry["key"], stored.get(entry["key"], entry["default"]))
    return RebateSettings(**values)


def load_settings(*, use_cache: bool = True) -> RebateSettings:
    """Resolve settings from the cache, or from the database when stale."""
    cache = current_app.extensions.setdefault(_CACHE_KEY, {})
    ttl = current_app.config.get("SETTINGS_CACHE_SECONDS", 300)
    now = time.monotonic()
    if use_cache and cache.get("settings") is not None and now - cache["loaded_at"] < ttl:
        return cache["settings"]

    settings = _build(_stored_values())
    cache["settings"] = settings
    cache["loaded_at"] = now
    return settings


def current_settings() -> RebateSettings:
    """Settings for the current request (resolved once, then reused from flask.g)."""
    settings = g.get(_G_KEY)
    if settings is None:
        settings = load_settings()
        setattr(g, _G_KEY, settings)
    return settings


def invalidate_cache() -> None:
    if not has_app_context():
        return
    current_app.extensions.pop(_CACHE_KEY, None)
    g.pop(_G_KEY, None)


def list_settings() -> list[dict]:
    """Catalog merged with stored values, typed for JSON."""
    stored = _stored_values()
    result = []
    for entry in SETTINGS_CATALOG:
        value = _coerce(entry["key"], stored.get(entry["key"], entry["default"]))
        result.append({
            "key": entry["key"],
            "type": entry["type"],
            "value": float(value) if isinstance(value, Decimal) else value,
            "default": entry["default"],
            "description": entry["description"],
            "is_default": entry["key"] not in stored,
        })
    return result


def update_setting(key: str, value: Any, *, actor_id: int) -> dict:
    """Validate, store and audit one setting. Invalidates the settings cache."""
    normalized = normalize_value(key, value)

    with atomic():
        row = db.session.query(SystemSetting).filter_by(key=key).first()
        old_value = row.value if row else CATALOG_BY_KEY[key]["default"]
        if row is None:
            row = SystemSetting(
                key=key,
                value=normalized,
                description=CATALOG_BY_KEY[key]["description"],
                updated_by=actor_id,
            )
            db.session.add(row)
        else:
            row.value = normalized
            row.updated_by = actor_id
        audit_service.log(
            user_id=actor_id,
            action="update_setting",
            entity_type="system",
            details={"key": key, "old_value": old_value, "new_value": normalized},
        )

    invalidate_cache()
    current_app.logger.info("Setting %s changed from %s to %s by user %s", key, old_value, normalized, actor_id)
    return {"key": key, "value": normalized, "previous_value": old_value}


def seed_defaults() -> int:
    """Insert catalog defaults for keys without a stored row. Returns the number inserted."""
    existing = set(_stored_values())
    added = 0
    for entry in SETTINGS_CATALOG:
        if entry["key"] in existing:
            continue
        db.session.add(SystemSetting(key=entry["key"], value=entry["default"], description=entry["description"]))
        added += 1
    if added:
        db.session.commit()
        invalidate_cache()
    return added
