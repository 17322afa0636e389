from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError
from .time_utils import parse_iso_datetime


# Order limits
MAX_ITEMS_PER_ORDER = 100
MIN_QUANTITY = 1
MAX_QUANTITY = 10_000
MAX_UNIT_PRICE = Decimal("20000000")
PRICE_STEP = Decimal("0.01")
MAX_TOTAL_AMOUNT = Decimal("20000000")
MAX_PRODUCT_NAME_LENGTH = 200
MAX_COMMENT_LENGTH = 1000

# Contract limits
MAX_URL_LENGTH = 2048
MAX_SIGNATURE_LENGTH = 100_000
MAX_NAME_LENGTH = 200

ORDER_STATUSES = ("pending", "confirmed", "disputed")
CONTRACT_STATUSES = ("pending", "pending_approval", "approved", "active", "rejected", "expired")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^(\+?\d{1,4}[\s-]?)?\(?\d{1,4}\)?[\s-]?\d{1,9}[\s-]?\d{1,9}$")
_STRIP_TAGS_RE = re.compile(r"[<>]")
_STRIP_QUOTES_RE = re.compile(r"['\";\\]")
_SORT_CLEAN_RE = re.compile(r"[^a-zA-Z0-9_-]")


def present(payload: dict, key: str) -> bool:
    """
    A field counts as supplied only when the key exists with a non-null value.

    JSON has no "undefined": clients that serialize an absent field as null
    get the same treatment as clients that omit it.
    """
    return key in payload and payload[key] is not None


def sanitize_string(value: Any, max_length: int = 1000) -> str:
    """Trim, drop markup and quote characters, and cap length."""
    if not isinstance(value, str):
        return ""
    cleaned = _STRIP_TAGS_RE.sub("", value.strip())
    cleaned = _STRIP_QUOTES_RE.sub("", cleaned)
    return cleaned[:max_length]


def parse_decimal(value: Any, field: str, *, minimum: Decimal | None = None,
                  maximum: Decimal | None = None) -> Decimal:
    """
    Coerce a JSON number (or numeric string) to Decimal within bounds.

    Booleans are rejected even though Python treats them as ints.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not number.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must be <= {maximum}")
    return number


def parse_int(value: Any, field: str, *, minimum: int | None = None,
              maximum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer, not a decimal")
        value = int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.lstrip("-").isdigit():
            raise ValidationError(f"{field} must be an integer")
        value = int(stripped)
    if not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{field} must be <= {maximum}")
    return value


def parse_datetime_field(value: Any, field: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"Invalid {field} format")
    try:
        dt = parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"Invalid {field} format")
    if dt is None:
        raise ValidationError(f"Invalid {field} format")
    return dt


def parse_percentage(value: Any, field: str = "rebate_percentage") -> Decimal:
    return parse_decimal(value, field, minimum=Decimal("0"), maximum=Decimal("100"))


def parse_optional_text(value: Any, field: str, max_length: int, *, sanitize: bool = False) -> str | None:
    """Validate an optional free-text field. Over-length input is rejected, not truncated."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    if len(value) > max_length:
        raise ValidationError(f"{field} too long. Maximum {max_length} characters")
    if sanitize:
        return sanitize_string(value, max_length) or None
    return value.strip() or None


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email)) and len(email) <= 255


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_RE.match(phone)) and 10 <= len(phone) <= 20


def _int_or_default(value: Any, default: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def parse_pagination(page: Any, page_size: Any, *, default_size: int = 20, max_size: int = 100) -> tuple[int, int]:
    """Clamp page (>= 1) and page size (1..max_size); unparseable values fall back to defaults."""
    page_number = max(_int_or_default(page, 1), 1)
    size = _int_or_default(page_size, default_size)
    return page_number, min(max(size, 1), max_size)


def sanitize_sort_by(sort_by: str | None, allowed_fields: tuple[str, ...], default: str) -> str:
    """Whitelist a sort key with an optional leading '-' for descending order."""
    if not sort_by:
        return default
    cleaned = _SORT_CLEAN_RE.sub("", sort_by)
    descending = cleaned.startswith("-")
    field = cleaned[1:] if descending else cleaned
    if field in allowed_fields:
        return f"-{field}" if descending else field
    return default


@dataclass(frozen=True)
class ItemInput:
    product_name: str
    quantity: int
    unit_price: Decimal

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity


def validate_items(items: Any) -> list[ItemInput]:
    """
    Validate the full item set of an order.

    Orders always carry between 1 and MAX_ITEMS_PER_ORDER items; every item
    needs a product name, an integer quantity and a bounded unit price.
    """
    if not isinstance(items, list):
        raise ValidationError("Items must be an array")
    if not items:
        raise ValidationError("At least one item is required")
    if len(items) > MAX_ITEMS_PER_ORDER:
        raise ValidationError(f"Too many items. Maximum {MAX_ITEMS_PER_ORDER} items per order")

    cleaned: list[ItemInput] = []
    for raw in items:
        if not isinstance(raw, dict):
            raise ValidationError("Each item must be an object")
        name = raw.get("product_name")
        if not isinstance(name, str) or not sanitize_string(name, MAX_PRODUCT_NAME_LENGTH):
            raise ValidationError("Invalid product name")
        quantity = raw.get("quantity")
        try:
            quantity = parse_int(quantity, "quantity", minimum=MIN_QUANTITY, maximum=MAX_QUANTITY)
        except ValidationError:
            raise ValidationError(f"Invalid quantity. Must be between {MIN_QUANTITY} and {MAX_QUANTITY}")
        try:
            unit_price = parse_decimal(raw.get("unit_price"), "unit_price",
                                       minimum=Decimal("0"), maximum=MAX_UNIT_PRICE)
        except ValidationError:
            raise ValidationError(f"Invalid unit price. Must be between 0 and {MAX_UNIT_PRICE}")
        # Stored as Numeric(18, 2); totals are computed from the stored cents
        unit_price = unit_price.quantize(PRICE_STEP, rounding=ROUND_HALF_UP)
        cleaned.append(ItemInput(
            product_name=sanitize_string(name, MAX_PRODUCT_NAME_LENGTH),
            quantity=quantity,
            unit_price=unit_price,
        ))
    return cleaned
