# Overview: Rebate arithmetic on Decimal money values.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def quantize_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def items_total(items: Iterable) -> Decimal:
    """Sum of quantity x unit_price over anything exposing those attributes."""
    total = Decimal("0")
    for item in items:
        total += Decimal(item.quantity) * Decimal(item.unit_price)
    return quantize_money(total)


def compute_rebate(total_amount: Decimal, percentage: Decimal) -> Decimal:
    """rebate = total x percentage / 100, rounded half-up to cents."""
    return quantize_money(Decimal(total_amount) * Decimal(percentage) / HUNDRED)


def effective_percentage(explicit: Decimal | None, contract, default: Decimal) -> Decimal:
    """
    Percentage applied when an order is created.

    Explicit request value first, then the referenced contract, then the
    system default.
    """
    if explicit is not None:
        return explicit
    if contract is not None and contract.rebate_percentage is not None:
        return Decimal(contract.rebate_percentage)
    return default
