# Overview: Unit price resolution and invoice totals; pure functions plus catalog lookups.

"""
Pricing rules

Resolution: a clothing type's override for a service wins when present and
not null, including an override of 0 (free). A missing entry, or an entry
holding null, falls back to the service's base price.

Totals: line_total = unit_price * quantity rounded half-up to whole
shillings; subtotal = sum(line_total); raw_total = subtotal - discount;
total = max(0, raw_total). raw_total is kept for audit.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping

from ..extensions import db
from ..models import Service, ClothingType
from ..validation import (
    MAX_AMOUNT,
    ValidationError,
    NotFoundError,
    parse_id,
    parse_money,
    parse_quantity,
    round_money,
)


PRICE_SOURCE_BASE = "BASE"
PRICE_SOURCE_OVERRIDE = "OVERRIDE"


@dataclass(frozen=True)
class ResolvedPrice:
    unit_price: int
    source: str


@dataclass(frozen=True)
class LineAmount:
    unit_price: int
    quantity: Decimal
    line_total: int


@dataclass(frozen=True)
class InvoiceTotals:
    lines: tuple[LineAmount, ...]
    subtotal: int
    discount: int
    raw_total: int
    total: int


def normalize_pricing(raw: Any) -> dict[int, int | None]:
    """
    Normalize a pricing table from the API into {service_id: price | None}.

    Accepts a JSON object keyed by service id, or a list of
    {"serviceId": ..., "price": ...} entries. Empty strings count as null.
    """
    if raw is None:
        return {}

    if isinstance(raw, Mapping):
        entries = list(raw.items())
    elif isinstance(raw, list):
        entries = []
        for entry in raw:
            if not isinstance(entry, Mapping):
                raise ValidationError("pricing entries must be objects")
            if "serviceId" not in entry:
                raise ValidationError("pricing entries require serviceId")
            entries.append((entry["serviceId"], entry.get("price")))
    else:
        raise ValidationError("pricing must be an object or a list")

    pricing: dict[int, int | None] = {}
    for key, value in entries:
        service_id = parse_id(key, "pricing serviceId")
        if service_id in pricing:
            raise ValidationError(f"Duplicate pricing entry for service {service_id}")
        if value is None or (isinstance(value, str) and not value.strip()):
            pricing[service_id] = None
        else:
            pricing[service_id] = parse_money(value, "pricing price")
    return pricing


def resolve_price(base_price: int, service_id: int, pricing: Mapping[int, int | None]) -> ResolvedPrice:
    """Apply the override rule to already-loaded values."""
    override = pricing.get(service_id)
    if override is not None:
        return ResolvedPrice(unit_price=override, source=PRICE_SOURCE_OVERRIDE)
    return ResolvedPrice(unit_price=base_price, source=PRICE_SOURCE_BASE)


def resolve_unit_price(service_id: int, clothing_type_id: int | None = None) -> ResolvedPrice:
    """
    Resolve the price to charge for a service, optionally for a clothing type.

    Raises NotFoundError if the service or clothing type does not exist.
    """
    service = db.session.get(Service, service_id)
    if not service:
        raise NotFoundError("Service not found")

    pricing: Mapping[int, int | None] = {}
    if clothing_type_id is not None:
        clothing_type = db.session.get(ClothingType, clothing_type_id)
        if not clothing_type:
            raise NotFoundError("Clothing type not found")
        pricing = clothing_type.pricing_map()

    return resolve_price(service.base_price, service.id, pricing)


def line_amount(unit_price: int, quantity: Any) -> LineAmount:
    qty = parse_quantity(quantity)
    return LineAmount(
        unit_price=unit_price,
        quantity=qty,
        line_total=round_money(Decimal(unit_price) * qty),
    )


def compute_totals(lines: Iterable[tuple[int, Any]], discount: Any = 0) -> InvoiceTotals:
    """
    Compute invoice amounts from (unit_price, quantity) pairs.

    >>> compute_totals([(5000, 2), (3000, 1)], 1000).total
    12000
    """
    amounts = tuple(line_amount(price, qty) for price, qty in lines)
    discount_value = parse_money(discount if discount not in (None, "") else 0, "discount")

    for index, amount in enumerate(amounts, start=1):
        if amount.line_total > MAX_AMOUNT:
            raise ValidationError(f"Item {index} total cannot exceed {MAX_AMOUNT:,}")

    subtotal = sum(a.line_total for a in amounts)
    if subtotal > MAX_AMOUNT:
        raise ValidationError(f"Invoice subtotal cannot exceed {MAX_AMOUNT:,}")
    raw_total = subtotal - discount_value

    return InvoiceTotals(
        lines=amounts,
        subtotal=subtotal,
        discount=discount_value,
        raw_total=raw_total,
        total=max(0, raw_total),
    )
