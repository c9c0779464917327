"""
Invoice workflow

Creation snapshots resolved unit prices onto the lines; nothing about the
lines or amounts changes afterwards. Two independent one-way transitions
follow:

- mark_paid: PENDING -> PAID. A second call is a conflict, not a no-op.
- execute_invoice: not executed -> executed, deducting every service's
  consumables scaled by line quantity. All-or-nothing.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from flask import current_app

from ..extensions import db
from ..models import Invoice, InvoiceLine, Customer, Service, ClothingType
from ..models.invoices import PAYMENT_PENDING, PAYMENT_PAID
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    parse_id,
)
from dryclean.time_utils import utcnow, parse_iso_date
from .concurrency import lock_for_update, run_with_retry
from .inventory_service import consume_for_invoice
from .pricing_service import resolve_price, compute_totals


PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_PAID)
MAX_LINES = 200


def _format_invoice_number(invoice_id: int) -> str:
    return f"INV-{invoice_id:06d}"


def _parse_items(raw_items: Any) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required")
    if len(raw_items) > MAX_LINES:
        raise ValidationError(f"An invoice can have at most {MAX_LINES} items")

    items = []
    for index, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {index} must be an object")
        if raw.get("serviceId") in (None, ""):
            raise ValidationError(f"Item {index}: serviceId is required")
        clothing_type_id = raw.get("clothingTypeId")
        items.append({
            "service_id": parse_id(raw.get("serviceId"), f"Item {index} serviceId"),
            "clothing_type_id": (
                parse_id(clothing_type_id, f"Item {index} clothingTypeId")
                if clothing_type_id not in (None, "") else None
            ),
            "quantity": raw.get("quantity", 1),
        })
    return items


def _parse_pickup_date(value: Any) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError("pickupDate must be an ISO-8601 date")


def create_invoice(
    customer_id: Any,
    items: Any,
    discount: Any = 0,
    pickup_date: Any = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> Invoice:
    """
    Price every line from the current catalog and persist the invoice.

    Raises ValidationError for malformed input and NotFoundError when the
    customer, a service or a clothing type does not exist.
    """
    if customer_id in (None, ""):
        raise ValidationError("customerId is required")
    customer = db.session.get(Customer, parse_id(customer_id, "customerId"))
    if not customer:
        raise NotFoundError("Customer not found")

    parsed_items = _parse_items(items)
    pickup = _parse_pickup_date(pickup_date)

    priced = []
    for index, item in enumerate(parsed_items, start=1):
        service = db.session.get(Service, item["service_id"])
        if not service:
            raise NotFoundError(f"Item {index}: service not found")
        if not service.is_active:
            raise ValidationError(f"Item {index}: service '{service.name}' is inactive")

        clothing_type = None
        pricing = {}
        if item["clothing_type_id"] is not None:
            clothing_type = db.session.get(ClothingType, item["clothing_type_id"])
            if not clothing_type:
                raise NotFoundError(f"Item {index}: clothing type not found")
            pricing = clothing_type.pricing_map()

        resolved = resolve_price(service.base_price, service.id, pricing)
        priced.append((service, clothing_type, resolved, item["quantity"]))

    totals = compute_totals(
        [(resolved.unit_price, qty) for _s, _c, resolved, qty in priced],
        discount,
    )

    invoice = Invoice(
        customer_id=customer.id,
        created_at=utcnow(),
        pickup_date=pickup,
        notes=(notes or "").strip() or None,
        discount=totals.discount,
        subtotal=totals.subtotal,
        raw_total=totals.raw_total,
        total=totals.total,
        payment_status=PAYMENT_PENDING,
        is_executed=False,
        created_by_user_id=user_id,
    )
    for (service, clothing_type, resolved, _qty), amount in zip(priced, totals.lines):
        invoice.lines.append(InvoiceLine(
            service_id=service.id,
            clothing_type_id=clothing_type.id if clothing_type else None,
            service_name=service.name,
            clothing_type_name=clothing_type.name if clothing_type else None,
            quantity=amount.quantity,
            unit_price=amount.unit_price,
            price_source=resolved.source,
            line_total=amount.line_total,
        ))

    db.session.add(invoice)
    db.session.flush()
    invoice.invoice_number = _format_invoice_number(invoice.id)
    db.session.commit()

    if totals.raw_total < 0:
        current_app.logger.warning(
            "Invoice %s discount %s exceeds subtotal %s; total clamped to 0",
            invoice.invoice_number, totals.discount, totals.subtotal,
        )
    current_app.logger.info(
        "Invoice created: %s customer=%s total=%s", invoice.invoice_number, customer.id, invoice.total
    )
    return invoice


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


def list_invoices(
    *,
    payment_status: str | None = None,
    executed: bool | None = None,
    customer_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Invoice]:
    query = db.session.query(Invoice)
    if payment_status:
        if payment_status not in PAYMENT_STATUSES:
            raise ValidationError(f"paymentStatus must be one of: {', '.join(PAYMENT_STATUSES)}")
        query = query.filter(Invoice.payment_status == payment_status)
    if executed is not None:
        query = query.filter(Invoice.is_executed.is_(executed))
    if customer_id is not None:
        query = query.filter(Invoice.customer_id == customer_id)
    if start is not None:
        query = query.filter(Invoice.created_at >= start)
    if end is not None:
        query = query.filter(Invoice.created_at <= end)
    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def get_invoices_for_customer(customer_id: int) -> list[Invoice]:
    if not db.session.get(Customer, customer_id):
        raise NotFoundError("Customer not found")
    return list_invoices(customer_id=customer_id)


def mark_paid(invoice_id: int, user_id: int | None = None) -> Invoice:
    """PENDING -> PAID. Raises ConflictError if the invoice is already paid."""
    def _op():
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFoundError("Invoice not found")
        if invoice.payment_status == PAYMENT_PAID:
            raise ConflictError("Invoice is already paid")

        invoice.payment_status = PAYMENT_PAID
        invoice.paid_at = utcnow()
        invoice.paid_by_user_id = user_id
        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    current_app.logger.info("Invoice paid: %s total=%s", invoice.invoice_number, invoice.total)
    return invoice


def consumable_requirements(invoice: Invoice) -> dict[int, Decimal]:
    """Sum consumable.quantity * line.quantity per inventory item."""
    needed: dict[int, Decimal] = defaultdict(Decimal)
    for line in invoice.lines:
        service = line.service
        if service is None:
            continue
        for consumable in service.consumables:
            needed[consumable.inventory_item_id] += Decimal(consumable.quantity) * Decimal(line.quantity)
    return dict(needed)


def execute_invoice(invoice_id: int, user_id: int | None = None) -> Invoice:
    """
    Deduct consumables for every line and mark the invoice executed.

    Raises ConflictError if already executed and InsufficientInventoryError
    (nothing deducted, flag unchanged) if any item would go negative.
    """
    def _op():
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFoundError("Invoice not found")
        if invoice.is_executed:
            raise ConflictError("Invoice services have already been executed")

        consume_for_invoice(
            consumable_requirements(invoice),
            invoice_id=invoice.id,
            note=f"Invoice {invoice.invoice_number} executed",
            user_id=user_id,
        )

        invoice.is_executed = True
        invoice.executed_at = utcnow()
        invoice.executed_by_user_id = user_id
        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    current_app.logger.info("Invoice executed: %s", invoice.invoice_number)
    return invoice
