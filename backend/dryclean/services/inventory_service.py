# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

"""
Inventory invariants

- On-hand quantity is stored on InventoryItem and never goes below zero.
- Every quantity change appends an InventoryTransaction in the same DB
  transaction (RECEIVE, ADJUST, CONSUME).
- consume_for_invoice() is all-or-nothing: every requirement is checked
  against locked rows before any row is changed.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Mapping

from flask import current_app

from ..extensions import db
from ..models import InventoryItem, InventoryTransaction, ServiceConsumable
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    ConflictError,
    NotFoundError,
    validate_payload,
    enforce_rules_inventory_item,
    to_decimal,
    QUANTITY_PLACES,
)
from dryclean.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


TX_RECEIVE = "RECEIVE"
TX_ADJUST = "ADJUST"
TX_CONSUME = "CONSUME"

INVENTORY_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"name", "quantity", "unit", "reorder_level", "is_active"},
    required_on_create={"name"},
    aliases={"reorderLevel": "reorder_level", "isActive": "is_active"},
)


class InsufficientInventoryError(ConflictError):
    """Raised when consumption would drive one or more items negative."""


def _record(item: InventoryItem, tx_type: str, delta: Decimal, *,
            invoice_id: int | None = None, note: str | None = None,
            user_id: int | None = None) -> InventoryTransaction:
    tx = InventoryTransaction(
        inventory_item_id=item.id,
        type=tx_type,
        quantity_delta=delta,
        quantity_after=item.quantity,
        invoice_id=invoice_id,
        note=note,
        created_by_user_id=user_id,
        occurred_at=utcnow(),
    )
    db.session.add(tx)
    return tx


def list_items(include_inactive: bool = True) -> list[InventoryItem]:
    query = db.session.query(InventoryItem)
    if not include_inactive:
        query = query.filter(InventoryItem.is_active.is_(True))
    return query.order_by(InventoryItem.name).all()


def get_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if not item:
        raise NotFoundError("Inventory item not found")
    return item


def get_low_stock_items() -> list[InventoryItem]:
    """Active items with a reorder level whose quantity is at or below it."""
    return db.session.query(InventoryItem).filter(
        InventoryItem.is_active.is_(True),
        InventoryItem.reorder_level.isnot(None),
        InventoryItem.quantity <= InventoryItem.reorder_level,
    ).order_by(InventoryItem.name).all()


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(InventoryItem).filter(db.func.lower(InventoryItem.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(InventoryItem.id != exclude_id)
    if query.first():
        raise ConflictError("An inventory item with this name already exists")


def create_item(payload: dict, user_id: int | None = None) -> InventoryItem:
    patch = validate_payload(model=InventoryItem, payload=payload, policy=INVENTORY_ITEM_POLICY, partial=False)
    enforce_rules_inventory_item(patch)
    _ensure_unique_name(patch["name"])

    quantity = patch.pop("quantity", None) or Decimal("0")
    item = InventoryItem(quantity=quantity, **patch)
    db.session.add(item)
    db.session.flush()
    if quantity > 0:
        _record(item, TX_RECEIVE, quantity, note="Initial stock", user_id=user_id)

    db.session.commit()
    return item


def update_item(item_id: int, payload: dict, user_id: int | None = None) -> InventoryItem:
    """Update fields; a changed quantity is logged as RECEIVE or ADJUST."""
    def _op():
        item = lock_for_update(db.session.query(InventoryItem).filter_by(id=item_id)).first()
        if not item:
            raise NotFoundError("Inventory item not found")

        patch = validate_payload(model=InventoryItem, payload=payload, policy=INVENTORY_ITEM_POLICY, partial=True)
        if "quantity" in patch and patch["quantity"] is None:
            raise ValidationError("quantity cannot be null")
        enforce_rules_inventory_item(patch)
        if "name" in patch:
            _ensure_unique_name(patch["name"], exclude_id=item.id)

        new_quantity = patch.pop("quantity", None)
        for key, value in patch.items():
            setattr(item, key, value)

        if new_quantity is not None and new_quantity != item.quantity:
            delta = new_quantity - item.quantity
            item.quantity = new_quantity
            _record(item, TX_RECEIVE if delta > 0 else TX_ADJUST, delta, note="Quantity edited", user_id=user_id)

        db.session.commit()
        return item

    return run_with_retry(_op)


def adjust_item(item_id: int, quantity_delta, note: str | None = None, user_id: int | None = None) -> InventoryTransaction:
    """Apply a signed correction. The result may not be negative."""
    delta = to_decimal(quantity_delta, "quantityDelta")
    if delta == 0:
        raise ValidationError("quantityDelta must be non-zero")
    if delta != delta.quantize(QUANTITY_PLACES):
        raise ValidationError("quantityDelta supports at most 3 decimal places")

    def _op():
        item = lock_for_update(db.session.query(InventoryItem).filter_by(id=item_id)).first()
        if not item:
            raise NotFoundError("Inventory item not found")
        if item.quantity + delta < 0:
            raise InsufficientInventoryError(
                "Adjustment would make quantity negative",
                details={"items": [{
                    "inventoryItemId": item.id,
                    "name": item.name,
                    "onHand": float(item.quantity),
                    "requested": float(-delta),
                }]},
            )
        item.quantity = item.quantity + delta
        tx = _record(item, TX_RECEIVE if delta > 0 else TX_ADJUST, delta, note=note, user_id=user_id)
        db.session.commit()
        return tx

    return run_with_retry(_op)


def list_transactions(item_id: int, limit: int = 100) -> list[InventoryTransaction]:
    get_item(item_id)
    return db.session.query(InventoryTransaction).filter_by(
        inventory_item_id=item_id
    ).order_by(InventoryTransaction.occurred_at.desc(), InventoryTransaction.id.desc()).limit(limit).all()


def delete_item(item_id: int) -> None:
    item = get_item(item_id)
    if db.session.query(ServiceConsumable.id).filter_by(inventory_item_id=item.id).first():
        raise ConflictError("Inventory item is consumed by a service and cannot be deleted")
    db.session.query(InventoryTransaction).filter_by(inventory_item_id=item.id).delete(synchronize_session=False)
    db.session.delete(item)
    db.session.commit()


def consume_for_invoice(
    requirements: Mapping[int, Decimal],
    *,
    invoice_id: int,
    note: str,
    user_id: int | None = None,
) -> list[InventoryTransaction]:
    """
    Deduct {inventory_item_id: quantity} for an invoice execution.

    Does not commit; the caller owns the transaction. Raises
    InsufficientInventoryError listing every shortfall and leaves all rows
    untouched if any requirement cannot be met.
    """
    if not requirements:
        return []

    item_ids = sorted(requirements)
    items = {
        item.id: item
        for item in lock_for_update(
            db.session.query(InventoryItem).filter(InventoryItem.id.in_(item_ids))
        ).all()
    }

    shortfalls = []
    for item_id in item_ids:
        needed = requirements[item_id]
        item = items.get(item_id)
        if item is None or not item.is_active or item.quantity < needed:
            shortfalls.append({
                "inventoryItemId": item_id,
                "name": item.name if item else None,
                "onHand": float(item.quantity) if item else 0.0,
                "required": float(needed),
                "unit": item.unit if item else None,
                "reason": "missing" if item is None else ("inactive" if not item.is_active else "insufficient"),
            })

    if shortfalls:
        raise InsufficientInventoryError(
            "Insufficient inventory to execute services",
            details={"items": shortfalls},
        )

    transactions = []
    for item_id in item_ids:
        item = items[item_id]
        item.quantity = item.quantity - requirements[item_id]
        transactions.append(
            _record(item, TX_CONSUME, -requirements[item_id], invoice_id=invoice_id, note=note, user_id=user_id)
        )
        current_app.logger.info(
            "Inventory consumed: item=%s qty=%s remaining=%s invoice=%s",
            item.id, requirements[item_id], item.quantity, invoice_id,
        )
    return transactions
