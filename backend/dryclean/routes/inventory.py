# Overview: Flask API routes for inventory items (consumables), adjustments and stock history.

"""
Inventory routes. Requires MANAGE_INVENTORY (MODERATOR).

Quantities are fractional (up to 3 decimal places) and never negative.
"""

from flask import Blueprint, request, g

from ..services import inventory_service
from ..validation import ValidationError, parse_bool_arg, parse_int_arg
from ..decorators import require_auth, require_capability

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
@require_capability("MANAGE_INVENTORY")
def list_items_route():
    active_only = parse_bool_arg(request.args.get("active"), "active")
    items = inventory_service.list_items(include_inactive=not active_only)
    return {"items": [item.to_dict() for item in items]}


@inventory_bp.get("/low-stock")
@require_auth
@require_capability("MANAGE_INVENTORY")
def low_stock_route():
    items = inventory_service.get_low_stock_items()
    return {"items": [item.to_dict() for item in items], "count": len(items)}


@inventory_bp.get("/<int:item_id>")
@require_auth
@require_capability("MANAGE_INVENTORY")
def get_item_route(item_id: int):
    return inventory_service.get_item(item_id).to_dict()


@inventory_bp.post("")
@require_auth
@require_capability("MANAGE_INVENTORY")
def create_item_route():
    """Body: {name, quantity?, unit?, reorderLevel?, isActive?}"""
    payload = request.get_json(silent=True) or {}
    item = inventory_service.create_item(payload, user_id=g.current_user.id)
    return item.to_dict(), 201


@inventory_bp.put("/<int:item_id>")
@require_auth
@require_capability("MANAGE_INVENTORY")
def update_item_route(item_id: int):
    payload = request.get_json(silent=True) or {}
    item = inventory_service.update_item(item_id, payload, user_id=g.current_user.id)
    return item.to_dict()


@inventory_bp.delete("/<int:item_id>")
@require_auth
@require_capability("MANAGE_INVENTORY")
def delete_item_route(item_id: int):
    inventory_service.delete_item(item_id)
    return {"message": "Inventory item deleted"}, 200


@inventory_bp.post("/<int:item_id>/adjust")
@require_auth
@require_capability("MANAGE_INVENTORY")
def adjust_item_route(item_id: int):
    """
    Body: {quantityDelta: signed number, note?: str}

    409 when the result would be negative.
    """
    payload = request.get_json(silent=True) or {}
    if payload.get("quantityDelta") in (None, ""):
        raise ValidationError("quantityDelta is required")

    tx = inventory_service.adjust_item(
        item_id,
        payload.get("quantityDelta"),
        note=(payload.get("note") or "").strip() or None,
        user_id=g.current_user.id,
    )
    return {
        "item": inventory_service.get_item(item_id).to_dict(),
        "transaction": tx.to_dict(),
    }


@inventory_bp.get("/<int:item_id>/transactions")
@require_auth
@require_capability("MANAGE_INVENTORY")
def list_transactions_route(item_id: int):
    limit = parse_int_arg(request.args.get("limit"), "limit", 100)
    if limit < 1 or limit > 500:
        raise ValidationError("limit must be between 1 and 500")
    transactions = inventory_service.list_transactions(item_id, limit=limit)
    return {"transactions": [tx.to_dict() for tx in transactions]}
