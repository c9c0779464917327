# Overview: Flask API routes for clothing types and their per-service price overrides.

from flask import Blueprint, request

from ..services import catalog_service
from ..services.pricing_service import resolve_unit_price
from ..validation import ValidationError, parse_id
from ..decorators import require_auth, require_capability

clothing_types_bp = Blueprint("clothing_types", __name__, url_prefix="/api/clothing-types")


@clothing_types_bp.get("")
@require_auth
@require_capability("VIEW_CLOTHING_TYPES")
def list_clothing_types_route():
    clothing_types = catalog_service.list_clothing_types()
    return {"clothingTypes": [c.to_dict() for c in clothing_types]}


@clothing_types_bp.get("/<int:clothing_type_id>")
@require_auth
@require_capability("VIEW_CLOTHING_TYPES")
def get_clothing_type_route(clothing_type_id: int):
    return catalog_service.get_clothing_type(clothing_type_id).to_dict()


@clothing_types_bp.get("/<int:clothing_type_id>/price")
@require_auth
@require_capability("VIEW_CLOTHING_TYPES")
def resolve_price_route(clothing_type_id: int):
    """
    Resolved unit price for a service on this clothing type.

    Query params:
    - serviceId: int (required)
    """
    raw = request.args.get("serviceId")
    if not raw:
        raise ValidationError("serviceId is required")
    service_id = parse_id(raw, "serviceId")

    resolved = resolve_unit_price(service_id, clothing_type_id)
    return {
        "clothingTypeId": clothing_type_id,
        "serviceId": service_id,
        "unitPrice": resolved.unit_price,
        "source": resolved.source,
    }


@clothing_types_bp.post("")
@require_auth
@require_capability("MANAGE_CLOTHING_TYPES")
def create_clothing_type_route():
    """
    Body: {name, pricing?: {"<serviceId>": price|null} or [{serviceId, price}]}
    """
    payload = request.get_json(silent=True) or {}
    clothing_type = catalog_service.create_clothing_type(payload)
    return clothing_type.to_dict(), 201


@clothing_types_bp.put("/<int:clothing_type_id>")
@require_auth
@require_capability("MANAGE_CLOTHING_TYPES")
def update_clothing_type_route(clothing_type_id: int):
    payload = request.get_json(silent=True) or {}
    return catalog_service.update_clothing_type(clothing_type_id, payload).to_dict()


@clothing_types_bp.delete("/<int:clothing_type_id>")
@require_auth
@require_capability("MANAGE_CLOTHING_TYPES")
def delete_clothing_type_route(clothing_type_id: int):
    catalog_service.delete_clothing_type(clothing_type_id)
    return {"message": "Clothing type deleted"}, 200
