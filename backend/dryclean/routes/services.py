# Overview: Flask API routes for the service catalog (name, base price, consumables).

from flask import Blueprint, request

from ..services import catalog_service
from ..decorators import require_auth, require_capability

services_bp = Blueprint("services", __name__, url_prefix="/api/services")


def _include_inactive() -> bool:
    return request.args.get("active") not in ("1", "true", "yes")


@services_bp.get("")
@require_auth
@require_capability("VIEW_SERVICES")
def list_services_route():
    """
    Query params:
    - active: bool (optional) - only active services when true
    """
    services = catalog_service.list_services(include_inactive=_include_inactive())
    return {"services": [s.to_dict() for s in services]}


@services_bp.get("/<int:service_id>")
@require_auth
@require_capability("VIEW_SERVICES")
def get_service_route(service_id: int):
    return catalog_service.get_service(service_id).to_dict()


@services_bp.post("")
@require_auth
@require_capability("MANAGE_SERVICES")
def create_service_route():
    """
    Body: {name, description?, basePrice, isActive?, consumables?: [{inventoryItemId, quantity}]}
    """
    payload = request.get_json(silent=True) or {}
    service = catalog_service.create_service(payload)
    return service.to_dict(), 201


@services_bp.put("/<int:service_id>")
@require_auth
@require_capability("MANAGE_SERVICES")
def update_service_route(service_id: int):
    """A `consumables` key replaces the whole consumable list."""
    payload = request.get_json(silent=True) or {}
    return catalog_service.update_service(service_id, payload).to_dict()


@services_bp.delete("/<int:service_id>")
@require_auth
@require_capability("MANAGE_SERVICES")
def delete_service_route(service_id: int):
    catalog_service.delete_service(service_id)
    return {"message": "Service deleted"}, 200
