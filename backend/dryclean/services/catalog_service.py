# Overview: Service catalog and clothing-type pricing; encapsulates business logic and database work.

from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    Service,
    ServiceConsumable,
    ClothingType,
    ClothingTypePrice,
    InvoiceLine,
    InventoryItem,
)
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    ConflictError,
    NotFoundError,
    validate_payload,
    parse_id,
    parse_quantity,
)
from .pricing_service import normalize_pricing


SERVICE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "base_price", "is_active"},
    required_on_create={"name", "base_price"},
    aliases={"basePrice": "base_price", "isActive": "is_active"},
    money_fields={"base_price"},
)

CLOTHING_TYPE_POLICY = ModelValidationPolicy(
    writable_fields={"name"},
    required_on_create={"name"},
)


# -- Services --

def list_services(include_inactive: bool = True) -> list[Service]:
    query = db.session.query(Service)
    if not include_inactive:
        query = query.filter(Service.is_active.is_(True))
    return query.order_by(Service.name).all()


def get_service(service_id: int) -> Service:
    service = db.session.get(Service, service_id)
    if not service:
        raise NotFoundError("Service not found")
    return service


def _ensure_unique_service_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Service).filter(func.lower(Service.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Service.id != exclude_id)
    if query.first():
        raise ConflictError("A service with this name already exists")


def _parse_consumables(raw: Any) -> list[tuple[int, Any]]:
    """[{inventoryItemId, quantity}] -> [(item_id, Decimal)] with items checked."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("consumables must be a list")

    parsed: list[tuple[int, Any]] = []
    seen: set[int] = set()
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValidationError("consumables entries must be objects")
        item_id = parse_id(entry.get("inventoryItemId"), "inventoryItemId")
        if item_id in seen:
            raise ValidationError(f"Inventory item {item_id} listed twice in consumables")
        seen.add(item_id)
        if not db.session.get(InventoryItem, item_id):
            raise ValidationError(f"Inventory item {item_id} not found")
        parsed.append((item_id, parse_quantity(entry.get("quantity"), "consumable quantity")))
    return parsed


def _split_payload(payload: dict | None, nested_key: str) -> tuple[dict, Any, bool]:
    payload = dict(payload or {})
    present = nested_key in payload
    nested = payload.pop(nested_key, None)
    return payload, nested, present


def create_service(payload: dict) -> Service:
    fields, raw_consumables, _ = _split_payload(payload, "consumables")
    patch = validate_payload(model=Service, payload=fields, policy=SERVICE_POLICY, partial=False)
    consumables = _parse_consumables(raw_consumables)
    _ensure_unique_service_name(patch["name"])

    service = Service(**patch)
    for item_id, qty in consumables:
        service.consumables.append(ServiceConsumable(inventory_item_id=item_id, quantity=qty))

    db.session.add(service)
    db.session.commit()
    current_app.logger.info("Service created: id=%s name=%s", service.id, service.name)
    return service


def update_service(service_id: int, payload: dict) -> Service:
    """
    Update a service. When `consumables` is present the list is replaced
    wholesale. Existing invoices keep their snapshot prices.
    """
    service = get_service(service_id)
    fields, raw_consumables, replace_consumables = _split_payload(payload, "consumables")
    patch = validate_payload(model=Service, payload=fields, policy=SERVICE_POLICY, partial=True)
    if "name" in patch:
        _ensure_unique_service_name(patch["name"], exclude_id=service.id)

    consumables = _parse_consumables(raw_consumables) if replace_consumables else None

    for key, value in patch.items():
        setattr(service, key, value)

    if consumables is not None:
        service.consumables.clear()
        db.session.flush()
        for item_id, qty in consumables:
            service.consumables.append(ServiceConsumable(inventory_item_id=item_id, quantity=qty))

    db.session.commit()
    return service


def delete_service(service_id: int) -> None:
    """
    Delete a service that no invoice references. Clothing-type overrides
    and consumables go with it.
    """
    service = get_service(service_id)
    used = db.session.query(InvoiceLine.id).filter_by(service_id=service.id).first()
    if used:
        raise ConflictError("Service is used by existing invoices and cannot be deleted; deactivate it instead")

    db.session.query(ClothingTypePrice).filter_by(service_id=service.id).delete(synchronize_session=False)
    db.session.delete(service)
    db.session.commit()
    current_app.logger.info("Service deleted: id=%s", service_id)


# -- Clothing types --

def list_clothing_types() -> list[ClothingType]:
    return db.session.query(ClothingType).order_by(ClothingType.name).all()


def get_clothing_type(clothing_type_id: int) -> ClothingType:
    clothing_type = db.session.get(ClothingType, clothing_type_id)
    if not clothing_type:
        raise NotFoundError("Clothing type not found")
    return clothing_type


def _ensure_unique_clothing_type_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(ClothingType).filter(func.lower(ClothingType.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(ClothingType.id != exclude_id)
    if query.first():
        raise ConflictError("A clothing type with this name already exists")


def _checked_pricing(raw: Any) -> dict[int, int | None]:
    pricing = normalize_pricing(raw)
    if pricing:
        known = {
            sid for (sid,) in db.session.query(Service.id).filter(Service.id.in_(pricing.keys())).all()
        }
        unknown = sorted(set(pricing) - known)
        if unknown:
            raise ValidationError(f"Unknown service ids in pricing: {', '.join(map(str, unknown))}")
    return pricing


def _apply_pricing(clothing_type: ClothingType, pricing: dict[int, int | None]) -> None:
    clothing_type.prices.clear()
    db.session.flush()
    for service_id, price in sorted(pricing.items()):
        clothing_type.prices.append(ClothingTypePrice(service_id=service_id, price=price))


def create_clothing_type(payload: dict) -> ClothingType:
    fields, raw_pricing, _ = _split_payload(payload, "pricing")
    patch = validate_payload(model=ClothingType, payload=fields, policy=CLOTHING_TYPE_POLICY, partial=False)
    pricing = _checked_pricing(raw_pricing)
    _ensure_unique_clothing_type_name(patch["name"])

    clothing_type = ClothingType(**patch)
    db.session.add(clothing_type)
    _apply_pricing(clothing_type, pricing)
    db.session.commit()
    return clothing_type


def update_clothing_type(clothing_type_id: int, payload: dict) -> ClothingType:
    """Update name and/or replace the whole pricing table."""
    clothing_type = get_clothing_type(clothing_type_id)
    fields, raw_pricing, replace_pricing = _split_payload(payload, "pricing")
    patch = validate_payload(model=ClothingType, payload=fields, policy=CLOTHING_TYPE_POLICY, partial=True)
    if "name" in patch:
        _ensure_unique_clothing_type_name(patch["name"], exclude_id=clothing_type.id)

    pricing = _checked_pricing(raw_pricing) if replace_pricing else None

    for key, value in patch.items():
        setattr(clothing_type, key, value)
    if pricing is not None:
        _apply_pricing(clothing_type, pricing)

    db.session.commit()
    return clothing_type


def delete_clothing_type(clothing_type_id: int) -> None:
    """
    Delete a clothing type. Invoice lines keep their snapshotted name and
    price; their clothing_type_id is cleared.
    """
    clothing_type = get_clothing_type(clothing_type_id)
    db.session.query(InvoiceLine).filter_by(clothing_type_id=clothing_type.id).update(
        {"clothing_type_id": None}, synchronize_session=False
    )
    db.session.delete(clothing_type)
    db.session.commit()
