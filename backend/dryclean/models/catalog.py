from __future__ import annotations

from ..extensions import db
from dryclean.time_utils import to_utc_z


class Service(db.Model):
    """
    Billable dry-cleaning operation (washing, ironing, dry cleaning by kg...).

    base_price is in whole shillings and applies whenever a clothing type
    carries no override for this service.
    """
    __tablename__ = "services"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=True)
    base_price = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    consumables = db.relationship(
        "ServiceConsumable",
        backref="service",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ServiceConsumable.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "basePrice": self.base_price,
            "isActive": self.is_active,
            "consumables": [c.to_dict() for c in self.consumables],
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class ServiceConsumable(db.Model):
    """Inventory consumed per unit of a service (e.g. 0.05 L detergent per kg)."""
    __tablename__ = "service_consumables"
    __table_args__ = (
        db.UniqueConstraint("service_id", "inventory_item_id", name="uq_service_consumable_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)

    inventory_item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        item = self.inventory_item
        return {
            "inventoryItemId": self.inventory_item_id,
            "inventoryItemName": item.name if item else None,
            "unit": item.unit if item else None,
            "quantity": float(self.quantity),
        }


class ClothingType(db.Model):
    """Garment category that may override service prices."""
    __tablename__ = "clothing_types"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    prices = db.relationship(
        "ClothingTypePrice",
        backref="clothing_type",
        lazy=True,
        cascade="all, delete-orphan",
    )

    def pricing_map(self) -> dict[int, int | None]:
        """service_id -> override price (None = explicitly use base price)."""
        return {p.service_id: p.price for p in self.prices}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            # JSON object keys are strings
            "pricing": {str(sid): price for sid, price in sorted(self.pricing_map().items())},
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class ClothingTypePrice(db.Model):
    """
    Override entry. A row with price NULL records that the clothing type
    offers the service at base price; no row means the same for pricing.
    """
    __tablename__ = "clothing_type_prices"
    __table_args__ = (
        db.UniqueConstraint("clothing_type_id", "service_id", name="uq_clothing_type_service"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    clothing_type_id = db.Column(db.Integer, db.ForeignKey("clothing_types.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)
    price = db.Column(db.Integer, nullable=True)

    service = db.relationship("Service")
