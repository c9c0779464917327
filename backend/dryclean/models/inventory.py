from __future__ import annotations

from ..extensions import db
from dryclean.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    Consumable stock (detergent, hangers, plastic covers...).

    quantity is the on-hand amount and never goes below zero; every change
    is also written to InventoryTransaction.
    """
    __tablename__ = "inventory_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=True)
    reorder_level = db.Column(db.Numeric(12, 3), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.reorder_level is not None and self.quantity <= self.reorder_level

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": float(self.quantity),
            "unit": self.unit,
            "reorderLevel": float(self.reorder_level) if self.reorder_level is not None else None,
            "isActive": self.is_active,
            "isLowStock": self.is_low_stock,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class InventoryTransaction(db.Model):
    """
    Append-only stock movement.

    TYPES:
    - RECEIVE: initial stock or stock added on update
    - ADJUST: manual correction (signed)
    - CONSUME: deduction by invoice execution
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_inventory_tx_item_occurred", "inventory_item_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False)
    type = db.Column(db.String(16), nullable=False)
    quantity_delta = db.Column(db.Numeric(12, 3), nullable=False)
    quantity_after = db.Column(db.Numeric(12, 3), nullable=False)

    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    inventory_item = db.relationship("InventoryItem", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventoryItemId": self.inventory_item_id,
            "type": self.type,
            "quantityDelta": float(self.quantity_delta),
            "quantityAfter": float(self.quantity_after),
            "invoiceId": self.invoice_id,
            "note": self.note,
            "createdByUserId": self.created_by_user_id,
            "occurredAt": to_utc_z(self.occurred_at),
        }
