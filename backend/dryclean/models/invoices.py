from __future__ import annotations

from ..extensions import db
from dryclean.time_utils import to_utc_z, to_iso_date


PAYMENT_PENDING = "PENDING"
PAYMENT_PAID = "PAID"


class Invoice(db.Model):
    """
    Customer invoice.

    Lines and amounts are fixed at creation. Afterwards only two one-way
    flags change: payment_status (PENDING -> PAID) and is_executed
    (False -> True). The flags are independent of each other.

    raw_total keeps subtotal - discount as computed (may be negative);
    total is the amount charged and is never below zero.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_customer_created", "customer_id", "created_at"),
        db.Index("ix_invoices_status_created", "payment_status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=True, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    pickup_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Amounts in whole shillings
    discount = db.Column(db.Integer, nullable=False, default=0)
    subtotal = db.Column(db.Integer, nullable=False)
    raw_total = db.Column(db.Integer, nullable=False)
    total = db.Column(db.Integer, nullable=False)

    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_PENDING)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    is_executed = db.Column(db.Boolean, nullable=False, default=False)
    executed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    executed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    lines = db.relationship(
        "InvoiceLine",
        backref="invoice",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InvoiceLine.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PAYMENT_PAID

    @property
    def status(self) -> str:
        if self.is_paid and self.is_executed:
            return "PAID_EXECUTED"
        if self.is_paid:
            return "PAID"
        if self.is_executed:
            return "EXECUTED"
        return "CREATED"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoiceNumber": self.invoice_number,
            "customerId": self.customer_id,
            "customer": self.customer.summary() if self.customer else None,
            "createdAt": to_utc_z(self.created_at),
            "pickupDate": to_iso_date(self.pickup_date),
            "notes": self.notes,
            "discount": self.discount,
            "subtotal": self.subtotal,
            "rawTotal": self.raw_total,
            "total": self.total,
            "paymentStatus": self.payment_status,
            "paidAt": to_utc_z(self.paid_at) if self.paid_at else None,
            "isExecuted": self.is_executed,
            "executedAt": to_utc_z(self.executed_at) if self.executed_at else None,
            "status": self.status,
            "createdByUserId": self.created_by_user_id,
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(db.Model):
    """
    Line item. unit_price is a snapshot taken when the invoice was created;
    later catalog edits never touch it. Names are snapshotted too so the
    invoice stays readable if the catalog entry is renamed.
    """
    __tablename__ = "invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)
    clothing_type_id = db.Column(db.Integer, db.ForeignKey("clothing_types.id"), nullable=True, index=True)

    service_name = db.Column(db.String(128), nullable=False)
    clothing_type_name = db.Column(db.String(128), nullable=True)

    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    price_source = db.Column(db.String(16), nullable=False)  # BASE, OVERRIDE
    line_total = db.Column(db.Integer, nullable=False)

    service = db.relationship("Service")
    clothing_type = db.relationship("ClothingType")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "serviceId": self.service_id,
            "serviceName": self.service_name,
            "clothingTypeId": self.clothing_type_id,
            "clothingTypeName": self.clothing_type_name,
            "quantity": float(self.quantity),
            "unitPrice": self.unit_price,
            "priceSource": self.price_source,
            "lineTotal": self.line_total,
        }
