from __future__ import annotations

from ..extensions import db
from dryclean.time_utils import to_utc_z, to_iso_date


RECEIPT_URL_PREFIX = "/uploads/receipts"


class Expense(db.Model):
    """Business expense with an optional uploaded receipt."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_date_category", "expense_date", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(64), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)
    expense_date = db.Column(db.Date, nullable=False)

    # Stored name under UPLOAD_FOLDER
    receipt_filename = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        receipt_url = None
        if self.receipt_filename:
            receipt_url = f"{RECEIPT_URL_PREFIX}/{self.receipt_filename}"
        return {
            "id": self.id,
            "category": self.category,
            "amount": self.amount,
            "description": self.description,
            "date": to_iso_date(self.expense_date),
            "receiptUrl": receipt_url,
            "createdByUserId": self.created_by_user_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
