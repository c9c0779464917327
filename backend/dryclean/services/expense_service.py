# Overview: Service-layer operations for expenses and their receipt files.

from __future__ import annotations

import os
import uuid
from datetime import date

from flask import current_app
from sqlalchemy import func
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..extensions import db
from ..models import Expense
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    NotFoundError,
    validate_payload,
    enforce_rules_expense,
)


EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"category", "amount", "description", "expense_date"},
    required_on_create={"category", "amount", "expense_date"},
    aliases={"date": "expense_date"},
    money_fields={"amount"},
)


def upload_folder() -> str:
    folder = current_app.config.get("UPLOAD_FOLDER") or os.path.join(current_app.instance_path, "uploads")
    os.makedirs(folder, exist_ok=True)
    return folder


def _allowed_extension(filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    allowed = current_app.config.get("ALLOWED_RECEIPT_EXTENSIONS", set())
    if ext not in allowed:
        raise ValidationError(f"Receipt must be one of: {', '.join(sorted(allowed))}")
    return ext


def save_receipt(file: FileStorage) -> str:
    """Store an uploaded receipt under a random name; returns the stored name."""
    original = secure_filename(file.filename or "")
    if not original:
        raise ValidationError("Receipt file name is invalid")
    ext = _allowed_extension(original)
    stored = f"{uuid.uuid4().hex}.{ext}"
    file.save(os.path.join(upload_folder(), stored))
    return stored


def delete_receipt(filename: str | None) -> None:
    if not filename:
        return
    path = os.path.join(upload_folder(), filename)
    try:
        os.remove(path)
    except FileNotFoundError:
        current_app.logger.warning("Receipt file already missing: %s", filename)


def list_expenses(
    *,
    category: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[Expense]:
    query = db.session.query(Expense)
    if category:
        query = query.filter(func.lower(Expense.category) == category.strip().lower())
    if start:
        query = query.filter(Expense.expense_date >= start)
    if end:
        query = query.filter(Expense.expense_date <= end)
    return query.order_by(Expense.expense_date.desc(), Expense.id.desc()).all()


def get_expense(expense_id: int) -> Expense:
    expense = db.session.get(Expense, expense_id)
    if not expense:
        raise NotFoundError("Expense not found")
    return expense


def create_expense(payload: dict, receipt: FileStorage | None = None, user_id: int | None = None) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    enforce_rules_expense(patch)

    expense = Expense(created_by_user_id=user_id, **patch)
    if receipt is not None and receipt.filename:
        expense.receipt_filename = save_receipt(receipt)

    db.session.add(expense)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        delete_receipt(expense.receipt_filename)
        raise
    return expense


def update_expense(expense_id: int, payload: dict, receipt: FileStorage | None = None) -> Expense:
    """Patch fields; a new receipt replaces (and deletes) the old one."""
    expense = get_expense(expense_id)
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
    enforce_rules_expense(patch)

    for key, value in patch.items():
        setattr(expense, key, value)

    old_receipt = new_receipt = None
    if receipt is not None and receipt.filename:
        old_receipt = expense.receipt_filename
        new_receipt = save_receipt(receipt)
        expense.receipt_filename = new_receipt

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        delete_receipt(new_receipt)
        raise
    delete_receipt(old_receipt)
    return expense


def delete_expense(expense_id: int) -> None:
    expense = get_expense(expense_id)
    receipt = expense.receipt_filename
    db.session.delete(expense)
    db.session.commit()
    delete_receipt(receipt)


def category_totals(start: date | None = None, end: date | None = None) -> list[dict]:
    query = db.session.query(
        Expense.category,
        func.count(Expense.id),
        func.coalesce(func.sum(Expense.amount), 0),
    )
    if start:
        query = query.filter(Expense.expense_date >= start)
    if end:
        query = query.filter(Expense.expense_date <= end)
    rows = query.group_by(Expense.category).order_by(func.sum(Expense.amount).desc()).all()
    return [
        {"category": category, "count": int(count), "total": int(total)}
        for category, count, total in rows
    ]
