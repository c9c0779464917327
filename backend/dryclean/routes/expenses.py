# Overview: Flask API routes for expenses with multipart receipt upload, plus receipt downloads.

"""
Expense routes. Requires MANAGE_EXPENSES (ADMIN or MODERATOR).

Create and update accept either JSON or multipart/form-data; the receipt
file travels in the `receipt` form field.
"""

from flask import Blueprint, request, g, send_from_directory

from ..models.expenses import RECEIPT_URL_PREFIX
from ..services import expense_service
from ..validation import parse_date_arg
from ..decorators import require_auth, require_capability

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")
receipts_bp = Blueprint("receipts", __name__, url_prefix=RECEIPT_URL_PREFIX)


def _payload_and_receipt():
    if request.mimetype in ("multipart/form-data", "application/x-www-form-urlencoded"):
        return request.form.to_dict(), request.files.get("receipt")
    return request.get_json(silent=True) or {}, None


@expenses_bp.get("")
@require_auth
@require_capability("MANAGE_EXPENSES")
def list_expenses_route():
    """
    Query params:
    - category: str (optional, case-insensitive)
    - start, end: ISO-8601 dates (optional, inclusive)
    """
    expenses = expense_service.list_expenses(
        category=request.args.get("category"),
        start=parse_date_arg(request.args.get("start"), "start"),
        end=parse_date_arg(request.args.get("end"), "end"),
    )
    return {
        "expenses": [e.to_dict() for e in expenses],
        "total": sum(e.amount for e in expenses),
    }


@expenses_bp.get("/categories")
@require_auth
@require_capability("MANAGE_EXPENSES")
def categories_route():
    totals = expense_service.category_totals(
        start=parse_date_arg(request.args.get("start"), "start"),
        end=parse_date_arg(request.args.get("end"), "end"),
    )
    return {"categories": totals}


@expenses_bp.get("/<int:expense_id>")
@require_auth
@require_capability("MANAGE_EXPENSES")
def get_expense_route(expense_id: int):
    return expense_service.get_expense(expense_id).to_dict()


@expenses_bp.post("")
@require_auth
@require_capability("MANAGE_EXPENSES")
def create_expense_route():
    payload, receipt = _payload_and_receipt()
    expense = expense_service.create_expense(payload, receipt=receipt, user_id=g.current_user.id)
    return expense.to_dict(), 201


@expenses_bp.put("/<int:expense_id>")
@require_auth
@require_capability("MANAGE_EXPENSES")
def update_expense_route(expense_id: int):
    payload, receipt = _payload_and_receipt()
    return expense_service.update_expense(expense_id, payload, receipt=receipt).to_dict()


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_capability("MANAGE_EXPENSES")
def delete_expense_route(expense_id: int):
    expense_service.delete_expense(expense_id)
    return {"message": "Expense deleted"}, 200


@receipts_bp.get("/<path:filename>")
@require_auth
@require_capability("MANAGE_EXPENSES")
def download_receipt_route(filename: str):
    return send_from_directory(expense_service.upload_folder(), filename)
