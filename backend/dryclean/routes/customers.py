# Overview: Flask API routes for customer records; parses input and returns JSON responses.

"""
Customer routes. All require MANAGE_CUSTOMERS (ADMIN).

Service errors (ValidationError, NotFoundError, ConflictError) are turned
into JSON responses by the app-level handlers in errors.py.
"""

from flask import Blueprint, request

from ..services import customer_service
from ..decorators import require_auth, require_capability

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_capability("MANAGE_CUSTOMERS")
def list_customers_route():
    """
    Query params:
    - q: str (optional) - case-insensitive match on name or phone
    """
    customers = customer_service.list_customers(search=request.args.get("q"))
    return {"customers": [c.to_dict() for c in customers]}


@customers_bp.post("")
@require_auth
@require_capability("MANAGE_CUSTOMERS")
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    customer = customer_service.create_customer(payload)
    return customer.to_dict(), 201


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_capability("MANAGE_CUSTOMERS")
def get_customer_route(customer_id: int):
    return customer_service.get_customer(customer_id).to_dict()


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_capability("MANAGE_CUSTOMERS")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    return customer_service.update_customer(customer_id, payload).to_dict()


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_capability("MANAGE_CUSTOMERS")
def delete_customer_route(customer_id: int):
    """Refused with 409 while invoices reference the customer."""
    customer_service.delete_customer(customer_id)
    return {"message": "Customer deleted"}, 200
