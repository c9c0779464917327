# Overview: Flask API routes for invoices; creation, payment, execution and WhatsApp sends.

"""
Invoice routes.

SECURITY:
- Everything requires MANAGE_INVOICES (ADMIN)
- Executing services additionally requires EXECUTE_SERVICES

Payment and execution are independent one-way transitions. Repeating
either one is answered with 409.
"""

from flask import Blueprint, request, g

from ..services import invoice_service
from ..services import notification_service
from ..validation import parse_bool_arg, parse_datetime_arg, parse_id
from ..decorators import require_auth, require_capability

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
@require_capability("MANAGE_INVOICES")
def list_invoices_route():
    """
    Query params:
    - paymentStatus: PENDING | PAID (optional)
    - executed: bool (optional)
    - customerId: int (optional)
    - start, end: ISO-8601 (optional) - creation window, inclusive
    """
    customer_id = request.args.get("customerId")
    invoices = invoice_service.list_invoices(
        payment_status=(request.args.get("paymentStatus") or "").upper() or None,
        executed=parse_bool_arg(request.args.get("executed"), "executed"),
        customer_id=parse_id(customer_id, "customerId") if customer_id else None,
        start=parse_datetime_arg(request.args.get("start"), "start"),
        end=parse_datetime_arg(request.args.get("end"), "end", end_of_day=True),
    )
    return {"invoices": [inv.to_dict() for inv in invoices]}


@invoices_bp.get("/customer/<int:customer_id>")
@require_auth
@require_capability("MANAGE_INVOICES")
def customer_invoices_route(customer_id: int):
    invoices = invoice_service.get_invoices_for_customer(customer_id)
    return {"invoices": [inv.to_dict() for inv in invoices]}


@invoices_bp.get("/<int:invoice_id>")
@require_auth
@require_capability("MANAGE_INVOICES")
def get_invoice_route(invoice_id: int):
    return invoice_service.get_invoice(invoice_id).to_dict()


@invoices_bp.post("")
@require_auth
@require_capability("MANAGE_INVOICES")
def create_invoice_route():
    """
    Create an invoice priced from the current catalog.

    Body:
    {
        "customerId": 1,
        "items": [{"serviceId": 2, "clothingTypeId": 3, "quantity": 2}],
        "discount": 500,
        "pickupDate": "2025-03-01",
        "notes": "..."
    }
    """
    payload = request.get_json(silent=True) or {}
    invoice = invoice_service.create_invoice(
        customer_id=payload.get("customerId"),
        items=payload.get("items"),
        discount=payload.get("discount") if payload.get("discount") not in (None, "") else 0,
        pickup_date=payload.get("pickupDate"),
        notes=payload.get("notes"),
        user_id=g.current_user.id,
    )
    return invoice.to_dict(), 201


@invoices_bp.post("/<int:invoice_id>/pay")
@require_auth
@require_capability("MANAGE_INVOICES")
def mark_paid_route(invoice_id: int):
    invoice = invoice_service.mark_paid(invoice_id, user_id=g.current_user.id)
    return invoice.to_dict()


@invoices_bp.post("/<int:invoice_id>/execute")
@require_auth
@require_capability("MANAGE_INVOICES")
@require_capability("EXECUTE_SERVICES")
def execute_route(invoice_id: int):
    """
    Deduct every line's consumables and mark the invoice executed.

    409 with details.items when stock is short; nothing is deducted then.
    """
    invoice = invoice_service.execute_invoice(invoice_id, user_id=g.current_user.id)
    return invoice.to_dict()


@invoices_bp.post("/<int:invoice_id>/send-whatsapp")
@require_auth
@require_capability("MANAGE_INVOICES")
def send_whatsapp_route(invoice_id: int):
    invoice = invoice_service.get_invoice(invoice_id)
    result = notification_service.send_invoice_message(invoice)
    return {"message": "Invoice sent", "provider": result}


@invoices_bp.post("/<int:invoice_id>/pickup-notification")
@require_auth
@require_capability("MANAGE_INVOICES")
def pickup_notification_route(invoice_id: int):
    invoice = invoice_service.get_invoice(invoice_id)
    result = notification_service.send_pickup_notification(invoice)
    return {"message": "Pickup notification sent", "provider": result}
