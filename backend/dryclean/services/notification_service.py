# Overview: WhatsApp messages for invoices and pickup reminders, sent over HTTP with httpx.

"""
Outbound customer messaging.

Messages go to a WhatsApp Cloud API style endpoint configured with
WHATSAPP_API_URL / WHATSAPP_API_TOKEN. Sending never changes the invoice.
Tests inject an httpx transport through the WHATSAPP_TRANSPORT config key.
"""

from __future__ import annotations

import re

import httpx
from flask import current_app

from ..formatting import format_currency, format_quantity
from ..models import Invoice


DEFAULT_COUNTRY_CODE = "255"


class NotificationError(Exception):
    """Raised when a message cannot be sent."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


def normalize_phone(phone: str | None) -> str:
    """
    Digits-only international number. Local numbers with a leading 0 get
    the default country code (0712 345 678 -> 255712345678).
    """
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("00"):
        digits = digits[2:]
    elif digits.startswith("0"):
        digits = DEFAULT_COUNTRY_CODE + digits[1:]
    if len(digits) < 9:
        raise NotificationError("Customer has no valid phone number", status_code=400)
    return digits


def build_invoice_message(invoice: Invoice) -> str:
    currency = current_app.config.get("CURRENCY_LABEL", "TSh")
    customer_name = invoice.customer.name if invoice.customer else "Customer"

    lines = [
        f"Hello {customer_name},",
        f"Invoice {invoice.invoice_number}",
        "",
    ]
    for line in invoice.lines:
        label = line.service_name
        if line.clothing_type_name:
            label = f"{line.clothing_type_name} - {label}"
        lines.append(
            f"{label}: {format_quantity(line.quantity)} x {format_currency(line.unit_price, currency)}"
            f" = {format_currency(line.line_total, currency)}"
        )
    lines.append("")
    lines.append(f"Subtotal: {format_currency(invoice.subtotal, currency)}")
    if invoice.discount:
        lines.append(f"Discount: {format_currency(invoice.discount, currency)}")
    lines.append(f"Total: {format_currency(invoice.total, currency)}")
    lines.append(f"Status: {'Paid' if invoice.is_paid else 'Pending payment'}")
    if invoice.pickup_date:
        lines.append(f"Pickup date: {invoice.pickup_date.strftime('%d/%m/%Y')}")
    lines.append("")
    lines.append("Thank you!")
    return "\n".join(lines)


def build_pickup_message(invoice: Invoice) -> str:
    currency = current_app.config.get("CURRENCY_LABEL", "TSh")
    customer_name = invoice.customer.name if invoice.customer else "Customer"
    message = f"Hello {customer_name}, your clothes for invoice {invoice.invoice_number} are ready for pickup."
    if not invoice.is_paid:
        message += f" Amount due: {format_currency(invoice.total, currency)}."
    return message


def _client() -> httpx.Client:
    timeout = current_app.config.get("WHATSAPP_TIMEOUT_SECONDS", 10)
    headers = {"Content-Type": "application/json"}
    token = current_app.config.get("WHATSAPP_API_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"
    transport = current_app.config.get("WHATSAPP_TRANSPORT")
    return httpx.Client(timeout=timeout, headers=headers, transport=transport)


def send_whatsapp_message(phone: str | None, body: str) -> dict:
    """POST a text message; returns the provider's JSON response (or {})."""
    url = current_app.config.get("WHATSAPP_API_URL")
    if not url:
        raise NotificationError("WhatsApp messaging is not configured", status_code=503)

    payload = {
        "messaging_product": "whatsapp",
        "to": normalize_phone(phone),
        "type": "text",
        "text": {"body": body},
    }

    try:
        with _client() as client:
            response = client.post(url, json=payload)
    except httpx.HTTPError as e:
        current_app.logger.warning("WhatsApp request failed: %s", e)
        raise NotificationError("Could not reach the WhatsApp service")

    if response.status_code >= 400:
        current_app.logger.warning(
            "WhatsApp API rejected message: status=%s body=%s",
            response.status_code, response.text[:500],
        )
        raise NotificationError(f"WhatsApp service rejected the message (HTTP {response.status_code})")

    try:
        return response.json()
    except ValueError:
        return {}


def send_invoice_message(invoice: Invoice) -> dict:
    result = send_whatsapp_message(
        invoice.customer.phone if invoice.customer else None,
        build_invoice_message(invoice),
    )
    current_app.logger.info("Invoice %s sent via WhatsApp", invoice.invoice_number)
    return result


def send_pickup_notification(invoice: Invoice) -> dict:
    result = send_whatsapp_message(
        invoice.customer.phone if invoice.customer else None,
        build_pickup_message(invoice),
    )
    current_app.logger.info("Pickup notification sent for invoice %s", invoice.invoice_number)
    return result
