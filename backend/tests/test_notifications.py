"""
WhatsApp notification tests using an httpx MockTransport in place of the
provider.
"""

import json

import httpx
import pytest

from dryclean.models import Invoice
from dryclean.services import invoice_service
from dryclean.services.notification_service import (
    NotificationError,
    build_invoice_message,
    build_pickup_message,
    normalize_phone,
)


API_URL = "https://graph.example.test/v1/messages"


@pytest.fixture
def sent(app, monkeypatch):
    """Route provider calls to a recorder; returns the list of requests."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

    monkeypatch.setitem(app.config, "WHATSAPP_API_URL", API_URL)
    monkeypatch.setitem(app.config, "WHATSAPP_API_TOKEN", "secret-token")
    monkeypatch.setitem(app.config, "WHATSAPP_TRANSPORT", httpx.MockTransport(handler))
    return requests


@pytest.fixture
def invoice(db_session, catalog, customer):
    return invoice_service.create_invoice(
        customer.id,
        [
            {"serviceId": catalog["washing"].id, "clothingTypeId": catalog["suit"].id, "quantity": 2},
            {"serviceId": catalog["ironing"].id, "quantity": "1.5"},
        ],
        discount=500,
        pickup_date="2025-03-20",
    )


class TestPhone:

    @pytest.mark.parametrize("raw,expected", [
        ("0712 345 678", "255712345678"),
        ("+255 712 345 678", "255712345678"),
        ("00255712345678", "255712345678"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_phone(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "12345"])
    def test_invalid(self, raw):
        with pytest.raises(NotificationError) as exc_info:
            normalize_phone(raw)
        assert exc_info.value.status_code == 400


class TestMessages:

    def test_invoice_message(self, invoice):
        text = build_invoice_message(invoice)
        assert text.startswith("Hello Amina Juma,")
        assert invoice.invoice_number in text
        assert "Suit - Washing: 2 x TSh 8,000 = TSh 16,000" in text
        assert "Ironing: 1.5 x TSh 3,000 = TSh 4,500" in text
        assert "Discount: TSh 500" in text
        assert "Total: TSh 20,000" in text
        assert "Pickup date: 20/03/2025" in text

    def test_pickup_message_mentions_amount_due(self, invoice):
        assert "Amount due: TSh 20,000." in build_pickup_message(invoice)
        invoice_service.mark_paid(invoice.id)
        assert "Amount due" not in build_pickup_message(invoice)


class TestSend:

    def test_send_invoice(self, client, sent, invoice, admin_headers):
        resp = client.post(f"/api/invoices/{invoice.id}/send-whatsapp", headers=admin_headers)
        assert resp.status_code == 200

        assert len(sent) == 1
        request = sent[0]
        assert str(request.url) == API_URL
        assert request.headers["Authorization"] == "Bearer secret-token"
        payload = json.loads(request.content)
        assert payload["to"] == "255712345678"
        assert payload["type"] == "text"
        assert invoice.invoice_number in payload["text"]["body"]

    def test_sending_does_not_touch_invoice(self, client, db_session, sent, invoice, admin_headers):
        before = (invoice.payment_status, invoice.is_executed, invoice.version_id)
        client.post(f"/api/invoices/{invoice.id}/pickup-notification", headers=admin_headers)
        db_session.expire_all()
        after = db_session.get(Invoice, invoice.id)
        assert (after.payment_status, after.is_executed, after.version_id) == before

    def test_not_configured(self, client, invoice, admin_headers):
        resp = client.post(f"/api/invoices/{invoice.id}/send-whatsapp", headers=admin_headers)
        assert resp.status_code == 503

    def test_provider_rejects(self, app, client, monkeypatch, invoice, admin_headers):
        monkeypatch.setitem(app.config, "WHATSAPP_API_URL", API_URL)
        monkeypatch.setitem(
            app.config,
            "WHATSAPP_TRANSPORT",
            httpx.MockTransport(lambda request: httpx.Response(401, json={"error": "bad token"})),
        )
        resp = client.post(f"/api/invoices/{invoice.id}/send-whatsapp", headers=admin_headers)
        assert resp.status_code == 502
        assert "HTTP 401" in resp.get_json()["error"]

    def test_transport_failure(self, app, client, monkeypatch, invoice, admin_headers):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        monkeypatch.setitem(app.config, "WHATSAPP_API_URL", API_URL)
        monkeypatch.setitem(app.config, "WHATSAPP_TRANSPORT", httpx.MockTransport(handler))
        resp = client.post(f"/api/invoices/{invoice.id}/send-whatsapp", headers=admin_headers)
        assert resp.status_code == 502

    def test_customer_without_phone(self, client, db_session, sent, invoice, admin_headers):
        invoice.customer.phone = None
        db_session.commit()
        resp = client.post(f"/api/invoices/{invoice.id}/send-whatsapp", headers=admin_headers)
        assert resp.status_code == 400
        assert sent == []
