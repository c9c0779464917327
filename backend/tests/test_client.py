"""
Python API client tests.

The client talks to the real app through httpx's WSGI transport, so the
local gate and the server's answers are checked together.
"""

import json

import httpx
import pytest

from dryclean.client import ApiError, DashboardClient, GENERIC_ERROR, SessionStore
from dryclean.permissions import AccessOutcome

from conftest import PASSWORD


@pytest.fixture
def store(tmp_path):
    return SessionStore(str(tmp_path / "session.json"))


@pytest.fixture
def api(app, db_session, store):
    with DashboardClient("http://testserver", store, transport=httpx.WSGITransport(app=app)) as client:
        yield client


class TestSessionStore:

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "nested" / "session.json")
        SessionStore(path).save("tok", {"id": 1, "role": "ADMIN"})

        reloaded = SessionStore(path)
        assert reloaded.is_authenticated
        assert reloaded.role == "ADMIN"

        reloaded.clear()
        assert not SessionStore(path).is_authenticated

    def test_token_without_user_is_not_authenticated(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text(json.dumps({"token": "tok"}))
        assert SessionStore(str(path)).is_authenticated is False

    def test_corrupt_file_is_empty_session(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")
        assert SessionStore(str(path)).token is None


class TestGate:

    def test_anonymous_refused_locally(self, api):
        decision = api.can_access("VIEW_DASHBOARD")
        assert decision.outcome is AccessOutcome.LOGIN_REQUIRED

        with pytest.raises(ApiError) as exc_info:
            api.get("VIEW_DASHBOARD", "/api/analytics/financial")
        assert exc_info.value.redirect == "/login"
        assert exc_info.value.status_code is None

    def test_moderator_refused_admin_capability(self, api, moderator_user):
        api.login(moderator_user.email, PASSWORD)
        with pytest.raises(ApiError) as exc_info:
            api.get("MANAGE_INVOICES", "/api/invoices")
        assert exc_info.value.decision.outcome is AccessOutcome.FORBIDDEN
        assert exc_info.value.redirect == "/"


class TestRequests:

    def test_login_request_logout(self, api, store, admin_user):
        user = api.login("admin@example.com", PASSWORD)
        assert user["role"] == "ADMIN"
        assert store.is_authenticated

        data = api.get("MANAGE_CUSTOMERS", "/api/customers")
        assert data == {"customers": []}

        api.logout()
        assert not store.is_authenticated

    def test_bad_credentials_quote_server_message(self, api, admin_user):
        with pytest.raises(ApiError) as exc_info:
            api.login("admin@example.com", "wrong-password1")
        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Invalid email or password"

    def test_server_conflict_message(self, api, admin_user, catalog, customer):
        api.login(admin_user.email, PASSWORD)
        invoice = api.create_invoice(customer.id, [{"serviceId": catalog["ironing"].id, "quantity": 1}])
        api.mark_paid(invoice["id"])

        with pytest.raises(ApiError) as exc_info:
            api.mark_paid(invoice["id"])
        assert exc_info.value.status_code == 409
        assert exc_info.value.message == "Invoice is already paid"

    def test_local_validation_before_request(self, api, admin_user):
        api.login(admin_user.email, PASSWORD)
        with pytest.raises(ApiError, match="customer"):
            api.create_invoice(None, [])
        with pytest.raises(ApiError, match="greater than zero"):
            api.create_expense("Rent", 0, "2025-03-01")

    def test_delete_requires_confirmation(self, api, db_session, admin_user, customer):
        api.login(admin_user.email, PASSWORD)
        prompts = []

        def cancel(prompt):
            prompts.append(prompt)
            return False

        assert api.delete("MANAGE_CUSTOMERS", f"/api/customers/{customer.id}", confirm=cancel) is False
        assert prompts
        assert api.get("MANAGE_CUSTOMERS", f"/api/customers/{customer.id}")["id"] == customer.id

        assert api.delete("MANAGE_CUSTOMERS", f"/api/customers/{customer.id}", confirm=lambda _p: True) is True
        with pytest.raises(ApiError) as exc_info:
            api.get("MANAGE_CUSTOMERS", f"/api/customers/{customer.id}")
        assert exc_info.value.status_code == 404

    def test_fetch_optional_swallows_widget_failure(self, api, moderator_user):
        api.login(moderator_user.email, PASSWORD)
        assert api.fetch_optional("VIEW_DASHBOARD", "/api/analytics/daily?days=0", default=[]) == []


class TestTransportFailures:

    def test_network_error_is_generic(self, tmp_path):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        store = SessionStore(str(tmp_path / "s.json"))
        client = DashboardClient("http://api.test", store, transport=httpx.MockTransport(handler))
        with pytest.raises(ApiError) as exc_info:
            client.login("a@b.co", "Password123")
        assert exc_info.value.message == GENERIC_ERROR

    def test_non_json_error_is_generic(self, tmp_path):
        store = SessionStore(str(tmp_path / "s.json"))
        store.save("tok", {"id": 1, "role": "ADMIN"})
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="<html>oops</html>"))
        client = DashboardClient("http://api.test", store, transport=transport)
        with pytest.raises(ApiError) as exc_info:
            client.get("MANAGE_CUSTOMERS", "/api/customers")
        assert exc_info.value.message == GENERIC_ERROR
        assert exc_info.value.status_code == 500

    def test_logout_clears_even_when_server_fails(self, tmp_path):
        store = SessionStore(str(tmp_path / "s.json"))
        store.save("tok", {"id": 1, "role": "ADMIN"})
        transport = httpx.MockTransport(lambda request: httpx.Response(503, json={"error": "down"}))
        DashboardClient("http://api.test", store, transport=transport).logout()
        assert not store.is_authenticated
