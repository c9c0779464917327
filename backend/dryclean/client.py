# Overview: Python client for the dashboard API with a durable session and the shared role gate.

"""
Dashboard API client.

The session (token + user profile) is one owned object, persisted to a
JSON file so it survives restarts, written only by login/logout and read
by every gated call. Gated calls run the same authorization gate as the
server before any request is sent.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Callable

import httpx

from .permissions import AccessDecision, authorize


logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong. Please try again."


class ApiError(Exception):
    """
    A failed API call. `message` is the server's own error text when it
    sent one, otherwise a generic fallback. `decision` is set when the
    local gate refused the call before any request was made.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
        decision: AccessDecision | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.decision = decision

    @property
    def redirect(self) -> str | None:
        return self.decision.redirect if self.decision else None


class SessionStore:
    """JSON file holding {"token": ..., "user": {...}}."""

    def __init__(self, path: str):
        self.path = path
        self.token: str | None = None
        self.user: dict | None = None
        self.load()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) and self.user is not None

    @property
    def role(self) -> str | None:
        return (self.user or {}).get("role")

    def load(self) -> None:
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            data = {}
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable session file %s", self.path)
            data = {}
        self.token = data.get("token")
        self.user = data.get("user")

    def save(self, token: str, user: dict) -> None:
        self.token = token
        self.user = user
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump({"token": token, "user": user}, fh)

    def clear(self) -> None:
        self.token = None
        self.user = None
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass


def _error_message(response: httpx.Response) -> tuple[str, dict]:
    try:
        body = response.json()
    except ValueError:
        return GENERIC_ERROR, {}
    if not isinstance(body, dict):
        return GENERIC_ERROR, {}
    message = body.get("error") or body.get("message") or GENERIC_ERROR
    if message == "Permission denied" and body.get("message"):
        message = body["message"]
    return message, body.get("details") or {}


class DashboardClient:
    def __init__(
        self,
        base_url: str,
        store: SessionStore,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 30.0,
    ):
        self.store = store
        self.client = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "DashboardClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _headers(self) -> dict:
        headers = {}
        if self.store.token:
            headers["Authorization"] = f"Bearer {self.store.token}"
        return headers

    def _send(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Request %s %s failed: %s", method, path, e)
            raise ApiError(GENERIC_ERROR) from e

        if response.status_code >= 400:
            message, details = _error_message(response)
            if response.status_code == 401:
                # Token expired or revoked server-side
                self.store.clear()
            raise ApiError(message, status_code=response.status_code, details=details)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    def login(self, email: str, password: str) -> dict:
        if not email or not password:
            raise ApiError("Email and password are required")
        data = self._send("POST", "/api/auth/login", json={"email": email, "password": password})
        self.store.save(data["token"], data["user"])
        return data["user"]

    def logout(self) -> None:
        """Revoke the server session; the local session is cleared regardless."""
        try:
            if self.store.token:
                self._send("POST", "/api/auth/logout")
        except ApiError as e:
            logger.info("Server logout failed, clearing local session anyway: %s", e)
        finally:
            self.store.clear()

    def can_access(self, capability: str) -> AccessDecision:
        return authorize(self.store.role, capability, authenticated=self.store.is_authenticated)

    def request(self, capability: str, method: str, path: str, **kwargs) -> Any:
        decision = self.can_access(capability)
        if not decision.allowed:
            raise ApiError(decision.reason or "Permission denied", decision=decision)
        return self._send(method, path, **kwargs)

    def get(self, capability: str, path: str, **kwargs) -> Any:
        return self.request(capability, "GET", path, **kwargs)

    def post(self, capability: str, path: str, **kwargs) -> Any:
        return self.request(capability, "POST", path, **kwargs)

    def put(self, capability: str, path: str, **kwargs) -> Any:
        return self.request(capability, "PUT", path, **kwargs)

    def delete(self, capability: str, path: str, confirm: Callable[[str], bool], prompt: str | None = None) -> bool:
        """
        Issue a DELETE only after `confirm(prompt)` returns True.

        Returns False (and sends nothing) when the user cancels.
        """
        if not confirm(prompt or "Are you sure you want to delete this record?"):
            return False
        self.request(capability, "DELETE", path)
        return True

    def fetch_optional(self, capability: str, path: str, default: Any = None, **kwargs) -> Any:
        """
        Best-effort read for secondary widgets: failures are logged and
        `default` is returned so the rest of the view can still render.
        """
        try:
            return self.get(capability, path, **kwargs)
        except ApiError as e:
            logger.warning("Optional fetch %s failed: %s", path, e.message)
            return default

    # -- Convenience wrappers --

    def create_invoice(self, customer_id: int, items: list[dict], discount: int = 0, **extra) -> dict:
        if not customer_id:
            raise ApiError("Please select a customer")
        if not items:
            raise ApiError("Add at least one item")
        payload = {"customerId": customer_id, "items": items, "discount": discount, **extra}
        return self.post("MANAGE_INVOICES", "/api/invoices", json=payload)

    def mark_paid(self, invoice_id: int) -> dict:
        return self.post("MANAGE_INVOICES", f"/api/invoices/{invoice_id}/pay")

    def execute(self, invoice_id: int) -> dict:
        return self.post("EXECUTE_SERVICES", f"/api/invoices/{invoice_id}/execute")

    def create_expense(self, category: str, amount: int, date: str, description: str | None = None,
                       receipt_path: str | None = None) -> dict:
        if not category or not date:
            raise ApiError("Category and date are required")
        if amount is None or amount <= 0:
            raise ApiError("Amount must be greater than zero")

        data = {"category": category, "amount": str(amount), "date": date}
        if description:
            data["description"] = description
        if receipt_path is None:
            return self.post("MANAGE_EXPENSES", "/api/expenses", data=data)
        with open(receipt_path, "rb") as fh:
            files = {"receipt": (os.path.basename(receipt_path), fh)}
            return self.post("MANAGE_EXPENSES", "/api/expenses", data=data, files=files)
