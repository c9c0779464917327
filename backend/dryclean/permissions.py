# Overview: Roles, capabilities and the authorization gate shared by the API and the client.

"""
Role-based capability matrix.

Each capability maps to the set of roles allowed to reach it. An empty set
means any authenticated role. The gate distinguishes "not logged in" from
"logged in with the wrong role": the first sends the caller to the login
view, the second to the default view.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


ROLE_ADMIN = "ADMIN"
ROLE_MODERATOR = "MODERATOR"
ROLES = (ROLE_ADMIN, ROLE_MODERATOR)

LOGIN_PATH = "/login"
DEFAULT_PATH = "/"


# (code, description, allowed roles)
CAPABILITY_DEFINITIONS = [
    ("VIEW_DASHBOARD", "Dashboard and analytics widgets", frozenset()),
    ("VIEW_SERVICES", "List the service catalog", frozenset()),
    ("VIEW_CLOTHING_TYPES", "List clothing types and resolved prices", frozenset()),
    ("MANAGE_CUSTOMERS", "Create, edit and delete customers", frozenset({ROLE_ADMIN})),
    ("MANAGE_INVOICES", "Create invoices, mark paid, send notifications", frozenset({ROLE_ADMIN})),
    ("EXECUTE_SERVICES", "Execute invoices (deduct consumables)", frozenset({ROLE_ADMIN})),
    ("MANAGE_SERVICES", "Create, edit and delete services", frozenset({ROLE_MODERATOR})),
    ("MANAGE_CLOTHING_TYPES", "Create, edit and delete clothing types", frozenset({ROLE_MODERATOR})),
    ("MANAGE_INVENTORY", "Manage inventory items and stock", frozenset({ROLE_MODERATOR})),
    ("REGISTER_ADMIN", "Register new ADMIN users", frozenset({ROLE_MODERATOR})),
    ("MANAGE_EXPENSES", "Record and review expenses", frozenset({ROLE_ADMIN, ROLE_MODERATOR})),
]

CAPABILITY_ROLES: dict[str, frozenset[str]] = {
    code: roles for code, _desc, roles in CAPABILITY_DEFINITIONS
}


class AccessOutcome(str, Enum):
    ALLOW = "ALLOW"
    LOGIN_REQUIRED = "LOGIN_REQUIRED"
    FORBIDDEN = "FORBIDDEN"


@dataclass(frozen=True)
class AccessDecision:
    outcome: AccessOutcome
    redirect: str | None = None
    reason: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is AccessOutcome.ALLOW


def validate_capability(code: str) -> str:
    if code not in CAPABILITY_ROLES:
        raise KeyError(f"Unknown capability: {code}")
    return code


def allowed_roles(code: str) -> frozenset[str]:
    return CAPABILITY_ROLES[validate_capability(code)]


def authorize(role: str | None, capability: str, *, authenticated: bool | None = None) -> AccessDecision:
    """
    Decide whether a session may reach a capability.

    `role` is None for anonymous callers. `authenticated` can be passed
    explicitly when a session exists but the role could not be read.
    """
    roles = allowed_roles(capability)
    if authenticated is None:
        authenticated = role is not None

    if not authenticated:
        return AccessDecision(AccessOutcome.LOGIN_REQUIRED, LOGIN_PATH, "Authentication required")

    if roles and role not in roles:
        return AccessDecision(
            AccessOutcome.FORBIDDEN,
            DEFAULT_PATH,
            f"Requires role: {', '.join(sorted(roles))}",
        )

    return AccessDecision(AccessOutcome.ALLOW)


def capabilities_for_role(role: str) -> list[str]:
    """Capabilities a role can reach (used by the dashboard to hide navigation)."""
    return [
        code for code, _desc, roles in CAPABILITY_DEFINITIONS
        if not roles or role in roles
    ]
