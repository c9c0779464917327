# Overview: Capability checks against the role matrix, with security event logging.

"""
Permission checking and security event logging.

- Fail closed: unknown capabilities raise, anonymous callers are denied
- Log denials only: granted checks are not recorded
"""

from flask import current_app

from ..extensions import db
from ..models import SecurityEvent
from ..permissions import AccessDecision, authorize, capabilities_for_role


class PermissionDeniedError(Exception):
    """Raised when a role may not reach a capability."""

    def __init__(self, decision: AccessDecision, capability: str):
        super().__init__(decision.reason or "Permission denied")
        self.decision = decision
        self.capability = capability


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Append a security event.

    event_type examples:
    - LOGIN_FAILED
    - LOGIN
    - LOGOUT
    - PERMISSION_DENIED
    - ADMIN_REGISTERED
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:255] or None,
    )
    db.session.add(event)
    db.session.commit()
    return event


def require_capability(
    user_id: int,
    role: str,
    capability: str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AccessDecision:
    """
    Check an authenticated user's role against a capability.

    Raises PermissionDeniedError (after logging) when the role is not allowed.
    """
    decision = authorize(role, capability)
    if not decision.allowed:
        current_app.logger.warning(
            "Permission denied: user=%s role=%s capability=%s resource=%s",
            user_id, role, capability, resource,
        )
        log_security_event(
            user_id=user_id,
            event_type="PERMISSION_DENIED",
            success=False,
            resource=resource,
            action=capability,
            reason=decision.reason,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        raise PermissionDeniedError(decision, capability)
    return decision


def get_user_capabilities(role: str) -> list[str]:
    return capabilities_for_role(role)
