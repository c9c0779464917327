# Overview: Request and capability decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .permissions import AccessOutcome, LOGIN_PATH, authorize
from .services import session_service, permission_service
from .services.permission_service import PermissionDeniedError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and g.current_user is not None


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _login_required_response(message: str):
    return jsonify({"error": message, "redirect": LOGIN_PATH}), 401


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object

    Returns 401 (with redirect to the login view) if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return _login_required_response("Authentication required")

        context = session_service.validate_session(token)
        if not context:
            return _login_required_response("Invalid or expired token")

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: str):
    """
    Require the caller's role to reach `capability`.

    Outcomes follow the authorization gate: anonymous -> 401 with a login
    redirect, wrong role -> 403 with a redirect to the default view.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                decision = authorize(None, capability)
                return jsonify({"error": decision.reason, "redirect": decision.redirect}), 401

            user = g.current_user
            try:
                permission_service.require_capability(
                    user_id=user.id,
                    role=user.role,
                    capability=capability,
                    resource=request.path,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
            except PermissionDeniedError as e:
                status = 401 if e.decision.outcome is AccessOutcome.LOGIN_REQUIRED else 403
                return jsonify({
                    "error": "Permission denied",
                    "required_capability": capability,
                    "message": str(e),
                    "redirect": e.decision.redirect,
                }), status

            return f(*args, **kwargs)

        return decorated_function
    return decorator
