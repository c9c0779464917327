# Overview: Flask API routes for login, logout, current user and admin registration.

"""
Authentication API routes

- Login returns an opaque bearer token plus the user's capabilities
- Failed logins are recorded as security events
- Only a MODERATOR may register ADMIN accounts
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..permissions import ROLE_ADMIN
from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..decorators import require_auth, require_capability


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, token: str | None = None) -> dict:
    body = {
        "user": user.to_dict(),
        "capabilities": permission_service.get_user_capabilities(user.role),
    }
    if token is not None:
        body["token"] = token
    return body


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email and password and create a session token.

    The token must be sent as `Authorization: Bearer <token>` on every
    protected route.
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip()
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    user_agent = request.headers.get("User-Agent")
    ip_address = request.remote_addr

    user = auth_service.authenticate(email, password)
    if not user:
        permission_service.log_security_event(
            user_id=None,
            event_type="LOGIN_FAILED",
            success=False,
            resource=request.path,
            reason=f"Invalid credentials for {email.lower()}",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        current_app.logger.warning("Failed login for %s from %s", email.lower(), ip_address)
        return jsonify({"error": "Invalid email or password"}), 401

    _session, token = session_service.create_session(
        user_id=user.id,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    permission_service.log_security_event(
        user_id=user.id,
        event_type="LOGIN",
        success=True,
        resource=request.path,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    body = _session_payload(user, token)
    body["message"] = "Login successful"
    return jsonify(body), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the bearer token used for this request."""
    token = request.headers["Authorization"].split(" ", 1)[1].strip()
    session_service.revoke_session(token, reason="User logout")
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="LOGOUT",
        success=True,
        resource=request.path,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify(_session_payload(g.current_user)), 200


@auth_bp.post("/register-admin")
@require_auth
@require_capability("REGISTER_ADMIN")
def register_admin_route():
    """
    Create an ADMIN account.

    400 for a bad email or weak password, 409 when the email is taken.
    """
    data = request.get_json(silent=True) or {}
    user = auth_service.create_user(
        email=data.get("email"),
        password=data.get("password") or "",
        role=ROLE_ADMIN,
    )
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="ADMIN_REGISTERED",
        success=True,
        resource=request.path,
        reason=f"Created admin {user.email}",
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    current_app.logger.info("Admin registered: %s by user=%s", user.email, g.current_user.id)
    return jsonify({"user": user.to_dict(), "message": "Admin registered"}), 201
