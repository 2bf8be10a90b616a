# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""Authentication API routes: login, logout, current user."""

from flask import Blueprint, request, jsonify, g

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..decorators import require_auth, bearer_token
from ..time_utils import to_utc_z
from . import register_error_handlers, json_body


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
register_error_handlers(auth_bp)


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email and password and create a session token.

    The token must be sent as `Authorization: Bearer <token>`.
    """
    data = json_body()
    email = data.get("email") or data.get("username")
    password = data.get("password")

    if not all([email, password]):
        return jsonify({"error": "email and password required"}), 400

    user = auth_service.authenticate(email, password)
    if not user:
        return jsonify({"error": "Invalid credentials"}), 401

    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )

    return jsonify({
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(user)),
        "token": token,
        "org_id": session.org_id,
        "expires_at": to_utc_z(session.expires_at),
        "message": "Login successful"
    }), 200


@auth_bp.post("/logout")
def logout_route():
    token = bearer_token()
    if not token:
        return jsonify({"error": "Authorization header required"}), 401

    if not session_service.revoke_session(token, reason="User logout"):
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user with permissions and tenant context."""
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "organization": user.organization.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(user)),
        "org_id": g.org_id,
    }), 200
