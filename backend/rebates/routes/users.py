# Overview: Flask API routes for accounts, verification and user administration.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..errors import DomainError, json_error
from ..services import auth_service, settings_service, user_service, verification_service


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _error_response(exc: Exception, what: str):
    if isinstance(exc, DomainError):
        return json_error(exc)
    current_app.logger.exception("Failed to %s", what)
    return jsonify({"error": "Internal server error"}), 500


# -- Public ------------------------------------------------------------------

@users_bp.post("/register")
def register_route():
    """
    Body: {email, password, full_name, phone?, requested_role?, verification_code?}

    New accounts are always role=user; requested_role opens a role request.
    """
    try:
        data = request.get_json(silent=True) or {}
        user, role_request = auth_service.register(data, settings_service.current_settings())
        body = {"user": user.to_dict(), "message": "Registration successful"}
        if role_request is not None:
            body["role_request"] = role_request.to_dict()
            body["message"] = "Registration successful. Your role request is pending review"
        return jsonify(body), 201
    except Exception as e:
        return _error_response(e, "register user")


@users_bp.post("/login")
def login_route():
    try:
        data = request.get_json(silent=True) or {}
        user, token = auth_service.authenticate(data.get("email"), data.get("password"))
        return jsonify({"token": token, "user": user.to_dict()}), 200
    except Exception as e:
        return _error_response(e, "log in")


@users_bp.post("/send-email-code")
def send_email_code_route():
    """Body: {email, purpose}"""
    try:
        data = request.get_json(silent=True) or {}
        result = verification_service.send_code(data.get("email"), data.get("purpose", "registration"))
        return jsonify(result), 200 if result["success"] else 400
    except Exception as e:
        return _error_response(e, "send verification code")


@users_bp.post("/verify-email-code")
def verify_email_code_route():
    """Body: {email, code, purpose}"""
    try:
        data = request.get_json(silent=True) or {}
        result = verification_service.verify_code(
            data.get("email"), data.get("code"), data.get("purpose", "registration")
        )
        if not result["success"]:
            return jsonify({"error": result["message"], "success": False}), 400
        return jsonify(result), 200
    except Exception as e:
        return _error_response(e, "verify code")


# -- Self service ------------------------------------------------------------

@users_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@users_bp.put("/me")
@require_auth
def update_me_route():
    """Body: {full_name?, phone?}"""
    try:
        data = request.get_json(silent=True) or {}
        user = user_service.update_profile(g.current_user, data)
        return jsonify({"user": user.to_dict()}), 200
    except Exception as e:
        return _error_response(e, "update profile")


@users_bp.post("/change-password")
@require_auth
def change_password_route():
    try:
        data = request.get_json(silent=True) or {}
        auth_service.change_password(g.current_user, data.get("current_password"), data.get("new_password"))
        return jsonify({"message": "Password changed successfully"}), 200
    except Exception as e:
        return _error_response(e, "change password")


@users_bp.get("/my-role-request")
@require_auth
def my_role_request_route():
    role_request = user_service.get_my_role_request(g.current_user)
    return jsonify({"role_request": role_request.to_dict() if role_request else None}), 200


# -- Directory and role requests ---------------------------------------------

@users_bp.get("/list")
@require_auth
@require_permission("VIEW_USER_DIRECTORY")
def list_users_route():
    """Query: role"""
    try:
        users = user_service.list_directory(g.current_user, role=request.args.get("role"))
        return jsonify({"users": [u.to_dict() for u in users], "count": len(users)}), 200
    except Exception as e:
        return _error_response(e, "list users")


@users_bp.get("/role-requests")
@require_auth
@require_permission("REVIEW_ROLE_REQUESTS")
def list_role_requests_route():
    """Query: status (default pending; "all" for every status)"""
    try:
        status = request.args.get("status", "pending")
        requests_ = user_service.list_role_requests(g.current_user, status=None if status == "all" else status)
        return jsonify({"requests": [r.to_dict() for r in requests_], "count": len(requests_)}), 200
    except Exception as e:
        return _error_response(e, "list role requests")


@users_bp.post("/role-requests/<int:request_id>/review")
@require_auth
@require_permission("REVIEW_ROLE_REQUESTS")
def review_role_request_route(request_id: int):
    """Body: {action: approve|reject, comment?}"""
    try:
        data = request.get_json(silent=True) or {}
        role_request = user_service.review_role_request(
            g.current_user, request_id, data.get("action"), data.get("comment")
        )
        return jsonify({"role_request": role_request.to_dict()}), 200
    except Exception as e:
        return _error_response(e, "review role request")


# -- Admin -------------------------------------------------------------------

@users_bp.put("/<int:user_id>/role")
@require_auth
@require_permission("MANAGE_USERS")
def update_role_route(user_id: int):
    try:
        data = request.get_json(silent=True) or {}
        user = user_service.update_role(g.current_user, user_id, data.get("role"))
        return jsonify({"user": user.to_dict()}), 200
    except Exception as e:
        return _error_response(e, "update user role")


@users_bp.delete("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def delete_user_route(user_id: int):
    try:
        user_service.delete_user(g.current_user, user_id)
        return jsonify({"message": "User deleted successfully", "user_id": user_id}), 200
    except Exception as e:
        return _error_response(e, "delete user")


@users_bp.post("/<int:user_id>/capabilities")
@require_auth
@require_permission("MANAGE_USERS")
def grant_capability_route(user_id: int):
    """Body: {capability: "approve_contracts"}"""
    try:
        data = request.get_json(silent=True) or {}
        grant = user_service.grant_capability(g.current_user, user_id, data.get("capability"))
        return jsonify({"capability": grant.to_dict()}), 201
    except Exception as e:
        return _error_response(e, "grant capability")


@users_bp.delete("/<int:user_id>/capabilities/<capability>")
@require_auth
@require_permission("MANAGE_USERS")
def revoke_capability_route(user_id: int, capability: str):
    try:
        user_service.revoke_capability(g.current_user, user_id, capability)
        return jsonify({"message": "Capability revoked"}), 200
    except Exception as e:
        return _error_response(e, "revoke capability")
