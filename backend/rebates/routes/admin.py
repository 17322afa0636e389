# Overview: Flask API routes for system settings, audit log, reminders and account status.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..errors import DomainError, json_error
from ..services import audit_service, reminder_service, settings_service, user_service


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/settings")
@require_auth
@require_permission("VIEW_SETTINGS")
def get_settings_route():
    try:
        data = settings_service.list_settings()
        return jsonify({"settings": data, "count": len(data)}), 200
    except Exception:
        current_app.logger.exception("Failed to load settings")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.put("/settings")
@require_auth
@require_permission("EDIT_SETTINGS")
def update_setting_route():
    """Body: {key, value}"""
    try:
        data = request.get_json(silent=True) or {}
        result = settings_service.update_setting(data.get("key"), data.get("value"), actor_id=g.current_user.id)
        return jsonify(result), 200
    except DomainError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update setting")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/logs")
@require_auth
@require_permission("VIEW_AUDIT_LOG")
def list_logs_route():
    """Query: limit (default 100), offset, entity_type"""
    try:
        rows, total = audit_service.list_entries(
            limit=request.args.get("limit", 100, type=int),
            offset=request.args.get("offset", 0, type=int),
            entity_type=request.args.get("entity_type"),
        )
        return jsonify({"logs": [row.to_dict() for row in rows], "total": total}), 200
    except Exception:
        current_app.logger.exception("Failed to list audit logs")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/order-reminders")
@require_auth
@require_permission("SEND_REMINDERS")
def send_order_reminders_route():
    try:
        result = reminder_service.send_order_reminders(
            settings_service.current_settings(), actor_id=g.current_user.id
        )
        return jsonify(result), 200
    except Exception:
        current_app.logger.exception("Failed to send order reminders")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.put("/users/<int:user_id>/active")
@require_auth
@require_permission("MANAGE_USERS")
def set_user_active_route(user_id: int):
    """Body: {is_active: bool}"""
    try:
        data = request.get_json(silent=True) or {}
        user = user_service.set_active(g.current_user, user_id, data.get("is_active"))
        return jsonify({"user": user.to_dict()}), 200
    except DomainError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to change user status")
        return jsonify({"error": "Internal server error"}), 500
