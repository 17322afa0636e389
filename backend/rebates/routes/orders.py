# Overview: Flask API routes for orders; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import DomainError, json_error
from ..services import order_service, settings_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    List orders visible to the caller (auto-locks stale orders first).

    Query: sortBy, page, pageSize, customer_id (admin/manager), customer_status
    """
    try:
        result = order_service.list_orders(
            g.current_user,
            settings_service.current_settings(),
            page=request.args.get("page"),
            page_size=request.args.get("pageSize"),
            sort_by=request.args.get("sortBy"),
            customer_id=request.args.get("customer_id"),
            customer_status=request.args.get("customer_status"),
        )
        return jsonify(result), 200

    except DomainError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(g.current_user, order_id, settings_service.current_settings())
        return jsonify(order.to_dict()), 200

    except DomainError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Create an order with items.

    Body: {customer_id, contract_id?, order_date, items[], total_amount?, rebate_percentage?}
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.create_order(g.current_user, data, settings_service.current_settings())
        return jsonify(order.to_dict()), 201

    except DomainError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>")
@require_auth
def update_order_route(order_id: int):
    """Partial update; returns the full order with items."""
    try:
        data = request.get_json(silent=True)
        if data is None:
            data = {}
        order = order_service.update_order(g.current_user, order_id, data, settings_service.current_settings())
        return jsonify(order.to_dict()), 200

    except DomainError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
@require_auth
def delete_order_route(order_id: int):
    """Admin only."""
    try:
        order_service.delete_order(g.current_user, order_id)
        return jsonify({"message": "Order deleted successfully"}), 200

    except DomainError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500
