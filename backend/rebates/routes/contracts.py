# Overview: Flask API routes for contracts; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import DomainError, json_error
from ..services import contract_service, settings_service


contracts_bp = Blueprint("contracts", __name__, url_prefix="/api/contracts")


@contracts_bp.get("")
@require_auth
def list_contracts_route():
    """
    Query: sortBy, page, pageSize, customer_id, status, include_all (staff)
    """
    try:
        result = contract_service.list_contracts(
            g.current_user,
            page=request.args.get("page"),
            page_size=request.args.get("pageSize"),
            sort_by=request.args.get("sortBy"),
            customer_id=request.args.get("customer_id"),
            status=request.args.get("status"),
            include_all=request.args.get("include_all") == "true",
        )
        return jsonify(result), 200

    except DomainError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to list contracts")
        return jsonify({"error": "Internal server error"}), 500


@contracts_bp.get("/<int:contract_id>")
@require_auth
def get_contract_route(contract_id: int):
    try:
        contract = contract_service.get_contract(g.current_user, contract_id)
        return jsonify(contract.to_dict()), 200

    except DomainError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to get contract")
        return jsonify({"error": "Internal server error"}), 500


@contracts_bp.post("")
@require_auth
def create_contract_route():
    try:
        data = request.get_json(silent=True) or {}
        contract = contract_service.create_contract(g.current_user, data, settings_service.current_settings())
        return jsonify(contract.to_dict()), 201

    except DomainError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to create contract")
        return jsonify({"error": "Internal server error"}), 500


@contracts_bp.put("/<int:contract_id>")
@require_auth
def update_contract_route(contract_id: int):
    """
    Admins edit any field; managers and approver staff only the approval fields.
    """
    try:
        data = request.get_json(silent=True)
        if data is None:
            data = {}
        contract = contract_service.update_contract(g.current_user, contract_id, data)
        return jsonify(contract.to_dict()), 200

    except DomainError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to update contract")
        return jsonify({"error": "Internal server error"}), 500


@contracts_bp.delete("/<int:contract_id>")
@require_auth
def delete_contract_route(contract_id: int):
    try:
        contract_service.delete_contract(g.current_user, contract_id)
        return jsonify({"message": "Contract deleted successfully"}), 200

    except DomainError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to delete contract")
        return jsonify({"error": "Internal server error"}), 500
