# Overview: Flask API routes for sale transactions; parses input and returns JSON responses.

# backend/poscore/routes/sales.py
"""Sale transaction API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services.errors import InvalidRequest, SaleError
from ..services.sales_service import get_sale_service
from ..decorators import require_user


sales_bp = Blueprint("sales", __name__, url_prefix="/api/transactions")


def _error_response(e: SaleError):
    return jsonify(e.to_dict()), e.http_status


@sales_bp.post("")
@require_user
def create_transaction_route():
    """
    Create a completed sale from a full cart.

    Body:
        terminal_id, customer_id?,
        items: [{product_id, quantity, discount_cents?}],
        tenders: [{method, amount_cents, detail?}]
    """
    try:
        data = request.get_json(silent=True)
        if data is None:
            return jsonify({"error": "JSON body required", "code": "INVALID_REQUEST", "details": {}}), 400

        sale = get_sale_service(current_app).create(g.current_user.id, data)

        return jsonify({"transaction": sale.to_dict(include_children=True)}), 201

    except SaleError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:transaction_id>")
@require_user
def get_transaction_route(transaction_id: int):
    try:
        sale = get_sale_service(current_app).get(transaction_id)
        return jsonify({"transaction": sale.to_dict(include_children=True)}), 200

    except SaleError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get transaction")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/by-number/<string:transaction_number>")
@require_user
def get_transaction_by_number_route(transaction_number: str):
    """Lookup used to recover after an ambiguous create failure."""
    try:
        sale = get_sale_service(current_app).get_by_number(transaction_number)
        return jsonify({"transaction": sale.to_dict(include_children=True)}), 200

    except SaleError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to get transaction by number")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:transaction_id>/void")
@require_user
def void_transaction_route(transaction_id: int):
    """
    Void a completed sale and restore its stock.

    Body: {reason}
    """
    try:
        data = request.get_json(silent=True)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise InvalidRequest("Request body must be a JSON object")

        sale = get_sale_service(current_app).void(
            transaction_id,
            g.current_user.id,
            data.get("reason"),
        )

        return jsonify({"transaction": sale.to_dict(include_children=True)}), 200

    except SaleError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to void transaction")
        return jsonify({"error": "Internal server error"}), 500
