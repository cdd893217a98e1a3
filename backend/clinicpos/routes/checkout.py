# Overview: Flask API routes for checkout; parses input and returns JSON responses.

# backend/clinicpos/routes/checkout.py
"""Checkout API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import checkout_service
from ..errors import CheckoutError
from ..decorators import require_operator


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api")


@checkout_bp.post("/checkout")
@require_operator
def checkout_route():
    """
    Commit a cart as a PAID transaction.

    Idempotent on checkout_session_id: a replay answers 200 with the
    original transaction, a new checkout answers 201.
    """
    data = request.get_json(silent=True) or {}
    try:
        result = checkout_service.checkout(data, g.current_user.id)
    except CheckoutError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to checkout")
        return jsonify({"error": "Internal server error"}), 500

    status = 200 if result.replayed else 201
    return jsonify({"transaction": result.to_dict(), "replayed": result.replayed}), status


@checkout_bp.get("/transactions/<int:transaction_id>")
@require_operator
def get_transaction_route(transaction_id: int):
    tx = checkout_service.get_transaction(transaction_id)
    if not tx:
        return jsonify({"error": "Transaction not found"}), 404
    return jsonify({"transaction": checkout_service.project_transaction(tx)}), 200


@checkout_bp.get("/transactions/session/<checkout_session_id>")
@require_operator
def get_transaction_by_session_route(checkout_session_id: str):
    """Lets a client that lost its response find out whether the checkout committed."""
    tx = checkout_service.find_transaction_by_session(checkout_session_id)
    if not tx:
        return jsonify({"error": "Transaction not found"}), 404
    return jsonify({"transaction": checkout_service.project_transaction(tx)}), 200
