# backend/clinicpos/routes/stock.py
"""
Stock routes.

- Reads (levels, movement history) require an operator.
- Manual adjustments require an ADMIN operator.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- start/end filtering is inclusive.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import CheckoutError
from ..extensions import db
from ..models import Product
from ..services import stock_service
from clinicpos.time_utils import parse_iso_datetime
from ..decorators import require_operator, require_admin


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
@require_operator
def all_stocks_route():
    stocks = stock_service.all_stocks()
    products = db.session.query(Product).order_by(Product.name).all()
    return jsonify({
        "products": [
            {"product_id": p.id, "name": p.name, "stock": stocks.get(p.id, 0)}
            for p in products
        ]
    }), 200


@stock_bp.get("/<int:product_id>")
@require_operator
def product_stock_route(product_id: int):
    product = db.session.get(Product, product_id)
    if not product:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product_id": product.id, "name": product.name, "stock": stock_service.current_stock(product.id)}), 200


@stock_bp.get("/movements")
@require_operator
def movements_route():
    try:
        product_id = request.args.get("product_id", type=int)
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "invalid start/end datetime"}), 400

    result = stock_service.list_movements(
        product_id=product_id,
        kind=request.args.get("type"),
        start=start,
        end=end,
        page=request.args.get("page", 1, type=int),
        limit=request.args.get("limit", 20, type=int),
    )
    return jsonify(result), 200


@stock_bp.post("/adjust")
@require_operator
@require_admin
def adjust_stock_route():
    """
    Manual IN / OUT / ADJUST movement.

    Body: {"product_id": int, "type": "IN"|"OUT"|"ADJUST", "quantity": int, "note": str}
    """
    data = request.get_json(silent=True) or {}
    product_id = data.get("product_id")
    if not isinstance(product_id, int) or isinstance(product_id, bool):
        return jsonify({"error": "product_id required"}), 400

    try:
        movement = stock_service.adjust_stock(
            product_id=product_id,
            kind=data.get("type") or data.get("kind"),
            quantity=data.get("quantity"),
            note=data.get("note"),
            user_id=g.current_user.id,
        )
    except CheckoutError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "movement": movement.to_dict(),
        "stock": stock_service.current_stock(product_id),
    }), 201
