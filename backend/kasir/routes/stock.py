# backend/kasir/routes/stock.py
"""
Stock ledger routes.

Manual stock in/out, movement history and the low-stock list. Sales move
stock through /api/transactions, never through these endpoints.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PosError
from ..services import stock_service
from ..validation import parse_stock_payload, parse_page_args, coerce_optional_int
from ..decorators import require_store_context


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _move(operation):
    try:
        data = parse_stock_payload(request.get_json(silent=True))
        movement = operation(store_id=g.store_id, user_id=g.user_id, **data)
        return jsonify({"movement": movement.to_dict()}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record stock movement")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.post("/in")
@require_store_context
def stock_in_route():
    """Add stock to a product."""
    return _move(stock_service.stock_in)


@stock_bp.post("/out")
@require_store_context
def stock_out_route():
    """Remove stock from a product; 409 if it would go negative."""
    return _move(stock_service.stock_out)


@stock_bp.get("/movements")
@require_store_context
def list_movements_route():
    try:
        page, per_page = parse_page_args(request.args)
        movements, pagination = stock_service.list_movements(
            g.store_id,
            product_id=coerce_optional_int(request.args, "product_id", minimum=1),
            page=page,
            per_page=per_page or 50,
        )
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status

    return jsonify({
        "items": [m.to_dict() for m in movements],
        "pagination": pagination,
    }), 200


@stock_bp.get("/low")
@require_store_context
def low_stock_route():
    products = stock_service.list_low_stock(g.store_id)
    return jsonify({
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }), 200
