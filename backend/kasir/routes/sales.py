# Overview: Flask API routes for sales transactions; parses input and returns JSON responses.

# backend/kasir/routes/sales.py
"""Sales transaction API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import PosError
from ..services import sales_service
from ..validation import parse_sale_payload, parse_page_args, parse_date_arg
from ..decorators import require_store_context


sales_bp = Blueprint("sales", __name__, url_prefix="/api/transactions")


@sales_bp.post("")
@require_store_context
def create_transaction_route():
    """
    Create a completed sale from a cart.

    Body: items[{product_id, quantity, discount_amount?, discount_percent?}],
    discount_amount?, discount_percent?, payment_amount, payment_type,
    payment_reference?, customer_id?, notes?
    """
    try:
        kwargs = parse_sale_payload(request.get_json(silent=True))
        sale = sales_service.create_sale(g.store_id, g.user_id, **kwargs)
        return jsonify({"transaction": sale.to_dict()}), 201

    except PosError as e:
        if e.http_status >= 500:
            current_app.logger.error("Sale commit failed for store %s: %s", g.store_id, e.details)
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_store_context
def list_transactions_route():
    """List store transactions (page, per_page, date_from, date_to, status)."""
    try:
        page, per_page = parse_page_args(request.args)
        sales, pagination = sales_service.list_transactions(
            g.store_id,
            page=page,
            per_page=per_page,
            date_from=parse_date_arg(request.args, "date_from"),
            date_to=parse_date_arg(request.args, "date_to"),
            status=request.args.get("status") or None,
        )
        return jsonify({
            "items": [s.to_dict(include_items=False) for s in sales],
            "pagination": pagination,
        }), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:transaction_id>")
@require_store_context
def get_transaction_route(transaction_id: int):
    """Get a transaction with its items."""
    sale = sales_service.get_transaction(g.store_id, transaction_id)
    if not sale:
        return jsonify({"error": "Transaction not found"}), 404

    return jsonify({"transaction": sale.to_dict()}), 200
