# Overview: Flask API routes for finance operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..services import finance_service
from ..decorators import require_auth, require_permission
from ..services.permission_service import FINANCE
from . import register_error_handlers, json_body, int_arg, date_range_args


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")
register_error_handlers(finance_bp)


@finance_bp.get("/transactions")
@require_auth
@require_permission(FINANCE)
def list_transactions_route():
    date_from, date_to = date_range_args()
    entries = finance_service.list_transactions(
        g.context,
        type=request.args.get("type"),
        category=request.args.get("category"),
        date_from=date_from,
        date_to=date_to,
        limit=int_arg("limit", 100),
    )
    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200


@finance_bp.post("/transactions")
@require_auth
@require_permission(FINANCE)
def create_transaction_route():
    """Body: description, amount, type INCOME|EXPENSE, [category, status PAID|PENDING, occurred_at]."""
    entry = finance_service.create_transaction(g.context, json_body())
    return jsonify({"transaction": entry.to_dict()}), 201


@finance_bp.get("/summary")
@require_auth
@require_permission(FINANCE)
def summary_route():
    date_from, date_to = date_range_args()
    return jsonify(finance_service.summary(g.context, date_from=date_from, date_to=date_to)), 200
