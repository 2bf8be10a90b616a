# Overview: Flask API routes for orders operations; parses input and returns JSON responses.

"""
Order API Routes

- POST /api/orders/preview: price a cart (no writes)
- POST /api/orders: commit a sale
- GET /api/orders, GET /api/orders/<id>: history and detail with reconciliation
- POST /api/orders/<id>/cancel, DELETE /api/orders/<id>
- GET /api/orders/<id>/receipt
- POST/GET /api/orders/<id>/returns
"""

from flask import Blueprint, request, jsonify, g

from ..services import order_service, return_service, receipt_service
from ..services.discount_allocator import OrderDiscount
from ..services.payment_resolver import PaymentSelection
from ..services.permission_service import POS, ORDERS
from ..decorators import require_auth, require_permission
from ..errors import ValidationError
from . import register_error_handlers, json_body, int_arg, date_range_args


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")
register_error_handlers(orders_bp)


def _discount_from(data: dict) -> OrderDiscount:
    return OrderDiscount.from_inputs(
        percent=data.get("order_discount_percent"),
        amount=data.get("order_discount_amount"),
    )


def _payment_from(data: dict) -> PaymentSelection | None:
    payment = data.get("payment")
    if payment is None:
        return None
    if not isinstance(payment, dict):
        raise ValidationError("payment must be an object")
    return PaymentSelection.from_payload(payment)


@orders_bp.post("/preview")
@require_auth
@require_permission(POS)
def preview_route():
    """
    Price a cart without writing anything.

    Body: items [{product_id, quantity, discount_percent?}],
    order_discount_percent | order_discount_amount, payment? {...}
    """
    data = json_body()
    quote = order_service.price_sale(
        g.context,
        data.get("items"),
        discount=_discount_from(data),
        payment=_payment_from(data),
    )
    return jsonify({
        "cart": [line.to_dict() for line in quote.cart.lines],
        "quote": quote.to_dict(),
    }), 200


@orders_bp.post("")
@require_auth
@require_permission(POS)
def commit_route():
    """
    Commit a sale as a COMPLETED order.

    Body: items, order_discount_percent | order_discount_amount,
    payment {method, card_type?, installments?, amount_received?},
    client_id?, notes?, idempotency_key?

    Returns:
        201: order created
        200: idempotent replay of an existing order
        400/409: validation, payment or stock problems
        503: commit failed; nothing written, retry is safe
    """
    data = json_body()
    payment = _payment_from(data)
    if payment is None:
        raise ValidationError("Payment method is required")

    key = data.get("idempotency_key")
    # A replay must not re-check the cart: the first commit may have emptied the stock
    order = order_service.find_replay(g.context, key)
    replay = order is not None

    if not replay:
        cart = order_service.build_cart(g.context, data.get("items"))
        order = order_service.commit_order(
            g.context,
            cart,
            payment,
            discount=_discount_from(data),
            client_id=data.get("client_id"),
            notes=data.get("notes"),
            idempotency_key=key,
        )

    return jsonify({"order": order.to_dict(include_items=True), "replayed": replay}), 200 if replay else 201


@orders_bp.get("")
@require_auth
@require_permission(ORDERS)
def list_orders_route():
    """Query: status, client_id, search, from, to, limit, offset."""
    date_from, date_to = date_range_args()

    limit = int_arg("limit", 50)
    offset = int_arg("offset", 0)
    orders, total = order_service.list_orders(
        g.context,
        status=request.args.get("status"),
        client_id=int_arg("client_id"),
        search=request.args.get("search"),
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [o.to_dict() for o in orders],
        "count": total,
        "limit": limit,
        "offset": offset,
    }), 200


@orders_bp.get("/<int:order_id>")
@require_auth
@require_permission(ORDERS)
def get_order_route(order_id: int):
    order = order_service.get_order(g.context, order_id)
    return jsonify({
        "order": order.to_dict(include_items=True),
        "reconciliation": return_service.order_reconciliation(g.context, order_id),
    }), 200


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
@require_permission(ORDERS)
def cancel_order_route(order_id: int):
    data = json_body()
    order = order_service.cancel_order(g.context, order_id, reason=data.get("reason"))
    return jsonify({"order": order.to_dict(include_items=True)}), 200


@orders_bp.delete("/<int:order_id>")
@require_auth
@require_permission(ORDERS)
def delete_order_route(order_id: int):
    order_service.delete_order(g.context, order_id)
    return jsonify({"message": "Order removed", "order_id": order_id}), 200


@orders_bp.get("/<int:order_id>/receipt")
@require_auth
@require_permission(POS)
def receipt_route(order_id: int):
    return jsonify(receipt_service.build_receipt(g.context, order_id)), 200


@orders_bp.post("/<int:order_id>/returns")
@require_auth
@require_permission(ORDERS)
def create_return_route(order_id: int):
    """
    Record a partial return.

    Body: items [{order_item_id, quantity, amount}], reason?, restock? (default true)
    """
    data = json_body()
    restock = data.get("restock", True)
    if not isinstance(restock, bool):
        raise ValidationError("restock must be a boolean")

    order_return = return_service.record_return(
        g.context,
        order_id,
        data.get("items"),
        reason=data.get("reason"),
        restock=restock,
    )
    return jsonify({
        "return": order_return.to_dict(),
        "reconciliation": return_service.order_reconciliation(g.context, order_id),
    }), 201


@orders_bp.get("/<int:order_id>/returns")
@require_auth
@require_permission(ORDERS)
def list_returns_route(order_id: int):
    returns = return_service.list_returns(g.context, order_id)
    return jsonify({"items": [r.to_dict() for r in returns], "count": len(returns)}), 200
