# Overview: Printable receipt payload for committed orders.

from __future__ import annotations

from flask import current_app

from ..money import from_cents
from .order_service import get_order
from .tenant_service import OperationContext, validate_org_active
from nexero.time_utils import format_br_date, format_br_time, utcnow


def build_receipt(ctx: OperationContext, order_id: int) -> dict:
    """
    Receipt payload for an external renderer/printer.

    {header, orderId, date, time, items[{name, qty, price, total}],
     subtotal, total, paymentMethod, footer}; money values are decimal strings.
    """
    order = get_order(ctx, order_id)
    org = validate_org_active(ctx.org_id)
    printed_at = order.created_at or utcnow()

    return {
        "header": current_app.config.get("RECEIPT_HEADER") or org.name,
        "orderId": order.code,
        "date": format_br_date(printed_at),
        "time": format_br_time(printed_at),
        "items": [
            {
                "name": item.product_name,
                "qty": item.quantity,
                "price": str(from_cents(item.unit_price_cents)),
                "total": str(from_cents(item.total_price_cents)),
            }
            for item in order.items
        ],
        "subtotal": str(from_cents(order.subtotal_cents)),
        "total": str(from_cents(order.total_amount_cents)),
        "paymentMethod": order.payment_method or "N/A",
        "footer": current_app.config.get("RECEIPT_FOOTER") or "",
    }
