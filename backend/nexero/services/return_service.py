# Overview: Service-layer operations for returns; partial refunds and order reconciliation.

"""
Return Manager

Partial refunds against COMPLETED orders. Original order rows are never
edited except Order.total_amount_cents, which drops by each return.
Derived values are recomputed on read and always balance:

    original_total = current_total + sum(returns)
    current_line   = original_line_total - refunded_line
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Order, OrderReturn, OrderReturnItem
from ..errors import DomainError, ValidationError, NotFoundError, OverRefund, InvalidTransition, PersistenceError
from ..money import to_decimal, round2, to_cents, from_cents, ZERO
from .client_service import adjust_total_spent
from .concurrency import run_with_retry, begin_immediate
from .finance_service import record_entry, EXPENSE, RETURNS_CATEGORY
from .inventory_service import apply_movement, lock_product
from .order_service import COMPLETED
from .tenant_service import OperationContext, require_in_org
from nexero.time_utils import utcnow


@dataclass
class ReturnLineInput:
    order_item_id: int
    quantity: int
    amount: Decimal


def parse_return_items(raw_items) -> list[ReturnLineInput]:
    """
    Validate [{order_item_id, quantity, amount}] and merge repeats of the
    same order item, so the limits are checked on the combined request.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one return item is required")

    merged: dict[int, ReturnLineInput] = {}
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError("Each return item must be an object", details={"item": index})

        item_id = raw.get("order_item_id")
        if not isinstance(item_id, int) or isinstance(item_id, bool):
            raise ValidationError("order_item_id must be an integer", details={"item": index})

        raw_quantity = raw.get("quantity", 0)
        if isinstance(raw_quantity, bool) or not isinstance(raw_quantity, int) or raw_quantity < 0:
            raise ValidationError("quantity must be a non-negative integer", details={"item": index})

        amount = round2(to_decimal(raw.get("amount", 0), field="amount"))
        if amount < ZERO:
            raise ValidationError("amount cannot be negative", details={"item": index})
        if raw_quantity == 0 and amount == ZERO:
            raise ValidationError("Return item needs a quantity or an amount", details={"item": index})

        if item_id in merged:
            merged[item_id].quantity += raw_quantity
            merged[item_id].amount += amount
        else:
            merged[item_id] = ReturnLineInput(order_item_id=item_id, quantity=raw_quantity, amount=amount)

    return list(merged.values())


def returned_totals(order_id: int) -> dict[int, tuple[int, int]]:
    """{order_item_id: (returned quantity, refunded cents)} over all returns of an order."""
    rows = (
        db.session.query(
            OrderReturnItem.order_item_id,
            func.coalesce(func.sum(OrderReturnItem.quantity), 0),
            func.coalesce(func.sum(OrderReturnItem.amount_cents), 0),
        )
        .join(OrderReturn, OrderReturn.id == OrderReturnItem.return_id)
        .filter(OrderReturn.order_id == order_id)
        .group_by(OrderReturnItem.order_item_id)
        .all()
    )
    return {item_id: (int(qty), int(cents)) for item_id, qty, cents in rows}


def record_return(
    ctx: OperationContext,
    order_id: int,
    items,
    *,
    reason: str | None = None,
    restock: bool = True,
) -> OrderReturn:
    """
    Record one partial return.

    Per order item, cumulative returned quantity stays <= the sold quantity
    and cumulative refunded amount stays <= the line total; otherwise
    OverRefund is raised and nothing is applied. On success the order total
    drops by the return amount, returned units go back to stock (unless
    restock=False) and an EXPENSE entry is written.

    Raises:
        InvalidTransition: order is not COMPLETED
        NotFoundError: order item not part of this order
        OverRefund: quantity or amount limit exceeded
    """
    lines = parse_return_items(items)
    reason = (reason or "").strip() or None

    def _op():
        begin_immediate()
        order = require_in_org(Order, order_id, ctx.org_id, label="Order", lock=True)
        if order.status != COMPLETED:
            raise InvalidTransition(
                f"Returns are only accepted for completed orders (order {order.code} is {order.status})",
                details={"order_id": order.id, "status": order.status},
            )

        order_items = {item.id: item for item in order.items}
        already = returned_totals(order.id)

        for line in lines:
            item = order_items.get(line.order_item_id)
            if item is None:
                raise NotFoundError("Order item not found", details={"order_item_id": line.order_item_id})

            returned_qty, refunded_cents = already.get(item.id, (0, 0))
            if returned_qty + line.quantity > item.quantity:
                raise OverRefund(
                    f"Cannot return {line.quantity} un of {item.product_name}: "
                    f"only {item.quantity - returned_qty} un left to return",
                    details={
                        "order_item_id": item.id,
                        "requested_quantity": line.quantity,
                        "remaining_quantity": item.quantity - returned_qty,
                    },
                )
            remaining_cents = item.total_price_cents - refunded_cents
            if to_cents(line.amount) > remaining_cents:
                raise OverRefund(
                    f"Cannot refund {line.amount} on {item.product_name}: "
                    f"only {from_cents(remaining_cents)} left to refund",
                    details={
                        "order_item_id": item.id,
                        "requested_amount": str(line.amount),
                        "remaining_amount": str(from_cents(remaining_cents)),
                    },
                )

        total = sum((line.amount for line in lines), ZERO)
        total_cents = to_cents(total)

        order_return = OrderReturn(
            org_id=ctx.org_id,
            order_id=order.id,
            amount_cents=total_cents,
            reason=reason,
            created_by_user_id=ctx.user_id,
            created_at=utcnow(),
        )
        db.session.add(order_return)
        db.session.flush()

        for line in sorted(lines, key=lambda l: order_items[l.order_item_id].product_id):
            item = order_items[line.order_item_id]
            put_back = restock and line.quantity > 0
            if put_back:
                apply_movement(
                    lock_product(ctx, item.product_id),
                    ctx=ctx,
                    movement_type="IN",
                    quantity=line.quantity,
                    source="RETURN",
                    note=f"Return on {order.code}",
                    order_id=order.id,
                )
            order_return.items.append(
                OrderReturnItem(
                    order_item_id=item.id,
                    quantity=line.quantity,
                    amount_cents=to_cents(line.amount),
                    restocked=put_back,
                )
            )

        order.total_amount_cents = order.total_amount_cents - total_cents

        if total_cents > 0:
            record_entry(
                ctx,
                description=f"Devolução {order.code}",
                amount=total,
                type=EXPENSE,
                category=RETURNS_CATEGORY,
                order_id=order.id,
            )
        adjust_total_spent(order.client, -total_cents)

        db.session.commit()
        return order_return

    try:
        order_return = run_with_retry(_op)
    except DomainError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Return failed for order %s", order_id)
        raise PersistenceError("Could not record return") from exc

    current_app.logger.info(
        "Return %s recorded on order %s (org %s, %s cents)",
        order_return.id, order_id, ctx.org_id, order_return.amount_cents,
    )
    return order_return


def order_reconciliation(ctx: OperationContext, order_id: int) -> dict:
    """
    Original / refunded / current figures for an order and each of its lines.

    Never stored; recomputed from the order and its returns every time.
    """
    order = require_in_org(Order, order_id, ctx.org_id, label="Order")
    already = returned_totals(order.id)

    refunded_total = sum(r.amount_cents for r in order.returns)
    lines = []
    for item in order.items:
        returned_qty, refunded_cents = already.get(item.id, (0, 0))
        lines.append({
            "order_item_id": item.id,
            "position": item.position,
            "name": item.product_name,
            "quantity": item.quantity,
            "returned_quantity": returned_qty,
            "remaining_quantity": item.quantity - returned_qty,
            "original_total_cents": item.total_price_cents,
            "refunded_cents": refunded_cents,
            "current_total_cents": item.total_price_cents - refunded_cents,
        })

    return {
        "order_id": order.id,
        "code": order.code,
        "status": order.status,
        "original_total_cents": order.total_amount_cents + refunded_total,
        "refunded_cents": refunded_total,
        "current_total_cents": order.total_amount_cents,
        "returns_count": len(order.returns),
        "lines": lines,
    }


def list_returns(ctx: OperationContext, order_id: int) -> list[OrderReturn]:
    order = require_in_org(Order, order_id, ctx.org_id, label="Order")
    return list(order.returns)
