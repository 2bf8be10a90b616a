# Overview: Service-layer operations for orders; pricing, atomic commit, cancellation and history removal.

"""
Order Committer

State machine: {no order} -> COMPLETED -> CANCELLED.

commit_order writes one unit of work: order header, items, one INCOME
ledger entry, and per line one OUT movement plus the stock decrement. This
is the single point where a sale takes stock off the shelf; products are
read with a row lock and a shortage is rejected, never clamped. Any failure
rolls the whole unit back.

An optional client-generated idempotency key makes retries safe: a commit
whose key already produced an order returns that order unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Order, OrderItem, OrderReturn, Client, InventoryMovement, FinancialTransaction
from ..errors import DomainError, ValidationError, InvalidTransition, CommitFailed, PersistenceError
from ..money import to_cents, from_cents, percent_to_bps
from .cart import Cart
from .catalog_service import load_catalog_snapshot
from .client_service import adjust_total_spent
from .concurrency import run_with_retry, begin_immediate
from .discount_allocator import Allocation, OrderDiscount, NO_DISCOUNT, allocate
from .document_service import next_document_number, ORDER_PREFIX
from .finance_service import record_entry, INCOME, EXPENSE, SALES_CATEGORY, CANCELLATIONS_CATEGORY
from .inventory_service import apply_movement, lock_product
from .payment_resolver import PaymentSelection, PaymentResolution, resolve_payment, BOLETO, STORE_CREDIT
from .tenant_service import OperationContext, require_in_org, scoped_query
from nexero.time_utils import utcnow


DRAFT = "DRAFT"
PENDING = "PENDING"
COMPLETED = "COMPLETED"
CANCELLED = "CANCELLED"
ORDER_STATUSES = (DRAFT, PENDING, COMPLETED, CANCELLED)

# Paid later: the revenue entry stays PENDING until settled
DEFERRED_METHODS = frozenset({BOLETO, STORE_CREDIT})

MAX_IDEMPOTENCY_KEY_LENGTH = 64


@dataclass(frozen=True)
class SaleQuote:
    """Priced sale, nothing written yet. payment is None when no method was given."""
    cart: Cart
    discount: OrderDiscount
    allocation: Allocation
    payment: PaymentResolution | None

    def to_dict(self) -> dict:
        data = self.allocation.to_dict()
        data["payment"] = self.payment.to_dict() if self.payment else None
        return data


def _product_ids(items) -> list[int]:
    if not isinstance(items, list):
        return []
    return [
        item.get("product_id") for item in items
        if isinstance(item, dict) and isinstance(item.get("product_id"), int)
    ]


def build_cart(ctx: OperationContext, items) -> Cart:
    """Cart from API items, priced from a fresh catalog snapshot of the tenant."""
    snapshot = load_catalog_snapshot(ctx, _product_ids(items))
    cart = Cart.from_payload(snapshot, items)
    if cart.is_empty:
        raise ValidationError("Cart is empty")
    return cart


def price_sale(
    ctx: OperationContext,
    items,
    *,
    discount: OrderDiscount = NO_DISCOUNT,
    payment: PaymentSelection | None = None,
) -> SaleQuote:
    """Cart -> allocation -> payment check, without writing anything."""
    cart = build_cart(ctx, items)
    allocation = allocate(cart.lines, discount)
    resolution = resolve_payment(allocation.grand_total, payment) if payment is not None else None
    return SaleQuote(cart=cart, discount=discount, allocation=allocation, payment=resolution)


def _normalize_key(key) -> str | None:
    if key is None:
        return None
    key = str(key).strip()
    if not key:
        return None
    if len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValidationError(f"idempotency_key must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters")
    return key


def _find_by_key(ctx: OperationContext, key: str) -> Order | None:
    return scoped_query(Order, ctx.org_id).filter(Order.idempotency_key == key).first()


def find_replay(ctx: OperationContext, idempotency_key) -> Order | None:
    """Order already committed under `idempotency_key` in this tenant, if any."""
    key = _normalize_key(idempotency_key)
    return _find_by_key(ctx, key) if key else None


def commit_order(
    ctx: OperationContext,
    cart: Cart,
    payment: PaymentSelection,
    *,
    discount: OrderDiscount = NO_DISCOUNT,
    client_id: int | None = None,
    notes: str | None = None,
    idempotency_key: str | None = None,
) -> Order:
    """
    Persist the sale as a COMPLETED order.

    Raises:
        ValidationError: empty cart, bad payment input, unknown client
        InsufficientPayment: cash below total
        InsufficientStock: a product no longer has enough stock (nothing written)
        CommitFailed: the database write failed and was rolled back
            (stock_decremented=False, retryable=True)
    """
    if cart.is_empty:
        raise ValidationError("Cart is empty")
    if payment is None:
        raise ValidationError("Payment method is required")

    allocation = allocate(cart.lines, discount)
    resolution = resolve_payment(allocation.grand_total, payment)
    key = _normalize_key(idempotency_key)

    if key:
        existing = _find_by_key(ctx, key)
        if existing:
            current_app.logger.info("Idempotent replay of order %s (key %s)", existing.code, key)
            return existing

    def _op():
        begin_immediate()
        if key:
            existing = _find_by_key(ctx, key)
            if existing:
                return existing

        client = require_in_org(Client, client_id, ctx.org_id, label="Client") if client_id else None

        # Lock in id order so concurrent commits over the same products cannot deadlock
        products = {
            product_id: lock_product(ctx, product_id)
            for product_id in sorted({line.product_id for line in allocation.lines})
        }
        for product in products.values():
            if not product.is_active:
                raise ValidationError(
                    f"{product.name} is no longer available",
                    details={"product_id": product.id},
                )

        order = Order(
            org_id=ctx.org_id,
            code=next_document_number(org_id=ctx.org_id, document_type="ORDER", prefix=ORDER_PREFIX),
            client_id=client.id if client else None,
            status=COMPLETED,
            subtotal_cents=to_cents(allocation.subtotal),
            discount_total_cents=to_cents(allocation.discount_total),
            total_amount_cents=to_cents(allocation.grand_total),
            order_discount_bps=percent_to_bps(discount.percent) if discount.is_percent else None,
            order_discount_amount_cents=(
                to_cents(discount.amount) if discount.amount is not None and not discount.is_percent else None
            ),
            order_discount_cents=to_cents(allocation.global_discount),
            payment_method=resolution.method,
            installments=resolution.installments,
            amount_received_cents=to_cents(resolution.amount_received) if resolution.amount_received is not None else None,
            change_cents=to_cents(resolution.change) if resolution.change is not None else None,
            salesperson=ctx.salesperson,
            notes=(notes or "").strip() or None,
            idempotency_key=key,
            created_by_user_id=ctx.user_id,
            created_at=utcnow(),
        )
        db.session.add(order)
        db.session.flush()

        for position, line in enumerate(allocation.lines, start=1):
            apply_movement(
                products[line.product_id],
                ctx=ctx,
                movement_type="OUT",
                quantity=line.quantity,
                source="SALE",
                note=f"Order {order.code}",
                order_id=order.id,
            )
            order.items.append(
                OrderItem(
                    position=position,
                    product_id=line.product_id,
                    product_name=line.name,
                    quantity=line.quantity,
                    unit_price_cents=to_cents(line.unit_price),
                    line_discount_bps=percent_to_bps(line.discount_percent),
                    discount_cents=to_cents(line.final_discount),
                    total_price_cents=to_cents(line.final_total),
                )
            )

        record_entry(
            ctx,
            description=f"Venda {order.code}",
            amount=allocation.grand_total,
            type=INCOME,
            category=SALES_CATEGORY,
            status="PENDING" if resolution.method in DEFERRED_METHODS else "PAID",
            order_id=order.id,
        )
        adjust_total_spent(client, order.total_amount_cents)

        db.session.commit()
        return order

    try:
        order = run_with_retry(_op)
    except DomainError:
        db.session.rollback()
        raise
    except IntegrityError as exc:
        db.session.rollback()
        if key:
            existing = _find_by_key(ctx, key)
            if existing:
                current_app.logger.info("Concurrent commit with key %s resolved to order %s", key, existing.code)
                return existing
        current_app.logger.exception("Order commit failed (integrity) for org %s", ctx.org_id)
        raise CommitFailed("Order could not be saved; nothing was written", stock_decremented=False, retryable=True) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Order commit failed for org %s", ctx.org_id)
        raise CommitFailed("Order could not be saved; nothing was written", stock_decremented=False, retryable=True) from exc

    current_app.logger.info(
        "Order %s committed (org %s, %s items, total %s cents, %s)",
        order.code, ctx.org_id, len(order.items), order.total_amount_cents, order.payment_method,
    )
    return order


def _restocked_quantities(order: Order) -> dict[int, int]:
    """Quantities per order item already put back on the shelf by returns."""
    restocked: dict[int, int] = {}
    for order_return in order.returns:
        for item in order_return.items:
            if item.restocked:
                restocked[item.order_item_id] = restocked.get(item.order_item_id, 0) + item.quantity
    return restocked


def _sale_entry_status(order: Order) -> str:
    status = (
        db.session.query(FinancialTransaction.status)
        .filter(
            FinancialTransaction.org_id == order.org_id,
            FinancialTransaction.order_id == order.id,
            FinancialTransaction.type == INCOME,
        )
        .order_by(FinancialTransaction.id.asc())
        .limit(1)
        .scalar()
    )
    return status or "PAID"


def cancel_order(ctx: OperationContext, order_id: int, reason: str | None = None) -> Order:
    """
    COMPLETED -> CANCELLED. Irreversible.

    Every item's quantity goes back to stock, minus whatever a return
    already restocked, and the current total is reversed in the ledger.

    Raises:
        InvalidTransition: order is not COMPLETED (e.g. already cancelled)
    """
    reason = (reason or "").strip() or None

    def _op():
        begin_immediate()
        order = require_in_org(Order, order_id, ctx.org_id, label="Order", lock=True)
        if order.status != COMPLETED:
            raise InvalidTransition(
                f"Order {order.code} is {order.status} and cannot be cancelled",
                details={"order_id": order.id, "status": order.status},
            )

        restocked = _restocked_quantities(order)
        for item in sorted(order.items, key=lambda i: (i.product_id, i.position)):
            quantity = item.quantity - restocked.get(item.id, 0)
            if quantity <= 0:
                continue
            apply_movement(
                lock_product(ctx, item.product_id),
                ctx=ctx,
                movement_type="IN",
                quantity=quantity,
                source="CANCELLATION",
                note=f"Cancel {order.code}",
                order_id=order.id,
            )

        if order.total_amount_cents > 0:
            record_entry(
                ctx,
                description=f"Cancelamento {order.code}",
                amount=from_cents(order.total_amount_cents),
                type=EXPENSE,
                category=CANCELLATIONS_CATEGORY,
                status=_sale_entry_status(order),
                order_id=order.id,
            )
        adjust_total_spent(order.client, -order.total_amount_cents)

        order.status = CANCELLED
        order.cancelled_at = utcnow()
        order.cancelled_by_user_id = ctx.user_id
        order.cancelled_reason = reason

        db.session.commit()
        return order

    try:
        order = run_with_retry(_op)
    except DomainError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Order cancel failed for order %s", order_id)
        raise PersistenceError("Could not cancel order") from exc

    current_app.logger.info("Order %s cancelled (org %s): %s", order.code, ctx.org_id, reason or "-")
    return order


def delete_order(ctx: OperationContext, order_id: int) -> None:
    """
    Remove a CANCELLED order and its items from history. No stock effect.

    Orders with recorded returns are kept: their return documents
    reference the order items.
    """
    def _op():
        order = require_in_org(Order, order_id, ctx.org_id, label="Order", lock=True)
        if order.status != CANCELLED:
            raise InvalidTransition(
                f"Only cancelled orders can be removed (order {order.code} is {order.status})",
                details={"order_id": order.id, "status": order.status},
            )
        has_returns = db.session.query(
            db.session.query(OrderReturn).filter(OrderReturn.order_id == order.id).exists()
        ).scalar()
        if has_returns:
            raise InvalidTransition(
                f"Order {order.code} has recorded returns and stays in history",
                details={"order_id": order.id},
            )

        for model in (InventoryMovement, FinancialTransaction):
            db.session.execute(
                update(model)
                .where(model.org_id == ctx.org_id, model.order_id == order.id)
                .values(order_id=None)
                .execution_options(synchronize_session=False)
            )
        code = order.code
        db.session.delete(order)
        db.session.commit()
        return code

    try:
        code = run_with_retry(_op)
    except DomainError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Order delete failed for order %s", order_id)
        raise PersistenceError("Could not remove order") from exc

    current_app.logger.info("Order %s removed from history (org %s)", code, ctx.org_id)


def get_order(ctx: OperationContext, order_id: int) -> Order:
    return require_in_org(Order, order_id, ctx.org_id, label="Order")


def list_orders(
    ctx: OperationContext,
    *,
    status: str | None = None,
    client_id: int | None = None,
    search: str | None = None,
    date_from=None,
    date_to=None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Order], int]:
    query = scoped_query(Order, ctx.org_id)
    if status:
        status = status.upper()
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Unknown status: {status}", details={"allowed": list(ORDER_STATUSES)})
        query = query.filter(Order.status == status)
    if client_id is not None:
        query = query.filter(Order.client_id == client_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Order.code.ilike(pattern), Order.salesperson.ilike(pattern)))
    if date_from:
        query = query.filter(Order.created_at >= date_from)
    if date_to:
        query = query.filter(Order.created_at <= date_to)

    total = query.count()
    limit = min(max(limit, 1), 200)
    offset = max(offset, 0)
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()).offset(offset).limit(limit).all()
    return orders, total
