# Overview: Service-layer operations for finance; cash-flow ledger entries and summaries.

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import FinancialTransaction
from ..errors import ValidationError, PersistenceError
from ..money import to_decimal, round2, to_cents, ZERO
from .tenant_service import OperationContext, scoped_query
from nexero.time_utils import utcnow, parse_iso_datetime

INCOME = "INCOME"
EXPENSE = "EXPENSE"
TRANSACTION_TYPES = (INCOME, EXPENSE)
TRANSACTION_STATUSES = ("PAID", "PENDING")

SALES_CATEGORY = "Vendas"
RETURNS_CATEGORY = "Devoluções"
CANCELLATIONS_CATEGORY = "Cancelamentos"


def record_entry(
    ctx: OperationContext,
    *,
    description: str,
    amount: Decimal,
    type: str,
    category: str,
    status: str = "PAID",
    order_id: int | None = None,
) -> FinancialTransaction:
    """
    Add a ledger entry to the current transaction (the caller commits).

    Used by commit, cancel and return so the money side lands in the same
    unit of work as the order change.
    """
    entry = FinancialTransaction(
        org_id=ctx.org_id,
        description=description,
        amount_cents=to_cents(amount),
        type=type,
        category=category,
        status=status,
        order_id=order_id,
        created_by_user_id=ctx.user_id,
        occurred_at=utcnow(),
    )
    db.session.add(entry)
    return entry


def create_transaction(ctx: OperationContext, data: dict) -> FinancialTransaction:
    """Manual entry (rent, suppliers, other income)."""
    description = (data.get("description") or "").strip()
    if not description:
        raise ValidationError("description is required")

    tx_type = (data.get("type") or "").strip().upper()
    if tx_type not in TRANSACTION_TYPES:
        raise ValidationError("type must be INCOME or EXPENSE")

    status = (data.get("status") or "PAID").strip().upper()
    if status not in TRANSACTION_STATUSES:
        raise ValidationError("status must be PAID or PENDING")

    if data.get("amount") is None:
        raise ValidationError("amount is required")
    amount = round2(to_decimal(data["amount"], field="amount"))
    if amount <= ZERO:
        raise ValidationError("amount must be positive")

    category = (data.get("category") or "").strip() or "Outros"
    try:
        occurred_at = parse_iso_datetime(data.get("occurred_at"))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError("occurred_at must be an ISO-8601 datetime")

    try:
        entry = record_entry(
            ctx,
            description=description,
            amount=amount,
            type=tx_type,
            category=category,
            status=status,
        )
        if occurred_at:
            entry.occurred_at = occurred_at
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Financial transaction create failed for org %s", ctx.org_id)
        raise PersistenceError("Could not record financial transaction") from exc
    return entry


def list_transactions(
    ctx: OperationContext,
    *,
    type: str | None = None,
    category: str | None = None,
    date_from=None,
    date_to=None,
    limit: int = 100,
) -> list[FinancialTransaction]:
    query = scoped_query(FinancialTransaction, ctx.org_id)
    if type:
        query = query.filter(FinancialTransaction.type == type.upper())
    if category:
        query = query.filter(FinancialTransaction.category == category)
    if date_from:
        query = query.filter(FinancialTransaction.occurred_at >= date_from)
    if date_to:
        query = query.filter(FinancialTransaction.occurred_at <= date_to)
    return (
        query.order_by(FinancialTransaction.occurred_at.desc(), FinancialTransaction.id.desc())
        .limit(min(max(limit, 1), 500))
        .all()
    )


def summary(ctx: OperationContext, *, date_from=None, date_to=None) -> dict:
    """PAID income, PAID expense and balance in cents, plus the PENDING totals."""
    query = (
        db.session.query(
            FinancialTransaction.type,
            FinancialTransaction.status,
            func.coalesce(func.sum(FinancialTransaction.amount_cents), 0),
        )
        .filter(FinancialTransaction.org_id == ctx.org_id)
    )
    if date_from:
        query = query.filter(FinancialTransaction.occurred_at >= date_from)
    if date_to:
        query = query.filter(FinancialTransaction.occurred_at <= date_to)

    totals = {(tx_type, status): int(total) for tx_type, status, total in
              query.group_by(FinancialTransaction.type, FinancialTransaction.status).all()}

    income = totals.get((INCOME, "PAID"), 0)
    expense = totals.get((EXPENSE, "PAID"), 0)
    return {
        "income_cents": income,
        "expense_cents": expense,
        "balance_cents": income - expense,
        "pending_income_cents": totals.get((INCOME, "PENDING"), 0),
        "pending_expense_cents": totals.get((EXPENSE, "PENDING"), 0),
    }
