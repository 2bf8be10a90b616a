# Overview: Service-layer operations for clients; customer records and spending totals.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Client
from ..errors import ValidationError, PersistenceError
from ..money import to_decimal, round2, to_cents, ZERO
from .tenant_service import OperationContext, require_in_org, scoped_query

CLIENT_TYPES = ("PF", "PJ")


def create_client(ctx: OperationContext, data: dict) -> Client:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")

    client_type = (data.get("type") or "PF").strip().upper()
    if client_type not in CLIENT_TYPES:
        raise ValidationError("type must be PF or PJ")

    credit_limit = round2(to_decimal(data.get("credit_limit", 0), field="credit_limit"))
    if credit_limit < ZERO:
        raise ValidationError("credit_limit cannot be negative")

    client = Client(
        org_id=ctx.org_id,
        name=name,
        cnpj_cpf=(data.get("cnpj_cpf") or "").strip() or None,
        type=client_type,
        email=(data.get("email") or "").strip() or None,
        phone=(data.get("phone") or "").strip() or None,
        address=(data.get("address") or "").strip() or None,
        credit_limit_cents=to_cents(credit_limit),
        total_spent_cents=0,
    )
    try:
        db.session.add(client)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Client create failed for org %s", ctx.org_id)
        raise PersistenceError("Could not create client") from exc
    return client


def get_client(ctx: OperationContext, client_id: int) -> Client:
    return require_in_org(Client, client_id, ctx.org_id, label="Client")


def list_clients(ctx: OperationContext, *, search: str | None = None) -> list[Client]:
    query = scoped_query(Client, ctx.org_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Client.name.ilike(pattern), Client.cnpj_cpf.ilike(pattern)))
    return query.order_by(Client.name.asc(), Client.id.asc()).all()


def adjust_total_spent(client: Client | None, delta_cents: int) -> None:
    """Move the client's spending total inside the caller's transaction; never below zero."""
    if client is None or not delta_cents:
        return
    client.total_spent_cents = max(0, (client.total_spent_cents or 0) + delta_cents)
