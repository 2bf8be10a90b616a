# Overview: Service-layer operations for tenancy; operation context and tenant-scoped lookups.

"""
Multi-Tenant Service: Operation Context and Scoping Helpers

Every service operation receives an explicit OperationContext instead of
reading ambient request state. Routes build it once from the validated
session (see decorators.require_auth); CLI commands and tests build it
directly.

SECURITY INVARIANTS:
1. Every query touching tenant data filters by context.org_id
2. IDs from client input are resolved through require_in_org
3. Rows of another tenant are reported as not found, and the attempt is logged
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Organization
from ..errors import TenantAccessError


@dataclass(frozen=True)
class OperationContext:
    """
    Tenant and actor for one service operation.

    org_id is taken from the session record, so it cannot change while the
    session lives. salesperson is the display name stamped on orders.
    """
    org_id: int
    user_id: int | None = None
    salesperson: str | None = None


def scoped_query(model, org_id: int):
    """Query `model` restricted to one tenant."""
    return db.session.query(model).filter(model.org_id == org_id)


def require_in_org(model, row_id: int, org_id: int, *, label: str | None = None, lock: bool = False):
    """
    Load a tenant-owned row by id, or raise TenantAccessError.

    With lock=True the row is read with SELECT ... FOR UPDATE.
    """
    name = label or model.__name__
    query = db.session.query(model).filter(model.id == row_id)
    if lock:
        query = query.with_for_update().populate_existing()
    row = query.first()

    if row is None:
        raise TenantAccessError(f"{name} not found", details={"id": row_id})

    if row.org_id != org_id:
        _log_cross_tenant_attempt(
            f"{name} {row_id} belongs to org {row.org_id}, not {org_id}",
            org_id=org_id,
        )
        # Don't reveal it exists in another org
        raise TenantAccessError(f"{name} not found", details={"id": row_id})

    return row


def validate_org_active(org_id: int) -> Organization:
    org = db.session.query(Organization).filter_by(id=org_id).first()

    if not org:
        raise TenantAccessError("Organization not found")

    if not org.is_active:
        raise TenantAccessError("Organization is not active")

    return org


def _log_cross_tenant_attempt(reason: str, *, org_id: int) -> None:
    current_app.logger.warning("CROSS_TENANT_ACCESS_DENIED org_id=%s: %s", org_id, reason)
