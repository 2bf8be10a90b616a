# Overview: Service-layer operations for document codes; per-tenant human-readable numbering.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from ..errors import ValidationError

ORDER_PREFIX = "PD"
RECEIPT_PREFIX = "RC"


def next_document_number(
    *,
    org_id: int,
    document_type: str,
    prefix: str,
    pad: int = 6,
) -> str:
    """
    Allocate the next document number for an org/type inside the caller's transaction.

    The counter row is bumped with a single UPDATE, which holds the row lock
    until the caller commits; a rolled-back order therefore gives its number
    back. The first allocation inserts the row inside a savepoint so a racing
    insert only loses that savepoint.
    """
    if not org_id:
        raise ValidationError("org_id is required")
    if not document_type:
        raise ValidationError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.org_id == org_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_number(org_id, document_type) - 1
    else:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(org_id=org_id, document_type=document_type, next_number=2))
            next_num = 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_number(org_id, document_type) - 1

    return f"{prefix}-{next_num:0{pad}d}"


def _current_number(org_id: int, document_type: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(org_id=org_id, document_type=document_type)
        .scalar()
    )
