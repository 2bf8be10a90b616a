# Overview: Service-layer operations for the inventory ledger; stock movements, purchase receipts and reconciliation.

"""
Inventory Ledger Service

Every stock change is one InventoryMovement row carrying prev_stock and
new_stock. Product.stock is only written here (apply_movement), always
after a locked read, and never committed negative.

Audit asymmetry: record_movement keeps a manual stock change even if its
movement insert fails; the failure is logged as a reconciliation warning
and reconcile_stock reports the drift. Sale, cancel, return and receipt
movements are written in the same transaction as their document and
roll back with it.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, InventoryMovement, PurchaseReceipt, PurchaseReceiptLine
from ..errors import DomainError, ValidationError, InsufficientStock, PersistenceError
from ..money import to_decimal, round2, to_cents, ZERO
from .concurrency import run_with_retry, begin_immediate
from .document_service import next_document_number, RECEIPT_PREFIX
from .storage_service import ObjectStorage, StorageError, get_object_storage
from .tenant_service import OperationContext, require_in_org, scoped_query


MOVEMENT_TYPES = ("IN", "OUT")
MOVEMENT_SOURCES = ("MANUAL", "INITIAL", "SALE", "CANCELLATION", "RETURN", "PURCHASE")


def _parse_quantity(value, field: str = "quantity") -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"{field} must be a positive integer")
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a positive integer")
    if quantity <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return quantity


def _parse_movement_type(value) -> str:
    movement_type = (value or "").strip().upper() if isinstance(value, str) else None
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError("type must be IN or OUT", details={"allowed": list(MOVEMENT_TYPES)})
    return movement_type


def _next_stock(product: Product, movement_type: str, quantity: int) -> int:
    prev_stock = product.stock or 0
    if movement_type == "IN":
        return prev_stock + quantity
    new_stock = prev_stock - quantity
    if new_stock < 0:
        raise InsufficientStock(product.id, quantity, prev_stock, product.name)
    return new_stock


def _build_movement(
    product: Product,
    *,
    ctx: OperationContext,
    movement_type: str,
    quantity: int,
    prev_stock: int,
    new_stock: int,
    source: str,
    note: str | None = None,
    order_id: int | None = None,
    receipt_id: int | None = None,
) -> InventoryMovement:
    return InventoryMovement(
        org_id=product.org_id,
        product_id=product.id,
        type=movement_type,
        quantity=quantity,
        prev_stock=prev_stock,
        new_stock=new_stock,
        source=source,
        note=note,
        order_id=order_id,
        receipt_id=receipt_id,
        created_by_user_id=ctx.user_id,
    )


def apply_movement(
    product: Product,
    *,
    ctx: OperationContext,
    movement_type: str,
    quantity: int,
    source: str,
    note: str | None = None,
    order_id: int | None = None,
    receipt_id: int | None = None,
) -> InventoryMovement:
    """
    Change stock and add the matching movement to the current transaction.

    The caller must hold the product row lock and owns the commit, so the
    stock change and the movement land (or roll back) together.

    Raises:
        InsufficientStock: OUT movement would drive stock negative
    """
    if source not in MOVEMENT_SOURCES:
        raise ValidationError(f"Unknown movement source: {source}")
    movement_type = _parse_movement_type(movement_type)
    quantity = _parse_quantity(quantity)

    prev_stock = product.stock or 0
    new_stock = _next_stock(product, movement_type, quantity)
    product.stock = new_stock

    movement = _build_movement(
        product,
        ctx=ctx,
        movement_type=movement_type,
        quantity=quantity,
        prev_stock=prev_stock,
        new_stock=new_stock,
        source=source,
        note=note,
        order_id=order_id,
        receipt_id=receipt_id,
    )
    db.session.add(movement)
    return movement


def lock_product(ctx: OperationContext, product_id: int) -> Product:
    """Tenant-checked SELECT ... FOR UPDATE of one product."""
    return require_in_org(Product, product_id, ctx.org_id, label="Product", lock=True)


def record_movement(
    ctx: OperationContext,
    product_id: int,
    movement_type: str,
    quantity,
    note: str | None = None,
) -> tuple[Product, InventoryMovement | None]:
    """
    Manual stock adjustment.

    Reads stock under lock, rejects OUT movements that would go negative,
    then updates the product and inserts the movement. Returns
    (product, movement); movement is None when the audit insert failed and
    only the stock change was kept.
    """
    movement_type = _parse_movement_type(movement_type)
    quantity = _parse_quantity(quantity)
    note = (note or "").strip() or None

    def _op():
        begin_immediate()
        product = lock_product(ctx, product_id)

        prev_stock = product.stock or 0
        new_stock = _next_stock(product, movement_type, quantity)
        product.stock = new_stock
        db.session.flush()

        movement = _build_movement(
            product,
            ctx=ctx,
            movement_type=movement_type,
            quantity=quantity,
            prev_stock=prev_stock,
            new_stock=new_stock,
            source="MANUAL",
            note=note,
        )
        try:
            with db.session.begin_nested():
                db.session.add(movement)
        except SQLAlchemyError as exc:
            current_app.logger.warning(
                "Stock reconciliation needed: product %s changed %s -> %s (org %s) "
                "but the movement insert failed: %s",
                product.id, prev_stock, new_stock, ctx.org_id, exc,
            )
            movement = None

        db.session.commit()
        return product, movement

    try:
        return run_with_retry(_op)
    except DomainError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Inventory movement failed for product %s", product_id)
        raise PersistenceError("Could not record inventory movement") from exc


def list_movements(
    ctx: OperationContext,
    *,
    product_id: int | None = None,
    source: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[InventoryMovement]:
    query = scoped_query(InventoryMovement, ctx.org_id)
    if product_id is not None:
        query = query.filter(InventoryMovement.product_id == product_id)
    if source:
        query = query.filter(InventoryMovement.source == source.upper())

    limit = min(max(limit, 1), 500)
    offset = max(offset, 0)
    return (
        query.order_by(InventoryMovement.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


@dataclass
class ReceiptLineInput:
    product_id: int
    quantity: int
    unit_cost: Decimal

    @property
    def line_total(self) -> Decimal:
        return round2(self.unit_cost * self.quantity)


def parse_receipt_lines(raw_lines) -> list[ReceiptLineInput]:
    if not isinstance(raw_lines, list) or not raw_lines:
        raise ValidationError("At least one receipt line is required")

    lines = []
    for index, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise ValidationError("Each receipt line must be an object", details={"line": index})
        product_id = raw.get("product_id")
        if not isinstance(product_id, int) or isinstance(product_id, bool):
            raise ValidationError("product_id must be an integer", details={"line": index})
        unit_cost = round2(to_decimal(raw.get("unit_cost", 0), field="unit_cost"))
        if unit_cost < ZERO:
            raise ValidationError("unit_cost cannot be negative", details={"line": index})
        lines.append(
            ReceiptLineInput(
                product_id=product_id,
                quantity=_parse_quantity(raw.get("quantity")),
                unit_cost=unit_cost,
            )
        )
    return lines


def record_purchase_receipt(
    ctx: OperationContext,
    lines,
    *,
    supplier_name: str | None = None,
    reference_number: str | None = None,
    notes: str | None = None,
    attachment: bytes | None = None,
    attachment_content_type: str | None = None,
    attachment_filename: str | None = None,
    storage: ObjectStorage | None = None,
) -> PurchaseReceipt:
    """
    Receive goods: one receipt document, one IN movement per line.

    The receipt, its lines, the stock increments and the movements commit
    together. The attachment is stored afterwards and best-effort: a storage
    failure is logged and the receipt is kept without attachment_path.
    """
    parsed = parse_receipt_lines(lines)

    def _op():
        begin_immediate()
        receipt = PurchaseReceipt(
            org_id=ctx.org_id,
            code=next_document_number(org_id=ctx.org_id, document_type="PURCHASE_RECEIPT", prefix=RECEIPT_PREFIX),
            supplier_name=(supplier_name or "").strip() or None,
            reference_number=(reference_number or "").strip() or None,
            notes=notes,
            created_by_user_id=ctx.user_id,
        )
        db.session.add(receipt)
        db.session.flush()

        total = ZERO
        for line in parsed:
            product = lock_product(ctx, line.product_id)
            movement = apply_movement(
                product,
                ctx=ctx,
                movement_type="IN",
                quantity=line.quantity,
                source="PURCHASE",
                note=f"Receipt {receipt.code}",
                receipt_id=receipt.id,
            )
            db.session.flush()
            receipt.lines.append(
                PurchaseReceiptLine(
                    product_id=product.id,
                    quantity=line.quantity,
                    unit_cost_cents=to_cents(line.unit_cost),
                    line_total_cents=to_cents(line.line_total),
                    movement_id=movement.id,
                )
            )
            total += line.line_total

        receipt.total_cents = to_cents(total)
        db.session.commit()
        return receipt

    try:
        receipt = run_with_retry(_op)
    except DomainError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Purchase receipt failed for org %s", ctx.org_id)
        raise PersistenceError("Could not record purchase receipt") from exc

    current_app.logger.info(
        "Purchase receipt %s recorded (org %s, %s lines, total %s cents)",
        receipt.code, ctx.org_id, len(parsed), receipt.total_cents,
    )

    if attachment:
        _attach_best_effort(receipt, attachment, attachment_content_type, attachment_filename, storage)

    return receipt


def _attach_best_effort(receipt, data, content_type, filename, storage) -> None:
    storage = storage or get_object_storage()
    try:
        path = storage.put(data, content_type, filename=filename, org_id=receipt.org_id)
        receipt.attachment_path = path
        db.session.commit()
    except (StorageError, SQLAlchemyError) as exc:
        db.session.rollback()
        current_app.logger.warning(
            "Attachment for purchase receipt %s was not stored: %s", receipt.code, exc
        )


def get_purchase_receipt(ctx: OperationContext, receipt_id: int) -> PurchaseReceipt:
    return require_in_org(PurchaseReceipt, receipt_id, ctx.org_id, label="Purchase receipt")


def list_purchase_receipts(ctx: OperationContext, *, limit: int = 50) -> list[PurchaseReceipt]:
    return (
        scoped_query(PurchaseReceipt, ctx.org_id)
        .order_by(PurchaseReceipt.id.desc())
        .limit(min(max(limit, 1), 200))
        .all()
    )


def reconcile_stock(ctx: OperationContext, product_id: int | None = None) -> list[dict]:
    """
    Compare each product's stock with the new_stock of its latest movement.

    Products without movements are expected at stock 0. Returns one entry
    per mismatch; an empty list means the ledger and the products agree.
    """
    query = scoped_query(Product, ctx.org_id)
    if product_id is not None:
        query = query.filter(Product.id == product_id)

    mismatches = []
    for product in query.order_by(Product.id).all():
        last = (
            db.session.query(InventoryMovement)
            .filter(
                InventoryMovement.org_id == ctx.org_id,
                InventoryMovement.product_id == product.id,
            )
            .order_by(InventoryMovement.id.desc())
            .first()
        )
        ledger_stock = last.new_stock if last else 0
        if ledger_stock != product.stock:
            mismatches.append({
                "product_id": product.id,
                "sku": product.sku,
                "name": product.name,
                "product_stock": product.stock,
                "ledger_stock": ledger_stock,
                "difference": product.stock - ledger_stock,
                "last_movement_id": last.id if last else None,
            })

    if mismatches:
        current_app.logger.warning(
            "Stock reconciliation found %s mismatched product(s) in org %s", len(mismatches), ctx.org_id
        )
    return mismatches
