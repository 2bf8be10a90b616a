# Overview: Service-layer operations for the product catalog; read-only snapshots and product management.

"""
Catalog Service with Multi-Tenant Support

CatalogSnapshot is an immutable, in-memory view of a tenant's products
(id, price, stock, recommended discount) used to compose carts. Stock in a
snapshot is advisory; the authoritative check happens at commit under a
row lock (see order_service.commit_order).

Product management: stock is never edited directly. A new product's
initial stock is written as an INITIAL movement; later changes go through
inventory_service.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Product
from ..errors import DomainError, ValidationError, NotFoundError, ConflictError, PersistenceError
from ..money import to_decimal, round2, to_cents, from_cents, percent_to_bps, bps_to_percent, ZERO, HUNDRED
from .concurrency import run_with_retry
from .inventory_service import apply_movement
from .tenant_service import OperationContext, require_in_org, scoped_query


@dataclass(frozen=True)
class CatalogProduct:
    id: int
    sku: str
    name: str
    price: Decimal
    stock: int
    min_stock: int
    recommended_discount_percent: Decimal
    category: str | None = None
    is_active: bool = True

    @classmethod
    def from_model(cls, product: Product) -> "CatalogProduct":
        return cls(
            id=product.id,
            sku=product.sku,
            name=product.name,
            price=from_cents(product.price_cents),
            stock=product.stock or 0,
            min_stock=product.min_stock or 0,
            recommended_discount_percent=bps_to_percent(product.recommended_discount_bps),
            category=product.category,
            is_active=bool(product.is_active),
        )


class CatalogSnapshot:
    """Read-only products of one tenant, keyed by id."""

    def __init__(self, org_id: int, products):
        self.org_id = org_id
        self._products = {p.id: p for p in products}

    def __contains__(self, product_id) -> bool:
        return product_id in self._products

    def __iter__(self):
        return iter(self._products.values())

    def __len__(self) -> int:
        return len(self._products)

    def get(self, product_id: int) -> CatalogProduct:
        try:
            return self._products[product_id]
        except KeyError:
            raise NotFoundError("Product not found", details={"product_id": product_id})


def load_catalog_snapshot(
    ctx: OperationContext,
    product_ids=None,
    *,
    include_inactive: bool = False,
) -> CatalogSnapshot:
    query = scoped_query(Product, ctx.org_id)
    if product_ids is not None:
        ids = list({pid for pid in product_ids})
        if not ids:
            return CatalogSnapshot(ctx.org_id, [])
        query = query.filter(Product.id.in_(ids))
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))

    products = query.order_by(Product.name.asc(), Product.id.asc()).all()
    return CatalogSnapshot(ctx.org_id, [CatalogProduct.from_model(p) for p in products])


def list_products(
    ctx: OperationContext,
    *,
    search: str | None = None,
    category: str | None = None,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Tenant-scoped product listing with optional search and pagination.

    Returns a dict with 'items', 'count' and, when paginated, 'pagination'.
    """
    base_query = scoped_query(Product, ctx.org_id)
    if not include_inactive:
        base_query = base_query.filter(Product.is_active.is_(True))
    if search:
        pattern = f"%{search.strip()}%"
        base_query = base_query.filter(db.or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    if category:
        base_query = base_query.filter(Product.category == category)
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def low_stock_products(ctx: OperationContext) -> list[Product]:
    """Active products at or below their minimum stock (including zeroed ones)."""
    return (
        scoped_query(Product, ctx.org_id)
        .filter(Product.is_active.is_(True), Product.stock <= Product.min_stock)
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )


def stock_valuation(ctx: OperationContext) -> dict:
    """Total stock value at sale price plus the OUT / LOW counters shown on the inventory page."""
    products = scoped_query(Product, ctx.org_id).filter(Product.is_active.is_(True)).all()
    total_cents = sum((p.stock or 0) * p.price_cents for p in products if (p.stock or 0) > 0)
    return {
        "total_value_cents": total_cents,
        "product_count": len(products),
        "out_of_stock_count": sum(1 for p in products if p.stock_status == "OUT"),
        "low_stock_count": sum(1 for p in products if p.stock_status == "LOW"),
    }


def _parse_price(value) -> int:
    price = round2(to_decimal(value, field="price"))
    if price < ZERO:
        raise ValidationError("price cannot be negative")
    return to_cents(price)


def _parse_percent(value) -> int:
    percent = to_decimal(value, field="recommended_discount_percent")
    if percent < ZERO or percent > HUNDRED:
        raise ValidationError("recommended_discount_percent must be between 0 and 100")
    return percent_to_bps(percent)


def _parse_non_negative_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a non-negative integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a non-negative integer")
    if number < 0:
        raise ValidationError(f"{field} must be a non-negative integer")
    return number


def _apply_patch(product: Product, patch: dict) -> None:
    if "name" in patch:
        name = (patch.get("name") or "").strip()
        if not name:
            raise ValidationError("name is required")
        product.name = name
    if "sku" in patch:
        sku = (patch.get("sku") or "").strip()
        if not sku:
            raise ValidationError("sku is required")
        product.sku = sku
    if "description" in patch:
        product.description = patch.get("description")
    if "category" in patch:
        product.category = (patch.get("category") or "").strip() or None
    if "price" in patch:
        product.price_cents = _parse_price(patch["price"])
    if "min_stock" in patch:
        product.min_stock = _parse_non_negative_int(patch["min_stock"], "min_stock")
    if "recommended_discount_percent" in patch:
        product.recommended_discount_bps = _parse_percent(patch["recommended_discount_percent"])
    if "is_active" in patch:
        product.is_active = bool(patch["is_active"])


def _sku_taken(org_id: int, sku: str, exclude_id: int | None = None) -> bool:
    query = scoped_query(Product, org_id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def create_product(ctx: OperationContext, patch: dict) -> Product:
    """
    Create a product. Required: sku, name, price.

    A positive "stock" in the patch is recorded as an INITIAL IN movement in
    the same transaction, so the ledger explains the opening balance.

    Raises:
        ValidationError: Missing or invalid fields
        ConflictError: SKU already exists in this organization
    """
    for field in ("sku", "name", "price"):
        if patch.get(field) in (None, ""):
            raise ValidationError(f"{field} is required")
    initial_stock = _parse_non_negative_int(patch.get("stock", 0), "stock")

    product = Product(org_id=ctx.org_id, stock=0, min_stock=0, recommended_discount_bps=0, is_active=True)
    _apply_patch(product, patch)

    if _sku_taken(ctx.org_id, product.sku):
        raise ConflictError("SKU already exists for this organization.", details={"sku": product.sku})

    try:
        db.session.add(product)
        db.session.flush()
        if initial_stock > 0:
            apply_movement(
                product,
                ctx=ctx,
                movement_type="IN",
                quantity=initial_stock,
                source="INITIAL",
                note="Opening stock",
            )
        db.session.commit()
    except DomainError:
        db.session.rollback()
        raise
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("SKU already exists for this organization.", details={"sku": product.sku}) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Product create failed for org %s", ctx.org_id)
        raise PersistenceError("Could not create product") from exc

    return product


def get_product(ctx: OperationContext, product_id: int) -> Product:
    return require_in_org(Product, product_id, ctx.org_id, label="Product")


def update_product(ctx: OperationContext, product_id: int, patch: dict) -> Product:
    """
    Update catalog fields. Stock is not editable here; use an inventory movement.
    """
    if "stock" in patch:
        raise ValidationError("stock cannot be edited directly; record an inventory movement")

    def _op():
        product = get_product(ctx, product_id)
        new_sku = (patch.get("sku") or "").strip() if "sku" in patch else None
        if new_sku and _sku_taken(ctx.org_id, new_sku, exclude_id=product.id):
            raise ConflictError("SKU already exists for this organization.", details={"sku": new_sku})
        _apply_patch(product, patch)
        db.session.commit()
        return product

    try:
        return run_with_retry(_op)
    except DomainError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Product update failed for product %s", product_id)
        raise PersistenceError("Could not update product") from exc


def deactivate_product(ctx: OperationContext, product_id: int) -> Product:
    """Soft delete. Products referenced by order items are never removed."""
    return update_product(ctx, product_id, {"is_active": False})
