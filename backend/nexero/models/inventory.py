from __future__ import annotations

from ..extensions import db
from nexero.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data.

    MULTI-TENANT: Products are scoped to organizations via org_id.

    STOCK: `stock` is the authoritative on-hand quantity. It only changes
    through InventoryMovement rows written in the same transaction
    (see inventory_service.apply_movement) and is never committed negative.

    Products referenced by order items are never deleted; deactivate them
    with is_active=False instead.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("org_id", "sku", name="uq_products_org_sku"),
        db.Index("ix_products_org_name", "org_id", "name"),
        db.Index("ix_products_org_active", "org_id", "is_active"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_nonnegative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_nonnegative"),
        db.CheckConstraint(
            "recommended_discount_bps >= 0 AND recommended_discount_bps <= 10000",
            name="ck_products_recommended_discount_range",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(120), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    # Pre-seeds the cart line discount (basis points, 1000 = 10%)
    recommended_discount_bps = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def stock_status(self) -> str:
        """OUT (zeroed), LOW (at or below the minimum) or OK."""
        if self.stock <= 0:
            return "OUT"
        if self.stock <= self.min_stock:
            return "LOW"
        return "OK"

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price_cents": self.price_cents,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "stock_status": self.stock_status,
            "recommended_discount_bps": self.recommended_discount_bps,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    Append-only stock audit trail.

    IMMUTABLE: Rows are never updated or deleted.
    new_stock is the product's stock right after the change, so stock history
    can be rebuilt from the log and compared with Product.stock.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_invmov_org_product_created", "org_id", "product_id", "created_at"),
        db.CheckConstraint("quantity > 0", name="ck_invmov_quantity_positive"),
        db.CheckConstraint("type IN ('IN', 'OUT')", name="ck_invmov_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(8), nullable=False, index=True)  # IN, OUT
    quantity = db.Column(db.Integer, nullable=False)
    prev_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    # MANUAL, INITIAL, SALE, CANCELLATION, RETURN, PURCHASE
    source = db.Column(db.String(16), nullable=False, default="MANUAL", index=True)
    note = db.Column(db.String(255), nullable=True)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    receipt_id = db.Column(db.Integer, db.ForeignKey("purchase_receipts.id"), nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "prev_stock": self.prev_stock,
            "new_stock": self.new_stock,
            "source": self.source,
            "note": self.note,
            "order_id": self.order_id,
            "receipt_id": self.receipt_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class PurchaseReceipt(db.Model):
    """
    Purchase receipt (goods received from a supplier).

    One IN movement per line is written together with the receipt. The
    optional attachment lives in object storage and is attached best-effort.
    """
    __tablename__ = "purchase_receipts"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_purchase_receipts_org_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    code = db.Column(db.String(64), nullable=False)

    supplier_name = db.Column(db.String(255), nullable=True)
    reference_number = db.Column(db.String(128), nullable=True)  # Supplier invoice number
    notes = db.Column(db.Text, nullable=True)

    total_cents = db.Column(db.Integer, nullable=False, default=0)
    attachment_path = db.Column(db.String(512), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship(
        "PurchaseReceiptLine",
        backref="receipt",
        order_by="PurchaseReceiptLine.id",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "code": self.code,
            "supplier_name": self.supplier_name,
            "reference_number": self.reference_number,
            "notes": self.notes,
            "total_cents": self.total_cents,
            "attachment_path": self.attachment_path,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "lines": [line.to_dict() for line in self.lines],
        }


class PurchaseReceiptLine(db.Model):
    __tablename__ = "purchase_receipt_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_receipt_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    receipt_id = db.Column(db.Integer, db.ForeignKey("purchase_receipts.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    movement_id = db.Column(db.Integer, db.ForeignKey("inventory_movements.id"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receipt_id": self.receipt_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "line_total_cents": self.line_total_cents,
            "movement_id": self.movement_id,
        }
