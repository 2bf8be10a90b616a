from __future__ import annotations

from ..extensions import db
from nexero.time_utils import to_utc_z


class Order(db.Model):
    """
    Sale order (header).

    LIFECYCLE: Orders are created already COMPLETED, together with their
    items, in one transaction. COMPLETED -> CANCELLED happens at most once.
    DRAFT and PENDING are reserved statuses that the commit path never writes.

    IMMUTABLE after commit: items and unit prices never change. The only
    sanctioned mutation of total_amount_cents is a recorded return.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_orders_org_code"),
        db.UniqueConstraint("org_id", "idempotency_key", name="uq_orders_org_idempotency_key"),
        db.Index("ix_orders_org_status_created", "org_id", "status", "created_at"),
        db.CheckConstraint("total_amount_cents >= 0", name="ck_orders_total_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    # Human-readable code (e.g., "PD-000123")
    code = db.Column(db.String(64), nullable=False)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="COMPLETED", index=True)

    # Amounts in cents; subtotal is before any discount
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_total_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    # Order-level discount as entered (percent wins when both are set)
    order_discount_bps = db.Column(db.Integer, nullable=True)
    order_discount_amount_cents = db.Column(db.Integer, nullable=True)
    order_discount_cents = db.Column(db.Integer, nullable=False, default=0)  # Effective global discount

    # Wire token, e.g. DINHEIRO, CARTAO_CREDITO_6X
    payment_method = db.Column(db.String(32), nullable=False, index=True)
    installments = db.Column(db.Integer, nullable=True)
    amount_received_cents = db.Column(db.Integer, nullable=True)
    change_cents = db.Column(db.Integer, nullable=True)

    salesperson = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Client-generated key; a retried commit with the same key returns the same order
    idempotency_key = db.Column(db.String(64), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    cancelled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("Client", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
        lazy=True,
    )
    returns = db.relationship(
        "OrderReturn",
        backref="order",
        order_by="OrderReturn.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "code": self.code,
            "client_id": self.client_id,
            "client_name": self.client.name if self.client else None,
            "status": self.status,
            "subtotal_cents": self.subtotal_cents,
            "discount_total_cents": self.discount_total_cents,
            "order_discount_bps": self.order_discount_bps,
            "order_discount_amount_cents": self.order_discount_amount_cents,
            "order_discount_cents": self.order_discount_cents,
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "installments": self.installments,
            "amount_received_cents": self.amount_received_cents,
            "change_cents": self.change_cents,
            "salesperson": self.salesperson,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "cancelled_by_user_id": self.cancelled_by_user_id,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "cancelled_reason": self.cancelled_reason,
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """
    Order line, frozen at commit time.

    unit_price_cents is a snapshot decoupled from the live product price.
    discount_cents is the reconciled per-line discount (own discount plus the
    share of the order-level discount); total_price = qty*unit_price - discount.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.UniqueConstraint("order_id", "position", name="uq_order_items_order_position"),
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        db.CheckConstraint("total_price_cents >= 0", name="ck_order_items_total_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    # Allocation order; the last position absorbed the rounding remainder
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_discount_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "position": self.position,
            "product_id": self.product_id,
            "name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_discount_bps": self.line_discount_bps,
            "discount_cents": self.discount_cents,
            "total_price_cents": self.total_price_cents,
        }


class OrderReturn(db.Model):
    """
    Partial refund against a COMPLETED order.

    IMMUTABLE: Append-only, many per order. The order's original total is
    always current total + sum of its returns.
    """
    __tablename__ = "order_returns"
    __table_args__ = (
        db.CheckConstraint("amount_cents >= 0", name="ck_order_returns_amount_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "OrderReturnItem",
        backref="order_return",
        order_by="OrderReturnItem.id",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "order_id": self.order_id,
            "amount_cents": self.amount_cents,
            "reason": self.reason,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class OrderReturnItem(db.Model):
    __tablename__ = "order_return_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_order_return_items_quantity_nonnegative"),
        db.CheckConstraint("amount_cents >= 0", name="ck_order_return_items_amount_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("order_returns.id"), nullable=False, index=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey("order_items.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    amount_cents = db.Column(db.Integer, nullable=False)

    # Goods went back on the shelf (an IN movement was written)
    restocked = db.Column(db.Boolean, nullable=False, default=False)

    order_item = db.relationship("OrderItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "order_item_id": self.order_item_id,
            "quantity": self.quantity,
            "amount_cents": self.amount_cents,
            "restocked": self.restocked,
        }
