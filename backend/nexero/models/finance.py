from __future__ import annotations

from ..extensions import db
from nexero.time_utils import to_utc_z


class FinancialTransaction(db.Model):
    """
    Cash-flow ledger entry (INCOME / EXPENSE).

    Sales write one INCOME entry at commit; returns and cancellations write
    EXPENSE entries. Manual entries (rent, suppliers) are also allowed.
    """
    __tablename__ = "financial_transactions"
    __table_args__ = (
        db.Index("ix_fin_tx_org_occurred", "org_id", "occurred_at"),
        db.CheckConstraint("amount_cents >= 0", name="ck_fin_tx_amount_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    description = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(16), nullable=False, index=True)  # INCOME, EXPENSE
    category = db.Column(db.String(64), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="PAID")  # PAID, PENDING

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "type": self.type,
            "category": self.category,
            "status": self.status,
            "order_id": self.order_id,
            "created_by_user_id": self.created_by_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
        }
