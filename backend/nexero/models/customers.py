from __future__ import annotations

from ..extensions import db
from nexero.time_utils import to_utc_z


class Client(db.Model):
    """
    Customer record (person PF or company PJ).

    total_spent_cents follows the net value of the client's orders:
    incremented at commit, decremented by returns and cancellations.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_org_name", "org_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    cnpj_cpf = db.Column(db.String(32), nullable=True, index=True)
    type = db.Column(db.String(2), nullable=False, default="PF")  # PF, PJ
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(512), nullable=True)

    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    total_spent_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "cnpj_cpf": self.cnpj_cpf,
            "type": self.type,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "credit_limit_cents": self.credit_limit_cents,
            "total_spent_cents": self.total_spent_cents,
            "created_at": to_utc_z(self.created_at),
        }
