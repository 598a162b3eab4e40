from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from kasir.time_utils import to_utc_z, utcnow


class Store(db.Model):
    """
    Store (tenant business unit).

    MULTI-TENANT: products, transactions, stock and invoice sequences are all
    scoped by store_id. Store CRUD lives outside the engine; the engine only
    reads tax_rate and timezone at commit time.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_stores_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True, index=True)

    # Store-level configuration
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("0"))  # Percent (e.g., 11.00 = 11%)
    currency = db.Column(db.String(3), nullable=False, default="IDR")
    timezone = db.Column(db.String(64), nullable=False, default="Asia/Makassar")

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "tax_rate": float(self.tax_rate or 0),
            "currency": self.currency,
            "timezone": self.timezone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
