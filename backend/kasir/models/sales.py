from __future__ import annotations

from ..extensions import db
from kasir.time_utils import to_utc_z, utcnow

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_VOIDED = "voided"
TRANSACTION_STATUSES = (STATUS_PENDING, STATUS_COMPLETED, STATUS_VOIDED)

PAYMENT_TYPES = ("cash", "qris", "transfer", "debit", "credit")


def _percent(value) -> float:
    return float(value) if value is not None else 0.0


class Transaction(db.Model):
    """
    Sale aggregate (header).

    All money columns are whole currency units. Totals are fixed at commit
    time; a completed transaction is never edited (voids/refunds would be a
    separate flow).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("store_id", "invoice_number", name="uq_transactions_store_invoice"),
        db.Index("ix_transactions_store_status_created", "store_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    # External references (customer / user CRUD live outside the engine)
    customer_id = db.Column(db.Integer, nullable=True, index=True)
    cashier_id = db.Column(db.Integer, nullable=True, index=True)

    # Human-readable, store-scoped (e.g., "INV-20250101-0001")
    invoice_number = db.Column(db.String(64), nullable=False)

    subtotal = db.Column(db.Integer, nullable=False, default=0)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)  # Snapshot of store rate
    tax_amount = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False, default=0)
    payment_amount = db.Column(db.Integer, nullable=False, default=0)
    change_amount = db.Column(db.Integer, nullable=False, default=0)

    payment_type = db.Column(db.String(16), nullable=False)
    payment_reference = db.Column(db.String(128), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    store = db.relationship("Store", backref=db.backref("transactions", lazy="dynamic"))
    items = db.relationship(
        "TransactionItem",
        back_populates="transaction",
        order_by="TransactionItem.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} invoice={self.invoice_number!r} total={self.total}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "customer_id": self.customer_id,
            "cashier_id": self.cashier_id,
            "invoice_number": self.invoice_number,
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "discount_percent": _percent(self.discount_percent),
            "tax_rate": _percent(self.tax_rate),
            "tax_amount": self.tax_amount,
            "total": self.total,
            "payment_amount": self.payment_amount,
            "change_amount": self.change_amount,
            "payment_type": self.payment_type,
            "payment_reference": self.payment_reference,
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransactionItem(db.Model):
    """
    Line snapshot captured at sale time.

    Name, price and cost are copied from the product so later catalog edits
    never change historical sales.
    """
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", "line_number", name="uq_transaction_items_line"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)  # 1-based cart position

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    product_price = db.Column(db.Integer, nullable=False)
    cost = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    subtotal = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    transaction = db.relationship("Transaction", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_price": self.product_price,
            "cost": self.cost,
            "quantity": self.quantity,
            "discount_amount": self.discount_amount,
            "discount_percent": _percent(self.discount_percent),
            "subtotal": self.subtotal,
            "created_at": to_utc_z(self.created_at),
        }
