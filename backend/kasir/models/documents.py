from __future__ import annotations

from ..extensions import db
from kasir.time_utils import to_utc_z, utcnow


class InvoiceSequence(db.Model):
    """
    Atomic per-store, per-day invoice counter.

    WHY: Prevent duplicate invoice numbers when several registers in one
    store sell at the same moment. One row per (store_id, sequence_date);
    next_number is bumped with a single UPDATE so the row lock serializes
    concurrent allocators.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sequence_date", name="uq_invoice_sequences_store_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    sequence_date = db.Column(db.Date, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    store = db.relationship("Store", backref=db.backref("invoice_sequences", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "sequence_date": self.sequence_date.isoformat(),
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
