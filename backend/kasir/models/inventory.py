from __future__ import annotations

from ..extensions import db
from kasir.time_utils import to_utc_z, utcnow

MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT)


class Product(db.Model):
    """
    Product master data with a stored stock quantity.

    MULTI-TENANT: Products are scoped to stores via store_id.

    STOCK: `stock` is authoritative and never negative. It is only changed
    through the stock ledger (services/stock_service.py), which appends a
    StockMovement for every change in the same DB transaction.

    version_id is an optimistic-lock column: a write based on a stale read
    raises StaleDataError instead of silently overwriting stock.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sku", name="uq_products_store_sku"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_store_name", "store_id", "name"),
        db.Index("ix_products_store_active", "store_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(16), nullable=False, default="pcs")

    # Whole currency units (IDR has no sub-unit)
    price = db.Column(db.Integer, nullable=False, default=0)
    cost = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    track_stock = db.Column(db.Boolean, nullable=False, default=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    store = db.relationship("Store", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} store_id={self.store_id} stock={self.stock}>"

    @property
    def is_low_stock(self) -> bool:
        return bool(self.track_stock) and self.stock <= self.min_stock

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "sku": self.sku,
            "barcode": self.barcode,
            "name": self.name,
            "unit": self.unit,
            "price": self.price,
            "cost": self.cost,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "track_stock": self.track_stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only audit record of a single stock quantity change.

    INVARIANT: stock_after == stock_before +/- quantity (by type), and equals
    Product.stock right after the movement was applied. Rows are never
    updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        db.CheckConstraint("stock_after >= 0", name="ck_stock_movements_after_non_negative"),
        db.Index("ix_stock_movements_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    type = db.Column(db.String(8), nullable=False, index=True)  # in, out
    quantity = db.Column(db.Integer, nullable=False)
    stock_before = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    # Originating document (currently only sales transactions)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True, index=True)

    notes = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} product_id={self.product_id} type={self.type} "
            f"{self.stock_before}->{self.stock_after}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "store_id": self.store_id,
            "type": self.type,
            "quantity": self.quantity,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
