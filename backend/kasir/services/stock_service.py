# Overview: Stock ledger; the only code path that changes Product.stock.

from __future__ import annotations

from ..errors import InsufficientStockError, ValidationError
from ..extensions import db
from ..models import Product, StockMovement
from ..models.inventory import MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_TYPES
from kasir.time_utils import utcnow
from .concurrency import atomic
from .pagination import paginate
from .products_service import get_product
"""
Stock Ledger Invariants (authoritative)

- Product.stock is never negative. A decrease larger than the current stock
  fails with InsufficientStockError; it is never clamped.
- Every change to Product.stock appends exactly one StockMovement in the same
  DB transaction, with stock_before/stock_after matching the transition.
- Movements are append-only: no updates, no deletes.
- apply_movement() expects the product row to be locked by the caller
  (products_service.get_product(..., lock=True) inside concurrency.atomic()).
  It never commits.
"""


def insert_stock_movement(
    *,
    product: Product,
    movement_type: str,
    quantity: int,
    stock_before: int,
    stock_after: int,
    actor_user_id: int | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    notes: str | None = None,
) -> StockMovement:
    movement = StockMovement(
        product_id=product.id,
        store_id=product.store_id,
        type=movement_type,
        quantity=quantity,
        stock_before=stock_before,
        stock_after=stock_after,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
        created_by=actor_user_id,
        created_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()  # assigns movement.id and writes the product update
    return movement


def apply_movement(
    product: Product,
    quantity: int,
    direction: str,
    *,
    actor_user_id: int | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    notes: str | None = None,
) -> StockMovement:
    """Move `quantity` units in or out of `product` and record the movement."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be an integer >= 1")
    if direction not in MOVEMENT_TYPES:
        raise ValidationError(f"unknown stock direction: {direction}")

    before = product.stock
    if direction == MOVEMENT_OUT:
        if before < quantity:
            raise InsufficientStockError(
                product_id=product.id,
                product_name=product.name,
                requested=quantity,
                available=before,
            )
        after = before - quantity
    else:
        after = before + quantity

    product.stock = after
    product.updated_at = utcnow()

    return insert_stock_movement(
        product=product,
        movement_type=direction,
        quantity=quantity,
        stock_before=before,
        stock_after=after,
        actor_user_id=actor_user_id,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
    )


def decrement_stock(product: Product, quantity: int, **audit) -> StockMovement:
    return apply_movement(product, quantity, MOVEMENT_OUT, **audit)


def increment_stock(product: Product, quantity: int, **audit) -> StockMovement:
    return apply_movement(product, quantity, MOVEMENT_IN, **audit)


def _manual_movement(direction: str, store_id: int, product_id: int, quantity: int,
                     user_id: int | None, notes: str | None) -> StockMovement:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("quantity must be an integer >= 1")

    with atomic(f"stock {direction}"):
        product = get_product(store_id, product_id, lock=True)
        movement = apply_movement(
            product,
            quantity,
            direction,
            actor_user_id=user_id,
            notes=notes,
        )
    return movement


def stock_in(*, store_id: int, product_id: int, quantity: int,
             user_id: int | None = None, notes: str | None = None) -> StockMovement:
    """Receive stock into a product (manual adjustment, own DB transaction)."""
    return _manual_movement(MOVEMENT_IN, store_id, product_id, quantity, user_id, notes)


def stock_out(*, store_id: int, product_id: int, quantity: int,
              user_id: int | None = None, notes: str | None = None) -> StockMovement:
    """Remove stock from a product (shrinkage, damage, manual correction)."""
    return _manual_movement(MOVEMENT_OUT, store_id, product_id, quantity, user_id, notes)


def list_movements(
    store_id: int,
    *,
    product_id: int | None = None,
    page: int | None = None,
    per_page: int | None = 50,
) -> tuple[list[StockMovement], dict]:
    query = db.session.query(StockMovement).filter(StockMovement.store_id == store_id)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    query = query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
    return paginate(query, page, per_page)


def list_low_stock(store_id: int) -> list[Product]:
    """Active, tracked products at or below their minimum stock."""
    return (
        db.session.query(Product)
        .filter(
            Product.store_id == store_id,
            Product.is_active.is_(True),
            Product.track_stock.is_(True),
            Product.stock <= Product.min_stock,
        )
        .order_by(Product.stock.asc(), Product.id.asc())
        .all()
    )
