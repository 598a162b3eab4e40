# backend/kasir/services/products_service.py
"""
Catalog lookups used by the engine.

MULTI-TENANT: every lookup is scoped by store_id. A product id that exists
but belongs to another store is reported exactly like a missing one.

Catalog CRUD proper (categories, edits, images) lives outside the engine;
create_product/list_products exist for the operator CLI and tests.
"""
from __future__ import annotations

from ..errors import ProductNotFoundError, StoreNotFoundError, ValidationError
from ..extensions import db
from ..models import Product, Store
from .concurrency import lock_for_update


def get_store(store_id: int, *, require_active: bool = True) -> Store:
    store = db.session.query(Store).filter_by(id=store_id).first()
    if store is None or (require_active and not store.is_active):
        raise StoreNotFoundError(f"Store not found: {store_id}", details={"store_id": store_id})
    return store


def get_product(
    store_id: int,
    product_id: int,
    *,
    require_active: bool = True,
    lock: bool = False,
) -> Product:
    """
    Fetch a product by id scoped to the store.

    lock=True reads the row with SELECT ... FOR UPDATE; only meaningful
    inside concurrency.atomic().
    """
    query = db.session.query(Product).filter_by(id=product_id, store_id=store_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise ProductNotFoundError(product_id)
    if require_active and not product.is_active:
        raise ProductNotFoundError(product_id, f"Product is inactive: {product_id}")
    return product


def lock_products(store_id: int, product_ids) -> dict[int, Product]:
    """
    Lock every distinct product in ascending id order.

    A fixed lock order means two carts touching the same products can never
    wait on each other in a cycle.
    """
    return {
        product_id: get_product(store_id, product_id, lock=True)
        for product_id in sorted(set(product_ids))
    }


def create_product(
    *,
    store_id: int,
    name: str,
    price: int,
    cost: int = 0,
    stock: int = 0,
    min_stock: int = 0,
    track_stock: bool = True,
    sku: str | None = None,
    unit: str = "pcs",
) -> Product:
    get_store(store_id)
    if not name or not name.strip():
        raise ValidationError("name is required")
    if price < 0 or cost < 0:
        raise ValidationError("price and cost cannot be negative")
    if stock < 0 or min_stock < 0:
        raise ValidationError("stock and min_stock cannot be negative")

    product = Product(
        store_id=store_id,
        name=name.strip(),
        price=price,
        cost=cost,
        stock=stock,
        min_stock=min_stock,
        track_stock=track_stock,
        sku=sku,
        unit=unit,
    )
    db.session.add(product)
    db.session.commit()
    return product


def list_products(store_id: int, *, include_inactive: bool = False) -> list[Product]:
    query = db.session.query(Product).filter_by(store_id=store_id)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()
