"""
Sales Service - turns a cart into a committed sale.

WHY: A sale is one unit of work. Header, item snapshots, stock decrements and
stock movements are written in a single DB transaction, or not at all.

Flow (create_sale):
    Received -> Validated -> Priced -> StockChecked -> Committed
Any step may reject; a rejection after the transaction opened is rolled
back, so nothing of a rejected sale is ever visible.

Concurrency:
- Product rows are locked (SELECT ... FOR UPDATE; BEGIN IMMEDIATE on SQLite)
  before stock is read, so two sales of the last units cannot both pass the
  stock check.
- Locks are taken in ascending product id; decrements and movements are
  written in cart order.
- Sale creation is not idempotent and is never retried here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from flask import current_app

from ..errors import InsufficientPaymentError, InsufficientStockError, ValidationError
from ..extensions import db
from ..models import Product, Transaction, TransactionItem
from ..models.sales import PAYMENT_TYPES, STATUS_COMPLETED, TRANSACTION_STATUSES
from kasir.time_utils import local_day_bounds, utcnow
from .concurrency import atomic
from .invoice_service import next_invoice_number
from .pagination import paginate
from .pricing_service import (
    NO_DISCOUNT,
    Discount,
    LineInput,
    PricedLine,
    PricingResult,
    calculate_totals,
    to_whole_units,
)
from .products_service import get_store, lock_products
from .stock_service import decrement_stock

REFERENCE_TRANSACTION = "transaction"


@dataclass(frozen=True)
class CartLine:
    """One product + quantity + optional line discount in a sale request."""
    product_id: int
    quantity: int
    discount: Discount = NO_DISCOUNT


def validate_cart(lines, payment_amount, payment_type: str) -> None:
    """Shape checks that need no database access."""
    if not lines:
        raise ValidationError("items must contain at least one line")

    for i, line in enumerate(lines):
        if isinstance(line.product_id, bool) or not isinstance(line.product_id, int) or line.product_id < 1:
            raise ValidationError(f"items[{i}].product_id is required")
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity < 1:
            raise ValidationError(f"items[{i}].quantity must be an integer >= 1")
        line.discount.validate(f"items[{i}].discount")

    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(
            "payment_type is invalid",
            details={"allowed": list(PAYMENT_TYPES)},
        )
    if payment_amount is None:
        raise ValidationError("payment_amount is required")
    if to_whole_units(payment_amount, "payment_amount") < 0:
        raise ValidationError("payment_amount cannot be negative")


def _check_stock(lines, products: dict[int, Product]) -> None:
    requested: dict[int, int] = {}
    for line in lines:
        if products[line.product_id].track_stock:
            requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    for product_id, qty in requested.items():
        product = products[product_id]
        if product.stock < qty:
            raise InsufficientStockError(
                product_id=product.id,
                product_name=product.name,
                requested=qty,
                available=product.stock,
            )


def insert_transaction_header(
    *,
    store_id: int,
    invoice_number: str,
    pricing: PricingResult,
    payment_type: str,
    cashier_id: int | None = None,
    customer_id: int | None = None,
    payment_reference: str | None = None,
    notes: str | None = None,
) -> Transaction:
    now = utcnow()
    sale = Transaction(
        store_id=store_id,
        customer_id=customer_id,
        cashier_id=cashier_id,
        invoice_number=invoice_number,
        subtotal=pricing.subtotal,
        discount_amount=pricing.discount_amount,
        discount_percent=pricing.discount_percent,
        tax_rate=pricing.tax_rate,
        tax_amount=pricing.tax_amount,
        total=pricing.total,
        payment_amount=pricing.payment_amount,
        change_amount=pricing.change_amount,
        payment_type=payment_type,
        payment_reference=payment_reference,
        status=STATUS_COMPLETED,
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    db.session.add(sale)
    db.session.flush()
    return sale


def insert_transaction_item(
    *,
    sale: Transaction,
    line_number: int,
    product: Product,
    priced: PricedLine,
) -> TransactionItem:
    item = TransactionItem(
        transaction_id=sale.id,
        line_number=line_number,
        product_id=product.id,
        product_name=product.name,
        product_price=priced.unit_price,
        cost=product.cost,
        quantity=priced.quantity,
        discount_amount=priced.discount_amount,
        discount_percent=priced.discount_percent,
        subtotal=priced.subtotal,
        created_at=sale.created_at,
    )
    db.session.add(item)
    db.session.flush()
    return item


def create_sale(
    store_id: int,
    cashier_id: int | None,
    lines: list[CartLine],
    *,
    customer_id: int | None = None,
    order_discount: Discount | None = None,
    payment_amount,
    payment_type: str,
    payment_reference: str | None = None,
    notes: str | None = None,
) -> Transaction:
    """
    Create a completed sale.

    Raises:
        ValidationError: bad cart shape (no DB access happened)
        StoreNotFoundError / ProductNotFoundError: unknown or inactive refs
        InsufficientStockError: tracked stock too low (names the product)
        InsufficientPaymentError: payment below total
        PersistenceError: DB failure; everything rolled back, safe to retry
    """
    lines = list(lines)
    order_discount = order_discount or NO_DISCOUNT
    validate_cart(lines, payment_amount, payment_type)
    order_discount.validate("discount")

    with atomic("sale commit"):
        store = get_store(store_id)
        products = lock_products(store_id, [line.product_id for line in lines])

        pricing = calculate_totals(
            [
                LineInput(
                    unit_price=products[line.product_id].price,
                    quantity=line.quantity,
                    discount=line.discount,
                )
                for line in lines
            ],
            order_discount=order_discount,
            tax_rate=store.tax_rate or Decimal("0"),
            payment_amount=payment_amount,
        )

        _check_stock(lines, products)
        if pricing.is_underpaid:
            raise InsufficientPaymentError(total=pricing.total, payment_amount=pricing.payment_amount)

        sale = insert_transaction_header(
            store_id=store_id,
            invoice_number=next_invoice_number(store_id),
            pricing=pricing,
            payment_type=payment_type,
            cashier_id=cashier_id,
            customer_id=customer_id,
            payment_reference=payment_reference,
            notes=notes,
        )

        for i, (line, priced) in enumerate(zip(lines, pricing.lines), start=1):
            product = products[line.product_id]
            insert_transaction_item(sale=sale, line_number=i, product=product, priced=priced)
            if product.track_stock:
                decrement_stock(
                    product,
                    line.quantity,
                    actor_user_id=cashier_id,
                    reference_type=REFERENCE_TRANSACTION,
                    reference_id=sale.id,
                    notes=f"Sale {sale.invoice_number}",
                )

    current_app.logger.info(
        "Sale %s committed: store=%s total=%s lines=%s",
        sale.invoice_number, store_id, sale.total, len(lines),
    )
    return sale


def get_transaction(store_id: int, transaction_id: int) -> Transaction | None:
    return (
        db.session.query(Transaction)
        .filter_by(id=transaction_id, store_id=store_id)
        .first()
    )


def list_transactions(
    store_id: int,
    *,
    page: int | None = None,
    per_page: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    status: str | None = None,
) -> tuple[list[Transaction], dict]:
    """
    Store transactions, newest first.

    date_from/date_to are inclusive calendar dates in the store's timezone.
    """
    store = get_store(store_id, require_active=False)
    query = db.session.query(Transaction).filter(Transaction.store_id == store_id)

    if status:
        if status not in TRANSACTION_STATUSES:
            raise ValidationError("status is invalid", details={"allowed": list(TRANSACTION_STATUSES)})
        query = query.filter(Transaction.status == status)

    start, end = local_day_bounds(
        store.timezone or current_app.config["DEFAULT_TIMEZONE"], date_from, date_to
    )
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at < end)

    query = query.order_by(Transaction.created_at.desc(), Transaction.id.desc())
    return paginate(query, page, per_page)
