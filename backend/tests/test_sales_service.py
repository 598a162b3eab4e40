"""
Transaction coordinator tests.

Every rejection must leave the database exactly as it was: no transaction
header, no items, no movements and unchanged product stock.
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from kasir.errors import (
    InsufficientPaymentError,
    InsufficientStockError,
    PersistenceError,
    ProductNotFoundError,
    StoreNotFoundError,
    ValidationError,
)
from kasir.models import Product, StockMovement, Transaction, TransactionItem
from kasir.services import sales_service
from kasir.services.pricing_service import Discount
from kasir.services.sales_service import CartLine
from kasir.time_utils import local_date

from conftest import make_product


def _counts(session):
    return (
        session.query(Transaction).count(),
        session.query(TransactionItem).count(),
        session.query(StockMovement).count(),
    )


def _sell(store, lines, payment_amount=1_000_000, **kwargs):
    kwargs.setdefault("payment_type", "cash")
    return sales_service.create_sale(store.id, 7, lines, payment_amount=payment_amount, **kwargs)


def test_cash_sale_commits_everything(db_session, store, product):
    sale = _sell(store, [CartLine(product_id=product.id, quantity=2)], payment_amount=25000)

    assert sale.status == "completed"
    assert sale.subtotal == 20000
    assert sale.discount_amount == 0
    assert sale.tax_rate == Decimal("10")
    assert sale.tax_amount == 2000
    assert sale.total == 22000
    assert sale.payment_amount == 25000
    assert sale.change_amount == 3000
    assert sale.cashier_id == 7
    assert sale.invoice_number == f"INV-{local_date(store.timezone):%Y%m%d}-0001"

    assert len(sale.items) == 1
    item = sale.items[0]
    assert (item.product_name, item.product_price, item.cost, item.quantity, item.subtotal) == (
        "Kopi", 10000, 6000, 2, 20000,
    )

    assert db_session.get(Product, product.id).stock == 18
    movement = db_session.query(StockMovement).one()
    assert movement.type == "out"
    assert (movement.stock_before, movement.stock_after, movement.quantity) == (20, 18, 2)
    assert movement.reference_type == "transaction"
    assert movement.reference_id == sale.id
    assert movement.created_by == 7


def test_invoice_numbers_increase_per_sale(db_session, store, product):
    first = _sell(store, [CartLine(product_id=product.id, quantity=1)])
    second = _sell(store, [CartLine(product_id=product.id, quantity=1)])

    assert first.invoice_number.endswith("-0001")
    assert second.invoice_number.endswith("-0002")


def test_insufficient_stock_rejects_without_side_effects(db_session, store, product):
    with pytest.raises(InsufficientStockError) as exc:
        _sell(store, [CartLine(product_id=product.id, quantity=25)])

    assert "Kopi" in exc.value.message
    assert exc.value.requested == 25
    assert exc.value.available == 20
    assert _counts(db_session) == (0, 0, 0)
    assert db_session.get(Product, product.id).stock == 20


def test_duplicate_lines_are_checked_against_combined_quantity(db_session, store, product):
    with pytest.raises(InsufficientStockError):
        _sell(store, [
            CartLine(product_id=product.id, quantity=15),
            CartLine(product_id=product.id, quantity=6),
        ])
    assert _counts(db_session) == (0, 0, 0)


def test_duplicate_lines_write_movements_in_cart_order(db_session, store, product):
    sale = _sell(store, [
        CartLine(product_id=product.id, quantity=3),
        CartLine(product_id=product.id, quantity=2),
    ])

    assert [i.line_number for i in sale.items] == [1, 2]
    movements = db_session.query(StockMovement).order_by(StockMovement.id.asc()).all()
    assert [(m.stock_before, m.stock_after) for m in movements] == [(20, 17), (17, 15)]


def test_movements_follow_cart_order_not_lock_order(db_session, store, product):
    later = make_product(db_session, store, name="Roti", price=8000, stock=10)

    _sell(store, [
        CartLine(product_id=later.id, quantity=1),
        CartLine(product_id=product.id, quantity=1),
    ])

    movements = db_session.query(StockMovement).order_by(StockMovement.id.asc()).all()
    assert [m.product_id for m in movements] == [later.id, product.id]


def test_unknown_product_rejected_repeatedly_without_records(db_session, store, product):
    for _ in range(2):
        with pytest.raises(ProductNotFoundError) as exc:
            _sell(store, [
                CartLine(product_id=product.id, quantity=1),
                CartLine(product_id=99999, quantity=1),
            ])
        assert exc.value.product_id == 99999

    assert _counts(db_session) == (0, 0, 0)
    assert db_session.get(Product, product.id).stock == 20


def test_inactive_product_rejected(db_session, store):
    retired = make_product(db_session, store, name="Lama", is_active=False)
    with pytest.raises(ProductNotFoundError):
        _sell(store, [CartLine(product_id=retired.id, quantity=1)])
    assert _counts(db_session) == (0, 0, 0)


def test_other_store_product_is_indistinguishable_from_missing(db_session, store, other_store, product):
    with pytest.raises(ProductNotFoundError):
        sales_service.create_sale(
            other_store.id, 7, [CartLine(product_id=product.id, quantity=1)],
            payment_amount=100000, payment_type="cash",
        )
    assert _counts(db_session) == (0, 0, 0)


def test_unknown_store_rejected(db_session, product):
    with pytest.raises(StoreNotFoundError):
        sales_service.create_sale(
            99999, 7, [CartLine(product_id=product.id, quantity=1)],
            payment_amount=100000, payment_type="cash",
        )


def test_untracked_product_sells_without_stock_changes(db_session, store):
    service = make_product(db_session, store, name="Jasa Antar", price=5000, stock=0, track_stock=False)

    sale = _sell(store, [CartLine(product_id=service.id, quantity=3)])

    assert sale.subtotal == 15000
    assert len(sale.items) == 1
    assert db_session.get(Product, service.id).stock == 0
    assert db_session.query(StockMovement).count() == 0


def test_insufficient_payment_rejected(db_session, store, product):
    with pytest.raises(InsufficientPaymentError) as exc:
        _sell(store, [CartLine(product_id=product.id, quantity=2)], payment_amount=21999)

    assert exc.value.details == {"total": 22000, "payment_amount": 21999, "shortfall": 1}
    assert _counts(db_session) == (0, 0, 0)
    assert db_session.get(Product, product.id).stock == 20


def test_exact_payment_gives_zero_change(db_session, store, product):
    sale = _sell(store, [CartLine(product_id=product.id, quantity=2)], payment_amount=22000)
    assert sale.change_amount == 0


def test_discounts_flow_into_header_and_items(db_session, store, product):
    sale = _sell(
        store,
        [CartLine(product_id=product.id, quantity=2, discount=Discount(percent=Decimal("10")))],
        order_discount=Discount(amount=Decimal("3000")),
        payment_amount=20000,
    )

    item = sale.items[0]
    assert item.discount_amount == 2000
    assert item.discount_percent == Decimal("10")
    assert item.subtotal == 18000
    assert sale.subtotal == 18000
    assert sale.discount_amount == 3000
    assert sale.tax_amount == 1500
    assert sale.total == 16500
    assert sale.change_amount == 3500


@pytest.mark.parametrize("lines, payment_type", [
    ([], "cash"),
    ([CartLine(product_id=1, quantity=0)], "cash"),
    ([CartLine(product_id=0, quantity=1)], "cash"),
    ([CartLine(product_id=1, quantity=1, discount=Discount(percent=Decimal("150")))], "cash"),
    ([CartLine(product_id=1, quantity=1)], "bitcoin"),
])
def test_invalid_cart_rejected(db_session, store, product, lines, payment_type):
    with pytest.raises(ValidationError):
        _sell(store, lines, payment_type=payment_type)
    assert _counts(db_session) == (0, 0, 0)


def test_negative_payment_rejected(db_session, store, product):
    with pytest.raises(ValidationError):
        _sell(store, [CartLine(product_id=product.id, quantity=1)], payment_amount=-1)


def test_persistence_failure_rolls_back_everything(db_session, store, product, monkeypatch):
    def broken(**kwargs):
        raise OperationalError("INSERT INTO transaction_items", {}, Exception("disk I/O error"))

    monkeypatch.setattr(sales_service, "insert_transaction_item", broken)

    with pytest.raises(PersistenceError) as exc:
        _sell(store, [CartLine(product_id=product.id, quantity=2)])

    assert exc.value.http_status == 500
    assert exc.value.details["reason"] == "OperationalError"
    assert _counts(db_session) == (0, 0, 0)
    assert db_session.get(Product, product.id).stock == 20


def test_item_snapshot_survives_catalog_change(db_session, store, product):
    sale = _sell(store, [CartLine(product_id=product.id, quantity=1)])

    product.name = "Kopi Gayo"
    product.price = 15000
    db_session.commit()

    reloaded = sales_service.get_transaction(store.id, sale.id)
    assert reloaded.items[0].product_name == "Kopi"
    assert reloaded.items[0].product_price == 10000


def test_get_transaction_is_store_scoped(db_session, store, other_store, product):
    sale = _sell(store, [CartLine(product_id=product.id, quantity=1)])

    assert sales_service.get_transaction(store.id, sale.id).id == sale.id
    assert sales_service.get_transaction(other_store.id, sale.id) is None


def test_list_transactions_newest_first(db_session, store, product):
    first = _sell(store, [CartLine(product_id=product.id, quantity=1)])
    second = _sell(store, [CartLine(product_id=product.id, quantity=1)])

    sales, pagination = sales_service.list_transactions(store.id)

    assert [s.id for s in sales] == [second.id, first.id]
    assert pagination["total"] == 2
    assert pagination["has_next"] is False


def test_list_transactions_date_and_status_filters(db_session, store, product):
    _sell(store, [CartLine(product_id=product.id, quantity=1)])
    today = local_date(store.timezone)

    sales, _ = sales_service.list_transactions(store.id, date_from=today, date_to=today)
    assert len(sales) == 1

    sales, _ = sales_service.list_transactions(store.id, date_from=today + timedelta(days=1))
    assert sales == []

    sales, _ = sales_service.list_transactions(store.id, status="voided")
    assert sales == []

    with pytest.raises(ValidationError):
        sales_service.list_transactions(store.id, status="refunded")


@pytest.mark.parametrize("payment_amount", [Decimal("21999.5"), 21999.5, "22000.01"])
def test_fractional_payment_is_never_rounded_up(db_session, store, product, payment_amount):
    with pytest.raises(ValidationError):
        _sell(store, [CartLine(product_id=product.id, quantity=2)], payment_amount=payment_amount)

    assert _counts(db_session) == (0, 0, 0)
    assert db_session.get(Product, product.id).stock == 20


def test_percent_with_more_than_two_decimals_rejected(db_session, store, product):
    with pytest.raises(ValidationError):
        _sell(store, [CartLine(product_id=product.id, quantity=1, discount=Discount(percent=Decimal("12.345")))])
    assert _counts(db_session) == (0, 0, 0)


def test_stored_percent_matches_priced_percent(db_session, store, product):
    sale = _sell(store, [CartLine(product_id=product.id, quantity=1, discount=Discount(percent=Decimal("12.35")))])

    item = sale.items[0]
    assert item.discount_percent == Decimal("12.35")
    assert item.discount_amount == 1235
