# Overview: Store-scoped invoice numbers backed by an atomic per-day counter.

from __future__ import annotations

import time
from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import InvoiceSequence
from kasir.time_utils import local_date, utcnow
from .products_service import get_store


class InvoiceSequenceError(Exception):
    """Raised when the counter row cannot be allocated."""


def format_invoice_number(prefix: str, on_date: date, number: int) -> str:
    return f"{prefix}-{on_date:%Y%m%d}-{number:04d}"


def fallback_invoice_number(prefix: str, on_date: date) -> str:
    """
    Date plus the low digits of a nanosecond clock.

    Only used when the counter is unavailable. Two sales in the same store
    landing on the same 4 digits would collide (the unique constraint then
    aborts the sale); that window is accepted for a degraded path.
    """
    return f"{prefix}-{on_date:%Y%m%d}-{time.time_ns() % 10000:04d}"


def _bump(store_id: int, on_date: date) -> int | None:
    stmt = (
        update(InvoiceSequence)
        .where(
            InvoiceSequence.store_id == store_id,
            InvoiceSequence.sequence_date == on_date,
        )
        .values(next_number=InvoiceSequence.next_number + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(InvoiceSequence.next_number)
        .filter_by(store_id=store_id, sequence_date=on_date)
        .scalar()
    )
    return current - 1


def allocate_sequence_number(store_id: int, on_date: date) -> int:
    """
    Atomically allocate the next number for (store_id, on_date).

    The UPDATE holds the counter row lock until the caller's transaction
    ends, so concurrent sales in one store get distinct numbers. First use of
    a day inserts the row; losing that insert race falls back to the UPDATE.
    Runs inside SAVEPOINTs so a failure here leaves the caller's transaction
    usable.
    """
    with db.session.begin_nested():
        number = _bump(store_id, on_date)
    if number is not None:
        return number

    try:
        with db.session.begin_nested():
            db.session.add(InvoiceSequence(store_id=store_id, sequence_date=on_date, next_number=2))
        return 1
    except IntegrityError:
        with db.session.begin_nested():
            number = _bump(store_id, on_date)
        if number is None:
            raise InvoiceSequenceError(f"could not allocate invoice number for store {store_id}")
        return number


def next_invoice_number(store_id: int, *, on_date: date | None = None) -> str:
    """
    Next invoice number for the store, e.g. "INV-20250101-0001".

    Must be called inside the sale's transaction so the number is released
    if the sale rolls back. Falls back to a clock-based number when the
    counter cannot be used.
    """
    prefix = current_app.config.get("INVOICE_PREFIX", "INV")
    if on_date is None:
        store = get_store(store_id, require_active=False)
        on_date = local_date(store.timezone or current_app.config["DEFAULT_TIMEZONE"])

    try:
        number = allocate_sequence_number(store_id, on_date)
    except (SQLAlchemyError, InvoiceSequenceError):
        current_app.logger.warning(
            "Invoice counter unavailable for store %s; using clock-based number",
            store_id,
            exc_info=True,
        )
        return fallback_invoice_number(prefix, on_date)

    return format_invoice_number(prefix, on_date, number)
