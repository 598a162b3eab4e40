import re
from datetime import date

from sqlalchemy.exc import OperationalError

from kasir.models import InvoiceSequence
from kasir.services import invoice_service
from kasir.services.concurrency import atomic
from kasir.time_utils import local_date


def _allocate(store_id, **kwargs):
    with atomic("test invoice"):
        return invoice_service.next_invoice_number(store_id, **kwargs)


def test_format_invoice_number():
    assert invoice_service.format_invoice_number("INV", date(2025, 1, 1), 1) == "INV-20250101-0001"
    assert invoice_service.format_invoice_number("INV", date(2025, 12, 31), 12345) == "INV-20251231-12345"


def test_numbers_are_sequential_per_day(db_session, store):
    day = date(2025, 3, 14)
    numbers = [_allocate(store.id, on_date=day) for _ in range(3)]

    assert numbers == ["INV-20250314-0001", "INV-20250314-0002", "INV-20250314-0003"]
    seq = db_session.query(InvoiceSequence).filter_by(store_id=store.id, sequence_date=day).one()
    assert seq.next_number == 4


def test_counter_restarts_on_new_day(db_session, store):
    assert _allocate(store.id, on_date=date(2025, 3, 14)) == "INV-20250314-0001"
    assert _allocate(store.id, on_date=date(2025, 3, 15)) == "INV-20250315-0001"
    assert _allocate(store.id, on_date=date(2025, 3, 14)) == "INV-20250314-0002"


def test_stores_have_independent_counters(db_session, store, other_store):
    day = date(2025, 3, 14)
    assert _allocate(store.id, on_date=day) == "INV-20250314-0001"
    assert _allocate(other_store.id, on_date=day) == "INV-20250314-0001"
    assert _allocate(store.id, on_date=day) == "INV-20250314-0002"


def test_default_date_is_store_local(db_session, store):
    number = _allocate(store.id)
    assert number == f"INV-{local_date(store.timezone):%Y%m%d}-0001"


def test_prefix_comes_from_config(app, db_session, store, monkeypatch):
    monkeypatch.setitem(app.config, "INVOICE_PREFIX", "TKA")
    assert _allocate(store.id, on_date=date(2025, 3, 14)) == "TKA-20250314-0001"


def test_counter_failure_falls_back_to_clock_number(db_session, store, monkeypatch, caplog):
    def broken(store_id, on_date):
        raise OperationalError("UPDATE invoice_sequences", {}, Exception("database is locked"))

    monkeypatch.setattr(invoice_service, "allocate_sequence_number", broken)

    number = _allocate(store.id, on_date=date(2025, 3, 14))

    assert re.fullmatch(r"INV-20250314-\d{4}", number)
    assert "Invoice counter unavailable" in caplog.text


def test_rolled_back_allocation_releases_number(db_session, store):
    day = date(2025, 3, 14)
    try:
        with atomic("test invoice"):
            invoice_service.next_invoice_number(store.id, on_date=day)
            raise RuntimeError("sale aborted")
    except RuntimeError:
        pass

    assert _allocate(store.id, on_date=day) == "INV-20250314-0001"
