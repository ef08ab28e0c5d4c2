"""
Sales report: grouping lines into transactions, editing a transaction,
CSV export and the export-then-delete archive.
"""

import csv
import io
from datetime import datetime, timedelta

import pytest

from kashpos.domain import OrderType
from kashpos.models import SaleLine
from kashpos.services import report_service
from kashpos.services.earnings_service import ReportError
from kashpos.services.record_store import StoreError
from kashpos.services.report_service import (
    CSV_HEADERS,
    ArchiveExportError,
    TransactionNotFoundError,
    archive_and_export,
    export_csv,
    group_for_report,
    load_transactions,
    update_transaction,
)
from kashpos.services.sql_store import SqlRecordStore

from conftest import make_line


T0 = datetime(2026, 3, 14, 9, 0)


def _lines_a_b():
    return [
        make_line(T0, qty=1, price=50, tx="A", number="26-03-00001", name="Latte"),
        make_line(T0, qty=1, price=30, tx="A", number="26-03-00001", name="Muffin"),
        make_line(T0 + timedelta(minutes=5), qty=1, price=20, tx="B", number="26-03-00002", name="Water"),
    ]


def test_group_for_report_totals_and_order():
    groups = group_for_report(_lines_a_b())

    assert [(g.id, g.total_cents) for g in groups] == [("B", 20), ("A", 80)]
    assert groups[1].items_label == "Latte (1pcs); Muffin (1pcs)"
    assert groups[1].number == "26-03-00001"


def test_legacy_lines_without_transaction_stand_alone(store):
    ids = store.insert_sale_lines([
        make_line(T0, tx=None, number=None, name="Old 1"),
        make_line(T0, tx=None, number=None, name="Old 2"),
    ])

    groups = group_for_report(store.list_sale_lines())

    assert sorted(g.id for g in groups) == sorted(str(i) for i in ids)
    # No number stored: first characters of the group id stand in
    assert {g.number for g in groups} == {str(i)[:8] for i in ids}


def test_load_transactions_filters_on_capture_time(store):
    store.insert_sale_lines([
        make_line(T0, tx="A"),
        # Captured on the 13th, reported on the 14th
        make_line(T0, captured_at=T0 - timedelta(days=1), tx="B"),
        make_line(T0, tx="C", cancelled=True),
    ])

    transactions = load_transactions(store, datetime(2026, 3, 14), datetime(2026, 3, 14, 23, 59, 59))

    assert [t.id for t in transactions] == ["A"]


def test_load_transactions_rejects_inverted_window(store):
    with pytest.raises(ReportError):
        load_transactions(store, T0, T0 - timedelta(seconds=1))


def test_edit_fans_out_to_every_line(store, db_session):
    store.insert_sale_lines(_lines_a_b())

    transaction = update_transaction(store, "A", {
        "payment_method": "GCash",
        "order_type": "dine_in",
        "reported_at": datetime(2026, 3, 15, 8, 0),
    })

    assert transaction.payment_method == "GCash"
    assert {l.payment_method for l in transaction.lines} == {"GCash"}

    rows = {r.product_name: r for r in db_session.query(SaleLine).all()}
    assert rows["Latte"].payment_method == rows["Muffin"].payment_method == "GCash"
    assert rows["Latte"].order_type == rows["Muffin"].order_type == "dine_in"
    assert rows["Latte"].reported_at == rows["Muffin"].reported_at == datetime(2026, 3, 15, 8, 0)
    # Other transactions and immutable fields untouched
    assert rows["Water"].payment_method == "Cash"
    assert rows["Latte"].captured_at == T0
    assert rows["Latte"].line_total_cents == 50


def test_edit_can_clear_order_type(store, db_session):
    store.insert_sale_lines([make_line(T0, tx="A", order_type=OrderType.TAKEOUT)])

    update_transaction(store, "A", {"order_type": None})

    assert db_session.query(SaleLine.order_type).scalar() is None


@pytest.mark.parametrize("fields", [
    {},
    {"line_total_cents": 1},
    {"quantity": 3},
    {"payment_method": ""},
    {"order_type": "delivery"},
    {"reported_at": "2026-03-15"},
])
def test_edit_rejects_bad_fields(store, fields):
    store.insert_sale_lines([make_line(T0, tx="A")])

    with pytest.raises(ValueError):
        update_transaction(store, "A", fields)


def test_edit_unknown_transaction(store):
    with pytest.raises(TransactionNotFoundError):
        update_transaction(store, "missing", {"payment_method": "Cash"})


def test_export_csv_format():
    lines = _lines_a_b()
    lines[2] = make_line(datetime(2026, 3, 14, 13, 5), qty=2, price=1050, tx="B", number="26-03-00002",
                         name="Water", payment="Card", customer="Senior", order_type=OrderType.TAKEOUT)

    text = export_csv(group_for_report(lines))
    rows = list(csv.reader(io.StringIO(text)))

    assert rows[0] == CSV_HEADERS
    assert rows[1] == [
        "26-03-00002", "Water (2pcs)", "Card", "Senior", "Takeout",
        "Mar 14 2026 1:05 PM", "Mar 14 2026 1:05 PM", "21.00",
    ]
    assert rows[2] == [
        "26-03-00001", "Latte (1pcs); Muffin (1pcs)", "Cash", "Regular", "N/A",
        "Mar 14 2026 9:00 AM", "Mar 14 2026 9:00 AM", "0.80",
    ]


def test_export_csv_uses_business_timezone():
    text = export_csv(group_for_report([make_line(datetime(2026, 3, 14, 17, 30), tx="A")]), "Asia/Manila")
    rows = list(csv.reader(io.StringIO(text)))

    assert rows[1][5] == "Mar 15 2026 1:30 AM"


def test_archive_exports_then_deletes_selected(store, db_session):
    store.insert_sale_lines(_lines_a_b() + [make_line(T0, tx="C", number="26-03-00003")])

    result = archive_and_export(store, ["A", "C"], now=datetime(2026, 3, 31, 18, 0))

    assert result.filename == "sales-archive-2026-03-31.csv"
    assert result.transaction_count == 2
    assert result.line_count == 3
    assert result.deletion.ok
    assert result.deletion.deleted_lines == 3

    exported = list(csv.reader(io.StringIO(result.csv)))
    assert len(exported) - 1 == 2
    assert sorted(r[0] for r in exported[1:]) == ["26-03-00001", "26-03-00003"]

    remaining = store.list_sale_lines()
    assert {l.transaction_id for l in remaining} == {"B"}
    assert db_session.query(SaleLine).count() == 1


def test_archive_requires_selection(store):
    with pytest.raises(ReportError):
        archive_and_export(store, [])


def test_archive_of_unknown_transactions_deletes_nothing(store, db_session):
    store.insert_sale_lines(_lines_a_b())

    with pytest.raises(ArchiveExportError):
        archive_and_export(store, ["nope"])

    assert db_session.query(SaleLine).count() == 3


class FailingDeleteStore(SqlRecordStore):
    def delete_sale_lines(self, line_ids):
        raise StoreError("database is locked")


def test_failed_delete_still_returns_export(db_session):
    store = FailingDeleteStore(db_session)
    store.insert_sale_lines(_lines_a_b())

    result = archive_and_export(store, ["A"])

    assert not result.deletion.ok
    assert result.deletion.error == "database is locked"
    assert result.to_dict()["deletion"]["retry_safe"] is True
    assert len(list(csv.reader(io.StringIO(result.csv)))) == 2
    assert db_session.query(SaleLine).count() == 3


class FailingReadStore(SqlRecordStore):
    def get_transaction_lines(self, transaction_ids):
        raise StoreError("no such table: sale_lines")


def test_failed_export_deletes_nothing(db_session):
    store = FailingReadStore(db_session)
    store.insert_sale_lines(_lines_a_b())

    with pytest.raises(ArchiveExportError):
        report_service.archive_and_export(store, ["A"])

    assert db_session.query(SaleLine).count() == 3
