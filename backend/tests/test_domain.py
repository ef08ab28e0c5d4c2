from datetime import date, datetime

import pytest

from kashpos.domain import OrderType, Transaction, normalize_edit
from kashpos.time_utils import (
    day_bounds,
    month_bounds,
    parse_iso_datetime,
    parse_month,
    period_prefix,
    to_utc_z,
)

from conftest import make_line


@pytest.mark.parametrize("value,expected", [
    (None, OrderType.NONE),
    ("", OrderType.NONE),
    ("none", OrderType.NONE),
    ("dine_in", OrderType.DINE_IN),
    (" Takeout ", OrderType.TAKEOUT),
    (OrderType.TAKEOUT, OrderType.TAKEOUT),
])
def test_order_type_parse(value, expected):
    assert OrderType.parse(value) == expected


def test_order_type_labels():
    assert [t.label for t in OrderType] == ["Dine In", "Takeout", "N/A"]
    with pytest.raises(ValueError):
        OrderType.parse("drive_thru")


def test_transaction_aggregate():
    at = datetime(2026, 3, 14, 9, 0)
    tx = Transaction.from_lines("abc", [
        make_line(at, tx="abc", qty=2, cost=400, price=1000, name="Latte"),
        make_line(at, tx="abc", qty=1, cost=100, price=250, name="Cookie"),
    ])

    assert tx.total_cents == 2250
    assert tx.item_cost_cents == 900
    assert tx.items_label == "Latte (2pcs); Cookie (1pcs)"
    assert tx.captured_at == at


def test_transaction_edit_applies_to_all_lines():
    at = datetime(2026, 3, 14, 9, 0)
    tx = Transaction.from_lines("abc", [make_line(at, tx="abc"), make_line(at, tx="abc")])

    changes = tx.edit({"customer_type": " Senior ", "order_type": "takeout"})

    assert changes == {"customer_type": "Senior", "order_type": OrderType.TAKEOUT}
    assert {(l.customer_type, l.order_type) for l in tx.lines} == {("Senior", OrderType.TAKEOUT)}
    assert {l.line_total_cents for l in tx.lines} == {1000}


def test_normalize_edit_rejects_non_editable_fields():
    with pytest.raises(ValueError) as exc:
        normalize_edit({"cancelled": True, "unit_price_cents": 1})
    assert "cancelled" in str(exc.value)


def test_parse_iso_datetime_normalizes_to_utc():
    assert parse_iso_datetime("2026-03-14T17:30:00+08:00") == datetime(2026, 3, 14, 9, 30)
    assert parse_iso_datetime("2026-03-14T09:30:00Z") == datetime(2026, 3, 14, 9, 30)
    assert parse_iso_datetime("  ") is None
    assert to_utc_z(datetime(2026, 3, 14, 9, 30, 15, 500)) == "2026-03-14T09:30:15Z"


def test_day_and_month_bounds_in_business_timezone():
    start, end = day_bounds(date(2026, 3, 14), "Asia/Manila")
    assert start == datetime(2026, 3, 13, 16, 0)
    assert end == datetime(2026, 3, 14, 15, 59, 59, 999999)

    start, end = month_bounds(2026, 2)
    assert start == datetime(2026, 2, 1)
    assert end == datetime(2026, 2, 28, 23, 59, 59, 999999)


def test_period_prefix_and_parse_month():
    assert period_prefix(datetime(2026, 12, 31, 23, 0)) == "26-12"
    assert period_prefix(datetime(2026, 12, 31, 23, 0), "Asia/Manila") == "27-01"
    assert parse_month("2026-03") == (2026, 3)
    with pytest.raises(ValueError):
        parse_month("2026-00")
