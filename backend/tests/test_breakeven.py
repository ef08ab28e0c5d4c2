"""
Break-even: month-to-date gross margin against the monthly OPEX target.
"""

from datetime import date, datetime

import pytest

from kashpos.services.breakeven_service import (
    BreakEvenTracker,
    compute_break_even,
    compute_break_even_range,
    daily_break_even_series,
    net_profit,
    remaining_opex,
    track_month,
)
from kashpos.services.earnings_service import ReportError

from conftest import make_line as line


T1 = datetime(2026, 3, 2, 9, 0)
T2 = datetime(2026, 3, 2, 13, 0)
T3 = datetime(2026, 3, 3, 10, 0)


def _margin_line(at, margin, **kwargs):
    # price - cost == margin for a single unit
    return line(at, qty=1, cost=0, price=margin, **kwargs)


def test_break_even_reached_on_the_line_that_covers_opex():
    lines = [_margin_line(T1, 400), _margin_line(T2, 400), _margin_line(T3, 400)]

    status = track_month(lines, 1000)

    assert status.break_even_at == T3
    assert [p.remaining_opex_cents for p in status.points] == [600, 200, 0]
    assert [p.net_profit_cents for p in status.points] == [0, 0, 200]
    assert status.gross_margin_cents == 1200
    assert status.net_profit_cents == 200


def test_net_profit_waterfall_never_negative():
    tracker = BreakEvenTracker(1000)
    seen = []
    for margin in (300, 300, 300, 100, 50, 500):
        point = tracker.add(_margin_line(T1, margin))
        seen.append((point.remaining_opex_cents, point.net_profit_cents))

    assert seen == [(700, 0), (400, 0), (100, 0), (0, 0), (0, 50), (0, 550)]
    assert all(net >= 0 for _, net in seen)


def test_exact_cover_is_break_even_with_zero_profit():
    status = track_month([_margin_line(T1, 1000)], 1000)

    assert status.break_even_at == T1
    assert status.remaining_opex_cents == 0
    assert status.net_profit_cents == 0


def test_zero_target_has_no_break_even_instant():
    status = track_month([_margin_line(T1, 500)], 0)

    assert status.break_even_at is None
    assert status.net_profit_cents == 500


def test_cancelled_lines_do_not_count():
    status = track_month([_margin_line(T1, 1000, cancelled=True), _margin_line(T2, 400)], 1000)

    assert status.break_even_at is None
    assert status.remaining_opex_cents == 600


def test_tracker_requires_reported_at_order():
    tracker = BreakEvenTracker(1000)
    tracker.add(_margin_line(T2, 100))

    with pytest.raises(ReportError):
        tracker.add(_margin_line(T1, 100))


def test_helpers():
    assert remaining_opex(1000, 1200) == 0
    assert remaining_opex(1000, 300) == 700
    assert net_profit(1000, 1200) == 200
    assert net_profit(1000, 999) == 0


def test_daily_series_carries_margin_from_earlier_in_month():
    lines = [
        _margin_line(datetime(2026, 3, 1, 12, 0), 700),
        _margin_line(datetime(2026, 3, 4, 12, 0), 500),
    ]

    # Chart starts on the 3rd; the 700 from the 1st still counts
    rows = daily_break_even_series(lines, 1000, date(2026, 3, 3), date(2026, 3, 5))

    assert [r["date"] for r in rows] == ["2026-03-03", "2026-03-04", "2026-03-05"]
    assert [r["cumulative_margin_cents"] for r in rows] == [700, 1200, 1200]
    assert [r["remaining_opex_cents"] for r in rows] == [300, 0, 0]
    assert [r["net_profit_cents"] for r in rows] == [0, 200, 200]
    assert [r["break_even_reached"] for r in rows] == [False, True, True]


def test_daily_series_restarts_each_month():
    lines = [
        _margin_line(datetime(2026, 3, 31, 12, 0), 1500),
        _margin_line(datetime(2026, 4, 1, 12, 0), 200),
    ]

    rows = daily_break_even_series(lines, 1000, date(2026, 3, 31), date(2026, 4, 1))

    assert [(r["cumulative_margin_cents"], r["net_profit_cents"]) for r in rows] == [(1500, 500), (200, 0)]
    assert rows[1]["remaining_opex_cents"] == 800


def test_compute_break_even_from_store(store):
    store.insert_sale_lines([
        _margin_line(datetime(2026, 2, 28, 12, 0), 5000),
        _margin_line(T1, 400),
        _margin_line(T2, 400),
        _margin_line(T3, 400),
    ])

    status = compute_break_even(store, 1000, 2026, 3)
    assert status.break_even_at == T3
    assert status.net_profit_cents == 200

    # Cut off before T3: not yet covered
    status = compute_break_even(store, 1000, 2026, 3, as_of=datetime(2026, 3, 3, 9, 0))
    assert status.break_even_at is None
    assert status.remaining_opex_cents == 200

    rows = compute_break_even_range(store, 1000, date(2026, 3, 2), date(2026, 3, 3))
    assert [r["net_profit_cents"] for r in rows] == [0, 200]


def test_to_dict():
    payload = track_month([_margin_line(T1, 400)], 1000).to_dict(include_points=False)

    assert payload == {
        "opex_target_cents": 1000,
        "gross_margin_cents": 400,
        "remaining_opex_cents": 600,
        "net_profit_cents": 0,
        "break_even_at": None,
    }
