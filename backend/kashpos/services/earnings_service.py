# Overview: Revenue / cost of goods / gross margin rollups over sale lines.
#
# Earnings invariants:
#
# - Only non-cancelled lines count.
# - Lines are bucketed by reported_at, never captured_at.
# - Windows are inclusive on both ends: start <= reported_at <= end.
# - gross_margin = revenue - item_cost, in integer cents, so margins of
#   disjoint sub-windows add up exactly to the margin of their union.

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable

from ..domain import LineItem
from ..time_utils import business_date, day_bounds, iter_days, range_bounds, to_utc_z
from .record_store import RecordStore


class ReportError(Exception):
    """Raised when report input is invalid."""
    pass


@dataclass
class EarningsSummary:
    revenue_cents: int = 0
    item_cost_cents: int = 0
    line_count: int = 0
    by_customer_type: Counter = field(default_factory=Counter)
    by_payment_method: Counter = field(default_factory=Counter)
    by_order_type: Counter = field(default_factory=Counter)
    start: datetime | None = None
    end: datetime | None = None

    @property
    def gross_margin_cents(self) -> int:
        return self.revenue_cents - self.item_cost_cents

    def add(self, line: LineItem) -> None:
        self.revenue_cents += line.line_total_cents
        self.item_cost_cents += line.item_cost_cents
        self.line_count += 1
        self.by_customer_type[line.customer_type] += 1
        self.by_payment_method[line.payment_method] += 1
        self.by_order_type[line.order_type.label] += 1

    def to_dict(self) -> dict:
        return {
            "start": to_utc_z(self.start),
            "end": to_utc_z(self.end),
            "revenue_cents": self.revenue_cents,
            "item_cost_cents": self.item_cost_cents,
            "gross_margin_cents": self.gross_margin_cents,
            "line_count": self.line_count,
            "breakdowns": {
                "customer_type": dict(self.by_customer_type),
                "payment_method": dict(self.by_payment_method),
                "order_type": dict(self.by_order_type),
            },
        }


def in_window(line: LineItem, start: datetime | None, end: datetime | None) -> bool:
    if line.cancelled:
        return False
    if start is not None and line.reported_at < start:
        return False
    if end is not None and line.reported_at > end:
        return False
    return True


def summarize_lines(
    lines: Iterable[LineItem],
    start: datetime | None = None,
    end: datetime | None = None,
) -> EarningsSummary:
    """Pure rollup of the lines whose reported_at falls in [start, end]."""
    if start is not None and end is not None and start > end:
        raise ReportError("start must be before end")
    summary = EarningsSummary(start=start, end=end)
    for line in lines:
        if in_window(line, start, end):
            summary.add(line)
    return summary


def daily_series(
    lines: Iterable[LineItem],
    start_day: date,
    end_day: date,
    tz_name: str = "UTC",
) -> list[dict]:
    """Per business day revenue / item cost / gross margin, zero-filled."""
    if start_day > end_day:
        raise ReportError("start must be before end")

    start, end = range_bounds(start_day, end_day, tz_name)
    buckets: dict[date, EarningsSummary] = {day: EarningsSummary() for day in iter_days(start_day, end_day)}
    for line in lines:
        if not in_window(line, start, end):
            continue
        buckets[business_date(line.reported_at, tz_name)].add(line)

    return [
        {
            "date": day.isoformat(),
            "revenue_cents": s.revenue_cents,
            "item_cost_cents": s.item_cost_cents,
            "gross_margin_cents": s.gross_margin_cents,
        }
        for day, s in buckets.items()
    ]


def compute_earnings(store: RecordStore, start: datetime | None, end: datetime | None) -> EarningsSummary:
    """Fetch lines for the window and roll them up. Store read failures propagate as FetchError."""
    if start is not None and end is not None and start > end:
        raise ReportError("start must be before end")
    lines = store.list_sale_lines(start, end, field="reported_at")
    return summarize_lines(lines, start, end)


def compute_today(store: RecordStore, now: datetime, tz_name: str = "UTC") -> EarningsSummary:
    start, end = day_bounds(business_date(now, tz_name), tz_name)
    return compute_earnings(store, start, end)


def compute_range(store: RecordStore, start_day: date, end_day: date, tz_name: str = "UTC") -> dict:
    """Summary plus day-by-day series for a business date range."""
    if start_day > end_day:
        raise ReportError("start must be before end")
    start, end = range_bounds(start_day, end_day, tz_name)
    lines = store.list_sale_lines(start, end, field="reported_at")
    summary = summarize_lines(lines, start, end)
    payload = summary.to_dict()
    payload["daily"] = daily_series(lines, start_day, end_day, tz_name)
    return payload
