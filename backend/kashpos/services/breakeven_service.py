# Overview: Month-to-date OPEX coverage, break-even instant and net profit.
#
# Break-even rules (per calendar month, target T = monthly OPEX):
#
# - G accumulates each non-cancelled line's gross margin in reported_at order.
# - Break-even is the reported_at of the first line where G >= T (T > 0 only).
# - remaining_opex = max(0, T - G)
# - net_profit = G - T when G > T, else 0. Net profit stays zero until OPEX is
#   covered.
# - G starts at zero on the first of each month and is carried across day
#   boundaries, so a chart starting mid-month still knows OPEX was cleared.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable

from ..domain import LineItem
from ..time_utils import (
    business_date,
    day_bounds,
    iter_days,
    month_bounds,
    month_start,
    to_utc_z,
)
from .earnings_service import ReportError
from .record_store import RecordStore


def remaining_opex(target_cents: int, margin_cents: int) -> int:
    return max(0, target_cents - margin_cents)


def net_profit(target_cents: int, margin_cents: int) -> int:
    return margin_cents - target_cents if margin_cents > target_cents else 0


@dataclass
class BreakEvenPoint:
    reported_at: datetime
    transaction_number: str | None
    gross_margin_cents: int
    cumulative_margin_cents: int
    remaining_opex_cents: int
    net_profit_cents: int

    def to_dict(self) -> dict:
        return {
            "reported_at": to_utc_z(self.reported_at),
            "transaction_number": self.transaction_number,
            "gross_margin_cents": self.gross_margin_cents,
            "cumulative_margin_cents": self.cumulative_margin_cents,
            "remaining_opex_cents": self.remaining_opex_cents,
            "net_profit_cents": self.net_profit_cents,
        }


class BreakEvenTracker:
    """Streaming accumulator; feed lines in ascending reported_at order."""

    def __init__(self, opex_target_cents: int):
        if opex_target_cents < 0:
            raise ReportError("OPEX target cannot be negative")
        self.target_cents = opex_target_cents
        self.margin_cents = 0
        self.break_even_at: datetime | None = None
        self._last_at: datetime | None = None

    def add(self, line: LineItem) -> BreakEvenPoint:
        if self._last_at is not None and line.reported_at < self._last_at:
            raise ReportError("lines must be added in reported_at order")
        self._last_at = line.reported_at

        self.margin_cents += line.gross_margin_cents
        if (
            self.break_even_at is None
            and self.target_cents > 0
            and self.margin_cents >= self.target_cents
        ):
            self.break_even_at = line.reported_at

        return BreakEvenPoint(
            reported_at=line.reported_at,
            transaction_number=line.transaction_number,
            gross_margin_cents=line.gross_margin_cents,
            cumulative_margin_cents=self.margin_cents,
            remaining_opex_cents=self.remaining_opex_cents,
            net_profit_cents=self.net_profit_cents,
        )

    @property
    def remaining_opex_cents(self) -> int:
        return remaining_opex(self.target_cents, self.margin_cents)

    @property
    def net_profit_cents(self) -> int:
        return net_profit(self.target_cents, self.margin_cents)


@dataclass
class BreakEvenStatus:
    opex_target_cents: int
    gross_margin_cents: int
    remaining_opex_cents: int
    net_profit_cents: int
    break_even_at: datetime | None
    points: list[BreakEvenPoint] = field(default_factory=list)

    def to_dict(self, include_points: bool = True) -> dict:
        payload = {
            "opex_target_cents": self.opex_target_cents,
            "gross_margin_cents": self.gross_margin_cents,
            "remaining_opex_cents": self.remaining_opex_cents,
            "net_profit_cents": self.net_profit_cents,
            "break_even_at": to_utc_z(self.break_even_at),
        }
        if include_points:
            payload["points"] = [p.to_dict() for p in self.points]
        return payload


def _ordered(lines: Iterable[LineItem]) -> list[LineItem]:
    return sorted((l for l in lines if not l.cancelled), key=lambda l: (l.reported_at, l.id or 0))


def track_month(lines: Iterable[LineItem], opex_target_cents: int) -> BreakEvenStatus:
    """Run the tracker over one month's lines."""
    tracker = BreakEvenTracker(opex_target_cents)
    points = [tracker.add(line) for line in _ordered(lines)]
    return BreakEvenStatus(
        opex_target_cents=opex_target_cents,
        gross_margin_cents=tracker.margin_cents,
        remaining_opex_cents=tracker.remaining_opex_cents,
        net_profit_cents=tracker.net_profit_cents,
        break_even_at=tracker.break_even_at,
        points=points,
    )


def daily_break_even_series(
    lines: Iterable[LineItem],
    opex_target_cents: int,
    start_day: date,
    end_day: date,
    tz_name: str = "UTC",
) -> list[dict]:
    """
    End-of-day OPEX coverage for each day in [start_day, end_day].

    lines must cover month_start(start_day) .. end_day; margin earned before
    start_day in the same month is carried in. Each new month restarts at 0.
    """
    if start_day > end_day:
        raise ReportError("start must be before end")

    ordered = _ordered(lines)
    rows = []
    idx = 0
    tracker: BreakEvenTracker | None = None
    current_month: date | None = None
    first_day = month_start(start_day)
    for day in iter_days(first_day, end_day):
        if month_start(day) != current_month:
            current_month = month_start(day)
            tracker = BreakEvenTracker(opex_target_cents)
            # Skip anything before this month (callers may pass extra history)
            month_floor, _ = day_bounds(current_month, tz_name)
            while idx < len(ordered) and ordered[idx].reported_at < month_floor:
                idx += 1

        _, day_end = day_bounds(day, tz_name)
        day_margin = 0
        while idx < len(ordered) and ordered[idx].reported_at <= day_end:
            tracker.add(ordered[idx])
            day_margin += ordered[idx].gross_margin_cents
            idx += 1

        if day < start_day:
            continue
        rows.append({
            "date": day.isoformat(),
            "gross_margin_cents": day_margin,
            "cumulative_margin_cents": tracker.margin_cents,
            "remaining_opex_cents": tracker.remaining_opex_cents,
            "net_profit_cents": tracker.net_profit_cents,
            "break_even_reached": tracker.break_even_at is not None
            and business_date(tracker.break_even_at, tz_name) <= day,
        })
    return rows


def compute_break_even(
    store: RecordStore,
    opex_target_cents: int,
    year: int,
    month: int,
    *,
    as_of: datetime | None = None,
    tz_name: str = "UTC",
) -> BreakEvenStatus:
    """Month-to-date status, optionally cut off at as_of."""
    start, end = month_bounds(year, month, tz_name)
    if as_of is not None:
        end = min(end, as_of)
    lines = store.list_sale_lines(start, end, field="reported_at")
    return track_month(lines, opex_target_cents)


def compute_break_even_range(
    store: RecordStore,
    opex_target_cents: int,
    start_day: date,
    end_day: date,
    tz_name: str = "UTC",
) -> list[dict]:
    if start_day > end_day:
        raise ReportError("start must be before end")
    start, _ = day_bounds(month_start(start_day), tz_name)
    _, end = day_bounds(end_day, tz_name)
    lines = store.list_sale_lines(start, end, field="reported_at")
    return daily_break_even_series(lines, opex_target_cents, start_day, end_day, tz_name)
