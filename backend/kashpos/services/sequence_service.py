# Overview: Transaction number allocation (YY-MM-SSSSS, restarting every month).

from __future__ import annotations

import re
from datetime import datetime
from typing import Callable

from ..time_utils import period_prefix, utcnow
from .record_store import RecordStore, StoreError

SEQUENCE_DIGITS = 5

_NUMBER_RE = re.compile(r"^(\d{2}-\d{2})-(\d+)$")


class TransactionNumberError(StoreError):
    """Raised when a transaction number cannot be allocated."""


def format_transaction_number(prefix: str, sequence: int) -> str:
    return f"{prefix}-{sequence:0{SEQUENCE_DIGITS}d}"


def parse_sequence_suffix(number: str | None) -> int:
    """Trailing sequence of "YY-MM-SSSSS"; 0 when absent or unparseable."""
    if not number:
        return 0
    match = _NUMBER_RE.match(number.strip())
    if not match:
        return 0
    return int(match.group(2))


class TransactionNumberAllocator:
    """
    Hands out transaction numbers for the current business month.

    The store's per-prefix counter does the actual increment, so two
    terminals never receive the same number. The highest number already in
    sale_lines only seeds a counter the first time a month is seen (for
    example sales imported before counters existed).
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        tz_name: str = "UTC",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.tz_name = tz_name
        self.clock = clock

    def current_prefix(self, now: datetime | None = None) -> str:
        return period_prefix(now or self.clock(), self.tz_name)

    def latest_sequence(self, prefix: str) -> int:
        return parse_sequence_suffix(self.store.query_latest_transaction_number(prefix))

    def allocate(self, now: datetime | None = None) -> str:
        prefix = self.current_prefix(now)
        sequence = self.store.next_transaction_sequence(prefix, start_after=self.latest_sequence(prefix))
        if sequence < 1:
            raise TransactionNumberError(f"Invalid sequence {sequence} for {prefix}")
        return format_transaction_number(prefix, sequence)
