# Overview: Short window after checkout during which a sale can be voided.

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable

from ..domain import LineItem
from ..time_utils import to_utc_z, utcnow
from .record_store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 60


class RecentSaleError(Exception):
    """Raised when a recent sale cannot be voided."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class RecentSale:
    transaction_id: str
    transaction_number: str
    lines: tuple[LineItem, ...]
    expires_at: datetime
    # Lines whose stock decrement failed at checkout; a void gives nothing back for them
    not_decremented: frozenset[int] = frozenset()

    def restock_lines(self) -> list[LineItem]:
        return [
            l for l in self.lines
            if l.product_id is not None and l.id not in self.not_decremented
        ]

    @property
    def total_cents(self) -> int:
        return sum(l.line_total_cents for l in self.lines)

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "transaction_number": self.transaction_number,
            "total_cents": self.total_cents,
            "expires_at": to_utc_z(self.expires_at),
        }


class RecentSaleRegistry:
    """
    Sales completed in the last window_seconds.

    Voiding marks the lines cancelled (so earnings ignore them) and gives the
    stock back. Once the window closes, the sale can only be removed through
    the archive.
    """

    def __init__(
        self,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.window = timedelta(seconds=window_seconds)
        self.clock = clock
        self._entries: dict[str, RecentSale] = {}
        self._lock = threading.Lock()

    def register(
        self,
        transaction_id: str,
        transaction_number: str,
        lines: list[LineItem],
        *,
        not_decremented: Iterable[int | None] = (),
    ) -> RecentSale:
        entry = RecentSale(
            transaction_id=transaction_id,
            transaction_number=transaction_number,
            lines=tuple(lines),
            expires_at=self.clock() + self.window,
            not_decremented=frozenset(i for i in not_decremented if i is not None),
        )
        with self._lock:
            self._prune(self.clock())
            self._entries[transaction_id] = entry
        return entry

    def _prune(self, now: datetime) -> None:
        expired = [tx for tx, e in self._entries.items() if e.expires_at <= now]
        for tx in expired:
            del self._entries[tx]

    def active(self) -> list[RecentSale]:
        with self._lock:
            self._prune(self.clock())
            return sorted(self._entries.values(), key=lambda e: e.expires_at, reverse=True)

    def dismiss(self, transaction_id: str) -> None:
        with self._lock:
            self._entries.pop(transaction_id, None)

    def _claim(self, transaction_id: str) -> RecentSale:
        with self._lock:
            self._prune(self.clock())
            entry = self._entries.pop(transaction_id, None)
        if entry is None:
            raise RecentSaleError(
                "Sale can no longer be voided",
                details={"transaction_id": transaction_id},
            )
        return entry

    def void(self, store: RecordStore, transaction_id: str) -> RecentSale:
        """
        Cancel a recent sale and restore its stock.

        The entry is claimed first so two terminals cannot void it twice.
        Cancelling the lines and every stock restore share one unit of work;
        if any of them fails nothing is kept and the sale stays voidable.
        """
        entry = self._claim(transaction_id)
        now = self.clock()
        line_ids = [l.id for l in entry.lines if l.id is not None]
        try:
            with store.atomic():
                store.update_sale_lines(line_ids, {"cancelled": True, "cancelled_at": now})
                for line in entry.restock_lines():
                    store.restore_stock(line.product_id, line.quantity)
        except Exception:
            with self._lock:
                if entry.expires_at > self.clock():
                    self._entries[transaction_id] = entry
            raise

        if entry.not_decremented:
            logger.warning(
                "Voided sale %s without restocking lines %s (never decremented)",
                entry.transaction_number, sorted(entry.not_decremented),
            )
        logger.info("Voided sale %s (%d lines)", entry.transaction_number, len(entry.lines))
        return entry
