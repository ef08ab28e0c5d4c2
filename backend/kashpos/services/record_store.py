"""
Record store contract consumed by the checkout and reporting services.

The services never touch the database directly; they talk to a RecordStore.
SqlRecordStore (sql_store.py) is the implementation shipped with the app.

Consistency the services rely on:
- each call is atomic on its own
- atomic() groups calls into one unit of work (single commit point)
- decrement_stock never drives stock below zero
- next_transaction_sequence hands out each number once per prefix
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Iterable, Protocol, runtime_checkable

from ..domain import LineItem, ProductInfo


class StoreError(Exception):
    """Raised when a record store operation fails."""
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class FetchError(StoreError):
    """Read failure. Nothing was changed, so the caller may simply retry."""
    retryable = True


@runtime_checkable
class RecordStore(Protocol):

    def atomic(self) -> AbstractContextManager[None]:
        """Unit of work: commit on clean exit, roll back on exception."""
        ...

    # -- products ------------------------------------------------------------

    def get_product(self, product_id: int) -> ProductInfo | None:
        ...

    def get_products(self, product_ids: Iterable[int]) -> dict[int, ProductInfo]:
        ...

    def decrement_stock(self, product_id: int, quantity: int) -> int:
        """Subtract quantity, floored at zero. Returns the new stock."""
        ...

    def restore_stock(self, product_id: int, quantity: int) -> None:
        """Add quantity back (compensation for a voided sale)."""
        ...

    # -- sale lines ----------------------------------------------------------

    def insert_sale_lines(self, lines: list[LineItem]) -> list[int]:
        ...

    def update_sale_line(self, line_id: int, fields: dict[str, Any]) -> None:
        ...

    def update_sale_lines(self, line_ids: list[int], fields: dict[str, Any]) -> int:
        """Apply the same change to several lines in one statement."""
        ...

    def delete_sale_lines(self, line_ids: list[int]) -> int:
        ...

    def list_sale_lines(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        field: str = "reported_at",
        include_cancelled: bool = False,
    ) -> list[LineItem]:
        """Lines with start <= field <= end, ascending by field."""
        ...

    def get_transaction_lines(self, transaction_ids: Iterable[str]) -> list[LineItem]:
        """Lines of the given transactions (legacy rows match on their own id)."""
        ...

    # -- numbering -----------------------------------------------------------

    def query_latest_transaction_number(self, prefix: str) -> str | None:
        ...

    def next_transaction_sequence(self, prefix: str, start_after: int = 0) -> int:
        """
        Atomically take the next number for prefix.

        start_after seeds a counter that does not exist yet.
        """
        ...
