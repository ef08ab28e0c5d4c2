# Overview: Sales report: transactions grouped from sale lines, edits, CSV archive.

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from ..domain import LineItem, Transaction, normalize_edit
from ..time_utils import to_business_time, utcnow
from .earnings_service import ReportError
from .record_store import RecordStore, StoreError

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "Transaction #",
    "Items",
    "Payment",
    "Customer",
    "Order",
    "Timestamp",
    "Report Date",
    "Total",
]


class ArchiveExportError(Exception):
    """The export could not be produced. Nothing was deleted."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class TransactionNotFoundError(ReportError):
    pass


def group_for_report(lines: Iterable[LineItem]) -> list[Transaction]:
    """
    Group lines by transaction id (legacy lines by their own id), newest
    checkout first.
    """
    groups: dict[str, list[LineItem]] = {}
    for line in lines:
        groups.setdefault(line.group_key, []).append(line)

    transactions = [Transaction.from_lines(key, group) for key, group in groups.items()]
    transactions.sort(key=lambda t: t.captured_at, reverse=True)
    return transactions


def load_transactions(
    store: RecordStore,
    start: datetime | None,
    end: datetime | None,
) -> list[Transaction]:
    """Transactions captured in [start, end], cancelled sales excluded."""
    if start is not None and end is not None and start > end:
        raise ReportError("start must be before end")
    lines = store.list_sale_lines(start, end, field="captured_at")
    return group_for_report(lines)


def get_transaction(store: RecordStore, transaction_id: str) -> Transaction:
    lines = store.get_transaction_lines([transaction_id])
    if not lines:
        raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
    return Transaction.from_lines(transaction_id, lines)


def update_transaction(store: RecordStore, transaction_id: str, fields: dict[str, Any]) -> Transaction:
    """
    Change payment method, customer type, order type or report timestamp of
    a whole transaction. Every line of the group is updated in one statement.
    """
    changes = normalize_edit(fields)
    transaction = get_transaction(store, transaction_id)
    with store.atomic():
        store.update_sale_lines(transaction.line_ids, changes)
    transaction.edit(changes)
    return transaction


# =============================================================================
# CSV export & archive
# =============================================================================

def _format_timestamp(dt: datetime, tz_name: str) -> str:
    local = to_business_time(dt, tz_name)
    hour = local.hour % 12 or 12
    return f"{local:%b} {local.day} {local.year} {hour}:{local:%M} {local:%p}"


def export_csv(transactions: Iterable[Transaction], tz_name: str = "UTC") -> str:
    """One row per transaction, columns in CSV_HEADERS order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for tx in transactions:
        writer.writerow([
            tx.number,
            tx.items_label,
            tx.payment_method,
            tx.customer_type,
            tx.order_type.label,
            _format_timestamp(tx.captured_at, tz_name),
            _format_timestamp(tx.reported_at, tz_name),
            f"{tx.total_cents / 100:.2f}",
        ])
    return buffer.getvalue()


@dataclass
class DeletionResult:
    ok: bool
    deleted_lines: int = 0
    error: str | None = None

    def to_dict(self) -> dict:
        payload = {"ok": self.ok, "deleted_lines": self.deleted_lines}
        if not self.ok:
            payload["error"] = self.error
            payload["retry_safe"] = True
            payload["message"] = "Export succeeded but the sales were not deleted; they are still stored."
        return payload


@dataclass
class ArchiveResult:
    csv: str
    filename: str
    transaction_count: int
    line_count: int
    deletion: DeletionResult

    def to_dict(self) -> dict:
        return {
            "csv": self.csv,
            "filename": self.filename,
            "transaction_count": self.transaction_count,
            "line_count": self.line_count,
            "deletion": self.deletion.to_dict(),
        }


def archive_and_export(
    store: RecordStore,
    transaction_ids: Iterable[str],
    *,
    tz_name: str = "UTC",
    now: datetime | None = None,
) -> ArchiveResult:
    """
    Export the selected transactions to CSV, then delete their lines.

    Order matters: the export is produced first and is the recovery copy if
    the delete fails. A failed delete is reported in the result's deletion
    field (the CSV is still returned); a failed export raises
    ArchiveExportError and nothing is deleted.
    """
    ids = list(dict.fromkeys(str(t) for t in transaction_ids))
    if not ids:
        raise ReportError("No transactions selected")

    try:
        lines = store.get_transaction_lines(ids)
    except StoreError as exc:
        raise ArchiveExportError("Could not load sales to export", details={"error": str(exc)}) from exc
    if not lines:
        raise ArchiveExportError("No sales found for the selected transactions", details={"transaction_ids": ids})

    transactions = group_for_report(lines)
    csv_text = export_csv(transactions, tz_name)
    stamp = to_business_time(now or utcnow(), tz_name)
    filename = f"sales-archive-{stamp:%Y-%m-%d}.csv"

    line_ids = [l.id for l in lines if l.id is not None]
    try:
        with store.atomic():
            deleted = store.delete_sale_lines(line_ids)
        deletion = DeletionResult(ok=True, deleted_lines=deleted)
    except StoreError as exc:
        logger.exception("Archive exported %d transactions but deleting their lines failed", len(transactions))
        deletion = DeletionResult(ok=False, error=str(exc))

    return ArchiveResult(
        csv=csv_text,
        filename=filename,
        transaction_count=len(transactions),
        line_count=len(line_ids),
        deletion=deletion,
    )
