# Overview: RecordStore implementation on the Flask-SQLAlchemy session.

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import and_, delete, func, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..domain import MUTABLE_FIELDS, LineItem, OrderType, ProductInfo
from ..models import Product, SaleLine, TransactionSequence
from ..models.sales import order_type_to_column
from .concurrency import run_with_retry
from .record_store import FetchError, StoreError

logger = logging.getLogger(__name__)

LINE_TIME_FIELDS = {"reported_at", "captured_at"}


def _line_columns(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"sale line fields are not mutable: {', '.join(sorted(unknown))}")
    values = dict(fields)
    if "order_type" in values:
        values["order_type"] = order_type_to_column(OrderType.parse(values["order_type"]))
    return values


class SqlRecordStore:
    """
    RecordStore over db.session.

    Every write commits on its own unless it runs inside atomic(), in which
    case the outermost atomic() block commits once at the end.
    """

    def __init__(self, session=None):
        self.session = session if session is not None else db.session
        self._depth = 0

    # -- unit of work --------------------------------------------------------

    @contextmanager
    def atomic(self):
        self._depth += 1
        try:
            yield
        except Exception:
            self._depth -= 1
            if self._depth == 0:
                self.session.rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            try:
                self.session.commit()
            except SQLAlchemyError as exc:
                self.session.rollback()
                raise StoreError("Commit failed", details={"error": type(exc).__name__}) from exc

    def _write(self, op, message: str):
        if self._depth:
            try:
                return op()
            except SQLAlchemyError as exc:
                raise StoreError(message, details={"error": type(exc).__name__}) from exc

        def _op():
            result = op()
            self.session.commit()
            return result

        try:
            return run_with_retry(_op, self.session)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError(message, details={"error": type(exc).__name__}) from exc

    def _read(self, op, message: str):
        try:
            return op()
        except SQLAlchemyError as exc:
            if not self._depth:
                self.session.rollback()
            raise FetchError(message, details={"error": type(exc).__name__}) from exc

    # -- products ------------------------------------------------------------

    def get_product(self, product_id: int) -> ProductInfo | None:
        return self.get_products([product_id]).get(product_id)

    def get_products(self, product_ids: Iterable[int]) -> dict[int, ProductInfo]:
        ids = list({int(pid) for pid in product_ids})
        if not ids:
            return {}

        def _op():
            rows = self.session.query(Product).populate_existing().filter(Product.id.in_(ids)).all()
            return {p.id: p.to_info() for p in rows}

        return self._read(_op, "Failed to load products")

    def decrement_stock(self, product_id: int, quantity: int) -> int:
        def _op():
            result = self.session.execute(
                update(Product)
                .where(Product.id == product_id, Product.stock_qty >= quantity)
                .values(stock_qty=Product.stock_qty - quantity)
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                # Not enough left: another checkout got there first
                result = self.session.execute(
                    update(Product)
                    .where(Product.id == product_id)
                    .values(stock_qty=0)
                    .execution_options(synchronize_session=False)
                )
                if not result.rowcount:
                    raise StoreError(f"Product {product_id} not found", details={"product_id": product_id})
                logger.warning(
                    "Product %s oversold: %d requested with less in stock, floored at zero",
                    product_id, quantity,
                )
            return int(
                self.session.query(Product.stock_qty).filter(Product.id == product_id).scalar() or 0
            )

        return self._write(_op, f"Failed to decrement stock for product {product_id}")

    def restore_stock(self, product_id: int, quantity: int) -> None:
        def _op():
            result = self.session.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(stock_qty=Product.stock_qty + quantity)
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                raise StoreError(f"Product {product_id} not found", details={"product_id": product_id})

        self._write(_op, f"Failed to restore stock for product {product_id}")

    # -- sale lines ----------------------------------------------------------

    def insert_sale_lines(self, lines: list[LineItem]) -> list[int]:
        def _op():
            rows = [SaleLine.from_item(item) for item in lines]
            self.session.add_all(rows)
            self.session.flush()
            return [row.id for row in rows]

        return self._write(_op, "Failed to insert sale lines")

    def update_sale_line(self, line_id: int, fields: dict[str, Any]) -> None:
        values = _line_columns(fields)

        def _op():
            result = self.session.execute(
                update(SaleLine)
                .where(SaleLine.id == line_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                raise StoreError(f"Sale line {line_id} not found", details={"line_id": line_id})

        self._write(_op, f"Failed to update sale line {line_id}")

    def update_sale_lines(self, line_ids: list[int], fields: dict[str, Any]) -> int:
        values = _line_columns(fields)
        if not line_ids:
            return 0

        def _op():
            result = self.session.execute(
                update(SaleLine)
                .where(SaleLine.id.in_(line_ids))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

        return self._write(_op, "Failed to update sale lines")

    def delete_sale_lines(self, line_ids: list[int]) -> int:
        if not line_ids:
            return 0

        def _op():
            result = self.session.execute(
                delete(SaleLine)
                .where(SaleLine.id.in_(line_ids))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

        return self._write(_op, "Failed to delete sale lines")

    def list_sale_lines(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        field: str = "reported_at",
        include_cancelled: bool = False,
    ) -> list[LineItem]:
        if field not in LINE_TIME_FIELDS:
            raise ValueError(f"field must be one of {sorted(LINE_TIME_FIELDS)}")
        column = getattr(SaleLine, field)

        def _op():
            query = self.session.query(SaleLine).populate_existing()
            if not include_cancelled:
                query = query.filter(SaleLine.cancelled.is_(False))
            if start is not None:
                query = query.filter(column >= start)
            if end is not None:
                query = query.filter(column <= end)
            rows = query.order_by(column.asc(), SaleLine.id.asc()).all()
            return [row.to_item() for row in rows]

        return self._read(_op, "Failed to load sale lines")

    def get_transaction_lines(self, transaction_ids: Iterable[str]) -> list[LineItem]:
        tx_ids = [str(t) for t in transaction_ids]
        if not tx_ids:
            return []
        legacy_ids = [int(t) for t in tx_ids if t.isdigit()]

        def _op():
            condition = SaleLine.transaction_id.in_(tx_ids)
            if legacy_ids:
                condition = or_(
                    condition,
                    and_(SaleLine.transaction_id.is_(None), SaleLine.id.in_(legacy_ids)),
                )
            rows = (
                self.session.query(SaleLine)
                .populate_existing()
                .filter(condition)
                .order_by(SaleLine.captured_at.asc(), SaleLine.id.asc())
                .all()
            )
            return [row.to_item() for row in rows]

        return self._read(_op, "Failed to load transaction lines")

    # -- numbering -----------------------------------------------------------

    def query_latest_transaction_number(self, prefix: str) -> str | None:
        column = SaleLine.transaction_number

        def _op():
            # Zero-padded suffixes: longest first, then lexical, gives numeric max
            return (
                self.session.query(column)
                .filter(column.like(f"{prefix}-%"))
                .order_by(func.length(column).desc(), column.desc())
                .limit(1)
                .scalar()
            )

        return self._read(_op, "Failed to read latest transaction number")

    def next_transaction_sequence(self, prefix: str, start_after: int = 0) -> int:
        stmt = (
            update(TransactionSequence)
            .where(TransactionSequence.prefix == prefix)
            .values(next_number=TransactionSequence.next_number + 1)
            .execution_options(synchronize_session=False)
        )

        def _take() -> int | None:
            result = self.session.execute(stmt)
            if not result.rowcount:
                return None
            current = (
                self.session.query(TransactionSequence.next_number)
                .filter_by(prefix=prefix)
                .scalar()
            )
            return current - 1

        def _op() -> int:
            taken = _take()
            if taken is not None:
                return taken

            seq = TransactionSequence(prefix=prefix, next_number=start_after + 2)
            self.session.add(seq)
            try:
                self.session.flush()
                return start_after + 1
            except IntegrityError:
                # Another terminal created this month's counter first
                self.session.rollback()
                taken = _take()
                if taken is None:
                    raise
                return taken

        return self._write(_op, f"Failed to allocate transaction number for {prefix}")


def get_record_store() -> SqlRecordStore:
    """Store bound to the current app context's session."""
    return SqlRecordStore(db.session)
