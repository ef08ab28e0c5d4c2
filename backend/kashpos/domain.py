"""
Domain values shared by the checkout, earnings and reporting services.

Sale lines travel between the record store and the services as frozen
LineItem values. A Transaction is the aggregate of every line written by one
checkout; report edits are applied to the aggregate so every line of the
group changes together.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Iterable

from .time_utils import to_utc_z


class OrderType(str, enum.Enum):
    DINE_IN = "dine_in"
    TAKEOUT = "takeout"
    NONE = "none"

    @classmethod
    def parse(cls, value: Any) -> "OrderType":
        """None / "" / "none" -> NONE; otherwise must be a known value."""
        if value is None or value == "":
            return cls.NONE
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"unknown order type: {value!r}") from None

    @property
    def label(self) -> str:
        return {
            OrderType.DINE_IN: "Dine In",
            OrderType.TAKEOUT: "Takeout",
            OrderType.NONE: "N/A",
        }[self]


# Fields a sale line accepts after checkout, through the reporting view
EDITABLE_FIELDS = frozenset({"payment_method", "customer_type", "order_type", "reported_at"})

# Set only when a recent sale is voided
CANCEL_FIELDS = frozenset({"cancelled", "cancelled_at"})

MUTABLE_FIELDS = EDITABLE_FIELDS | CANCEL_FIELDS


@dataclass(frozen=True)
class ProductInfo:
    """Product as seen by the checkout: current stock and prices."""
    id: int
    name: str
    stock: int
    cost_cents: int
    price_cents: int


@dataclass(frozen=True)
class LineItem:
    """One persisted sale line. Cost, price and name are sale-time snapshots."""
    transaction_id: str | None
    transaction_number: str | None
    product_id: int | None
    product_name: str
    unit_cost_cents: int
    unit_price_cents: int
    quantity: int
    line_total_cents: int
    payment_method: str
    customer_type: str
    order_type: OrderType
    captured_at: datetime
    reported_at: datetime
    customer_payment_cents: int | None = None
    cancelled: bool = False
    cancelled_at: datetime | None = None
    id: int | None = None

    @property
    def item_cost_cents(self) -> int:
        return self.quantity * self.unit_cost_cents

    @property
    def gross_margin_cents(self) -> int:
        return self.line_total_cents - self.item_cost_cents

    @property
    def group_key(self) -> str:
        # Legacy rows written before transactions existed stand alone
        return self.transaction_id or str(self.id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "transaction_number": self.transaction_number,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_cost_cents": self.unit_cost_cents,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.line_total_cents,
            "payment_method": self.payment_method,
            "customer_type": self.customer_type,
            "order_type": self.order_type.value,
            "captured_at": to_utc_z(self.captured_at),
            "reported_at": to_utc_z(self.reported_at),
            "customer_payment_cents": self.customer_payment_cents,
            "cancelled": self.cancelled,
            "cancelled_at": to_utc_z(self.cancelled_at),
        }


def normalize_edit(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Validate a report edit and coerce its values.

    Raises ValueError for unknown fields or bad values.
    """
    if not fields:
        raise ValueError("no fields to update")
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"fields not editable: {', '.join(sorted(unknown))}")

    changes: dict[str, Any] = {}
    for key, value in fields.items():
        if key == "order_type":
            changes[key] = OrderType.parse(value)
        elif key == "reported_at":
            if not isinstance(value, datetime):
                raise ValueError("reported_at must be a datetime")
            changes[key] = value
        else:
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"{key} must be a non-empty string")
            changes[key] = value.strip()
    return changes


@dataclass
class Transaction:
    """
    The lines of one checkout, kept in capture order.

    Payment method, customer type, order type and report timestamp are shared
    by every line; edit() is the only way to change them.
    """
    id: str
    lines: list[LineItem] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.lines = sorted(self.lines, key=lambda l: (l.captured_at, l.id or 0))

    @classmethod
    def from_lines(cls, transaction_id: str, lines: Iterable[LineItem]) -> "Transaction":
        return cls(id=transaction_id, lines=list(lines))

    @property
    def _head(self) -> LineItem:
        if not self.lines:
            raise ValueError(f"transaction {self.id} has no lines")
        return self.lines[0]

    @property
    def number(self) -> str:
        return self._head.transaction_number or self.id[:8]

    @property
    def total_cents(self) -> int:
        return sum(l.line_total_cents for l in self.lines)

    @property
    def item_cost_cents(self) -> int:
        return sum(l.item_cost_cents for l in self.lines)

    @property
    def payment_method(self) -> str:
        return self._head.payment_method

    @property
    def customer_type(self) -> str:
        return self._head.customer_type

    @property
    def order_type(self) -> OrderType:
        return self._head.order_type

    @property
    def customer_payment_cents(self) -> int | None:
        return self._head.customer_payment_cents

    @property
    def captured_at(self) -> datetime:
        return min(l.captured_at for l in self.lines)

    @property
    def reported_at(self) -> datetime:
        return self._head.reported_at

    @property
    def line_ids(self) -> list[int]:
        return [l.id for l in self.lines if l.id is not None]

    @property
    def items_label(self) -> str:
        return "; ".join(f"{l.product_name} ({l.quantity}pcs)" for l in self.lines)

    def edit(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Apply a report edit to every line; returns the normalized changes."""
        changes = normalize_edit(fields)
        self.lines = [replace(l, **changes) for l in self.lines]
        return changes

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_number": self.number,
            "items": [l.to_dict() for l in self.lines],
            "items_label": self.items_label,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "customer_type": self.customer_type,
            "order_type": self.order_type.value,
            "customer_payment_cents": self.customer_payment_cents,
            "captured_at": to_utc_z(self.captured_at),
            "reported_at": to_utc_z(self.reported_at),
        }
