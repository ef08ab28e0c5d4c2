from __future__ import annotations

from ..extensions import db
from ..domain import LineItem, OrderType
from ..time_utils import to_utc_z


class SaleLine(db.Model):
    """
    One product line of a checkout.

    SNAPSHOTS: product_name, unit_cost_cents and unit_price_cents are
    copied at sale time and do not follow later catalog edits or product
    deletion. line_total_cents is never recomputed.

    TIME FIELDS:
    - captured_at: when the checkout was persisted (immutable)
    - reported_at: which earnings period the sale counts toward; defaults to
      captured_at and may be moved from the reporting view
    """
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_lines_quantity_positive"),
        db.Index("ix_sale_lines_reported_cancelled", "reported_at", "cancelled"),
        db.Index("ix_sale_lines_captured_at", "captured_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Shared by all lines of one checkout
    transaction_id = db.Column(db.String(36), nullable=True, index=True)
    transaction_number = db.Column(db.String(16), nullable=True, index=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    product_name = db.Column(db.String(255), nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(64), nullable=False)
    customer_type = db.Column(db.String(64), nullable=False)
    order_type = db.Column(db.String(16), nullable=True)  # dine_in, takeout, NULL
    customer_payment_cents = db.Column(db.Integer, nullable=True)

    captured_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    reported_at = db.Column(db.DateTime(timezone=True), nullable=False)

    cancelled = db.Column(db.Boolean, nullable=False, default=False)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product = db.relationship("Product")

    @classmethod
    def from_item(cls, item: LineItem) -> "SaleLine":
        return cls(
            transaction_id=item.transaction_id,
            transaction_number=item.transaction_number,
            product_id=item.product_id,
            product_name=item.product_name,
            unit_cost_cents=item.unit_cost_cents,
            unit_price_cents=item.unit_price_cents,
            quantity=item.quantity,
            line_total_cents=item.line_total_cents,
            payment_method=item.payment_method,
            customer_type=item.customer_type,
            order_type=order_type_to_column(item.order_type),
            customer_payment_cents=item.customer_payment_cents,
            captured_at=item.captured_at,
            reported_at=item.reported_at or item.captured_at,
            cancelled=item.cancelled,
            cancelled_at=item.cancelled_at,
        )

    def to_item(self) -> LineItem:
        return LineItem(
            id=self.id,
            transaction_id=self.transaction_id,
            transaction_number=self.transaction_number,
            product_id=self.product_id,
            product_name=self.product_name,
            unit_cost_cents=self.unit_cost_cents,
            unit_price_cents=self.unit_price_cents,
            quantity=self.quantity,
            line_total_cents=self.line_total_cents,
            payment_method=self.payment_method,
            customer_type=self.customer_type,
            order_type=OrderType.parse(self.order_type),
            customer_payment_cents=self.customer_payment_cents,
            captured_at=self.captured_at,
            reported_at=self.reported_at or self.captured_at,
            cancelled=bool(self.cancelled),
            cancelled_at=self.cancelled_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "transaction_number": self.transaction_number,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "payment_method": self.payment_method,
            "customer_type": self.customer_type,
            "order_type": self.order_type,
            "captured_at": to_utc_z(self.captured_at),
            "reported_at": to_utc_z(self.reported_at),
            "cancelled": self.cancelled,
        }


def order_type_to_column(value: OrderType) -> str | None:
    return None if value == OrderType.NONE else value.value


class TransactionSequence(db.Model):
    """
    Atomic per-month transaction number counter.

    WHY: Scanning sale_lines for the highest number and adding one races
    between terminals. One row per YY-MM prefix is incremented in a single
    UPDATE instead.
    """
    __tablename__ = "transaction_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    prefix = db.Column(db.String(8), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "prefix": self.prefix,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
