"""
Checkout: turn a cart into sale lines, a transaction number and stock moves.

States: IDLE -> VALIDATING -> ALLOCATING -> PERSISTING -> ADJUSTING_STOCK
        -> COMPLETED | FAILED

Consistency:
- Validation failures abort before anything is written.
- All sale lines of a checkout are inserted in one unit of work; that commit
  is the point after which the sale exists.
- Stock is decremented per line after the commit, each decrement atomic and
  floored at zero. A failed decrement is logged and reported in
  CheckoutResult.stock_failures; the committed sale is NOT rolled back.
- Resubmitting with the same transaction_id returns the already written sale
  instead of writing it twice.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable

from ..domain import LineItem, OrderType
from ..time_utils import to_utc_z, utcnow
from .cart_service import Cart
from .recent_sales import RecentSale, RecentSaleRegistry
from .record_store import RecordStore, StoreError
from .sequence_service import TransactionNumberAllocator

logger = logging.getLogger(__name__)


class CheckoutState(str, enum.Enum):
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    ALLOCATING = "ALLOCATING"
    PERSISTING = "PERSISTING"
    ADJUSTING_STOCK = "ADJUSTING_STOCK"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class CheckoutError(Exception):
    """Raised for checkout errors."""
    code = "CHECKOUT_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}
        self.state = CheckoutState.FAILED
        self.failed_during: CheckoutState | None = None


class EmptyCartError(CheckoutError):
    code = "EMPTY_CART"


class MissingSelectionError(CheckoutError):
    code = "MISSING_SELECTION"


class InsufficientPaymentError(CheckoutError):
    code = "INSUFFICIENT_PAYMENT"


class InsufficientStockError(CheckoutError):
    code = "INSUFFICIENT_STOCK"


class CheckoutPersistError(CheckoutError):
    """Allocation or the sale-line insert failed; nothing was recorded."""
    code = "PERSIST_FAILED"


@dataclass(frozen=True)
class CheckoutCatalog:
    """Read-only lookups the checkout validates against."""
    payment_methods: frozenset[str] = frozenset()
    customer_types: frozenset[str] = frozenset()
    order_type_enabled: bool = False


@dataclass
class CheckoutRequest:
    cart: Cart
    payment_method: str | None
    customer_type: str | None
    order_type: OrderType | str | None
    payment_amount_cents: int
    # Idempotency key; generated when omitted
    transaction_id: str | None = None


@dataclass
class StockFailure:
    line_id: int | None
    product_id: int | None
    product_name: str
    quantity: int
    error: str

    def to_dict(self) -> dict:
        return {
            "line_id": self.line_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "error": self.error,
        }


@dataclass
class CheckoutResult:
    transaction_id: str
    transaction_number: str
    lines: list[LineItem]
    payment_amount_cents: int
    state: CheckoutState = CheckoutState.COMPLETED
    stock_failures: list[StockFailure] = field(default_factory=list)
    recent_sale: RecentSale | None = None
    replayed: bool = False

    @property
    def total_cents(self) -> int:
        return sum(l.line_total_cents for l in self.lines)

    @property
    def change_cents(self) -> int:
        return self.payment_amount_cents - self.total_cents

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "transaction_number": self.transaction_number,
            "state": self.state.value,
            "lines": [l.to_dict() for l in self.lines],
            "total_cents": self.total_cents,
            "payment_amount_cents": self.payment_amount_cents,
            "change_cents": self.change_cents,
            "stock_failures": [f.to_dict() for f in self.stock_failures],
            "void_expires_at": to_utc_z(self.recent_sale.expires_at) if self.recent_sale else None,
            "replayed": self.replayed,
        }


class CheckoutProcessor:
    """
    Runs checkouts against a RecordStore.

    Holds no cart or selection state of its own; everything a checkout needs
    arrives in the CheckoutRequest.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        catalog: CheckoutCatalog | None = None,
        allocator: TransactionNumberAllocator | None = None,
        recent_sales: RecentSaleRegistry | None = None,
        tz_name: str = "UTC",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.catalog = catalog or CheckoutCatalog()
        self.allocator = allocator or TransactionNumberAllocator(store, tz_name=tz_name, clock=clock)
        self.recent_sales = recent_sales
        self.clock = clock
        self.state = CheckoutState.IDLE

    def _enter(self, state: CheckoutState, transaction_id: str | None = None) -> None:
        logger.debug("checkout %s: %s -> %s", transaction_id or "-", self.state.value, state.value)
        self.state = state

    def _fail(self, exc: CheckoutError) -> CheckoutError:
        exc.failed_during = self.state
        self._enter(CheckoutState.FAILED)
        return exc

    # -- validation ----------------------------------------------------------

    def _validate(self, request: CheckoutRequest) -> OrderType:
        cart = request.cart
        if cart.is_empty:
            raise EmptyCartError("Cart is empty")

        for name in ("payment_method", "customer_type"):
            value = getattr(request, name)
            if value is not None and not isinstance(value, str):
                raise MissingSelectionError(f"{name} must be text", details={name: value})

        missing = []
        if not (request.payment_method or "").strip():
            missing.append("payment_method")
        if not (request.customer_type or "").strip():
            missing.append("customer_type")

        order_type = OrderType.NONE
        if self.catalog.order_type_enabled:
            try:
                order_type = OrderType.parse(request.order_type)
            except ValueError:
                raise MissingSelectionError(
                    "Unknown order type", details={"order_type": request.order_type}
                ) from None
            if order_type == OrderType.NONE:
                missing.append("order_type")

        if missing:
            raise MissingSelectionError("Missing selection", details={"missing": missing})

        if self.catalog.payment_methods and request.payment_method not in self.catalog.payment_methods:
            raise MissingSelectionError(
                "Unknown payment method", details={"payment_method": request.payment_method}
            )
        if self.catalog.customer_types and request.customer_type not in self.catalog.customer_types:
            raise MissingSelectionError(
                "Unknown customer type", details={"customer_type": request.customer_type}
            )

        total = cart.total_cents
        if request.payment_amount_cents < total:
            raise InsufficientPaymentError(
                "Payment is less than the cart total",
                details={"total_cents": total, "payment_amount_cents": request.payment_amount_cents},
            )

        self._validate_stock(cart)
        return order_type

    def _validate_stock(self, cart: Cart) -> None:
        # Re-read stock: the cart's product data may be minutes old
        current = self.store.get_products(e.product.id for e in cart.entries)

        insufficient = []
        reserved: dict[int, int] = {}
        for entry in cart.entries:
            product = current.get(entry.product.id)
            stock = product.stock if product else 0
            available = stock - reserved.get(entry.product.id, 0)
            if entry.quantity > available:
                insufficient.append({
                    "product_id": entry.product.id,
                    "product_name": entry.product.name,
                    "requested_quantity": entry.quantity,
                    "available": max(available, 0),
                })
            reserved[entry.product.id] = reserved.get(entry.product.id, 0) + entry.quantity

        if insufficient:
            raise InsufficientStockError("Insufficient stock", details={"items": insufficient})

    # -- run -----------------------------------------------------------------

    def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        self.state = CheckoutState.IDLE

        if request.transaction_id:
            existing = self.store.get_transaction_lines([request.transaction_id])
            if existing:
                return self._replay(request, existing)

        self._enter(CheckoutState.VALIDATING, request.transaction_id)
        try:
            order_type = self._validate(request)
        except CheckoutError as exc:
            raise self._fail(exc)

        transaction_id = request.transaction_id or uuid.uuid4().hex
        self._enter(CheckoutState.ALLOCATING, transaction_id)
        try:
            transaction_number = self.allocator.allocate()
        except StoreError as exc:
            raise self._fail(CheckoutPersistError(
                "Could not allocate a transaction number", details={"error": str(exc)}
            )) from exc

        self._enter(CheckoutState.PERSISTING, transaction_id)
        persisted_at = self.clock()
        lines = [
            LineItem(
                transaction_id=transaction_id,
                transaction_number=transaction_number,
                product_id=entry.product.id,
                product_name=entry.product.name,
                unit_cost_cents=entry.product.cost_cents,
                unit_price_cents=entry.product.price_cents,
                quantity=entry.quantity,
                line_total_cents=entry.line_total_cents,
                payment_method=request.payment_method.strip(),
                customer_type=request.customer_type.strip(),
                order_type=order_type,
                captured_at=persisted_at,
                reported_at=persisted_at,
                customer_payment_cents=request.payment_amount_cents,
            )
            for entry in request.cart.entries
        ]
        try:
            with self.store.atomic():
                ids = self.store.insert_sale_lines(lines)
        except StoreError as exc:
            logger.exception("Failed to persist sale %s", transaction_number)
            raise self._fail(CheckoutPersistError(
                "Sale could not be saved", details={"transaction_number": transaction_number}
            )) from exc
        lines = [replace(line, id=line_id) for line, line_id in zip(lines, ids)]

        self._enter(CheckoutState.ADJUSTING_STOCK, transaction_id)
        failures = self._adjust_stock(transaction_number, lines)

        result = CheckoutResult(
            transaction_id=transaction_id,
            transaction_number=transaction_number,
            lines=lines,
            payment_amount_cents=request.payment_amount_cents,
            stock_failures=failures,
        )
        if self.recent_sales is not None:
            result.recent_sale = self.recent_sales.register(
                transaction_id, transaction_number, lines,
                not_decremented=[f.line_id for f in failures],
            )

        request.cart.clear()
        self._enter(CheckoutState.COMPLETED, transaction_id)
        result.state = self.state
        logger.info("Sale %s completed (%d lines, %d cents)",
                    transaction_number, len(lines), result.total_cents)
        return result

    def _adjust_stock(self, transaction_number: str, lines: list[LineItem]) -> list[StockFailure]:
        failures = []
        for line in lines:
            try:
                self.store.decrement_stock(line.product_id, line.quantity)
            except StoreError as exc:
                logger.exception(
                    "Sale %s recorded but stock for product %s was not decremented by %d",
                    transaction_number, line.product_id, line.quantity,
                )
                failures.append(StockFailure(
                    line_id=line.id,
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=line.quantity,
                    error=str(exc),
                ))
        return failures

    def _replay(self, request: CheckoutRequest, existing: list[LineItem]) -> CheckoutResult:
        head = existing[0]
        logger.info("Checkout %s already recorded as %s; returning it", head.transaction_id, head.transaction_number)
        request.cart.clear()
        self.state = CheckoutState.COMPLETED
        return CheckoutResult(
            transaction_id=head.transaction_id,
            transaction_number=head.transaction_number,
            lines=existing,
            payment_amount_cents=head.customer_payment_cents or request.payment_amount_cents,
            replayed=True,
        )


