# Overview: In-memory cart handed to the checkout; enforces stock availability.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from ..domain import ProductInfo
from .record_store import RecordStore


class CartError(Exception):
    """Raised for invalid cart operations."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}



def _parse_product_id(value) -> int | None:
    """Positive integer id, or a string of digits; anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip()) or None
    return None


@dataclass
class CartEntry:
    product: ProductInfo
    quantity: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.product.price_cents

    def to_dict(self) -> dict:
        return {
            "product_id": self.product.id,
            "product_name": self.product.name,
            "quantity": self.quantity,
            "unit_price_cents": self.product.price_cents,
            "line_total_cents": self.line_total_cents,
        }


@dataclass
class Cart:
    """
    Products and requested quantities for one register.

    A product normally appears once (add() merges), but the checkout also
    accepts carts built with repeated products; availability is always
    "stock minus what the rest of the cart already holds".
    """
    entries: list[CartEntry] = field(default_factory=list)

    @classmethod
    def from_items(cls, store: RecordStore, items: Iterable[dict]) -> "Cart":
        """
        Build a cart from [{"product_id": ..., "quantity": ...}] using
        current product data from the store.
        """
        requested = []
        for item in items:
            if not isinstance(item, dict):
                raise CartError("Each item must be an object", details={"item": item})
            product_id = _parse_product_id(item.get("product_id"))
            quantity = item.get("quantity")
            if product_id is None or not isinstance(quantity, int) or isinstance(quantity, bool):
                raise CartError("Each item needs product_id and an integer quantity", details={"item": item})
            requested.append((product_id, quantity))

        products = store.get_products(pid for pid, _ in requested)
        cart = cls()
        for product_id, quantity in requested:
            product = products.get(product_id)
            if product is None:
                raise CartError("Product not found", details={"product_id": product_id})
            if quantity <= 0:
                raise CartError("Quantity must be greater than 0", details={"product_id": product_id})
            cart.entries.append(CartEntry(product=product, quantity=quantity))
        return cart

    # -- queries -------------------------------------------------------------

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def total_cents(self) -> int:
        return sum(e.line_total_cents for e in self.entries)

    @property
    def item_count(self) -> int:
        return sum(e.quantity for e in self.entries)

    def find(self, product_id: int) -> CartEntry | None:
        for entry in self.entries:
            if entry.product.id == product_id:
                return entry
        return None

    def reserved_quantity(self, product_id: int, exclude: CartEntry | None = None) -> int:
        return sum(
            e.quantity for e in self.entries
            if e.product.id == product_id and e is not exclude
        )

    def available_quantity(self, product: ProductInfo, exclude: CartEntry | None = None) -> int:
        return product.stock - self.reserved_quantity(product.id, exclude=exclude)

    # -- mutations -----------------------------------------------------------

    def add(self, product: ProductInfo, quantity: int) -> CartEntry:
        if quantity <= 0:
            raise CartError("Quantity must be greater than 0")
        available = self.available_quantity(product)
        if quantity > available:
            raise CartError(
                f"Only {max(available, 0)} available in stock",
                details={"product_id": product.id, "available": max(available, 0)},
            )
        entry = self.find(product.id)
        if entry is None:
            entry = CartEntry(product=product, quantity=quantity)
            self.entries.append(entry)
        else:
            entry.quantity += quantity
        return entry

    def set_quantity(self, product_id: int, quantity: int) -> CartEntry:
        entry = self.find(product_id)
        if entry is None:
            raise CartError("Product is not in the cart", details={"product_id": product_id})
        if quantity <= 0:
            raise CartError("Quantity must be greater than 0")
        available = self.available_quantity(entry.product, exclude=entry)
        if quantity > available:
            raise CartError(
                f"Only {max(available, 0)} available in stock",
                details={"product_id": product_id, "available": max(available, 0)},
            )
        entry.quantity = quantity
        return entry

    def remove(self, product_id: int) -> None:
        self.entries = [e for e in self.entries if e.product.id != product_id]

    def clear(self) -> None:
        self.entries = []

    def to_dict(self) -> dict:
        return {
            "items": [e.to_dict() for e in self.entries],
            "item_count": self.item_count,
            "total_cents": self.total_cents,
        }
