from __future__ import annotations

from ..extensions import db
from ..domain import ProductInfo
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Sellable item.

    Catalog maintenance lives outside the core; checkout only reads prices
    and decrements stock_qty.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_qty >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    stock_qty = db.Column(db.Integer, nullable=False, default=0)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_info(self) -> ProductInfo:
        return ProductInfo(
            id=self.id,
            name=self.name,
            stock=self.stock_qty,
            cost_cents=self.cost_cents,
            price_cents=self.price_cents,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "stock_qty": self.stock_qty,
            "cost_cents": self.cost_cents,
            "price_cents": self.price_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PaymentMethod(db.Model):
    """Lookup: how the customer paid (Cash, Card, GCash...)."""
    __tablename__ = "payment_methods"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    color = db.Column(db.String(16), nullable=False, default="#3b82f6")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "color": self.color}


class CustomerType(db.Model):
    """Lookup: customer category (Regular, Student, Senior...)."""
    __tablename__ = "customer_types"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    color = db.Column(db.String(16), nullable=False, default="#22c55e")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "color": self.color}


class AppSetting(db.Model):
    """String key/value runtime flags (e.g. dine_in_takeout_enabled)."""
    __tablename__ = "app_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), nullable=False, unique=True)
    value = db.Column(db.String(255), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {"key": self.key, "value": self.value, "updated_at": to_utc_z(self.updated_at)}


class OpexItem(db.Model):
    """Recurring monthly operating expense (rent, electricity...)."""
    __tablename__ = "opex_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    monthly_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "monthly_cost_cents": self.monthly_cost_cents}


class OpexSettings(db.Model):
    """Single row: monthly sales goal shown next to the OPEX figures."""
    __tablename__ = "opex_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    target_monthly_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {"target_monthly_sales_cents": self.target_monthly_sales_cents}
