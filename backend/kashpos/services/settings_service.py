from __future__ import annotations

import re

from ..extensions import db
from ..models import AppSetting, CustomerType, OpexItem, OpexSettings, PaymentMethod
from .checkout_service import CheckoutCatalog


ORDER_TYPE_SETTING = "dine_in_takeout_enabled"

DEFAULT_SETTINGS = {
    ORDER_TYPE_SETTING: "false",
}

DEFAULT_PAYMENT_METHODS = [
    ("Cash", "#22c55e"),
    ("Card", "#3b82f6"),
    ("GCash", "#0ea5e9"),
]

DEFAULT_CUSTOMER_TYPES = [
    ("Regular", "#6366f1"),
    ("Student", "#f59e0b"),
    ("Senior", "#ec4899"),
]

COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


class SettingsError(ValueError):
    pass


class SettingsValidationError(SettingsError):
    pass


class SettingsNotFoundError(SettingsError):
    pass


# =============================================================================
# Lookups
# =============================================================================

def list_payment_methods() -> list[PaymentMethod]:
    return db.session.query(PaymentMethod).order_by(PaymentMethod.name.asc()).all()


def list_customer_types() -> list[CustomerType]:
    return db.session.query(CustomerType).order_by(CustomerType.name.asc()).all()


def _add_lookup(model, name: str, color: str):
    name = (name or "").strip()
    if not name:
        raise SettingsValidationError("name is required")
    if not COLOR_RE.match(color or ""):
        raise SettingsValidationError("color must be a hex value like #22c55e")
    if db.session.query(model).filter_by(name=name).first():
        raise SettingsValidationError(f"{name} already exists")
    row = model(name=name, color=color)
    db.session.add(row)
    db.session.commit()
    return row


def add_payment_method(name: str, color: str = "#3b82f6") -> PaymentMethod:
    return _add_lookup(PaymentMethod, name, color)


def add_customer_type(name: str, color: str = "#22c55e") -> CustomerType:
    return _add_lookup(CustomerType, name, color)


# =============================================================================
# Runtime flags
# =============================================================================

def get_setting(key: str) -> str | None:
    row = db.session.query(AppSetting).filter_by(key=key).first()
    if row is None:
        return DEFAULT_SETTINGS.get(key)
    return row.value


def set_setting(key: str, value) -> AppSetting:
    if isinstance(value, bool):
        value = "true" if value else "false"
    value = str(value)
    row = db.session.query(AppSetting).filter_by(key=key).first()
    if row is None:
        row = AppSetting(key=key, value=value)
        db.session.add(row)
    else:
        row.value = value
    db.session.commit()
    return row


def is_order_type_enabled() -> bool:
    return (get_setting(ORDER_TYPE_SETTING) or "").strip().lower() == "true"


# =============================================================================
# Operating expenses
# =============================================================================

def list_opex_items() -> list[OpexItem]:
    return db.session.query(OpexItem).order_by(OpexItem.id.asc()).all()


def add_opex_item(name: str, monthly_cost_cents: int) -> OpexItem:
    name = (name or "").strip()
    if not name:
        raise SettingsValidationError("name is required")
    if monthly_cost_cents < 0:
        raise SettingsValidationError("monthly cost cannot be negative")
    item = OpexItem(name=name, monthly_cost_cents=monthly_cost_cents)
    db.session.add(item)
    db.session.commit()
    return item


def delete_opex_item(item_id: int) -> None:
    item = db.session.query(OpexItem).filter_by(id=item_id).first()
    if item is None:
        raise SettingsNotFoundError("OPEX item not found")
    db.session.delete(item)
    db.session.commit()


def get_opex_target_cents() -> int:
    """Monthly OPEX the break-even tracker has to cover: sum of all items."""
    total = db.session.query(db.func.coalesce(db.func.sum(OpexItem.monthly_cost_cents), 0)).scalar()
    return int(total or 0)


def _opex_settings() -> OpexSettings:
    row = db.session.query(OpexSettings).order_by(OpexSettings.id.asc()).first()
    if row is None:
        row = OpexSettings(target_monthly_sales_cents=0)
        db.session.add(row)
        db.session.flush()
    return row


def get_target_monthly_sales_cents() -> int:
    row = db.session.query(OpexSettings).order_by(OpexSettings.id.asc()).first()
    return row.target_monthly_sales_cents if row else 0


def set_target_monthly_sales_cents(amount_cents: int) -> OpexSettings:
    if amount_cents < 0:
        raise SettingsValidationError("target cannot be negative")
    row = _opex_settings()
    row.target_monthly_sales_cents = amount_cents
    db.session.commit()
    return row


# =============================================================================
# Bootstrap
# =============================================================================

def seed_defaults() -> dict[str, int]:
    """Insert default lookups and flags that are missing. Idempotent."""
    created = {"payment_methods": 0, "customer_types": 0, "settings": 0}

    for model, defaults, key in (
        (PaymentMethod, DEFAULT_PAYMENT_METHODS, "payment_methods"),
        (CustomerType, DEFAULT_CUSTOMER_TYPES, "customer_types"),
    ):
        existing = {name for (name,) in db.session.query(model.name).all()}
        for name, color in defaults:
            if name not in existing:
                db.session.add(model(name=name, color=color))
                created[key] += 1

    existing_keys = {key for (key,) in db.session.query(AppSetting.key).all()}
    for key, value in DEFAULT_SETTINGS.items():
        if key not in existing_keys:
            db.session.add(AppSetting(key=key, value=value))
            created["settings"] += 1

    db.session.commit()
    return created


def build_checkout_catalog() -> CheckoutCatalog:
    return CheckoutCatalog(
        payment_methods=frozenset(p.name for p in list_payment_methods()),
        customer_types=frozenset(c.name for c in list_customer_types()),
        order_type_enabled=is_order_type_enabled(),
    )


def catalog_payload() -> dict:
    return {
        "payment_methods": [p.to_dict() for p in list_payment_methods()],
        "customer_types": [c.to_dict() for c in list_customer_types()],
        "order_type_enabled": is_order_type_enabled(),
        "order_types": ["dine_in", "takeout"],
    }
