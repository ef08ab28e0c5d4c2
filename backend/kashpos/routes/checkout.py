# Overview: Register checkout and the recent-sale void window.

from flask import Blueprint, current_app, jsonify, request

from ..services import settings_service
from ..services.cart_service import Cart, CartError
from ..services.checkout_service import (
    CheckoutError,
    CheckoutPersistError,
    CheckoutProcessor,
    CheckoutRequest,
    InsufficientStockError,
)
from ..services.recent_sales import RecentSaleError
from ..services.record_store import StoreError
from ..services.sql_store import get_record_store


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


def _recent_sales():
    return current_app.extensions["kashpos.recent_sales"]


def _checkout_error(exc: CheckoutError):
    body = {
        "error": str(exc),
        "code": exc.code,
        "details": exc.details,
        "state": exc.state.value,
        "failed_during": exc.failed_during.value if exc.failed_during else None,
    }
    if isinstance(exc, InsufficientStockError):
        return jsonify(body), 409
    if isinstance(exc, CheckoutPersistError):
        return jsonify(body), 503
    return jsonify(body), 400


@checkout_bp.post("")
def checkout_route():
    """
    Complete a sale.

    Body:
    {
        "items": [{"product_id": 1, "quantity": 2}],
        "payment_method": "Cash",
        "customer_type": "Regular",
        "order_type": "dine_in",            # only when enabled
        "payment_amount_cents": 50000,
        "transaction_id": "optional idempotency key"
    }
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    amount = data.get("payment_amount_cents")
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        return jsonify({"error": "payment_amount_cents must be a non-negative integer"}), 400
    items = data.get("items") or []
    if not isinstance(items, list):
        return jsonify({"error": "items must be a list"}), 400
    transaction_id = data.get("transaction_id")
    if transaction_id is not None and not isinstance(transaction_id, str):
        return jsonify({"error": "transaction_id must be a string"}), 400

    store = get_record_store()
    try:
        cart = Cart.from_items(store, items)
        processor = CheckoutProcessor(
            store,
            catalog=settings_service.build_checkout_catalog(),
            recent_sales=_recent_sales(),
            tz_name=current_app.config["BUSINESS_TIMEZONE"],
        )
        result = processor.checkout(CheckoutRequest(
            cart=cart,
            payment_method=data.get("payment_method"),
            customer_type=data.get("customer_type"),
            order_type=data.get("order_type"),
            payment_amount_cents=amount,
            transaction_id=transaction_id,
        ))
        return jsonify({"sale": result.to_dict()}), 200 if result.replayed else 201

    except CartError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except CheckoutError as e:
        return _checkout_error(e)
    except StoreError as e:
        current_app.logger.exception("Checkout failed reading from the store")
        return jsonify({"error": str(e), "retryable": e.retryable}), 503
    except Exception:
        current_app.logger.exception("Failed to complete checkout")
        return jsonify({"error": "Internal server error"}), 500


@checkout_bp.get("/recent")
def recent_sales_route():
    return jsonify({"recent_sales": [s.to_dict() for s in _recent_sales().active()]}), 200


@checkout_bp.post("/recent/<transaction_id>/void")
def void_recent_sale_route(transaction_id: str):
    """Cancel a sale completed within the void window and restore its stock."""
    try:
        entry = _recent_sales().void(get_record_store(), transaction_id)
        return jsonify({"voided": entry.to_dict()}), 200
    except RecentSaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 410
    except StoreError as e:
        current_app.logger.exception("Failed to void sale %s", transaction_id)
        return jsonify({"error": str(e), "details": e.details}), 503
    except Exception:
        current_app.logger.exception("Failed to void sale %s", transaction_id)
        return jsonify({"error": "Internal server error"}), 500
