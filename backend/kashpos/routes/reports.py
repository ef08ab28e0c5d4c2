# Overview: Sales report listing, transaction edits and archive export.

from flask import Blueprint, current_app, jsonify, request

from ..services import report_service
from ..services.earnings_service import ReportError
from ..services.record_store import FetchError, StoreError
from ..services.sql_store import get_record_store
from ..time_utils import business_date, parse_iso_date, parse_iso_datetime, range_bounds, utcnow


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _tz() -> str:
    return current_app.config["BUSINESS_TIMEZONE"]


@reports_bp.get("/transactions")
def transactions_route():
    """Transactions checked out between start and end (YYYY-MM-DD, default today)."""
    tz = _tz()
    try:
        today = business_date(utcnow(), tz)
        start_day = parse_iso_date(request.args.get("start")) or today
        end_day = parse_iso_date(request.args.get("end")) or start_day
    except ValueError:
        return jsonify({"error": "start and end must be YYYY-MM-DD"}), 400

    start, end = range_bounds(start_day, end_day, tz)
    try:
        transactions = report_service.load_transactions(get_record_store(), start, end)
        return jsonify({
            "transactions": [t.to_dict() for t in transactions],
            "count": len(transactions),
            "total_cents": sum(t.total_cents for t in transactions),
        }), 200
    except ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except FetchError as exc:
        current_app.logger.warning("Report fetch failed: %s", exc)
        return jsonify({"error": str(exc), "retryable": True}), 503


@reports_bp.patch("/transactions/<transaction_id>")
def update_transaction_route(transaction_id: str):
    """
    Edit payment_method, customer_type, order_type or reported_at.
    The change applies to every line of the transaction.
    """
    data = request.get_json(silent=True) or {}
    fields = dict(data)
    if "reported_at" in fields:
        try:
            fields["reported_at"] = parse_iso_datetime(fields["reported_at"])
        except (AttributeError, TypeError, ValueError):
            return jsonify({"error": "reported_at must be an ISO-8601 datetime"}), 400

    try:
        transaction = report_service.update_transaction(get_record_store(), transaction_id, fields)
        return jsonify({"transaction": transaction.to_dict()}), 200
    except report_service.TransactionNotFoundError as exc:
        return jsonify({"error": str(exc)}), 404
    except (ReportError, ValueError) as exc:
        return jsonify({"error": str(exc)}), 400
    except StoreError as exc:
        current_app.logger.exception("Failed to update transaction %s", transaction_id)
        return jsonify({"error": str(exc), "details": exc.details}), 503
    except Exception:
        current_app.logger.exception("Failed to update transaction %s", transaction_id)
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.post("/archive")
def archive_route():
    """
    Export the selected transactions to CSV, then delete them.

    Body: {"transaction_ids": ["..."]}
    A failed delete still returns 200 with the CSV and deletion.ok = false.
    """
    data = request.get_json(silent=True) or {}
    ids = data.get("transaction_ids")
    if not isinstance(ids, list) or not ids:
        return jsonify({"error": "transaction_ids must be a non-empty list"}), 400

    try:
        result = report_service.archive_and_export(get_record_store(), ids, tz_name=_tz())
        return jsonify(result.to_dict()), 200
    except report_service.ArchiveExportError as exc:
        current_app.logger.warning("Archive export failed: %s", exc)
        return jsonify({"error": str(exc), "details": exc.details, "deleted": False}), 409
    except ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to archive transactions")
        return jsonify({"error": "Internal server error"}), 500
