# Overview: Earnings rollups and month-to-date break-even for the dashboard.

from flask import Blueprint, current_app, jsonify, request

from ..services import settings_service
from ..services.breakeven_service import compute_break_even, compute_break_even_range
from ..services.earnings_service import ReportError, compute_range, compute_today
from ..services.record_store import FetchError
from ..services.sql_store import get_record_store
from ..time_utils import business_date, parse_iso_date, parse_month, to_utc_z, utcnow


earnings_bp = Blueprint("earnings", __name__, url_prefix="/api/earnings")


def _tz() -> str:
    return current_app.config["BUSINESS_TIMEZONE"]


@earnings_bp.get("/today")
def today_route():
    now = utcnow()
    try:
        summary = compute_today(get_record_store(), now, _tz())
        payload = summary.to_dict()
        payload["refreshed_at"] = to_utc_z(now)
        payload["refresh_seconds"] = current_app.config["LIVE_REFRESH_SECONDS"]
        return jsonify(payload), 200
    except FetchError as exc:
        current_app.logger.warning("Earnings fetch failed: %s", exc)
        return jsonify({"error": str(exc), "retryable": True}), 503


@earnings_bp.get("")
def range_route():
    """
    Earnings for business days start..end (YYYY-MM-DD, inclusive).
    Both default to today.
    """
    try:
        today = business_date(utcnow(), _tz())
        start_day = parse_iso_date(request.args.get("start")) or today
        end_day = parse_iso_date(request.args.get("end")) or start_day
    except ValueError:
        return jsonify({"error": "start and end must be YYYY-MM-DD"}), 400

    try:
        return jsonify(compute_range(get_record_store(), start_day, end_day, _tz())), 200
    except ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except FetchError as exc:
        current_app.logger.warning("Earnings fetch failed: %s", exc)
        return jsonify({"error": str(exc), "retryable": True}), 503


@earnings_bp.get("/break-even")
def break_even_route():
    """
    Month-to-date OPEX coverage.

    Query: month=YYYY-MM (default current), target_cents (default: sum of
    OPEX items), optional start/end for a day-by-day series.
    """
    tz = _tz()
    now = utcnow()
    try:
        month_arg = request.args.get("month")
        if month_arg:
            year, month = parse_month(month_arg)
        else:
            today = business_date(now, tz)
            year, month = today.year, today.month
        start_day = parse_iso_date(request.args.get("start"))
        end_day = parse_iso_date(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "month must be YYYY-MM and start/end YYYY-MM-DD"}), 400

    target = request.args.get("target_cents", type=int)
    if target is None:
        target = settings_service.get_opex_target_cents()

    store = get_record_store()
    try:
        status = compute_break_even(store, target, year, month, as_of=now, tz_name=tz)
        payload = status.to_dict(include_points=request.args.get("points", "false").lower() == "true")
        payload["month"] = f"{year:04d}-{month:02d}"
        payload["target_monthly_sales_cents"] = settings_service.get_target_monthly_sales_cents()
        if start_day or end_day:
            start_day = start_day or end_day
            end_day = end_day or start_day
            payload["daily"] = compute_break_even_range(store, target, start_day, end_day, tz)
        return jsonify(payload), 200
    except ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except FetchError as exc:
        current_app.logger.warning("Break-even fetch failed: %s", exc)
        return jsonify({"error": str(exc), "retryable": True}), 503
