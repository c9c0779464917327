# Overview: Flask API routes for dashboard analytics; parses query parameters and returns JSON.

from flask import Blueprint, request

from ..services import analytics_service
from ..validation import parse_datetime_arg, parse_int_arg
from ..decorators import require_auth, require_capability

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


def _range_args():
    return (
        parse_datetime_arg(request.args.get("start"), "start"),
        parse_datetime_arg(request.args.get("end"), "end", end_of_day=True),
    )


@analytics_bp.get("/financial")
@require_auth
@require_capability("VIEW_DASHBOARD")
def financial_route():
    """
    Revenue, expenses and profit.

    Query params:
    - period: day | week | month | year | all (default month)
    - start, end: ISO-8601 (optional) - explicit range, overrides period
    """
    start, end = _range_args()
    return analytics_service.financial_summary(
        period=request.args.get("period", "month"),
        start=start,
        end=end,
    )


@analytics_bp.get("/daily")
@require_auth
@require_capability("VIEW_DASHBOARD")
def daily_route():
    days = parse_int_arg(request.args.get("days"), "days", 30)
    return {"series": analytics_service.daily_series(days)}


@analytics_bp.get("/weekly")
@require_auth
@require_capability("VIEW_DASHBOARD")
def weekly_route():
    weeks = parse_int_arg(request.args.get("weeks"), "weeks", 8)
    return {"series": analytics_service.weekly_series(weeks)}


@analytics_bp.get("/monthly")
@require_auth
@require_capability("VIEW_DASHBOARD")
def monthly_route():
    months = parse_int_arg(request.args.get("months"), "months", 12)
    return {"series": analytics_service.monthly_series(months)}


@analytics_bp.get("/top-customers")
@require_auth
@require_capability("VIEW_DASHBOARD")
def top_customers_route():
    limit = parse_int_arg(request.args.get("limit"), "limit", 5)
    return {"customers": analytics_service.top_customers(limit)}


@analytics_bp.get("/customers/<int:customer_id>/expenses")
@require_auth
@require_capability("VIEW_DASHBOARD")
def customer_spending_route(customer_id: int):
    """Total spend of one customer, optionally limited to start/end."""
    start, end = _range_args()
    return analytics_service.customer_spending(customer_id, start=start, end=end)
