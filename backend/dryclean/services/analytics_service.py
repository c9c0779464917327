# Overview: Dashboard aggregates (financial summary, revenue/expense series, top customers).

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta

from sqlalchemy import func

from dryclean.extensions import db
from dryclean.models import Invoice, Expense, Customer
from dryclean.models.invoices import PAYMENT_PAID
from dryclean.time_utils import utcnow, period_start, start_of_day, to_utc_z
from dryclean.validation import NotFoundError
from dryclean.services.expense_service import category_totals


MAX_SERIES_POINTS = 366


class ReportError(Exception):
    """Raised when a report cannot be produced from the given parameters."""
    pass


def _window_dates(start: datetime | None, end: datetime | None) -> tuple[date | None, date | None]:
    return (start.date() if start else None, end.date() if end else None)


def _invoice_query(start: datetime | None, end: datetime | None):
    query = db.session.query(Invoice)
    if start is not None:
        query = query.filter(Invoice.created_at >= start)
    if end is not None:
        query = query.filter(Invoice.created_at <= end)
    return query


def financial_summary(
    *,
    period: str | None = "month",
    start: datetime | None = None,
    end: datetime | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Revenue, expenses and profit for a named period or an explicit range.

    Revenue is the billed total of invoices created in the window, split
    into paid and pending. Profit margin is a percentage of revenue.
    """
    now = now or utcnow()
    named = start is None and end is None
    if named:
        try:
            start = period_start(period or "month", now)
        except ValueError as e:
            raise ReportError(str(e))
        end = now
    if start and end and start > end:
        raise ReportError("start must be before end")

    invoices = _invoice_query(start, end).all()
    revenue_total = sum(inv.total for inv in invoices)
    revenue_paid = sum(inv.total for inv in invoices if inv.payment_status == PAYMENT_PAID)

    start_date, end_date = _window_dates(start, end)
    expense_query = db.session.query(
        func.coalesce(func.sum(Expense.amount), 0), func.count(Expense.id)
    )
    if start_date:
        expense_query = expense_query.filter(Expense.expense_date >= start_date)
    if end_date:
        expense_query = expense_query.filter(Expense.expense_date <= end_date)
    expense_total, expense_count = expense_query.one()
    expense_total = int(expense_total)

    profit = revenue_total - expense_total
    margin = round(profit / revenue_total * 100, 2) if revenue_total else 0.0

    return {
        "period": (period or "month") if named else None,
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "revenue": {
            "total": revenue_total,
            "paid": revenue_paid,
            "pending": revenue_total - revenue_paid,
            "invoiceCount": len(invoices),
            "discounts": sum(inv.discount for inv in invoices),
        },
        "expenses": {
            "total": expense_total,
            "count": int(expense_count),
            "byCategory": category_totals(start_date, end_date),
        },
        "profit": profit,
        "profitMargin": margin,
    }


def _check_points(count: int, name: str) -> int:
    if count < 1 or count > MAX_SERIES_POINTS:
        raise ReportError(f"{name} must be between 1 and {MAX_SERIES_POINTS}")
    return count


def _bucketed(start: datetime, key_fn) -> tuple[dict, dict]:
    revenue: dict = defaultdict(int)
    expenses: dict = defaultdict(int)
    for created_at, total in db.session.query(Invoice.created_at, Invoice.total).filter(
        Invoice.created_at >= start
    ).all():
        revenue[key_fn(created_at.date())] += total
    for expense_date, amount in db.session.query(Expense.expense_date, Expense.amount).filter(
        Expense.expense_date >= start.date()
    ).all():
        expenses[key_fn(expense_date)] += amount
    return revenue, expenses


def daily_series(days: int = 30, now: datetime | None = None) -> list[dict]:
    """One point per calendar day, oldest first, today included."""
    _check_points(days, "days")
    today = (now or utcnow()).date()
    first = today - timedelta(days=days - 1)
    revenue, expenses = _bucketed(start_of_day(first), lambda d: d)

    series = []
    for offset in range(days):
        day = first + timedelta(days=offset)
        series.append({
            "date": day.isoformat(),
            "dayLabel": f"{day.day} {day.strftime('%b')}",
            "monthLabel": day.strftime("%B %Y"),
            "revenue": revenue.get(day, 0),
            "expenses": expenses.get(day, 0),
        })
    return series


def weekly_series(weeks: int = 8, now: datetime | None = None) -> list[dict]:
    """One point per ISO week (Monday start), oldest first."""
    _check_points(weeks, "weeks")
    today = (now or utcnow()).date()
    this_monday = today - timedelta(days=today.weekday())
    first = this_monday - timedelta(weeks=weeks - 1)
    revenue, expenses = _bucketed(start_of_day(first), lambda d: d - timedelta(days=d.weekday()))

    series = []
    for offset in range(weeks):
        monday = first + timedelta(weeks=offset)
        iso_year, iso_week, _ = monday.isocalendar()
        series.append({
            "week": f"{iso_year}-W{iso_week:02d}",
            "weekStart": monday.isoformat(),
            "revenue": revenue.get(monday, 0),
            "expenses": expenses.get(monday, 0),
        })
    return series


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def monthly_series(months: int = 12, now: datetime | None = None) -> list[dict]:
    """One point per calendar month, oldest first, current month included."""
    _check_points(months, "months")
    today = (now or utcnow()).date()
    first_year, first_month = _shift_month(today.year, today.month, -(months - 1))
    revenue, expenses = _bucketed(
        datetime(first_year, first_month, 1), lambda d: (d.year, d.month)
    )

    series = []
    for offset in range(months):
        year, month = _shift_month(first_year, first_month, offset)
        label_date = date(year, month, 1)
        series.append({
            "month": label_date.strftime("%b %Y"),
            "monthKey": f"{year:04d}-{month:02d}",
            "revenue": revenue.get((year, month), 0),
            "expenses": expenses.get((year, month), 0),
        })
    return series


def top_customers(limit: int = 5) -> list[dict]:
    if limit < 1 or limit > 100:
        raise ReportError("limit must be between 1 and 100")

    total_spent = func.coalesce(func.sum(Invoice.total), 0)
    rows = db.session.query(
        Customer.id,
        Customer.name,
        Customer.phone,
        total_spent.label("total_spent"),
        func.count(Invoice.id).label("invoice_count"),
    ).join(Invoice, Invoice.customer_id == Customer.id).group_by(
        Customer.id, Customer.name, Customer.phone
    ).order_by(total_spent.desc(), Customer.id).limit(limit).all()

    return [
        {
            "customerId": row.id,
            "customerName": row.name,
            "customerPhone": row.phone,
            "totalSpent": int(row.total_spent),
            "invoiceCount": int(row.invoice_count),
        }
        for row in rows
    ]


def customer_spending(
    customer_id: int,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")

    invoices = _invoice_query(start, end).filter(
        Invoice.customer_id == customer_id
    ).order_by(Invoice.created_at.desc()).all()
    total = sum(inv.total for inv in invoices)
    paid = sum(inv.total for inv in invoices if inv.payment_status == PAYMENT_PAID)

    return {
        "customerId": customer.id,
        "customerName": customer.name,
        "start": to_utc_z(start),
        "end": to_utc_z(end),
        "totalSpent": total,
        "paid": paid,
        "pending": total - paid,
        "invoiceCount": len(invoices),
        "invoices": [inv.to_dict(include_lines=False) for inv in invoices],
    }
