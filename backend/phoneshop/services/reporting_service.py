# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from phoneshop.extensions import db
from phoneshop.models import (
    Sale,
    Purchase,
    Phone,
    Repair,
    PhoneStatus,
    RepairStatus,
    PaymentType,
)
from phoneshop.services.payment_service import OPEN_STATUSES, PAYMENT_STATUS_PAID
from phoneshop.time_utils import parse_iso_datetime, utcnow, to_utc_z, start_of_day
from phoneshop.validation import ZERO, to_money


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ReportError("start and end must be ISO-8601 dates")
    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("start must not be after end")
    return start_dt, end_dt


def _in_range(query, column, start_dt, end_dt):
    if start_dt:
        query = query.filter(column >= start_dt)
    if end_dt:
        query = query.filter(column <= end_dt)
    return query


def _money(value: Decimal) -> str:
    return f"{to_money(value):.2f}"


def _margin(profit: Decimal, revenue: Decimal) -> str:
    if revenue <= 0:
        return "0.00"
    return _money(profit / revenue * 100)


def _receivables() -> Decimal:
    open_sales = db.session.query(Sale).filter(
        Sale.is_active.is_(True),
        Sale.payment_status.in_(OPEN_STATUSES),
    ).all()
    return sum((to_money(s.sale_price) - to_money(s.paid_amount) for s in open_sales), ZERO)


def _payables() -> Decimal:
    open_purchases = db.session.query(Purchase).filter(
        Purchase.is_active.is_(True),
        Purchase.payment_status.in_(OPEN_STATUSES),
    ).all()
    return sum((to_money(p.total_amount) - to_money(p.paid_amount) for p in open_purchases), ZERO)


def _phone_counts() -> dict:
    counts = {status: 0 for status in sorted(PhoneStatus.ALL)}
    for (status,) in db.session.query(Phone.status).filter(Phone.is_active.is_(True)).all():
        counts[status] = counts.get(status, 0) + 1
    return counts


def _sales_summary(sales: list[Sale]) -> dict:
    revenue = sum((to_money(s.sale_price) for s in sales), ZERO)
    profit = sum((to_money(s.profit) for s in sales), ZERO)
    return {"count": len(sales), "revenue": _money(revenue), "profit": _money(profit)}


def dashboard() -> dict:
    """Counters for the landing screen: today, last 7 days, this month."""
    now = utcnow()
    today = start_of_day(now)
    week_start = now - timedelta(days=7)
    month_start = today.replace(day=1)

    def sales_since(since: datetime) -> list[Sale]:
        return db.session.query(Sale).filter(Sale.is_active.is_(True), Sale.sale_date >= since).all()

    today_sales = _sales_summary(sales_since(today))
    week_sales = _sales_summary(sales_since(week_start))
    month_sales = _sales_summary(sales_since(month_start))

    phones = _phone_counts()

    repairs = db.session.query(Repair).filter(Repair.is_active.is_(True))
    completed = repairs.filter(Repair.status == RepairStatus.COMPLETED)

    return {
        "sales": {
            "today": today_sales["count"],
            "this_week": week_sales["count"],
            "this_month": month_sales["count"],
            "today_revenue": today_sales["revenue"],
            "week_revenue": week_sales["revenue"],
            "month_revenue": month_sales["revenue"],
        },
        "inventory": {
            "total_phones": sum(phones.values()),
            "in_stock": phones[PhoneStatus.IN_STOCK],
            "in_repair": phones[PhoneStatus.IN_REPAIR],
            "ready_for_sale": phones[PhoneStatus.READY_FOR_SALE],
            "sold": phones[PhoneStatus.SOLD],
            "available": phones[PhoneStatus.IN_STOCK] + phones[PhoneStatus.READY_FOR_SALE],
        },
        "financial": {
            "today_profit": today_sales["profit"],
            "week_profit": week_sales["profit"],
            "month_profit": month_sales["profit"],
            "receivables": _money(_receivables()),
            "payables": _money(_payables()),
        },
        "repairs": {
            "pending": repairs.filter(Repair.status == RepairStatus.PENDING).count(),
            "in_progress": repairs.filter(Repair.status == RepairStatus.IN_PROGRESS).count(),
            "completed_today": completed.filter(Repair.completion_date >= today).count(),
            "completed_this_week": completed.filter(Repair.completion_date >= week_start).count(),
        },
        "generated_at": to_utc_z(now),
    }


def financial_summary(*, start: str | None = None, end: str | None = None) -> dict:
    """
    Revenue vs. expenses over an optional date range.

    Revenue is sale prices; expenses are purchase totals plus repair costs
    (by purchase/repair start date). Receivables, payables and inventory
    value are point-in-time and ignore the range.
    """
    start_dt, end_dt = _parse_range(start, end)

    sales = _in_range(db.session.query(Sale).filter(Sale.is_active.is_(True)), Sale.sale_date, start_dt, end_dt).all()
    purchases = _in_range(
        db.session.query(Purchase).filter(Purchase.is_active.is_(True)), Purchase.purchase_date, start_dt, end_dt
    ).all()
    repairs = _in_range(
        db.session.query(Repair).filter(Repair.is_active.is_(True)), Repair.start_date, start_dt, end_dt
    ).all()

    revenue = sum((to_money(s.sale_price) for s in sales), ZERO)
    purchase_expenses = sum((to_money(p.total_amount) for p in purchases), ZERO)
    repair_expenses = sum((to_money(r.repair_cost) for r in repairs), ZERO)
    expenses = purchase_expenses + repair_expenses
    net_profit = revenue - expenses

    available = db.session.query(Phone).filter(
        Phone.is_active.is_(True),
        Phone.status.in_(PhoneStatus.SELLABLE),
    ).all()
    inventory_value = sum((to_money(p.total_cost) for p in available), ZERO)

    return {
        "total_revenue": _money(revenue),
        "purchase_expenses": _money(purchase_expenses),
        "repair_expenses": _money(repair_expenses),
        "total_expenses": _money(expenses),
        "net_profit": _money(net_profit),
        "profit_margin": _margin(net_profit, revenue),
        "total_receivables": _money(_receivables()),
        "total_payables": _money(_payables()),
        "inventory_value": _money(inventory_value),
        "inventory_count": len(available),
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
    }


def sales_report(*, start: str | None = None, end: str | None = None, customer_id: int | None = None) -> dict:
    start_dt, end_dt = _parse_range(start, end)

    query = db.session.query(Sale).filter(Sale.is_active.is_(True))
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    sales = _in_range(query, Sale.sale_date, start_dt, end_dt).all()

    revenue = sum((to_money(s.sale_price) for s in sales), ZERO)
    cost = sum((to_money(s.phone.total_cost) for s in sales if s.phone), ZERO)
    profit = sum((to_money(s.profit) for s in sales), ZERO)

    return {
        "total_sales": len(sales),
        "total_revenue": _money(revenue),
        "total_cost": _money(cost),
        "total_profit": _money(profit),
        "profit_margin": _margin(profit, revenue),
        "cash_sales": sum(1 for s in sales if s.payment_type == PaymentType.CASH),
        "credit_sales": sum(1 for s in sales if s.payment_type == PaymentType.PAY_LATER),
        "paid_sales": sum(1 for s in sales if s.payment_status == PAYMENT_STATUS_PAID),
        "unpaid_sales": sum(1 for s in sales if s.payment_status in OPEN_STATUSES),
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
    }


def purchase_report(*, start: str | None = None, end: str | None = None, supplier_id: int | None = None) -> dict:
    start_dt, end_dt = _parse_range(start, end)

    query = db.session.query(Purchase).filter(Purchase.is_active.is_(True))
    if supplier_id is not None:
        query = query.filter(Purchase.supplier_id == supplier_id)
    purchases = _in_range(query, Purchase.purchase_date, start_dt, end_dt).all()

    total = sum((to_money(p.total_amount) for p in purchases), ZERO)
    paid = sum((to_money(p.paid_amount) for p in purchases), ZERO)

    return {
        "total_purchases": len(purchases),
        "total_phones": sum(len([ph for ph in p.phones if ph.is_active]) for p in purchases),
        "total_amount": _money(total),
        "total_paid": _money(paid),
        "total_outstanding": _money(total - paid),
        "paid_purchases": sum(1 for p in purchases if p.payment_status == PAYMENT_STATUS_PAID),
        "unpaid_purchases": sum(1 for p in purchases if p.payment_status in OPEN_STATUSES),
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
    }


def repair_report(*, start: str | None = None, end: str | None = None) -> dict:
    start_dt, end_dt = _parse_range(start, end)

    repairs = _in_range(
        db.session.query(Repair).filter(Repair.is_active.is_(True)), Repair.start_date, start_dt, end_dt
    ).all()

    by_status = {status: 0 for status in sorted(RepairStatus.ALL)}
    for r in repairs:
        by_status[r.status] = by_status.get(r.status, 0) + 1

    completed = [r for r in repairs if r.status == RepairStatus.COMPLETED]
    completed_cost = sum((to_money(r.repair_cost) for r in completed), ZERO)
    average = completed_cost / len(completed) if completed else ZERO

    return {
        "total_repairs": len(repairs),
        "by_status": by_status,
        "total_cost": _money(sum((to_money(r.repair_cost) for r in repairs), ZERO)),
        "completed_cost": _money(completed_cost),
        "average_completed_cost": _money(average),
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
    }
