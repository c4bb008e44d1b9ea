"""
Sales reporting service.
Parametrized, read-only aggregations over sales and their lines.
"""
from collections import OrderedDict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, case, distinct, or_, cast, String
from sqlalchemy.orm import Session

from sales_api.exceptions import ValidationError
from sales_api.models import Client, Product, Sale, SaleLine, SaleStatus
from sales_api.utils.formatters import to_money
from sales_api.utils.validators import (
    require_int, validate_pagination, validate_date_range, date_bounds, page_count
)

PERIODS = ('day', 'week', 'month')


def _date_filters(start_dt: Optional[datetime], end_dt: Optional[datetime]) -> list:
    filters = []
    if start_dt:
        filters.append(Sale.sale_date >= start_dt)
    if end_dt:
        filters.append(Sale.sale_date < end_dt)
    return filters


def _sale_row(row) -> dict:
    return {
        'sale_id': row.id,
        'total': to_money(row.total),
        'status': row.status.value,
        'sale_date': row.sale_date,
        'client_name': row.client_name,
        'client_email': row.client_email,
    }


def _sale_rows_query(session: Session):
    return session.query(
        Sale.id,
        Sale.total,
        Sale.status,
        Sale.sale_date,
        Client.name.label('client_name'),
        Client.email.label('client_email')
    ).join(Client, Client.id == Sale.client_id)


def _escape_like(term: str) -> str:
    return term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def sales_summary(session: Session) -> dict:
    """
    General statistics over every sale.

    Returns:
        dict with total_sales, unique_clients, total_revenue, avg_ticket,
        first_sale, last_sale and per-status counts
    """
    row = session.query(
        func.count(Sale.id).label('total_sales'),
        func.count(distinct(Sale.client_id)).label('unique_clients'),
        func.sum(Sale.total).label('total_revenue'),
        func.avg(Sale.total).label('avg_ticket'),
        func.min(Sale.sale_date).label('first_sale'),
        func.max(Sale.sale_date).label('last_sale'),
        func.count(case((Sale.status == SaleStatus.COMPLETED, 1))).label('completed_sales'),
        func.count(case((Sale.status == SaleStatus.PENDING, 1))).label('pending_sales'),
        func.count(case((Sale.status == SaleStatus.CANCELLED, 1))).label('cancelled_sales'),
    ).one()

    return {
        'total_sales': row.total_sales or 0,
        'unique_clients': row.unique_clients or 0,
        'total_revenue': to_money(row.total_revenue),
        'avg_ticket': to_money(row.avg_ticket),
        'first_sale': row.first_sale,
        'last_sale': row.last_sale,
        'completed_sales': row.completed_sales or 0,
        'pending_sales': row.pending_sales or 0,
        'cancelled_sales': row.cancelled_sales or 0,
    }


def sales_by_date_range(session: Session, start_date=None, end_date=None,
                        page=1, limit=50) -> dict:
    """Sales inside an inclusive date range, most recent first, paginated."""
    page, limit = validate_pagination(page, limit)
    start, end = validate_date_range(start_date, end_date)
    filters = _date_filters(*date_bounds(start, end))

    total = session.query(func.count(Sale.id)).filter(*filters).scalar() or 0
    rows = (
        _sale_rows_query(session)
        .filter(*filters)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )

    return {
        'sales': [_sale_row(row) for row in rows],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'pages': page_count(total, limit),
        },
        'filters': {'start_date': start, 'end_date': end},
    }


def top_products(session: Session, limit=10, min_sales=1) -> dict:
    """Best-selling products by revenue among completed sales."""
    limit = require_int(limit, 'limit', minimum=1, maximum=20)
    min_sales = require_int(min_sales, 'min_sales', minimum=0)

    units_sold = func.sum(SaleLine.quantity)
    revenue = func.sum(SaleLine.subtotal)
    rows = (
        session.query(
            Product.id,
            Product.name,
            Product.price,
            units_sold.label('units_sold'),
            revenue.label('revenue_generated'),
            func.count(distinct(SaleLine.sale_id)).label('times_sold')
        )
        .join(SaleLine, SaleLine.product_id == Product.id)
        .join(Sale, Sale.id == SaleLine.sale_id)
        .filter(Sale.status == SaleStatus.COMPLETED)
        .group_by(Product.id, Product.name, Product.price)
        .having(units_sold >= min_sales)
        .order_by(revenue.desc(), Product.id)
        .limit(limit)
        .all()
    )

    return {
        'top_products': [
            {
                'product_id': row.id,
                'product_name': row.name,
                'product_price': to_money(row.price),
                'units_sold': int(row.units_sold or 0),
                'revenue_generated': to_money(row.revenue_generated),
                'times_sold': row.times_sold,
            }
            for row in rows
        ],
        'criteria': {'limit': limit, 'min_sales': min_sales},
    }


def _period_key(moment: datetime, period: str) -> str:
    day = moment.date()
    if period == 'week':
        return (day - timedelta(days=day.weekday())).isoformat()
    if period == 'month':
        return day.strftime('%Y-%m')
    return day.isoformat()


def revenue_by_period(session: Session, period='day', start_date=None, end_date=None) -> dict:
    """
    Completed-sale revenue bucketed by day, week (starting Monday) or month,
    in chronological order.
    """
    if period not in PERIODS:
        raise ValidationError(f'period debe ser uno de: {", ".join(PERIODS)}')
    start, end = validate_date_range(start_date, end_date)
    filters = _date_filters(*date_bounds(start, end))

    rows = (
        session.query(Sale.sale_date, Sale.total)
        .filter(Sale.status == SaleStatus.COMPLETED, *filters)
        .order_by(Sale.sale_date)
        .all()
    )

    buckets = OrderedDict()
    for row in rows:
        key = _period_key(row.sale_date, period)
        bucket = buckets.setdefault(key, {'count': 0, 'revenue': Decimal('0.00')})
        bucket['count'] += 1
        bucket['revenue'] += to_money(row.total)

    data = [
        {
            'period': key,
            'sales_count': bucket['count'],
            'total_revenue': to_money(bucket['revenue']),
            'avg_ticket': to_money(bucket['revenue'] / bucket['count']),
        }
        for key, bucket in sorted(buckets.items())
    ]

    return {
        'period': period,
        'data': data,
        'filters': {'start_date': start, 'end_date': end},
    }


def search_sales(session: Session, term, page=1, limit=50) -> dict:
    """
    Find sales by client name, client email (case-insensitive, partial) or
    sale id (partial). The term is only ever used as a bound parameter.
    """
    if not isinstance(term, str) or not term.strip():
        raise ValidationError('El campo "search_term" es requerido')
    page, limit = validate_pagination(page, limit)

    term = term.strip()
    pattern = f'%{_escape_like(term.lower())}%'
    term_filter = or_(
        func.lower(Client.name).like(pattern, escape='\\'),
        func.lower(Client.email).like(pattern, escape='\\'),
        cast(Sale.id, String).like(pattern, escape='\\')
    )

    total = (
        session.query(func.count(Sale.id))
        .join(Client, Client.id == Sale.client_id)
        .filter(term_filter)
        .scalar()
    ) or 0
    rows = (
        _sale_rows_query(session)
        .filter(term_filter)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )

    return {
        'search_term': term,
        'sales': [_sale_row(row) for row in rows],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'pages': page_count(total, limit),
        },
    }
