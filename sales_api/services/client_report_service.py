"""Client analytics: totals, best customers and purchase frequency."""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, distinct, and_
from sqlalchemy.orm import Session

from sales_api.models import Client, Sale, SaleStatus
from sales_api.utils.formatters import to_money
from sales_api.utils.validators import require_int

# (label, lowest purchase count) in ascending order
FREQUENCY_GROUPS = [
    ('0_compras', 0),
    ('1_compra', 1),
    ('2-5_compras', 2),
    ('6-20_compras', 6),
    ('21+_compras', 21),
]


def clients_summary(session: Session, now: Optional[datetime] = None) -> dict:
    """Total clients, new clients in the last 30 days, with and without purchases."""
    now = now or datetime.now()
    total_clients = session.query(func.count(Client.id)).scalar() or 0
    new_clients = session.query(func.count(Client.id)).filter(
        Client.created_at >= now - timedelta(days=30)
    ).scalar() or 0
    with_purchases = session.query(func.count(distinct(Sale.client_id))).scalar() or 0

    return {
        'total_clients': total_clients,
        'new_last_30_days': new_clients,
        'clients_with_purchases': with_purchases,
        'clients_without_purchases': total_clients - with_purchases,
    }


def top_clients(session: Session, limit=10) -> dict:
    """Clients ranked by total spent on completed sales."""
    limit = require_int(limit, 'limit', minimum=1, maximum=20)

    total_spent = func.sum(Sale.total)
    rows = (
        session.query(
            Client.id,
            Client.name,
            Client.email,
            func.count(Sale.id).label('total_purchases'),
            total_spent.label('total_spent'),
            func.avg(Sale.total).label('avg_purchase'),
            func.max(Sale.sale_date).label('last_purchase')
        )
        .join(Sale, Sale.client_id == Client.id)
        .filter(Sale.status == SaleStatus.COMPLETED)
        .group_by(Client.id, Client.name, Client.email)
        .order_by(total_spent.desc(), Client.id)
        .limit(limit)
        .all()
    )

    return {
        'top_clients': [
            {
                'client_id': row.id,
                'client_name': row.name,
                'client_email': row.email,
                'total_purchases': row.total_purchases,
                'total_spent': to_money(row.total_spent),
                'avg_purchase': to_money(row.avg_purchase),
                'last_purchase': row.last_purchase,
            }
            for row in rows
        ],
        'criteria': {'status': SaleStatus.COMPLETED.value, 'order_by': 'total_spent'},
        'limit': limit,
    }


def _frequency_label(purchase_count: int) -> str:
    label = FREQUENCY_GROUPS[0][0]
    for group_label, lowest in FREQUENCY_GROUPS:
        if purchase_count >= lowest:
            label = group_label
    return label


def clients_by_purchase_frequency(session: Session) -> dict:
    """Group clients by how many completed purchases they made."""
    rows = (
        session.query(
            Client.id,
            func.count(Sale.id).label('purchase_count'),
            func.coalesce(func.sum(Sale.total), 0).label('total_spent')
        )
        .outerjoin(Sale, and_(Sale.client_id == Client.id, Sale.status == SaleStatus.COMPLETED))
        .group_by(Client.id)
        .all()
    )

    groups = {}
    for row in rows:
        group = groups.setdefault(_frequency_label(row.purchase_count), {'count': 0, 'spent': Decimal('0')})
        group['count'] += 1
        group['spent'] += to_money(row.total_spent)

    distribution = []
    for label, _ in FREQUENCY_GROUPS:
        group = groups.get(label)
        if not group:
            continue
        distribution.append({
            'frequency_group': label,
            'client_count': group['count'],
            'avg_total_spent': to_money(group['spent'] / group['count']),
        })

    return {'frequency_distribution': distribution}
