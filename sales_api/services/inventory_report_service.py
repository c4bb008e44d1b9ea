"""
Inventory reporting: stock alerts, turnover and price distribution.
All functions are read-only.
"""
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from sales_api.models import Product, Sale, SaleLine, SaleStatus
from sales_api.utils.formatters import to_money
from sales_api.utils.validators import require_int

# Ratio reported for products that sold units but have no stock left
TURNOVER_SENTINEL = Decimal('999.99')

PRICE_RANGES = [
    ('0-99', Decimal('100')),
    ('100-499', Decimal('500')),
    ('500-1999', Decimal('2000')),
    ('2000-9999', Decimal('10000')),
    ('10000+', None),
]


def inventory_status(session: Session, low_stock_threshold=10) -> dict:
    """
    Split products into low-stock (stock <= threshold) and out-of-stock
    (stock == 0), both sorted by ascending stock.
    """
    threshold = require_int(low_stock_threshold, 'low_stock_threshold', minimum=0)

    total_products = session.query(func.count(Product.id)).scalar() or 0
    by_stock = (Product.stock.asc(), Product.id.asc())

    low_stock = session.query(Product).filter(Product.stock <= threshold).order_by(*by_stock).all()
    out_of_stock = (
        session.query(Product.id, Product.name)
        .filter(Product.stock == 0)
        .order_by(Product.id.asc())
        .all()
    )

    return {
        'total_products': total_products,
        'low_stock_alert': {
            'threshold': threshold,
            'count': len(low_stock),
            'products': [
                {'id': p.id, 'name': p.name, 'stock': p.stock, 'price': to_money(p.price)}
                for p in low_stock
            ],
        },
        'out_of_stock': [{'id': row.id, 'name': row.name} for row in out_of_stock],
    }


def product_turnover(session: Session, limit=10) -> dict:
    """
    Units sold in completed sales divided by current stock, highest first.

    Products without completed sales are left out; products that sold units
    and have zero stock get TURNOVER_SENTINEL.
    """
    limit = require_int(limit, 'limit', minimum=1, maximum=20)

    sold = (
        session.query(
            SaleLine.product_id.label('product_id'),
            func.sum(SaleLine.quantity).label('total_sold')
        )
        .join(Sale, Sale.id == SaleLine.sale_id)
        .filter(Sale.status == SaleStatus.COMPLETED)
        .group_by(SaleLine.product_id)
        .subquery()
    )
    rows = (
        session.query(Product.id, Product.name, Product.stock, sold.c.total_sold)
        .join(sold, sold.c.product_id == Product.id)
        .filter(sold.c.total_sold > 0)
        .all()
    )

    results = []
    for row in rows:
        total_sold = int(row.total_sold)
        if row.stock > 0:
            ratio = (Decimal(total_sold) / Decimal(row.stock)).quantize(Decimal('0.01'))
        else:
            ratio = TURNOVER_SENTINEL
        results.append({
            'product_id': row.id,
            'product_name': row.name,
            'product_stock': row.stock,
            'total_sold': total_sold,
            'turnover_ratio': ratio,
        })
    results.sort(key=lambda r: (-r['turnover_ratio'], r['product_id']))

    return {
        'high_turnover_products': results[:limit],
        'note': 'turnover_ratio = unidades vendidas / stock actual (mayor = más rotación)',
        'limit': limit,
    }


def _price_range_label(price: Decimal) -> str:
    for label, upper in PRICE_RANGES:
        if upper is None or price < upper:
            return label
    return PRICE_RANGES[-1][0]


def products_by_price_range(session: Session) -> dict:
    """Product count, average price and total stock per price band."""
    groups = {}
    for price, stock in session.query(Product.price, Product.stock).all():
        price = to_money(price)
        group = groups.setdefault(_price_range_label(price), {'count': 0, 'price_sum': Decimal('0'), 'stock': 0})
        group['count'] += 1
        group['price_sum'] += price
        group['stock'] += stock

    price_ranges = []
    for label, _ in PRICE_RANGES:
        group = groups.get(label)
        if not group:
            continue
        price_ranges.append({
            'price_range': label,
            'product_count': group['count'],
            'avg_price': to_money(group['price_sum'] / group['count']),
            'total_stock': group['stock'],
        })

    return {'price_ranges': price_ranges, 'currency': 'MXN'}
