"""Models package - exports all SQLAlchemy models."""
from sales_api.models.client import Client
from sales_api.models.product import Product
from sales_api.models.sale import Sale, SaleStatus
from sales_api.models.sale_line import SaleLine

__all__ = [
    'Client', 'Product', 'Sale', 'SaleStatus', 'SaleLine',
]
