"""Product catalog service."""
from decimal import Decimal, InvalidOperation
from typing import List

from sqlalchemy.orm import Session

from sales_api.database import unit_of_work
from sales_api.exceptions import ValidationError, ProductNotFoundError
from sales_api.models import Product
from sales_api.utils.formatters import to_money


def _parse_price(value) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError('El precio es obligatorio')
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError('El precio debe ser un número')
    if not price.is_finite() or price < 0:
        raise ValidationError('El precio no puede ser negativo')
    return to_money(price)


def _parse_stock(value) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError('El stock debe ser un número entero')
    if value < 0:
        raise ValidationError('El stock no puede ser negativo')
    return value


def create_product(session: Session, data: dict) -> Product:
    """Create a product. Price must be >= 0 and stock an integer >= 0."""
    name = str(data.get('name') or '').strip()
    if not name:
        raise ValidationError('El nombre del producto es obligatorio')
    if len(name) > 100:
        raise ValidationError('El nombre no puede superar 100 caracteres')

    product = Product(
        name=name,
        description=(str(data['description']).strip() or None) if data.get('description') else None,
        price=_parse_price(data.get('price')),
        stock=_parse_stock(data.get('stock')),
        image_path=(str(data['image_path']).strip() or None) if data.get('image_path') else None
    )
    with unit_of_work(session):
        session.add(product)
        session.flush()
    return product


def get_product(session: Session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def list_products(session: Session) -> List[Product]:
    return session.query(Product).order_by(Product.name, Product.id).all()
