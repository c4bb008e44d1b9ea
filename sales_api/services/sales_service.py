"""
Sales service with transactional logic.
Handles sale creation, cancellation with stock restoration, and lookups.
"""
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Tuple

from sqlalchemy.orm import Session, joinedload, selectinload

from sales_api.database import unit_of_work
from sales_api.exceptions import (
    ValidationError, ClientNotFoundError, ProductNotFoundError,
    SaleNotFoundError, AlreadyCancelledError
)
from sales_api.models import Client, Sale, SaleLine, SaleStatus
from sales_api.services.inventory_service import lock_products, decrement_stock, restore_stock
from sales_api.utils.formatters import to_money


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_items(items) -> List[Tuple[int, int]]:
    """Validate the requested items and return (product_id, quantity) pairs in input order."""
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError('Se requiere al menos un producto')

    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ValidationError(f'Ítem {index} inválido: se espera un objeto con product_id y quantity')
        product_id = item.get('product_id')
        quantity = item.get('quantity')
        if not _is_int(product_id):
            raise ValidationError(f'Ítem {index}: product_id debe ser un entero')
        if not _is_int(quantity) or quantity <= 0:
            raise ValidationError(f'Ítem {index}: la cantidad debe ser un entero mayor a 0')
        parsed.append((product_id, quantity))
    return parsed


def _sale_query(session: Session):
    return session.query(Sale).options(
        joinedload(Sale.client),
        selectinload(Sale.lines).joinedload(SaleLine.product)
    )


def create_sale(session: Session, client_id: int, items: list,
                clock: Callable[[], datetime] = datetime.now) -> Sale:
    """
    Create a completed sale, taking stock out of every product involved.

    Everything happens in one unit of work: if any item fails, no stock is
    decremented and no sale row exists afterwards.

    Args:
        session: SQLAlchemy session
        client_id: Owning client
        items: List of {'product_id': int, 'quantity': int}
        clock: Supplies the sale timestamp

    Returns:
        The persisted Sale with lines, client and products loaded.

    Raises:
        ValidationError: Missing or malformed input
        ClientNotFoundError, ProductNotFoundError: Unknown references
        InsufficientStockError: Requested quantity exceeds current stock
        StoreFailure: Persistence error (already rolled back)
    """
    if not _is_int(client_id):
        raise ValidationError('client_id es requerido y debe ser un entero')
    parsed_items = _parse_items(items)

    with unit_of_work(session):
        client = session.get(Client, client_id)
        if client is None:
            raise ClientNotFoundError(client_id)

        products = lock_products(session, [product_id for product_id, _ in parsed_items])

        sale_total = Decimal('0.00')
        lines = []
        for product_id, quantity in parsed_items:
            product = products.get(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)

            decrement_stock(product, quantity)

            unit_price = to_money(product.price)
            subtotal = to_money(unit_price * quantity)
            sale_total += subtotal
            lines.append(SaleLine(
                product=product,
                quantity=quantity,
                unit_price=unit_price,
                subtotal=subtotal
            ))

        sale = Sale(
            client=client,
            total=to_money(sale_total),
            status=SaleStatus.COMPLETED,
            sale_date=clock(),
            lines=lines
        )
        session.add(sale)
        session.flush()
        sale_id = sale.id

    return get_sale(session, sale_id)


def cancel_sale(session: Session, sale_id: int) -> Sale:
    """
    Cancel a sale and put its quantities back into stock.

    Stock restoration is blind: a line whose product no longer exists is
    skipped rather than failing the cancellation. Cancelled is terminal.

    Raises:
        SaleNotFoundError: Unknown sale
        AlreadyCancelledError: The sale was already cancelled
    """
    with unit_of_work(session):
        sale = session.query(Sale).filter(Sale.id == sale_id).with_for_update().first()
        if sale is None:
            raise SaleNotFoundError(sale_id)
        if sale.status == SaleStatus.CANCELLED:
            raise AlreadyCancelledError(sale_id)

        # Same ascending-id lock order as create_sale
        locked = lock_products(session, [line.product_id for line in sale.lines])
        for line in sale.lines:
            restore_stock(session, line.product_id, line.quantity, locked)

        sale.status = SaleStatus.CANCELLED

    return get_sale(session, sale_id)


def get_sale(session: Session, sale_id: int) -> Sale:
    """Fetch a sale with its lines, client and products."""
    sale = _sale_query(session).filter(Sale.id == sale_id).first()
    if sale is None:
        raise SaleNotFoundError(sale_id)
    return sale


def list_sales(session: Session) -> List[Sale]:
    """All sales, most recent first."""
    return _sale_query(session).order_by(Sale.sale_date.desc(), Sale.id.desc()).all()
