"""
Inventory ledger: stock locking, decrement and restoration.

Product stock is the only contended resource. It is only read-then-written
inside a unit of work, with the rows locked FOR UPDATE on stores that
support row locks.
"""
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from sales_api.models import Product
from sales_api.exceptions import InsufficientStockError


def lock_products(session: Session, product_ids: Iterable[int]) -> Dict[int, Product]:
    """
    Lock product rows FOR UPDATE and return them keyed by id.

    Rows are locked in ascending id order so two concurrent sales touching
    the same products cannot deadlock. Missing ids are simply absent from
    the result.
    """
    ids = sorted(set(product_ids))
    if not ids:
        return {}

    products = (
        session.query(Product)
        .filter(Product.id.in_(ids))
        .order_by(Product.id)
        .with_for_update()
        .populate_existing()
        .all()
    )
    return {p.id: p for p in products}


def decrement_stock(product: Product, quantity: int) -> int:
    """
    Take ``quantity`` units out of ``product``.

    The check runs against the in-session value, so decrements applied
    earlier in the same unit of work are already accounted for.

    Returns:
        The remaining stock.

    Raises:
        InsufficientStockError: quantity exceeds the available stock.
    """
    available = product.stock or 0
    if quantity > available:
        raise InsufficientStockError(product.id, quantity, available, product.name)
    product.stock = available - quantity
    return product.stock


def restore_stock(session: Session, product_id: int, quantity: int,
                  locked: Optional[Dict[int, Product]] = None) -> bool:
    """
    Put ``quantity`` units back into a product.

    ``locked`` is the result of an earlier ``lock_products`` call covering
    ``product_id``; without it the row is locked here.

    Restoration is blind: if the product row no longer exists the call is a
    no-op and returns False instead of raising.
    """
    if locked is None:
        locked = lock_products(session, [product_id])
    product = locked.get(product_id)
    if product is None:
        return False
    product.stock = (product.stock or 0) + quantity
    session.flush()
    return True
