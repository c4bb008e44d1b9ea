import pytest
from datetime import datetime
from decimal import Decimal

from sales_api import create_app
from sales_api.database import get_database
from sales_api.models import Client, Product, Sale, SaleLine, SaleStatus


FIXED_NOW = datetime(2024, 3, 15, 12, 0, 0)


@pytest.fixture(scope='function')
def app():
    """Create application instance with a fresh in-memory database."""
    app = create_app('config.TestingConfig')
    ctx = app.app_context()
    ctx.push()
    database = get_database()
    database.create_all()

    yield app

    database.session.remove()
    database.drop_all()
    database.close()
    ctx.pop()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session shared with the request handlers."""
    session = get_database().session
    yield session
    session.rollback()


@pytest.fixture
def clock():
    """Deterministic clock for sale timestamps."""
    return lambda: FIXED_NOW


@pytest.fixture(scope='function')
def client_a(session):
    """Create a test client."""
    client = Client(name='Ana García', email='ana@example.com', phone='5550001')
    session.add(client)
    session.commit()
    return client


@pytest.fixture(scope='function')
def product_p(session):
    """Product priced at 10.00 with 5 units in stock."""
    product = Product(name='Teclado', price=Decimal('10.00'), stock=5)
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product_q(session):
    """Product priced at 2.50 with 10 units in stock."""
    product = Product(name='Mouse', price=Decimal('2.50'), stock=10)
    session.add(product)
    session.commit()
    return product


@pytest.fixture
def make_sale(session):
    """
    Insert a sale row directly, bypassing the workflow (for report tests).

    Usage: make_sale(client, [(product, qty)], sale_date=..., status=...)
    """
    def _make(client, items, sale_date=FIXED_NOW, status=SaleStatus.COMPLETED):
        lines = []
        total = Decimal('0.00')
        for product, quantity in items:
            subtotal = (Decimal(product.price) * quantity).quantize(Decimal('0.01'))
            total += subtotal
            lines.append(SaleLine(
                product_id=product.id,
                quantity=quantity,
                unit_price=product.price,
                subtotal=subtotal
            ))
        sale = Sale(client_id=client.id, total=total, status=status, sale_date=sale_date, lines=lines)
        session.add(sale)
        session.commit()
        return sale
    return _make
