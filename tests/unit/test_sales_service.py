"""
Unit tests for the sale transaction workflow.
"""

import pytest
from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, func

from sales_api.exceptions import (
    ValidationError, ClientNotFoundError, ProductNotFoundError, SaleNotFoundError,
    InsufficientStockError, AlreadyCancelledError
)
from sales_api.models import Product, Sale, SaleLine, SaleStatus
from sales_api.services.sales_service import create_sale, cancel_sale, get_sale, list_sales


def _sale_count(session):
    return session.query(func.count(Sale.id)).scalar()


def _stock(session, product_id):
    session.expire_all()
    return session.get(Product, product_id).stock


class TestCreateSale:
    """Tests for create_sale."""

    def test_create_sale_scenario(self, session, client_a, product_p, clock):
        """Stock 5, buy 3: stock becomes 2 and total is 3 x price."""
        sale = create_sale(session, client_a.id, [{'product_id': product_p.id, 'quantity': 3}], clock=clock)

        assert sale.id is not None
        assert sale.status == SaleStatus.COMPLETED
        assert sale.total == Decimal('30.00')
        assert sale.sale_date == datetime(2024, 3, 15, 12, 0, 0)
        assert sale.client.id == client_a.id
        assert _stock(session, product_p.id) == 2

    def test_total_equals_sum_of_subtotals(self, session, client_a, product_p, product_q, clock):
        sale = create_sale(session, client_a.id, [
            {'product_id': product_p.id, 'quantity': 2},
            {'product_id': product_q.id, 'quantity': 3},
        ], clock=clock)

        assert len(sale.lines) == 2
        for line in sale.lines:
            assert line.subtotal == line.unit_price * line.quantity
        assert sale.total == sum(line.subtotal for line in sale.lines)
        assert sale.total == Decimal('27.50')

    def test_lines_keep_input_order(self, session, client_a, product_p, product_q, clock):
        sale = create_sale(session, client_a.id, [
            {'product_id': product_q.id, 'quantity': 1},
            {'product_id': product_p.id, 'quantity': 1},
        ], clock=clock)
        assert [line.product_id for line in sale.lines] == [product_q.id, product_p.id]

    def test_insufficient_stock_has_no_effect(self, session, client_a, product_p, clock):
        create_sale(session, client_a.id, [{'product_id': product_p.id, 'quantity': 3}], clock=clock)
        product_id = product_p.id

        with pytest.raises(InsufficientStockError) as exc_info:
            create_sale(session, client_a.id, [{'product_id': product_id, 'quantity': 10}], clock=clock)

        error = exc_info.value
        assert (error.product_id, error.requested, error.available) == (product_id, 10, 2)
        assert _stock(session, product_id) == 2
        assert _sale_count(session) == 1

    def test_failure_on_later_item_rolls_back_earlier_decrements(self, session, client_a, product_p, product_q, clock):
        with pytest.raises(InsufficientStockError):
            create_sale(session, client_a.id, [
                {'product_id': product_q.id, 'quantity': 4},
                {'product_id': product_p.id, 'quantity': 50},
            ], clock=clock)

        assert _stock(session, product_q.id) == 10
        assert _stock(session, product_p.id) == 5
        assert _sale_count(session) == 0
        assert session.query(func.count(SaleLine.id)).scalar() == 0

    def test_duplicate_items_are_cumulative(self, session, client_a, product_p, clock):
        """The second line sees the first line's decrement."""
        with pytest.raises(InsufficientStockError) as exc_info:
            create_sale(session, client_a.id, [
                {'product_id': product_p.id, 'quantity': 3},
                {'product_id': product_p.id, 'quantity': 3},
            ], clock=clock)
        assert exc_info.value.available == 2
        assert _stock(session, product_p.id) == 5

    def test_duplicate_items_within_stock(self, session, client_a, product_p, clock):
        sale = create_sale(session, client_a.id, [
            {'product_id': product_p.id, 'quantity': 2},
            {'product_id': product_p.id, 'quantity': 3},
        ], clock=clock)
        assert len(sale.lines) == 2
        assert _stock(session, product_p.id) == 0

    def test_unit_price_is_a_snapshot(self, session, client_a, product_p, clock):
        sale = create_sale(session, client_a.id, [{'product_id': product_p.id, 'quantity': 1}], clock=clock)
        sale_id = sale.id

        product = session.get(Product, product_p.id)
        product.price = Decimal('99.00')
        session.commit()

        sale = get_sale(session, sale_id)
        assert sale.lines[0].unit_price == Decimal('10.00')
        assert sale.total == Decimal('10.00')

    def test_unknown_client(self, session, product_p, clock):
        with pytest.raises(ClientNotFoundError):
            create_sale(session, 9999, [{'product_id': product_p.id, 'quantity': 1}], clock=clock)
        assert _stock(session, product_p.id) == 5

    def test_unknown_product(self, session, client_a, product_p, clock):
        with pytest.raises(ProductNotFoundError) as exc_info:
            create_sale(session, client_a.id, [
                {'product_id': product_p.id, 'quantity': 1},
                {'product_id': 9999, 'quantity': 1},
            ], clock=clock)
        assert exc_info.value.product_id == 9999
        assert _stock(session, product_p.id) == 5
        assert _sale_count(session) == 0

    @pytest.mark.parametrize('items', [
        [],
        None,
        'not-a-list',
        [{'product_id': 1}],
        [{'product_id': 1, 'quantity': 0}],
        [{'product_id': 1, 'quantity': -2}],
        [{'product_id': 1, 'quantity': 1.5}],
        [{'product_id': '1', 'quantity': 1}],
        [{'product_id': 1, 'quantity': True}],
        ['product-1'],
    ])
    def test_invalid_items(self, session, client_a, items, clock):
        with pytest.raises(ValidationError):
            create_sale(session, client_a.id, items, clock=clock)
        assert _sale_count(session) == 0

    @pytest.mark.parametrize('client_id', [None, '1', 1.0, True])
    def test_invalid_client_id(self, session, product_p, client_id, clock):
        with pytest.raises(ValidationError):
            create_sale(session, client_id, [{'product_id': product_p.id, 'quantity': 1}], clock=clock)


class TestCancelSale:
    """Tests for cancel_sale."""

    def test_round_trip_restores_stock(self, session, client_a, product_p, product_q, clock):
        sale = create_sale(session, client_a.id, [
            {'product_id': product_p.id, 'quantity': 3},
            {'product_id': product_q.id, 'quantity': 7},
        ], clock=clock)

        cancelled = cancel_sale(session, sale.id)

        assert cancelled.status == SaleStatus.CANCELLED
        assert cancelled.is_cancelled
        assert _stock(session, product_p.id) == 5
        assert _stock(session, product_q.id) == 10

    def test_cancel_twice_restores_once(self, session, client_a, product_p, clock):
        sale = create_sale(session, client_a.id, [{'product_id': product_p.id, 'quantity': 3}], clock=clock)
        sale_id = sale.id

        cancel_sale(session, sale_id)
        with pytest.raises(AlreadyCancelledError) as exc_info:
            cancel_sale(session, sale_id)

        assert exc_info.value.status_code == 409
        assert _stock(session, product_p.id) == 5

    def test_cancel_keeps_total_and_lines(self, session, client_a, product_p, clock):
        sale = create_sale(session, client_a.id, [{'product_id': product_p.id, 'quantity': 2}], clock=clock)
        cancelled = cancel_sale(session, sale.id)
        assert cancelled.total == Decimal('20.00')
        assert len(cancelled.lines) == 1

    def test_unknown_sale(self, session):
        with pytest.raises(SaleNotFoundError):
            cancel_sale(session, 12345)

    def test_cancel_locks_products_once_in_id_order(self, session, client_a, product_p, product_q, clock, monkeypatch):
        """Lines in descending id order are still locked together, ascending, before any restore."""
        from sales_api.services import inventory_service, sales_service

        sale = create_sale(session, client_a.id, [
            {'product_id': product_q.id, 'quantity': 1},
            {'product_id': product_p.id, 'quantity': 1},
        ], clock=clock)
        sale_id = sale.id

        calls = []
        real_lock = inventory_service.lock_products

        def recording_lock(s, product_ids):
            calls.append(list(product_ids))
            return real_lock(s, product_ids)

        monkeypatch.setattr(sales_service, 'lock_products', recording_lock)
        monkeypatch.setattr(inventory_service, 'lock_products', recording_lock)

        cancel_sale(session, sale_id)

        assert len(calls) == 1
        assert sorted(calls[0]) == sorted([product_p.id, product_q.id])
        assert _stock(session, product_p.id) == 5
        assert _stock(session, product_q.id) == 10

    def test_missing_product_is_skipped(self, session, client_a, product_p, product_q, clock):
        """Restoration is blind: a deleted product does not block cancellation."""
        sale = create_sale(session, client_a.id, [
            {'product_id': product_p.id, 'quantity': 2},
            {'product_id': product_q.id, 'quantity': 1},
        ], clock=clock)
        sale_id, removed_id, kept_id = sale.id, product_p.id, product_q.id

        session.execute(delete(Product).where(Product.id == removed_id))
        session.commit()
        session.expire_all()

        cancelled = cancel_sale(session, sale_id)
        assert cancelled.status == SaleStatus.CANCELLED
        assert session.get(Product, removed_id) is None
        assert _stock(session, kept_id) == 10


class TestLookups:

    def test_get_sale(self, session, client_a, product_p, clock):
        sale = create_sale(session, client_a.id, [{'product_id': product_p.id, 'quantity': 1}], clock=clock)
        found = get_sale(session, sale.id)
        assert found.id == sale.id
        assert found.lines[0].product.name == 'Teclado'

    def test_get_missing_sale(self, session):
        with pytest.raises(SaleNotFoundError):
            get_sale(session, 1)

    def test_list_sales_most_recent_first(self, session, client_a, product_p):
        first = create_sale(session, client_a.id, [{'product_id': product_p.id, 'quantity': 1}],
                            clock=lambda: datetime(2024, 1, 1, 10, 0))
        second = create_sale(session, client_a.id, [{'product_id': product_p.id, 'quantity': 1}],
                             clock=lambda: datetime(2024, 2, 1, 10, 0))
        first_id, second_id = first.id, second.id

        assert [s.id for s in list_sales(session)] == [second_id, first_id]

    def test_list_sales_empty(self, session):
        assert list_sales(session) == []
