"""Sales blueprint: creation, lookup and cancellation (JSON API)."""
from flask import Blueprint, request, jsonify, current_app

from sales_api.database import get_session
from sales_api.exceptions import ValidationError
from sales_api.services.sales_service import create_sale, cancel_sale, get_sale, list_sales
from sales_api.services.cache_service import get_cache
from sales_api.services.tool_service import invalidate_analytics_cache
from sales_api.blueprints.metrics import sales_created_total, sales_cancelled_total

sales_bp = Blueprint('sales', __name__, url_prefix='/api/sales')


@sales_bp.route('', methods=['POST'])
def create():
    """
    Create a sale.

    Body:
        {"client_id": 1, "products": [{"product_id": 2, "quantity": 3}]}
        ("items" is accepted as an alias of "products")
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Se espera un cuerpo JSON')

    items = data.get('products', data.get('items'))
    sale = create_sale(get_session(), data.get('client_id'), items)

    sales_created_total.inc()
    invalidate_analytics_cache(get_cache())
    current_app.logger.info(
        f"Sale created: id={sale.id} client={sale.client_id} total={sale.total} lines={len(sale.lines)}"
    )
    return jsonify({'message': 'Venta creada exitosamente', 'data': sale.to_dict()}), 201


@sales_bp.route('', methods=['GET'])
def index():
    """List all sales, most recent first."""
    sales = list_sales(get_session())
    return jsonify({'count': len(sales), 'data': [s.to_dict() for s in sales]})


@sales_bp.route('/<int:sale_id>', methods=['GET'])
def detail(sale_id: int):
    sale = get_sale(get_session(), sale_id)
    return jsonify({'data': sale.to_dict()})


@sales_bp.route('/<int:sale_id>/cancel', methods=['POST', 'DELETE'])
def cancel(sale_id: int):
    """Cancel a sale and restore its stock."""
    sale = cancel_sale(get_session(), sale_id)

    sales_cancelled_total.inc()
    invalidate_analytics_cache(get_cache())
    current_app.logger.info(f"Sale cancelled: id={sale.id}")
    return jsonify({'message': 'Venta cancelada exitosamente', 'data': sale.to_dict()})
